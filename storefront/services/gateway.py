"""
Payment provider adapter (Mercado Pago style REST API).

Every call runs under the configured timeout and is attempted once; callers
decide about retries. Transport failures, non-2xx answers and bodies that do
not parse are all surfaced as ``GatewayError``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from storefront import models
from storefront.db import settings
from storefront.errors import GatewayError, PaymentDeclined

logger = logging.getLogger(__name__)

PENDING_CARD_STATUSES = frozenset({"pending", "in_process"})


class GatewayPayment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    status_detail: Optional[str] = None
    external_reference: Optional[str] = None
    transaction_amount: Optional[float] = None
    installments: Optional[int] = None
    date_of_expiration: Optional[datetime] = None
    point_of_interaction: Optional[dict[str, Any]] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, value: Any) -> str:
        return str(value)

    @field_validator("status")
    @classmethod
    def status_lower(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def transaction_data(self) -> dict[str, Any]:
        return (self.point_of_interaction or {}).get("transaction_data") or {}


@dataclass(frozen=True)
class PixCharge:
    gateway_payment_id: str
    raw_status: str
    qr_code: str | None
    qr_code_base64: str | None
    ticket_url: str | None
    expires_at: datetime | None


@dataclass(frozen=True)
class CardCharge:
    gateway_payment_id: str
    raw_status: str
    approved: bool
    status_detail: str | None = None


def _amount(cents: int) -> float:
    return float(Decimal(cents) / Decimal(100))


def _split_name(full_name: str) -> tuple[str, str]:
    parts = (full_name or "").strip().split(" ", 1)
    first = parts[0] if parts else ""
    last = parts[1] if len(parts) > 1 else ""
    return first, last


def _payer(order: models.Order, customer_id: str | None = None) -> dict[str, Any]:
    first_name, last_name = _split_name(order.customer_name)
    payer: dict[str, Any] = {
        "email": order.customer_email,
        "first_name": first_name,
        "last_name": last_name,
    }
    if order.customer_tax_id:
        payer["identification"] = {"type": "CPF", "number": order.customer_tax_id}
    if customer_id:
        payer["id"] = customer_id
        payer["type"] = "customer"
    return payer


class GatewayClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
        notification_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.gateway_api_url).rstrip("/")
        self.access_token = access_token if access_token is not None else settings.gateway_access_token
        self.timeout = timeout if timeout is not None else settings.gateway_timeout_seconds
        self.notification_url = notification_url or settings.gateway_notification_url
        self._transport = transport

    def _headers(self, idempotency_key: str | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self._headers(idempotency_key),
                )
        except httpx.TimeoutException as exc:
            logger.warning("Gateway timeout method=%s path=%s", method, path)
            raise GatewayError("Payment gateway timed out", cause=exc) from exc
        except httpx.HTTPError as exc:
            logger.warning("Gateway request failed method=%s path=%s error=%s", method, path, exc)
            raise GatewayError("Payment gateway unavailable", cause=exc) from exc

        if response.status_code >= 400:
            logger.warning(
                "Gateway error status method=%s path=%s status=%s body=%s",
                method,
                path,
                response.status_code,
                response.text[:500],
            )
            raise GatewayError(
                f"Payment gateway answered {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayError("Payment gateway returned an invalid body", cause=exc) from exc
        if not isinstance(body, dict):
            raise GatewayError("Payment gateway returned an invalid body")
        return body

    def _parse_payment(self, body: dict[str, Any]) -> GatewayPayment:
        try:
            return GatewayPayment.model_validate(body)
        except PydanticValidationError as exc:
            raise GatewayError("Unexpected payment payload from gateway", cause=exc) from exc

    async def ensure_customer(self, order: models.Order) -> str:
        """Gateway customer id for the order's e-mail, created when missing."""
        found = await self._request("GET", "/v1/customers/search", params={"email": order.customer_email})
        results = found.get("results") or []
        if results and results[0].get("id"):
            return str(results[0]["id"])

        first_name, last_name = _split_name(order.customer_name)
        payload: dict[str, Any] = {
            "email": order.customer_email,
            "first_name": first_name,
            "last_name": last_name,
        }
        if order.customer_tax_id:
            payload["identification"] = {"type": "CPF", "number": order.customer_tax_id}
        created = await self._request("POST", "/v1/customers", json=payload)
        customer_id = created.get("id")
        if not customer_id:
            raise GatewayError("Gateway did not return a customer id")
        logger.info("Gateway customer created order_number=%s", order.order_number)
        return str(customer_id)

    def _payment_payload(self, order: models.Order, amount_cents: int, customer_id: str | None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "transaction_amount": _amount(amount_cents),
            "description": f"Pedido {order.order_number}",
            "external_reference": order.order_number,
            "payer": _payer(order, customer_id),
        }
        if self.notification_url:
            payload["notification_url"] = self.notification_url
        return payload

    async def create_pix_payment(
        self, order: models.Order, amount_cents: int, customer_id: str | None = None
    ) -> PixCharge:
        payload = self._payment_payload(order, amount_cents, customer_id)
        payload["payment_method_id"] = "pix"
        body = await self._request(
            "POST", "/v1/payments", json=payload, idempotency_key=f"{order.order_number}-pix"
        )
        payment = self._parse_payment(body)
        data = payment.transaction_data
        logger.info(
            "PIX charge created order_number=%s payment_id=%s status=%s",
            order.order_number,
            payment.id,
            payment.status,
        )
        return PixCharge(
            gateway_payment_id=payment.id,
            raw_status=payment.status,
            qr_code=data.get("qr_code"),
            qr_code_base64=data.get("qr_code_base64"),
            ticket_url=data.get("ticket_url"),
            expires_at=payment.date_of_expiration,
        )

    async def create_card_payment(
        self,
        order: models.Order,
        amount_cents: int,
        *,
        card_token: str,
        installments: int,
        payment_method_id: str,
        issuer_id: str | None = None,
        customer_id: str | None = None,
    ) -> CardCharge:
        payload = self._payment_payload(order, amount_cents, customer_id)
        payload.update(
            {
                "token": card_token,
                "installments": installments,
                "payment_method_id": payment_method_id,
            }
        )
        if issuer_id:
            payload["issuer_id"] = issuer_id
        body = await self._request(
            "POST", "/v1/payments", json=payload, idempotency_key=f"{order.order_number}-card"
        )
        payment = self._parse_payment(body)
        logger.info(
            "Card charge answered order_number=%s payment_id=%s status=%s",
            order.order_number,
            payment.id,
            payment.status,
        )
        if payment.status == "approved":
            return CardCharge(payment.id, payment.status, True, payment.status_detail)
        if payment.status in PENDING_CARD_STATUSES:
            return CardCharge(payment.id, payment.status, False, payment.status_detail)
        raise PaymentDeclined(payment.status, payment.status_detail, gateway_payment_id=payment.id)

    async def get_payment(self, payment_id: str) -> GatewayPayment:
        body = await self._request("GET", f"/v1/payments/{payment_id}")
        return self._parse_payment(body)


def get_gateway_client() -> GatewayClient:
    return GatewayClient()
