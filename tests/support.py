"""Test doubles shared by the storefront tests."""

import asyncio
import hashlib
import hmac
import json
import re

import httpx

WEBHOOK_SECRET = "test-webhook-secret-0001"
GATEWAY_URL = "https://gateway.test"


class FakeGateway:
    """In-memory payment provider served through httpx.MockTransport."""

    def __init__(self):
        self.payments: dict[str, dict] = {}
        self.customers: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.card_status = "approved"
        self.card_status_detail = "accredited"
        self.fail_with: Exception | None = None
        self._seq = 0

    def _next_id(self) -> str:
        self._seq += 1
        return str(1000 + self._seq)

    def add_payment(self, payment_id: str, status: str, external_reference: str | None, amount: float = 100.0):
        self.payments[payment_id] = {
            "id": int(payment_id) if payment_id.isdigit() else payment_id,
            "status": status,
            "status_detail": None,
            "external_reference": external_reference,
            "transaction_amount": amount,
        }

    def set_status(self, payment_id: str, status: str):
        self.payments[payment_id]["status"] = status

    def payment_requests(self) -> list[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == "POST" and r.url.path == "/v1/payments"
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with

        path = request.url.path
        if request.method == "GET" and path == "/v1/customers/search":
            email = request.url.params.get("email")
            results = [{"id": self.customers[email]}] if email in self.customers else []
            return httpx.Response(200, json={"results": results})

        if request.method == "POST" and path == "/v1/customers":
            body = json.loads(request.content)
            customer_id = f"cus-{len(self.customers) + 1}"
            self.customers[body["email"]] = customer_id
            return httpx.Response(201, json={"id": customer_id})

        if request.method == "POST" and path == "/v1/payments":
            body = json.loads(request.content)
            payment_id = self._next_id()
            payment = {
                "id": int(payment_id),
                "external_reference": body["external_reference"],
                "transaction_amount": body["transaction_amount"],
                "installments": body.get("installments", 1),
            }
            if body["payment_method_id"] == "pix":
                payment.update(
                    {
                        "status": "pending",
                        "status_detail": "pending_waiting_transfer",
                        "date_of_expiration": "2026-10-19T12:00:00.000-03:00",
                        "point_of_interaction": {
                            "transaction_data": {
                                "qr_code": "00020126580014br.gov.bcb.pix",
                                "qr_code_base64": "iVBORw0KGgo=",
                                "ticket_url": "https://gateway.test/pix/" + payment_id,
                            }
                        },
                    }
                )
            else:
                payment.update({"status": self.card_status, "status_detail": self.card_status_detail})
            self.payments[payment_id] = payment
            return httpx.Response(201, json=payment)

        match = re.fullmatch(r"/v1/payments/([^/]+)", path)
        if request.method == "GET" and match:
            payment = self.payments.get(match.group(1))
            if payment is None:
                return httpx.Response(404, json={"message": "Payment not found"})
            return httpx.Response(200, json=payment)

        return httpx.Response(404, json={"message": "not found"})


class RecordingChannel:
    """Notification channel that records snapshots instead of sending them."""

    def __init__(self, name: str, *, enabled: bool = True, fail: bool = False, delay: float = 0.0):
        self.name = name
        self._enabled = enabled
        self.fail = fail
        self.delay = delay
        self.sent = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def send(self, snapshot) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"{self.name} is down")
        self.sent.append(snapshot)


def sign_webhook(payment_id: str, request_id: str, ts: str = "1760000000", secret: str = WEBHOOK_SECRET) -> str:
    manifest = f"id:{payment_id};request-id:{request_id};ts:{ts};"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return f"ts={ts},v1={digest}"
