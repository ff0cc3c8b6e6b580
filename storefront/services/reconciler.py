"""
Payment webhook reconciliation.

A notification only says "something happened to payment X". The pipeline is:

    authenticate -> fetch -> correlate -> plan -> apply -> notify

Each stage is a plain function so it can be exercised on its own. Status
moves are written with a single conditional UPDATE (see
``order_store.compare_and_set_status``) and the stock decrement for a
confirmation runs in the same transaction, only when that UPDATE won. Any
number of deliveries of the same notification therefore produce at most one
transition, one decrement per line and one notification fan-out.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from storefront import models
from storefront.domain.core.enums import OrderStatus
from storefront.domain.order.lifecycle import can_transition, coerce_status, map_gateway_status
from storefront.errors import ValidationError
from storefront.security import verify_webhook_signature
from storefront.services import order_store
from storefront.services.gateway import GatewayClient, GatewayPayment

logger = logging.getLogger(__name__)

PAYMENT_TOPICS = frozenset({"payment"})


class WebhookData(BaseModel):
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("data.id is required")
        return str(value).strip()


class WebhookNotification(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    action: Optional[str] = None
    data: WebhookData

    @property
    def payment_id(self) -> str:
        return self.data.id

    @property
    def is_payment(self) -> bool:
        topic = (self.type or "").strip().lower()
        if topic:
            return topic in PAYMENT_TOPICS
        return (self.action or "").startswith("payment.")


@dataclass(frozen=True)
class OrderItemSnapshot:
    product_id: str | None
    name: str
    variant: str | None
    quantity: int
    unit_price_cents: int


@dataclass(frozen=True)
class OrderSnapshot:
    """Immutable copy of a persisted order handed to notification channels."""

    order_id: str
    order_number: str
    status: str
    customer_name: str
    customer_email: str
    customer_phone: str | None
    address_text: str
    payment_method: str
    installments: int
    subtotal_cents: int
    shipping_cents: int
    discount_cents: int
    payment_discount_cents: int
    total_cents: int
    coupon_code: str | None
    created_at: datetime | None
    items: tuple[OrderItemSnapshot, ...] = field(default_factory=tuple)
    tracking_code: str | None = None

    @classmethod
    def from_order(cls, order: models.Order) -> "OrderSnapshot":
        complement = f" ({order.address_complement})" if order.address_complement else ""
        district = f"{order.address_district} - " if order.address_district else ""
        address_text = (
            f"{order.address_street}, {order.address_number}{complement}\n"
            f"{district}{order.address_city}/{order.address_state}\n"
            f"CEP: {order.address_postal_code}"
        )
        method = order.payment_method
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            status=order.status,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            address_text=address_text,
            payment_method=method.value if hasattr(method, "value") else str(method),
            installments=order.installments,
            subtotal_cents=order.subtotal_cents,
            shipping_cents=order.shipping_cents,
            discount_cents=order.discount_cents,
            payment_discount_cents=order.payment_discount_cents,
            total_cents=order.total_cents,
            coupon_code=order.coupon_code,
            created_at=order.created_at,
            items=tuple(
                OrderItemSnapshot(
                    product_id=item.product_id,
                    name=item.name,
                    variant=item.variant,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                )
                for item in order.items
            ),
            tracking_code=order.tracking_code,
        )


@dataclass(frozen=True)
class TransitionPlan:
    order_id: str
    order_number: str
    current: OrderStatus
    target: OrderStatus
    raw_status: str
    gateway_payment_id: str
    # (product_id, quantity) pairs to take out of stock when confirming
    stock_lines: tuple[tuple[str, int], ...] = ()


Outcome = Literal["transitioned", "skipped", "ignored", "order_not_found"]


@dataclass(frozen=True)
class ReconcileResult:
    outcome: Outcome
    reason: str
    order_number: str | None = None
    previous_status: OrderStatus | None = None
    status: OrderStatus | None = None
    snapshot: OrderSnapshot | None = None

    @property
    def should_notify(self) -> bool:
        return (
            self.outcome == "transitioned"
            and self.snapshot is not None
            and self.previous_status == OrderStatus.pending
            and self.status == OrderStatus.confirmed
        )


def extract_payment_id(payload: Any, query_params: dict[str, str] | None = None) -> str | None:
    """Best-effort payment id used for the signature manifest, before strict parsing."""
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict) and data.get("id") not in (None, ""):
            return str(data["id"]).strip()
    if query_params:
        value = query_params.get("data.id") or query_params.get("id")
        if value:
            return value.strip()
    return None


def parse_notification(payload: Any) -> WebhookNotification:
    try:
        return WebhookNotification.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid webhook payload", field="data.id") from exc


def authenticate(
    signature_header: str | None,
    request_id: str | None,
    payment_id: str | None,
    secrets: list[str] | None = None,
) -> None:
    verify_webhook_signature(signature_header, request_id, payment_id, secrets=secrets)


async def fetch_payment(gateway: GatewayClient, payment_id: str) -> GatewayPayment:
    # the notification body is never trusted for status or amount
    return await gateway.get_payment(payment_id)


def correlate_order(db: Session, payment: GatewayPayment) -> models.Order | None:
    order = None
    if payment.external_reference:
        order = order_store.get_order_by_number(db, payment.external_reference)
    if order is None:
        order = order_store.get_order_by_gateway_payment_id(db, payment.id)
    return order


def plan_transition(order: models.Order, payment: GatewayPayment) -> TransitionPlan | None:
    """Return the move to apply, or None when the notification changes nothing."""
    target = map_gateway_status(payment.status)
    if target is None:
        logger.info(
            "Webhook status ignored order_number=%s raw_status=%s",
            order.order_number,
            payment.status,
        )
        return None
    current = coerce_status(order.status)
    if current is None or not can_transition(current, target):
        logger.info(
            "Webhook transition skipped order_number=%s current=%s target=%s",
            order.order_number,
            order.status,
            target.value,
        )
        return None
    stock_lines: tuple[tuple[str, int], ...] = ()
    if target == OrderStatus.confirmed:
        stock_lines = tuple((item.product_id, item.quantity) for item in order.items if item.product_id)
    return TransitionPlan(
        order_id=order.id,
        order_number=order.order_number,
        current=current,
        target=target,
        raw_status=payment.status,
        gateway_payment_id=payment.id,
        stock_lines=stock_lines,
    )


def apply_transition(db: Session, plan: TransitionPlan) -> bool:
    """Write the move and its stock effect in one transaction. False when another writer got there first."""
    try:
        won = order_store.compare_and_set_status(
            db,
            plan.order_id,
            plan.current,
            plan.target,
            gateway_payment_status=plan.raw_status,
        )
        if not won:
            db.rollback()
            logger.info(
                "Webhook transition lost race order_number=%s expected=%s",
                plan.order_number,
                plan.current.value,
            )
            return False
        for product_id, quantity in plan.stock_lines:
            remaining = order_store.decrement_stock(db, product_id, quantity)
            if remaining is None:
                logger.warning(
                    "Stock decrement skipped order_number=%s product_id=%s reason=unknown_product",
                    plan.order_number,
                    product_id,
                )
            elif remaining == 0:
                logger.info("Product out of stock product_id=%s", product_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "Order status changed order_number=%s from=%s to=%s raw_status=%s",
        plan.order_number,
        plan.current.value,
        plan.target.value,
        plan.raw_status,
    )
    return True


def _load_snapshot(db: Session, order_id: str) -> OrderSnapshot | None:
    db.expire_all()
    order = db.query(models.Order).filter(models.Order.id == order_id).first()
    if order is None:
        return None
    return OrderSnapshot.from_order(order)


async def reconcile_notification(
    db: Session,
    gateway: GatewayClient,
    notification: WebhookNotification,
) -> ReconcileResult:
    """Run fetch, correlate, plan and apply for an already authenticated notification."""
    if not notification.is_payment:
        logger.info("Webhook ignored type=%s action=%s", notification.type, notification.action)
        return ReconcileResult(outcome="ignored", reason="not_a_payment")

    payment = await fetch_payment(gateway, notification.payment_id)
    order = correlate_order(db, payment)
    if order is None:
        logger.info(
            "Webhook order not found payment_id=%s external_reference=%s",
            payment.id,
            payment.external_reference,
        )
        return ReconcileResult(outcome="order_not_found", reason="order_not_found")

    plan = plan_transition(order, payment)
    current = coerce_status(order.status)
    if plan is None:
        if order.gateway_payment_status != payment.status:
            order_store.record_gateway_status(db, order.id, payment.status)
        return ReconcileResult(
            outcome="skipped",
            reason="no_transition",
            order_number=order.order_number,
            previous_status=current,
            status=current,
        )

    if not apply_transition(db, plan):
        db.refresh(order)
        return ReconcileResult(
            outcome="skipped",
            reason="concurrent_update",
            order_number=plan.order_number,
            previous_status=plan.current,
            status=coerce_status(order.status),
        )

    return ReconcileResult(
        outcome="transitioned",
        reason="applied",
        order_number=plan.order_number,
        previous_status=plan.current,
        status=plan.target,
        snapshot=_load_snapshot(db, plan.order_id),
    )
