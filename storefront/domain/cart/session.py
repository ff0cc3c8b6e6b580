"""
Serializable checkout session (cart, step, chosen region/coupon/method).

The snapshot carries ``schema_version``; older shapes are migrated on load so
the rest of the checkout only ever sees the current version.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from storefront.domain.core.enums import PaymentMethod
from storefront.domain.pricing.quote import CartLine
from storefront.errors import ValidationError

CURRENT_SCHEMA_VERSION = 2

CheckoutStep = Literal["cart", "address", "payment", "done"]


class SessionItem(BaseModel):
    product_id: str = Field(min_length=1)
    name: str = ""
    variant: Optional[str] = None
    quantity: int = Field(ge=1)
    unit_price_cents: int = Field(ge=0)
    promo_price_cents: Optional[int] = Field(default=None, ge=0)

    def to_cart_line(self) -> CartLine:
        return CartLine(
            product_id=self.product_id,
            name=self.name,
            variant=self.variant,
            quantity=self.quantity,
            unit_price_cents=self.unit_price_cents,
            promo_price_cents=self.promo_price_cents,
        )


class CheckoutSession(BaseModel):
    schema_version: Literal[2] = CURRENT_SCHEMA_VERSION
    items: list[SessionItem] = Field(default_factory=list)
    step: CheckoutStep = "cart"
    region: Optional[str] = None
    coupon_code: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None

    def cart_lines(self) -> list[CartLine]:
        return [item.to_cart_line() for item in self.items]


def _reais_to_cents(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid price in cart: {value}", field="items")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _migrate_v1_item(item: Any) -> dict:
    if not isinstance(item, dict):
        raise ValidationError("Invalid cart item", field="items")
    return {
        "product_id": str(item.get("id") or ""),
        "name": str(item.get("nome") or ""),
        "variant": item.get("variacao") or None,
        "quantity": item.get("quantidade"),
        "unit_price_cents": _reais_to_cents(item.get("preco")),
        "promo_price_cents": _reais_to_cents(item.get("preco_promocional", item.get("precoPromocional"))),
    }


def migrate_v1(raw: Any) -> dict:
    """Version 1 was the bare cart array kept in browser storage."""
    items = raw.get("items", []) if isinstance(raw, dict) else raw
    if not isinstance(items, list):
        raise ValidationError("Invalid cart snapshot", field="items")
    return {
        "schema_version": 2,
        "items": [_migrate_v1_item(item) for item in items],
        "step": "cart",
    }


def _detect_version(raw: Any) -> int:
    if isinstance(raw, list):
        return 1
    if not isinstance(raw, dict):
        raise ValidationError("Invalid checkout session", field="session")
    version = raw.get("schema_version", raw.get("version"))
    if version is None:
        return 1
    try:
        return int(version)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid checkout session version: {version}", field="session")


def load_checkout_session(raw: Any) -> CheckoutSession:
    version = _detect_version(raw)
    if version > CURRENT_SCHEMA_VERSION or version < 1:
        raise ValidationError(f"Unsupported checkout session version: {version}", field="session")
    data = migrate_v1(raw) if version == 1 else raw
    try:
        return CheckoutSession.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid checkout session", field="session") from exc


def dump_checkout_session(session: CheckoutSession) -> dict:
    return session.model_dump(mode="json")
