from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal, Union

from storefront.domain.core.enums import CouponKind
from storefront.domain.pricing.quote import CouponTerms, coupon_discount_cents

RejectionReason = Literal["not_found", "expired", "exhausted", "below_minimum"]


@dataclass(frozen=True)
class CouponValid:
    terms: CouponTerms
    discount_cents: int


@dataclass(frozen=True)
class CouponInvalid:
    reason: RejectionReason


CouponResult = Union[CouponValid, CouponInvalid]


def normalize_coupon_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_coupon(coupon, subtotal_cents: int, now: datetime | None = None) -> CouponResult:
    """Check a coupon row against a subtotal.

    Checks run in a fixed order and stop at the first failure: existence and
    ``active`` flag, expiry, redemption cap, minimum order value. The
    redemption counter is only read here.
    """
    if coupon is None or not coupon.active:
        return CouponInvalid("not_found")

    current = now or datetime.now(timezone.utc)
    if coupon.expires_at is not None and _as_aware(coupon.expires_at) < _as_aware(current):
        return CouponInvalid("expired")

    if coupon.max_redemptions is not None and coupon.current_redemptions >= coupon.max_redemptions:
        return CouponInvalid("exhausted")

    if subtotal_cents < int(coupon.min_order_cents or 0):
        return CouponInvalid("below_minimum")

    terms = CouponTerms(
        code=normalize_coupon_code(coupon.code),
        kind=CouponKind(coupon.kind),
        value=Decimal(coupon.value or 0),
    )
    return CouponValid(terms=terms, discount_cents=coupon_discount_cents(terms, subtotal_cents))
