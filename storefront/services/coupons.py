from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from storefront import models
from storefront.domain.coupon.validation import (
    CouponInvalid,
    CouponResult,
    CouponValid,
    normalize_coupon_code,
    validate_coupon,
)
from storefront.errors import CouponRejected


def get_coupon(db: Session, code: str | None) -> models.Coupon | None:
    normalized = normalize_coupon_code(code)
    if not normalized:
        return None
    return db.query(models.Coupon).filter(models.Coupon.code == normalized).first()


def check_coupon(db: Session, code: str | None, subtotal_cents: int, now: datetime | None = None) -> CouponResult:
    return validate_coupon(get_coupon(db, code), subtotal_cents, now=now)


def require_valid_coupon(
    db: Session, code: str | None, subtotal_cents: int, now: datetime | None = None
) -> CouponValid | None:
    """None when no code was given; raises CouponRejected for an invalid one."""
    if not normalize_coupon_code(code):
        return None
    result = check_coupon(db, code, subtotal_cents, now=now)
    if isinstance(result, CouponInvalid):
        raise CouponRejected(result.reason)
    return result


def redeem_coupon(db: Session, code: str) -> bool:
    """Count one use of the coupon; refused once the cap is reached. Commits."""
    normalized = normalize_coupon_code(code)
    affected = (
        db.query(models.Coupon)
        .filter(
            models.Coupon.code == normalized,
            or_(
                models.Coupon.max_redemptions.is_(None),
                models.Coupon.current_redemptions < models.Coupon.max_redemptions,
            ),
        )
        .update(
            {models.Coupon.current_redemptions: models.Coupon.current_redemptions + 1},
            synchronize_session=False,
        )
    )
    db.commit()
    return affected == 1
