import os
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront import models
from storefront.db import SessionLocal
from storefront.security import create_admin_token


def uid() -> str:
    return str(uuid.uuid4())


def get_or_create_product(
    db: Session,
    name: str,
    price_cents: int,
    stock: int,
    promo_price_cents: int | None = None,
    description: str | None = None,
) -> models.Product:
    product = db.scalar(select(models.Product).where(models.Product.name == name))
    if product:
        product.price_cents = price_cents
        product.promo_price_cents = promo_price_cents
        product.stock = stock
        if description is not None:
            product.description = description
        return product
    product = models.Product(
        id=uid(),
        name=name,
        description=description,
        price_cents=price_cents,
        promo_price_cents=promo_price_cents,
        stock=stock,
        is_active=True,
    )
    db.add(product)
    return product


def ensure_coupon(
    db: Session,
    code: str,
    kind: models.CouponKind,
    value: Decimal,
    min_order_cents: int = 0,
    max_redemptions: int | None = None,
    expires_at: datetime | None = None,
) -> models.Coupon:
    normalized = code.strip().upper()
    coupon = db.scalar(select(models.Coupon).where(models.Coupon.code == normalized))
    if coupon:
        coupon.kind = kind
        coupon.value = value
        coupon.min_order_cents = min_order_cents
        coupon.max_redemptions = max_redemptions
        coupon.expires_at = expires_at
        coupon.active = True
        return coupon
    coupon = models.Coupon(
        id=uid(),
        code=normalized,
        kind=kind,
        value=value,
        min_order_cents=min_order_cents,
        max_redemptions=max_redemptions,
        expires_at=expires_at,
        active=True,
    )
    db.add(coupon)
    return coupon


def main() -> None:
    db: Session = SessionLocal()
    try:
        get_or_create_product(db, "Brinco Argola Dourada", 8990, stock=20)
        get_or_create_product(db, "Colar Ponto de Luz", 12990, stock=15, promo_price_cents=10990)
        get_or_create_product(db, "Anel Solitário Prata", 15990, stock=8)
        get_or_create_product(db, "Pulseira Riviera", 21990, stock=5)

        now = datetime.now(timezone.utc)
        ensure_coupon(db, "PROMO10", models.CouponKind.percent, Decimal("10"), min_order_cents=10000)
        ensure_coupon(db, "BEMVINDA20", models.CouponKind.fixed, Decimal("20"), min_order_cents=15000, max_redemptions=100)
        ensure_coupon(db, "FRETEGRATIS", models.CouponKind.free_shipping, Decimal("0"), min_order_cents=9900)
        ensure_coupon(db, "OLD5", models.CouponKind.fixed, Decimal("5"), expires_at=now - timedelta(days=30))

        db.commit()
        print("Seed completed.")

        admin_subject = os.getenv("SEED_ADMIN_SUBJECT")
        if admin_subject:
            print(f"Admin token for {admin_subject}: {create_admin_token(admin_subject)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
