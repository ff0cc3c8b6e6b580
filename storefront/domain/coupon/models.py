from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from storefront.db import Base
from storefront.domain.core.enums import CouponKind


class Coupon(Base):
    __tablename__ = "coupons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # stored upper-case; lookups normalise the input the same way
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    kind: Mapped[CouponKind] = mapped_column(Enum(CouponKind), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    min_order_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_redemptions: Mapped[int | None] = mapped_column(Integer)
    current_redemptions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped["DateTime | None"] = mapped_column(DateTime(timezone=True))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
