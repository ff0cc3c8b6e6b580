"""
Checkout pricing: subtotal, coupon discount, shipping, PIX discount and card
installments. Everything here is pure; amounts are integer cents.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from storefront.domain.core.enums import CouponKind, PaymentMethod
from storefront.domain.pricing.shipping import qualifies_for_free_shipping, region_fee_cents
from storefront.errors import ValidationError

PIX_DISCOUNT_PERCENT = Decimal("5")
MAX_INSTALLMENTS = 10
INTEREST_FREE_INSTALLMENTS = 4
MONTHLY_INTEREST_RATE = 0.02


@dataclass(frozen=True)
class CartLine:
    product_id: str | None
    name: str
    quantity: int
    unit_price_cents: int
    variant: str | None = None
    promo_price_cents: int | None = None

    @property
    def effective_price_cents(self) -> int:
        if self.promo_price_cents is not None:
            return self.promo_price_cents
        return self.unit_price_cents

    @property
    def amount_cents(self) -> int:
        return self.effective_price_cents * self.quantity


@dataclass(frozen=True)
class CouponTerms:
    code: str
    kind: CouponKind
    value: Decimal


@dataclass(frozen=True)
class InstallmentOption:
    count: int
    installment_cents: int
    total_cents: int
    interest_free: bool


@dataclass(frozen=True)
class Quote:
    subtotal_cents: int
    shipping_cents: int
    discount_cents: int
    base_total_cents: int
    pix_total_cents: int
    payment_method: PaymentMethod
    coupon_code: str | None = None
    installment_options: tuple[InstallmentOption, ...] = field(default_factory=tuple)

    @property
    def payment_discount_cents(self) -> int:
        if self.payment_method == PaymentMethod.pix:
            return self.base_total_cents - self.pix_total_cents
        return 0

    @property
    def total_cents(self) -> int:
        return self.base_total_cents - self.payment_discount_cents

    def installment_option(self, count: int) -> InstallmentOption:
        for option in self.installment_options:
            if option.count == count:
                return option
        raise ValidationError(f"Invalid installment count: {count}", field="installments")


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def subtotal_cents(lines: list[CartLine]) -> int:
    return sum(line.amount_cents for line in lines)


def coupon_discount_cents(coupon: CouponTerms | None, subtotal: int) -> int:
    if coupon is None:
        return 0
    if coupon.kind == CouponKind.percent:
        return min(_round_cents(Decimal(subtotal) * Decimal(coupon.value) / Decimal(100)), subtotal)
    if coupon.kind == CouponKind.fixed:
        return min(_round_cents(Decimal(coupon.value) * 100), subtotal)
    return 0


def shipping_cents(region: str | None, subtotal: int, coupon: CouponTerms | None) -> int:
    # region unknown yet (address not filled): nothing to charge
    if region is None:
        return 0
    fee = region_fee_cents(region)
    if qualifies_for_free_shipping(subtotal):
        return 0
    if coupon is not None and coupon.kind == CouponKind.free_shipping:
        return 0
    return fee


def pix_total_cents(base_total: int) -> int:
    discount = _round_cents(Decimal(base_total) * PIX_DISCOUNT_PERCENT / Decimal(100))
    return base_total - discount


def installment_value_cents(base_total: int, count: int) -> int:
    if count < 1 or count > MAX_INSTALLMENTS:
        raise ValidationError(f"Invalid installment count: {count}", field="installments")
    if count <= INTEREST_FREE_INSTALLMENTS:
        return _round_cents(Decimal(base_total) / Decimal(count))
    rate = MONTHLY_INTEREST_RATE
    growth = (1 + rate) ** count
    factor = (rate * growth) / (growth - 1)
    # half-up on the float, same as the amount the gateway is asked to charge
    return int(math.floor(base_total * factor + 0.5))


def installment_options(base_total: int) -> tuple[InstallmentOption, ...]:
    options: list[InstallmentOption] = []
    for count in range(1, MAX_INSTALLMENTS + 1):
        value = installment_value_cents(base_total, count)
        interest_free = count <= INTEREST_FREE_INSTALLMENTS
        total = base_total if interest_free else value * count
        options.append(
            InstallmentOption(
                count=count,
                installment_cents=value,
                total_cents=total,
                interest_free=interest_free,
            )
        )
    return tuple(options)


def build_quote(
    lines: list[CartLine],
    *,
    region: str | None,
    coupon: CouponTerms | None,
    payment_method: PaymentMethod,
) -> Quote:
    for line in lines:
        if line.quantity < 1:
            raise ValidationError(f"Invalid quantity for {line.name}", field="items")
        if line.effective_price_cents < 0:
            raise ValidationError(f"Invalid price for {line.name}", field="items")

    subtotal = subtotal_cents(lines)
    discount = coupon_discount_cents(coupon, subtotal)
    shipping = shipping_cents(region, subtotal, coupon)
    base_total = max(0, subtotal - discount + shipping)
    return Quote(
        subtotal_cents=subtotal,
        shipping_cents=shipping,
        discount_cents=discount,
        base_total_cents=base_total,
        pix_total_cents=pix_total_cents(base_total),
        payment_method=payment_method,
        coupon_code=coupon.code if coupon else None,
        installment_options=installment_options(base_total),
    )
