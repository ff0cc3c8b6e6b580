from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from storefront import models


# Checkout


class CustomerIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    phone: Optional[str] = None
    tax_id: Optional[str] = None

    @field_validator("tax_id")
    @classmethod
    def digits_only(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        digits = "".join(ch for ch in value if ch.isdigit())
        return digits or None


class AddressIn(BaseModel):
    postal_code: str
    street: str
    number: str
    complement: Optional[str] = None
    district: Optional[str] = None
    city: str
    state: str = Field(min_length=2, max_length=2)

    @field_validator("state")
    @classmethod
    def upper_state(cls, value: str) -> str:
        return value.strip().upper()


class CardIn(BaseModel):
    token: str = Field(min_length=1)
    payment_method_id: str = Field(min_length=1)
    installments: int = Field(default=1, ge=1, le=10)
    issuer_id: Optional[str] = None


class QuoteIn(BaseModel):
    session: Any
    region: Optional[str] = None
    coupon_code: Optional[str] = None
    payment_method: models.PaymentMethod = models.PaymentMethod.pix


class InstallmentOptionOut(BaseModel):
    count: int
    installment_cents: int
    total_cents: int
    interest_free: bool

    class Config:
        from_attributes = True


class QuoteOut(BaseModel):
    subtotal_cents: int
    shipping_cents: int
    discount_cents: int
    base_total_cents: int
    pix_total_cents: int
    payment_discount_cents: int
    total_cents: int
    payment_method: models.PaymentMethod
    coupon_code: Optional[str] = None
    coupon_rejection: Optional[str] = None
    installment_options: List[InstallmentOptionOut] = []

    class Config:
        from_attributes = True


class CouponCheckIn(BaseModel):
    code: str
    subtotal_cents: int = Field(ge=0)


class CouponCheckOut(BaseModel):
    valid: bool
    code: str
    reason: Optional[Literal["not_found", "expired", "exhausted", "below_minimum"]] = None
    kind: Optional[models.CouponKind] = None
    discount_cents: int = 0


class CheckoutIn(BaseModel):
    session: Any
    customer: CustomerIn
    address: AddressIn
    coupon_code: Optional[str] = None
    payment_method: models.PaymentMethod
    card: Optional[CardIn] = None


class PixPaymentOut(BaseModel):
    gateway_payment_id: str
    status: str
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    ticket_url: Optional[str] = None
    expires_at: Optional[datetime] = None


class CardPaymentOut(BaseModel):
    gateway_payment_id: str
    status: str
    approved: bool
    installments: int
    installment_cents: int
    total_cents: int


class CheckoutOut(BaseModel):
    order_number: str
    status: str
    total_cents: int
    payment_method: models.PaymentMethod
    pix: Optional[PixPaymentOut] = None
    card: Optional[CardPaymentOut] = None


# Orders


class OrderStatusOut(BaseModel):
    order_number: str
    status: str
    payment_status: Optional[str] = None
    tracking_code: Optional[str] = None
    updated_at: Optional[datetime] = None


class AdminOrderUpdateIn(BaseModel):
    status: Optional[models.OrderStatus] = None
    tracking_code: Optional[str] = Field(default=None, max_length=64)


class AdminOrderOut(BaseModel):
    order_number: str
    status: str
    tracking_code: Optional[str] = None


# Payments


class PaymentStatusOut(BaseModel):
    payment_id: str
    status: str
    status_detail: Optional[str] = None
    external_reference: Optional[str] = None
    transaction_amount: Optional[float] = None


class WebhookAck(BaseModel):
    received: bool = True
