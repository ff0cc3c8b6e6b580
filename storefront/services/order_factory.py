from __future__ import annotations

import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session

from storefront import models
from storefront.db import settings
from storefront.domain.core.enums import OrderStatus, PaymentMethod
from storefront.domain.pricing.quote import CartLine, Quote
from storefront.errors import DuplicateOrderNumber, ValidationError
from storefront.services import order_store

logger = logging.getLogger(__name__)

MAX_ORDER_NUMBER_ATTEMPTS = 5

_POSTAL_CODE_RE = re.compile(r"^\d{8}$")


@dataclass(frozen=True)
class CustomerData:
    name: str
    email: str
    phone: str | None = None
    tax_id: str | None = None


@dataclass(frozen=True)
class AddressData:
    street: str
    number: str
    city: str
    state: str
    postal_code: str
    complement: str | None = None
    district: str | None = None


def generate_order_number(
    prefix: str | None = None,
    now: datetime | None = None,
    rng: Callable[[int], int] | None = None,
) -> str:
    """``{PREFIX}-{yyyyMMdd}-{NNN}``, NNN a random 000-999."""
    current = now or datetime.now(timezone.utc)
    draw = rng or secrets.randbelow
    return f"{prefix or settings.order_number_prefix}-{current:%Y%m%d}-{draw(1000):03d}"


def _clean(value: str | None) -> str:
    return (value or "").strip()


def _validate_customer(customer: CustomerData) -> None:
    if not _clean(customer.name):
        raise ValidationError("Customer name is required", field="customer.name")
    if not _clean(customer.email) or "@" not in customer.email:
        raise ValidationError("Customer email is required", field="customer.email")


def _validate_address(address: AddressData) -> None:
    for name in ("street", "number", "city", "state", "postal_code"):
        if not _clean(getattr(address, name)):
            raise ValidationError(f"Address {name} is required", field=f"address.{name}")
    digits = re.sub(r"\D", "", address.postal_code)
    if not _POSTAL_CODE_RE.match(digits):
        raise ValidationError("Invalid postal code", field="address.postal_code")


def _validate_lines(lines: list[CartLine]) -> None:
    if not lines:
        raise ValidationError("Cart is empty", field="items")
    for line in lines:
        if line.quantity < 1:
            raise ValidationError(f"Invalid quantity for {line.name}", field="items")


def _validate_quote(quote: Quote) -> None:
    amounts = (
        quote.subtotal_cents,
        quote.shipping_cents,
        quote.discount_cents,
        quote.base_total_cents,
        quote.total_cents,
    )
    if any(value < 0 for value in amounts):
        raise ValidationError("Order totals must not be negative", field="totals")


def _build_order(
    order_number: str,
    *,
    customer: CustomerData,
    address: AddressData,
    lines: list[CartLine],
    quote: Quote,
    installments: int,
) -> models.Order:
    order = models.Order(
        id=str(uuid.uuid4()),
        order_number=order_number,
        customer_name=_clean(customer.name),
        customer_email=_clean(customer.email).lower(),
        customer_phone=customer.phone,
        customer_tax_id=customer.tax_id,
        address_street=_clean(address.street),
        address_number=_clean(address.number),
        address_complement=address.complement,
        address_district=address.district,
        address_city=_clean(address.city),
        address_state=_clean(address.state).upper(),
        address_postal_code=re.sub(r"\D", "", address.postal_code),
        subtotal_cents=quote.subtotal_cents,
        shipping_cents=quote.shipping_cents,
        discount_cents=quote.discount_cents,
        payment_discount_cents=quote.payment_discount_cents,
        total_cents=quote.total_cents,
        coupon_code=quote.coupon_code,
        payment_method=quote.payment_method,
        installments=installments if quote.payment_method == PaymentMethod.card else 1,
        status=OrderStatus.pending.value,
    )
    order.items = [
        models.OrderItem(
            id=str(uuid.uuid4()),
            position=position,
            product_id=line.product_id,
            name=line.name,
            variant=line.variant,
            quantity=line.quantity,
            unit_price_cents=line.effective_price_cents,
        )
        for position, line in enumerate(lines)
    ]
    return order


def create_pending_order(
    db: Session,
    *,
    customer: CustomerData,
    address: AddressData,
    lines: list[CartLine],
    quote: Quote,
    installments: int = 1,
    prefix: str | None = None,
    max_attempts: int = MAX_ORDER_NUMBER_ATTEMPTS,
    number_factory: Callable[[], str] | None = None,
) -> models.Order:
    """Persist a ``pending`` order with the priced snapshot frozen on it.

    A clash on ``order_number`` is retried with a freshly generated number;
    after ``max_attempts`` clashes ``DuplicateOrderNumber`` is raised. The
    gateway is never contacted here.
    """
    _validate_lines(lines)
    _validate_customer(customer)
    _validate_address(address)
    _validate_quote(quote)

    make_number = number_factory or (lambda: generate_order_number(prefix))
    order_number = ""
    for attempt in range(1, max_attempts + 1):
        order_number = make_number()
        order = _build_order(
            order_number,
            customer=customer,
            address=address,
            lines=lines,
            quote=quote,
            installments=installments,
        )
        try:
            order_store.create_order(db, order)
        except DuplicateOrderNumber:
            logger.warning(
                "Order number collision order_number=%s attempt=%s/%s",
                order_number,
                attempt,
                max_attempts,
            )
            continue
        logger.info("Order created order_number=%s total_cents=%s", order.order_number, order.total_cents)
        return order
    raise DuplicateOrderNumber(order_number, attempts=max_attempts)
