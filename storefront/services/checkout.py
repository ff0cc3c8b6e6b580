"""
Checkout service: pricing and order/payment creation.
The checkout router only validates the request, calls this module and schedules notifications.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from storefront import models, schemas
from storefront.domain.cart.session import CheckoutSession, load_checkout_session
from storefront.domain.core.enums import PaymentMethod
from storefront.domain.coupon.validation import CouponInvalid, CouponValid, normalize_coupon_code
from storefront.domain.pricing.quote import CartLine, InstallmentOption, Quote, build_quote
from storefront.domain.pricing.shipping import normalize_region
from storefront.errors import CouponRejected, GatewayError, PaymentDeclined, ValidationError
from storefront.services import coupons, order_store
from storefront.services.gateway import CardCharge, GatewayClient, PixCharge
from storefront.services.order_factory import AddressData, CustomerData, create_pending_order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricedCheckout:
    lines: list[CartLine]
    quote: Quote
    coupon_rejection: str | None = None


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    order_number: str
    status: str
    total_cents: int
    payment_method: PaymentMethod
    pix: PixCharge | None = None
    card: CardCharge | None = None
    installment: InstallmentOption | None = None


def reprice_lines(db: Session, session: CheckoutSession) -> list[CartLine]:
    """Prices always come from the catalog; the snapshot only says what and how many."""
    if not session.items:
        raise ValidationError("Cart is empty", field="items")
    product_ids = {item.product_id for item in session.items}
    products = {
        p.id: p for p in db.query(models.Product).filter(models.Product.id.in_(product_ids)).all()
    }
    lines: list[CartLine] = []
    for item in session.items:
        product = products.get(item.product_id)
        if not product or not product.is_active:
            raise ValidationError(f"Invalid product: {item.product_id}", field="items")
        if product.stock < item.quantity:
            raise ValidationError(f"Insufficient stock for {product.name}", field="items")
        lines.append(
            CartLine(
                product_id=product.id,
                name=product.name,
                variant=item.variant,
                quantity=item.quantity,
                unit_price_cents=product.price_cents,
                promo_price_cents=product.promo_price_cents,
            )
        )
    return lines


def quote_checkout(
    db: Session,
    session: CheckoutSession,
    *,
    region: str | None,
    coupon_code: str | None,
    payment_method: PaymentMethod,
    strict_coupon: bool = False,
) -> PricedCheckout:
    lines = reprice_lines(db, session)
    subtotal = sum(line.amount_cents for line in lines)

    coupon_terms = None
    rejection: str | None = None
    if normalize_coupon_code(coupon_code):
        if strict_coupon:
            valid = coupons.require_valid_coupon(db, coupon_code, subtotal)
            coupon_terms = valid.terms if valid else None
        else:
            result = coupons.check_coupon(db, coupon_code, subtotal)
            if isinstance(result, CouponValid):
                coupon_terms = result.terms
            elif isinstance(result, CouponInvalid):
                rejection = result.reason

    quote = build_quote(
        lines,
        region=normalize_region(region),
        coupon=coupon_terms,
        payment_method=payment_method,
    )
    return PricedCheckout(lines=lines, quote=quote, coupon_rejection=rejection)


def _customer_data(customer: schemas.CustomerIn) -> CustomerData:
    return CustomerData(
        name=customer.name,
        email=str(customer.email),
        phone=customer.phone,
        tax_id=customer.tax_id,
    )


def _address_data(address: schemas.AddressIn) -> AddressData:
    return AddressData(
        street=address.street,
        number=address.number,
        complement=address.complement,
        district=address.district,
        city=address.city,
        state=address.state,
        postal_code=address.postal_code,
    )


async def place_order(db: Session, gateway: GatewayClient, payload: schemas.CheckoutIn) -> CheckoutResult:
    session = load_checkout_session(payload.session)
    coupon_code = payload.coupon_code or session.coupon_code
    priced = quote_checkout(
        db,
        session,
        region=payload.address.state,
        coupon_code=coupon_code,
        payment_method=payload.payment_method,
        strict_coupon=True,
    )
    quote = priced.quote

    installment: InstallmentOption | None = None
    if payload.payment_method == PaymentMethod.card:
        if payload.card is None:
            raise ValidationError("Card data is required", field="card")
        installment = quote.installment_option(payload.card.installments)

    order = create_pending_order(
        db,
        customer=_customer_data(payload.customer),
        address=_address_data(payload.address),
        lines=priced.lines,
        quote=quote,
        installments=installment.count if installment else 1,
    )

    if quote.coupon_code and not coupons.redeem_coupon(db, quote.coupon_code):
        # cap reached since the quote; the order never reached the gateway
        logger.info("Coupon exhausted at checkout order_number=%s", order.order_number)
        order_store.discard_pending_order(db, order)
        raise CouponRejected("exhausted")

    try:
        customer_id = await gateway.ensure_customer(order)
        if payload.payment_method == PaymentMethod.pix:
            pix = await gateway.create_pix_payment(order, quote.total_cents, customer_id=customer_id)
            order_store.attach_gateway_payment(db, order.id, pix.gateway_payment_id, pix.raw_status)
            return CheckoutResult(
                order_id=order.id,
                order_number=order.order_number,
                status=order.status,
                total_cents=quote.total_cents,
                payment_method=PaymentMethod.pix,
                pix=pix,
            )

        card = await gateway.create_card_payment(
            order,
            installment.total_cents,
            card_token=payload.card.token,
            installments=installment.count,
            payment_method_id=payload.card.payment_method_id,
            issuer_id=payload.card.issuer_id,
            customer_id=customer_id,
        )
    except PaymentDeclined as exc:
        if exc.gateway_payment_id:
            order_store.attach_gateway_payment(db, order.id, exc.gateway_payment_id, exc.raw_status)
        logger.info("Card payment declined order_number=%s raw_status=%s", order.order_number, exc.raw_status)
        raise
    except GatewayError:
        logger.exception("Gateway call failed order_number=%s", order.order_number)
        raise

    order_store.attach_gateway_payment(db, order.id, card.gateway_payment_id, card.raw_status)
    return CheckoutResult(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        total_cents=quote.total_cents,
        payment_method=PaymentMethod.card,
        card=card,
        installment=installment,
    )
