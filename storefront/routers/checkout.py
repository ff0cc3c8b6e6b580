"""
Checkout router: request/response only.
Pricing, order creation and payment calls live in storefront.services.checkout.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront import schemas
from storefront.db import get_db
from storefront.domain.cart.session import load_checkout_session
from storefront.domain.coupon.validation import CouponValid, normalize_coupon_code
from storefront.services.checkout import place_order, quote_checkout
from storefront.services.coupons import check_coupon
from storefront.services.gateway import GatewayClient, get_gateway_client

router = APIRouter(prefix="/checkout", tags=["checkout"])
logger = logging.getLogger(__name__)


@router.post("/quote", response_model=schemas.QuoteOut)
def quote_endpoint(payload: schemas.QuoteIn, db: Session = Depends(get_db)):
    session = load_checkout_session(payload.session)
    priced = quote_checkout(
        db,
        session,
        region=payload.region or session.region,
        coupon_code=payload.coupon_code or session.coupon_code,
        payment_method=payload.payment_method,
    )
    out = schemas.QuoteOut.model_validate(priced.quote)
    out.coupon_rejection = priced.coupon_rejection
    return out


@router.post("/coupon", response_model=schemas.CouponCheckOut)
def coupon_endpoint(payload: schemas.CouponCheckIn, db: Session = Depends(get_db)):
    code = normalize_coupon_code(payload.code)
    result = check_coupon(db, code, payload.subtotal_cents)
    if isinstance(result, CouponValid):
        return schemas.CouponCheckOut(
            valid=True,
            code=code,
            kind=result.terms.kind,
            discount_cents=result.discount_cents,
        )
    return schemas.CouponCheckOut(valid=False, code=code, reason=result.reason)


@router.post("", response_model=schemas.CheckoutOut)
async def create_checkout(
    payload: schemas.CheckoutIn,
    request: Request,
    db: Session = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway_client),
):
    result = await place_order(db, gateway, payload)
    request.state.order_number = result.order_number

    pix = None
    card = None
    if result.pix is not None:
        pix = schemas.PixPaymentOut(
            gateway_payment_id=result.pix.gateway_payment_id,
            status=result.pix.raw_status,
            qr_code=result.pix.qr_code,
            qr_code_base64=result.pix.qr_code_base64,
            ticket_url=result.pix.ticket_url,
            expires_at=result.pix.expires_at,
        )
    if result.card is not None and result.installment is not None:
        card = schemas.CardPaymentOut(
            gateway_payment_id=result.card.gateway_payment_id,
            status=result.card.raw_status,
            approved=result.card.approved,
            installments=result.installment.count,
            installment_cents=result.installment.installment_cents,
            total_cents=result.installment.total_cents,
        )
    return schemas.CheckoutOut(
        order_number=result.order_number,
        status=result.status,
        total_cents=result.total_cents,
        payment_method=result.payment_method,
        pix=pix,
        card=card,
    )
