from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront import schemas
from storefront.db import get_db
from storefront.services.order_store import get_order_by_number

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/{order_number}/status", response_model=schemas.OrderStatusOut)
def order_status(order_number: str, db: Session = Depends(get_db)):
    order = get_order_by_number(db, order_number.strip().upper())
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return schemas.OrderStatusOut(
        order_number=order.order_number,
        status=order.status,
        payment_status=order.gateway_payment_status,
        tracking_code=order.tracking_code,
        updated_at=order.updated_at,
    )
