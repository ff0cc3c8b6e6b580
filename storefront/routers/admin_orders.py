import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront import schemas
from storefront.auth.dependencies import TokenData, require_admin
from storefront.db import get_db
from storefront.domain.order.lifecycle import can_operator_transition, coerce_status, tracking_code_allowed
from storefront.services import order_store
from storefront.services.notifications import (
    NotificationChannel,
    fan_out_status_update,
    get_status_update_channels,
)
from storefront.services.reconciler import OrderSnapshot

router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])
logger = logging.getLogger(__name__)


@router.patch("/{order_number}", response_model=schemas.AdminOrderOut)
def update_order(
    order_number: str,
    payload: schemas.AdminOrderUpdateIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: TokenData = Depends(require_admin),
    channels: list[NotificationChannel] = Depends(get_status_update_channels),
):
    order = order_store.get_order_by_number(db, order_number)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if payload.status is None and payload.tracking_code is None:
        raise HTTPException(status_code=400, detail="Nothing to update")

    current = coerce_status(order.status)
    tracking_code = (payload.tracking_code or "").strip() or None
    changed = False

    if payload.status is not None and payload.status != current:
        # confirmation and cancellation follow the payment, never the operator
        if current is None or not can_operator_transition(current, payload.status):
            raise HTTPException(
                status_code=409,
                detail=f"Invalid status transition: {order.status} -> {payload.status.value}",
            )
        fields = {}
        if tracking_code:
            if not tracking_code_allowed(payload.status):
                raise HTTPException(status_code=409, detail="Tracking code only allowed for shipped orders")
            fields["tracking_code"] = tracking_code
        if not order_store.compare_and_set_status(db, order.id, current, payload.status, **fields):
            db.rollback()
            raise HTTPException(status_code=409, detail="Order was updated concurrently")
        db.commit()
        changed = True
        logger.info(
            "Order status changed by admin order_number=%s from=%s to=%s admin=%s",
            order.order_number,
            current.value,
            payload.status.value,
            admin.sub,
        )
    elif tracking_code:
        if not order_store.set_tracking_code(db, order.id, tracking_code):
            raise HTTPException(status_code=409, detail="Tracking code only allowed for shipped orders")
        logger.info("Tracking code set order_number=%s admin=%s", order.order_number, admin.sub)

    db.refresh(order)
    if changed:
        background.add_task(fan_out_status_update, OrderSnapshot.from_order(order), channels)
    return schemas.AdminOrderOut(
        order_number=order.order_number,
        status=order.status,
        tracking_code=order.tracking_code,
    )
