"""
Data-layer contract used by checkout and reconciliation.

Status changes go through ``compare_and_set_status`` only: one UPDATE guarded
by the expected current status, so two concurrent writers can never both
observe the same old status and both win.
"""
from __future__ import annotations

import logging

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storefront import models
from storefront.domain.core.enums import OrderStatus
from storefront.errors import DuplicateOrderNumber

logger = logging.getLogger(__name__)

_CAS_FIELDS = frozenset({"gateway_payment_status", "gateway_payment_id", "tracking_code"})


def _is_order_number_conflict(exc: IntegrityError) -> bool:
    return "order_number" in str(getattr(exc, "orig", exc)).lower()


def create_order(db: Session, order: models.Order) -> str:
    """Insert the order with its items; commits. Raises DuplicateOrderNumber on a number clash."""
    db.add(order)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _is_order_number_conflict(exc):
            raise DuplicateOrderNumber(order.order_number) from exc
        raise
    return order.id


def get_order_by_number(db: Session, order_number: str) -> models.Order | None:
    return (
        db.query(models.Order)
        .options(selectinload(models.Order.items))
        .filter(models.Order.order_number == order_number)
        .first()
    )


def get_order_by_gateway_payment_id(db: Session, gateway_payment_id: str) -> models.Order | None:
    return (
        db.query(models.Order)
        .options(selectinload(models.Order.items))
        .filter(models.Order.gateway_payment_id == gateway_payment_id)
        .first()
    )


def compare_and_set_status(
    db: Session,
    order_id: str,
    expected: OrderStatus,
    next_status: OrderStatus,
    **fields: str | None,
) -> bool:
    """``UPDATE orders SET status=next WHERE id=? AND status=expected``; True when one row changed.

    Does not commit, so callers can make further writes conditional on the
    result inside the same transaction.
    """
    unknown = set(fields) - _CAS_FIELDS
    if unknown:
        raise ValueError(f"Unsupported order fields: {sorted(unknown)}")
    values = {models.Order.status: next_status.value, models.Order.updated_at: func.now()}
    for key, value in fields.items():
        values[getattr(models.Order, key)] = value
    affected = (
        db.query(models.Order)
        .filter(models.Order.id == order_id, models.Order.status == expected.value)
        .update(values, synchronize_session=False)
    )
    return affected == 1


def decrement_stock(db: Session, product_id: str, quantity: int) -> int | None:
    """Decrease stock by ``quantity`` floored at zero. Returns the new stock, None for unknown products."""
    if quantity < 0:
        raise ValueError("quantity must be >= 0")
    affected = (
        db.query(models.Product)
        .filter(models.Product.id == product_id)
        .update(
            {
                models.Product.stock: case(
                    (models.Product.stock > quantity, models.Product.stock - quantity),
                    else_=0,
                )
            },
            synchronize_session=False,
        )
    )
    if affected == 0:
        return None
    return db.query(models.Product.stock).filter(models.Product.id == product_id).scalar()


def attach_gateway_payment(db: Session, order_id: str, gateway_payment_id: str, raw_status: str | None) -> bool:
    """Store the gateway payment id once; a second attach for the same order is ignored."""
    affected = (
        db.query(models.Order)
        .filter(models.Order.id == order_id, models.Order.gateway_payment_id.is_(None))
        .update(
            {
                models.Order.gateway_payment_id: gateway_payment_id,
                models.Order.gateway_payment_status: raw_status,
                models.Order.updated_at: func.now(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return affected == 1


def discard_pending_order(db: Session, order: models.Order) -> None:
    """Delete an order that never got a gateway payment; commits."""
    if order.status != OrderStatus.pending.value or order.gateway_payment_id:
        raise ValueError("Only unpaid pending orders can be discarded")
    db.delete(order)
    db.commit()


def record_gateway_status(db: Session, order_id: str, raw_status: str | None) -> None:
    """Audit-only update of the raw upstream status; never touches ``status``."""
    (
        db.query(models.Order)
        .filter(
            models.Order.id == order_id,
            models.Order.status.notin_([OrderStatus.delivered.value, OrderStatus.cancelled.value]),
        )
        .update({models.Order.gateway_payment_status: raw_status}, synchronize_session=False)
    )
    db.commit()


def set_tracking_code(db: Session, order_id: str, tracking_code: str) -> bool:
    affected = (
        db.query(models.Order)
        .filter(models.Order.id == order_id, models.Order.status == OrderStatus.shipped.value)
        .update(
            {models.Order.tracking_code: tracking_code, models.Order.updated_at: func.now()},
            synchronize_session=False,
        )
    )
    db.commit()
    return affected == 1
