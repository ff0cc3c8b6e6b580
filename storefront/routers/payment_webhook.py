import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront import schemas
from storefront.db import get_db, settings
from storefront.services.gateway import GatewayClient, get_gateway_client
from storefront.services.notifications import (
    NotificationChannel,
    fan_out_order_confirmed,
    get_notification_channels,
)
from storefront.services.reconciler import (
    authenticate,
    extract_payment_id,
    parse_notification,
    reconcile_notification,
)

router = APIRouter(prefix="/payments/webhook", tags=["payment-webhook"])
logger = logging.getLogger(__name__)


def _load_json(raw_body: bytes):
    if not raw_body:
        return None
    try:
        return json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


@router.post("", response_model=schemas.WebhookAck)
async def payment_webhook(
    request: Request,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway_client),
    channels: list[NotificationChannel] = Depends(get_notification_channels),
    x_signature: str | None = Header(default=None, alias="x-signature"),
    x_request_id: str | None = Header(default=None, alias="x-request-id"),
):
    payload = _load_json(await request.body())
    payment_id = extract_payment_id(payload, dict(request.query_params))
    request.state.payment_id = payment_id
    # Unauthorized propagates and is answered with 401
    authenticate(x_signature, x_request_id, payment_id)

    try:
        notification = parse_notification(payload)
        result = await reconcile_notification(db, gateway, notification)
    except Exception:
        logger.exception("Webhook processing failed payment_id=%s", payment_id)
        if settings.webhook_fail_on_error:
            return JSONResponse(status_code=500, content={"detail": "Webhook processing failed"})
        return schemas.WebhookAck()

    request.state.order_number = result.order_number
    logger.info(
        "Webhook processed payment_id=%s outcome=%s reason=%s order_number=%s",
        payment_id,
        result.outcome,
        result.reason,
        result.order_number,
    )
    if result.should_notify:
        background.add_task(fan_out_order_confirmed, result.snapshot, channels)
    return schemas.WebhookAck()
