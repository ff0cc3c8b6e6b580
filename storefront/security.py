from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import logging
from typing import Any, Dict, NamedTuple

from jose import jwt

from storefront.db import settings
from storefront.errors import Unauthorized

logger = logging.getLogger(__name__)


def create_access_token(data: Dict[str, Any], expires_minutes: int | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.admin_token_expire_minutes
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.auth_secret, algorithm=settings.auth_algorithm)


def create_admin_token(subject: str, expires_minutes: int | None = None) -> str:
    return create_access_token({"sub": subject, "role": "admin"}, expires_minutes=expires_minutes)


class WebhookSignature(NamedTuple):
    ts: str
    v1: str


def parse_signature_header(header: str | None) -> WebhookSignature:
    """Parse ``ts=<int>,v1=<hex>``; anything else is Unauthorized."""
    if not header:
        raise Unauthorized("missing signature")
    parts: dict[str, str] = {}
    for chunk in header.split(","):
        key, sep, value = chunk.partition("=")
        if not sep:
            continue
        parts[key.strip().lower()] = value.strip()
    ts = parts.get("ts")
    v1 = parts.get("v1")
    if not ts or not v1 or not ts.isdigit():
        raise Unauthorized("malformed signature")
    return WebhookSignature(ts=ts, v1=v1.lower())


def build_signature_manifest(payment_id: str, request_id: str, ts: str) -> str:
    return f"id:{payment_id};request-id:{request_id};ts:{ts};"


def sign_manifest(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()


def verify_webhook_signature(
    signature_header: str | None,
    request_id: str | None,
    payment_id: str | None,
    secrets: list[str] | None = None,
) -> None:
    """Raise Unauthorized unless ``v1`` matches the manifest under one of the secrets."""
    candidates = secrets if secrets is not None else settings.WEBHOOK_SECRETS_LIST
    if not candidates:
        logger.error("Webhook secret not configured; rejecting notification")
        raise Unauthorized("webhook secret not configured")
    signature = parse_signature_header(signature_header)
    if not request_id:
        raise Unauthorized("missing request id")
    if not payment_id:
        raise Unauthorized("missing payment id")
    manifest = build_signature_manifest(payment_id, request_id, signature.ts)
    for secret in candidates:
        if hmac.compare_digest(sign_manifest(secret, manifest), signature.v1):
            return
    raise Unauthorized("invalid signature")
