from __future__ import annotations

import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("storefront.request")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
logger.setLevel(logging.INFO)
logger.propagate = False

# filled from path params or set on request.state by the handlers
CONTEXT_FIELDS = ("order_number", "payment_id")


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _order_context(request: Request) -> dict:
    params = request.scope.get("path_params") or {}
    context = {}
    for key in CONTEXT_FIELDS:
        value = params.get(key) or getattr(request.state, key, None)
        if value:
            context[key] = str(value)
    return context


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One JSON line per request; the request id is echoed back as ``X-Request-Id``."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(json.dumps(self._build_payload(request, request_id, start, 500), ensure_ascii=True))
            raise

        line = json.dumps(self._build_payload(request, request_id, start, response.status_code), ensure_ascii=True)
        if response.status_code >= 500:
            logger.error(line)
        elif response.status_code >= 400:
            logger.warning(line)
        else:
            logger.info(line)

        response.headers["X-Request-Id"] = request_id
        return response

    @staticmethod
    def _build_payload(request: Request, request_id: str, start: float, status: int) -> dict:
        return {
            "event": "http_request",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": status,
            "duration_ms": int((time.perf_counter() - start) * 1000),
            "client_ip": _client_ip(request),
            **_order_context(request),
        }
