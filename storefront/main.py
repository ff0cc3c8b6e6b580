import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.db import settings
from storefront.errors import (
    CouponRejected,
    DuplicateOrderNumber,
    GatewayError,
    PaymentDeclined,
    StorefrontError,
    Unauthorized,
    ValidationError,
)
from storefront.observability import RequestLoggingMiddleware
from storefront.rate_limit import RateLimitMiddleware, RateLimitRule
from storefront.routers import admin_orders, checkout, orders, payment_webhook, payments

logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront API")

ALLOWED_ORIGINS = [
    # Dev - Next/Vite
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

ERROR_STATUS = {
    ValidationError: 422,
    CouponRejected: 422,
    PaymentDeclined: 402,
    Unauthorized: 401,
    DuplicateOrderNumber: 409,
    GatewayError: 502,
}

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS_LIST or ALLOWED_ORIGINS,
    allow_methods=["*"], allow_headers=["*"], allow_credentials=True,
)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    RateLimitMiddleware,
    rules=[
        RateLimitRule(
            path="/checkout",
            max_requests=settings.checkout_rate_limit_per_minute,
            window_seconds=60,
            methods=frozenset({"POST"}),
        ),
    ],
)


def _status_for(exc: StorefrontError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    status_code = _status_for(exc)
    body: dict = {"detail": str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, CouponRejected):
        body["reason"] = exc.reason
    elif isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    elif isinstance(exc, PaymentDeclined):
        body["status_detail"] = exc.status_detail
    elif isinstance(exc, GatewayError):
        body["detail"] = "Payment gateway unavailable"
    elif isinstance(exc, Unauthorized):
        logger.warning("Unauthorized request path=%s reason=%s", request.url.path, exc.reason)
        body = {"detail": "Unauthorized"}
    if status_code >= 500:
        logger.error("Request failed path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content=body)


@app.get("/health")
def health(): return {"ok": True}

app.include_router(checkout.router)
app.include_router(orders.router)
app.include_router(payments.router)
app.include_router(payment_webhook.router)
app.include_router(admin_orders.router)
