"""Error taxonomy for checkout and payment reconciliation.

Every error raised by the services derives from ``StorefrontError``; the API
layer maps each subclass to an HTTP status in ``storefront.main``.
"""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class ValidationError(StorefrontError):
    """Raised when checkout input is missing or inconsistent (user-correctable)."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class CouponRejected(StorefrontError):
    """Raised when a submitted coupon fails validation."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Coupon rejected: {reason}")


class GatewayError(StorefrontError):
    """Raised on network failure, timeout or unexpected answer from the payment provider."""

    def __init__(self, message: str, cause: Exception | None = None, status_code: int | None = None):
        self.cause = cause
        self.status_code = status_code
        super().__init__(message)


class PaymentDeclined(StorefrontError):
    """Raised when the provider explicitly rejects a card payment."""

    def __init__(self, raw_status: str, status_detail: str | None = None, gateway_payment_id: str | None = None):
        self.raw_status = raw_status
        self.status_detail = status_detail
        self.gateway_payment_id = gateway_payment_id
        super().__init__("Payment declined")


class Unauthorized(StorefrontError):
    """Raised when a webhook signature is missing, malformed or does not match."""

    def __init__(self, reason: str = "invalid signature"):
        # reason is logged, never returned to the caller
        self.reason = reason
        super().__init__("Unauthorized")


class DuplicateOrderNumber(StorefrontError):
    """Raised when order number generation keeps colliding with existing orders."""

    def __init__(self, order_number: str, attempts: int = 1):
        self.order_number = order_number
        self.attempts = attempts
        super().__init__(f"Order number already in use: {order_number}")
