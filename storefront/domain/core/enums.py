import enum


class OrderStatus(enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentMethod(enum.Enum):
    pix = "pix"
    card = "card"


class CouponKind(enum.Enum):
    percent = "percent"
    fixed = "fixed"
    free_shipping = "free_shipping"
