from storefront.domain.core.enums import CouponKind, OrderStatus, PaymentMethod
from storefront.domain.catalog.models import Product
from storefront.domain.coupon.models import Coupon
from storefront.domain.order.models import Order, OrderItem

__all__ = [
    "CouponKind",
    "OrderStatus",
    "PaymentMethod",
    "Product",
    "Coupon",
    "Order",
    "OrderItem",
]
