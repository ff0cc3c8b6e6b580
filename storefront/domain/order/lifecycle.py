from __future__ import annotations

from storefront.domain.core.enums import OrderStatus

ORDER_FLOW = [
    OrderStatus.pending,
    OrderStatus.confirmed,
    OrderStatus.shipped,
    OrderStatus.delivered,
]
TERMINAL_STATUSES = frozenset({OrderStatus.delivered, OrderStatus.cancelled})
CANCELLABLE_STATUSES = frozenset({OrderStatus.pending, OrderStatus.confirmed})

# upstream payment status -> internal order status
GATEWAY_STATUS_MAP = {
    "approved": OrderStatus.confirmed,
    "pending": OrderStatus.pending,
    "in_process": OrderStatus.pending,
    "rejected": OrderStatus.cancelled,
    "cancelled": OrderStatus.cancelled,
}


def coerce_status(value: object | None) -> OrderStatus | None:
    if value is None:
        return None
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        return None


def map_gateway_status(raw_status: str | None) -> OrderStatus | None:
    key = (raw_status or "").strip().lower()
    return GATEWAY_STATUS_MAP.get(key)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """True when ``current -> target`` is a single forward step of the lifecycle.

    Equal states, moves out of a terminal state, moves backwards and skips
    (e.g. ``pending -> shipped``) are all refused. ``cancelled`` is only
    reachable from ``pending`` and ``confirmed``.
    """
    if current == target or is_terminal(current):
        return False
    if target == OrderStatus.cancelled:
        return current in CANCELLABLE_STATUSES
    if current not in ORDER_FLOW or target not in ORDER_FLOW:
        return False
    return ORDER_FLOW.index(target) == ORDER_FLOW.index(current) + 1


def tracking_code_allowed(status: OrderStatus) -> bool:
    return status == OrderStatus.shipped


# the only moves an operator may apply; payment-driven moves come from the webhook
OPERATOR_TRANSITIONS = {
    OrderStatus.confirmed: OrderStatus.shipped,
    OrderStatus.shipped: OrderStatus.delivered,
}


def can_operator_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return OPERATOR_TRANSITIONS.get(current) == target
