# agrimart/domain/order_status.py
"""Order lifecycle states and the transition table that governs them."""
from enum import Enum


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    ACCEPTED = "accepted"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


PAYMENT_METHODS = ("upi", "bank_transfer")

STATUS_FLOW = {
    OrderStatus.PENDING_PAYMENT: (OrderStatus.PAID, OrderStatus.CANCELLED),
    OrderStatus.PAID: (OrderStatus.ACCEPTED, OrderStatus.CANCELLED),
    OrderStatus.ACCEPTED: (OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED),
    OrderStatus.IN_TRANSIT: (OrderStatus.DELIVERED,),
    OrderStatus.DELIVERED: (),
    OrderStatus.CANCELLED: (),
}

# reachable only through payment confirmation
PAYMENT_DRIVEN = frozenset({OrderStatus.PAID})

# cancelling from these returns the reservation to the pool
RESERVATION_HELD = frozenset({OrderStatus.PENDING_PAYMENT, OrderStatus.PAID})


def parse_status(value) -> OrderStatus | None:
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def is_valid_transition(current, target) -> bool:
    current_status = parse_status(current)
    target_status = parse_status(target)
    if current_status is None or target_status is None:
        return False
    return target_status in STATUS_FLOW[current_status]


def can_be_cancelled(current) -> bool:
    return is_valid_transition(current, OrderStatus.CANCELLED)


def is_terminal(current) -> bool:
    status = parse_status(current)
    return status is not None and not STATUS_FLOW[status]
