# agrimart/domain/errors.py
"""Typed errors raised by the ordering core.

Every error carries the structured context of the failure (ids, quantities,
states) as attributes, plus the HTTP status the adapter layer maps it to.
"""


class OrderingError(Exception):
    """Base exception for all ordering-core errors."""

    http_status = 400

    def to_dict(self) -> dict:
        data = {"error": type(self).__name__, "message": str(self)}
        data.update(
            {k: v for k, v in vars(self).items() if not k.startswith("_")}
        )
        return data


class NotFound(OrderingError):
    """Raised when a product, order, cart or cart line does not exist."""

    http_status = 404

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidTransition(OrderingError):
    """Raised when an order status change is not in the transition table."""

    http_status = 409

    def __init__(self, order_id: int, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Order {order_id}: cannot change status from '{current}' to '{target}'")


class InsufficientStock(OrderingError):
    """Raised when available stock is lower than the requested quantity."""

    http_status = 409

    def __init__(self, product_id: int, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}"
        )


class QuantityOutOfRange(OrderingError):
    """Raised when a quantity is outside the product's order limits."""

    def __init__(self, product_id: int, quantity: int, min_qty: int, max_qty: int | None):
        self.product_id = product_id
        self.quantity = quantity
        self.min_qty = min_qty
        self.max_qty = max_qty
        super().__init__(self._message())

    def _message(self) -> str:
        upper = self.max_qty if self.max_qty is not None else "unlimited"
        return (
            f"Quantity {self.quantity} for product {self.product_id} "
            f"is outside the allowed range {self.min_qty}..{upper}"
        )


class BelowMinimumOrderQuantity(QuantityOutOfRange):
    def _message(self) -> str:
        return f"Minimum order quantity for product {self.product_id} is {self.min_qty}, got {self.quantity}"


class AboveMaximumOrderQuantity(QuantityOutOfRange):
    def _message(self) -> str:
        return f"Maximum order quantity for product {self.product_id} is {self.max_qty}, got {self.quantity}"


class InvalidPaymentState(OrderingError):
    """Raised when a payment action does not fit the order's payment/status pair."""

    http_status = 409

    def __init__(self, order_id: int, payment_status: str, status: str, reason: str | None = None):
        self.order_id = order_id
        self.payment_status = payment_status
        self.status = status
        msg = f"Order {order_id}: payment is '{payment_status}' while order is '{status}'"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class Unauthorized(OrderingError):
    """Raised when the actor may not perform the action on this resource."""

    http_status = 403

    def __init__(self, actor_id: int, action: str):
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"Actor {actor_id} is not allowed to {action}")


class ValidationError(OrderingError):
    """Raised for malformed input such as addresses, amounts or quantities."""

    http_status = 422

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class ConcurrencyConflict(OrderingError):
    """Raised when a concurrent writer won the race; safe for the caller to retry."""

    http_status = 409

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} was modified concurrently, retry the operation")


class LedgerInvariantViolation(OrderingError):
    """Raised when stored stock counters break 0 <= reserved <= total."""

    http_status = 500

    def __init__(self, product_id: int, stock_total: int, stock_reserved: int, detail: str = ""):
        self.product_id = product_id
        self.stock_total = stock_total
        self.stock_reserved = stock_reserved
        msg = (
            f"Ledger invariant violated for product {product_id}: "
            f"total={stock_total}, reserved={stock_reserved}"
        )
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class UpstreamUnavailable(OrderingError):
    """Raised when the profile service or Redis keeps failing after retries; safe to retry later."""

    http_status = 503

    def __init__(self, service: str, detail: str = ""):
        self.service = service
        self.detail = detail
        msg = f"{service} is unavailable"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
