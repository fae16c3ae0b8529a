# agrimart/services/inventory_service.py
from contextlib import contextmanager

from sqlalchemy.orm import Session

from agrimart.data.models.inventory_log import InventoryLogModel
from agrimart.data.models.product import ProductModel
from agrimart.domain.errors import (
    ConcurrencyConflict,
    InsufficientStock,
    LedgerInvariantViolation,
    NotFound,
    ValidationError,
)
from agrimart.repos.inventory_repo import InventoryRepo
from agrimart.repos.product_repo import ProductRepo
from agrimart.utils.logging import get_logger

logger = get_logger(__name__)

LEDGER_KINDS = ("reserve", "release", "deduct", "add", "adjust", "damage")

_total = ProductModel.stock_total
_reserved = ProductModel.stock_reserved


def _require_positive(quantity: int, field: str = "quantity"):
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError(field, "must be a positive integer")


def _require_reason(reason: str | None):
    if not reason or not reason.strip():
        raise ValidationError("reason", "is required")


class InventoryService:
    """
    Inventory ledger, the only writer of stock_total / stock_reserved.

    Every operation is one guarded UPDATE on the product row plus exactly one
    inventory_logs row. With commit=False the caller owns the transaction,
    which lets order checkout reserve several lines all-or-nothing.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = InventoryRepo(db)
        self.products = ProductRepo(db)

    #commands

    def reserve(self, product_id: int, quantity: int, order_id: int | None, actor_id: int, commit: bool = True):
        _require_positive(quantity)
        with self._transaction(commit):
            rowcount = self.repo.update_stock(
                product_id,
                _total - _reserved >= quantity,
                values={"stock_reserved": _reserved + quantity},
            )
            if rowcount == 0:
                product = self._require_product(product_id)
                raise InsufficientStock(product_id, quantity, product.stock_available)

            return self._record(
                product_id,
                kind="reserve",
                total_delta=0,
                reserved_delta=quantity,
                actor_id=actor_id,
                order_id=order_id,
                reason=f"Stock reserved for order {order_id}",
            )

    def release(
        self,
        product_id: int,
        quantity: int,
        order_id: int | None,
        actor_id: int,
        reason: str = "Order cancelled",
        commit: bool = True,
    ):
        _require_positive(quantity)
        with self._transaction(commit):
            rowcount = self.repo.update_stock(
                product_id,
                _reserved >= quantity,
                values={"stock_reserved": _reserved - quantity},
            )
            released = quantity
            if rowcount == 0:
                # reserved never goes below zero, release what is there
                product = self._require_product(product_id)
                released = product.stock_reserved
                logger.warning(
                    f"Release of {quantity} on product {product_id} (order {order_id}) "
                    f"exceeds reserved {released}, clamping to 0"
                )
                rowcount = self.repo.update_stock(
                    product_id,
                    _reserved == released,
                    values={"stock_reserved": 0},
                )
                if rowcount == 0:
                    raise ConcurrencyConflict("product", product_id)

            return self._record(
                product_id,
                kind="release",
                total_delta=0,
                reserved_delta=-released,
                actor_id=actor_id,
                order_id=order_id,
                reason=reason or "Order cancelled",
            )

    def deduct(self, product_id: int, quantity: int, order_id: int | None, actor_id: int, commit: bool = True):
        _require_positive(quantity)
        with self._transaction(commit):
            rowcount = self.repo.update_stock(
                product_id,
                _reserved >= quantity,
                _total >= quantity,
                values={
                    "stock_total": _total - quantity,
                    "stock_reserved": _reserved - quantity,
                },
            )
            if rowcount == 0:
                product = self._require_product(product_id)
                logger.critical(
                    f"Deduct of {quantity} for order {order_id} exceeds reserved stock on product "
                    f"{product_id} (total={product.stock_total}, reserved={product.stock_reserved})"
                )
                raise LedgerInvariantViolation(
                    product_id,
                    product.stock_total,
                    product.stock_reserved,
                    detail=f"deduct of {quantity} for order {order_id} exceeds reserved",
                )

            return self._record(
                product_id,
                kind="deduct",
                total_delta=-quantity,
                reserved_delta=-quantity,
                actor_id=actor_id,
                order_id=order_id,
                reason=f"Order {order_id} accepted, stock deducted",
            )

    def add(
        self,
        product_id: int,
        quantity: int,
        actor_id: int,
        reason: str = "Stock received from supplier",
        commit: bool = True,
    ):
        _require_positive(quantity)
        with self._transaction(commit):
            rowcount = self.repo.update_stock(product_id, values={"stock_total": _total + quantity})
            if rowcount == 0:
                raise NotFound("product", product_id)

            return self._record(
                product_id,
                kind="add",
                total_delta=quantity,
                reserved_delta=0,
                actor_id=actor_id,
                reason=reason or "Stock received from supplier",
            )

    def adjust(self, product_id: int, delta: int, actor_id: int, reason: str, commit: bool = True):
        if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
            raise ValidationError("delta", "must be a non-zero integer")
        _require_reason(reason)
        with self._transaction(commit):
            rowcount = self.repo.update_stock(
                product_id,
                _total + delta >= _reserved,
                _total + delta >= 0,
                values={"stock_total": _total + delta},
            )
            if rowcount == 0:
                product = self._require_product(product_id)
                new_total = product.stock_total + delta
                if new_total < 0:
                    raise ValidationError("delta", f"would leave stock_total negative ({new_total})")
                raise ValidationError(
                    "delta",
                    f"would leave stock_total {new_total} below reserved {product.stock_reserved}",
                )

            return self._record(
                product_id,
                kind="adjust",
                total_delta=delta,
                reserved_delta=0,
                actor_id=actor_id,
                reason=reason,
            )

    def mark_damaged(self, product_id: int, quantity: int, actor_id: int, reason: str, commit: bool = True):
        _require_positive(quantity)
        _require_reason(reason)
        with self._transaction(commit):
            #only unreserved units can be written off
            rowcount = self.repo.update_stock(
                product_id,
                _total - quantity >= _reserved,
                values={"stock_total": _total - quantity},
            )
            if rowcount == 0:
                product = self._require_product(product_id)
                raise InsufficientStock(product_id, quantity, product.stock_available)

            return self._record(
                product_id,
                kind="damage",
                total_delta=-quantity,
                reserved_delta=0,
                actor_id=actor_id,
                reason=reason,
            )

    #queries

    def get_stock(self, product_id: int) -> ProductModel:
        return self._require_product(product_id, refresh=True)

    def verify_product(self, product_id: int) -> ProductModel:
        product = self._require_product(product_id, refresh=True)
        self._check_invariant(product)
        return product

    def list_entries(self, product_id: int, kind: str | None = None, limit: int = 50, offset: int = 0):
        if kind is not None and kind not in LEDGER_KINDS:
            raise ValidationError("kind", f"must be one of {LEDGER_KINDS}")
        self._require_product(product_id)
        return self.repo.list_logs(product_id, kind=kind, limit=limit, offset=offset)

    def list_low_stock(self, limit: int = 20) -> list[ProductModel]:
        return self.products.list_low_stock(limit)

    #internals

    @contextmanager
    def _transaction(self, commit: bool):
        try:
            yield
            if commit:
                self.db.commit()
        except Exception:
            if commit:
                self.db.rollback()
            raise

    def _require_product(self, product_id: int, refresh: bool = True) -> ProductModel:
        product = self.products.get_product(product_id, refresh=refresh)
        if product is None:
            raise NotFound("product", product_id)
        return product

    def _check_invariant(self, product: ProductModel):
        if product.stock_reserved < 0 or product.stock_reserved > product.stock_total:
            logger.critical(
                f"Ledger invariant violated on product {product.id}: "
                f"total={product.stock_total}, reserved={product.stock_reserved}"
            )
            raise LedgerInvariantViolation(product.id, product.stock_total, product.stock_reserved)

    def _record(
        self,
        product_id: int,
        kind: str,
        total_delta: int,
        reserved_delta: int,
        actor_id: int,
        reason: str,
        order_id: int | None = None,
    ) -> InventoryLogModel:
        # re-read inside the transaction so the identity map sees the new counters
        product = self._require_product(product_id, refresh=True)
        self._check_invariant(product)

        log = InventoryLogModel(
            product_id=product_id,
            kind=kind,
            delta=reserved_delta if kind in ("reserve", "release") else total_delta,
            previous_stock_total=product.stock_total - total_delta,
            previous_stock_reserved=product.stock_reserved - reserved_delta,
            new_stock_total=product.stock_total,
            new_stock_reserved=product.stock_reserved,
            order_id=order_id,
            actor_id=actor_id,
            reason=reason,
        )
        self.repo.add_log(log)

        logger.info(
            f"Ledger {kind} product={product_id} delta={log.delta} order={order_id} "
            f"total={product.stock_total} reserved={product.stock_reserved}"
        )
        return log
