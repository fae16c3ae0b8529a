# agrimart/repos/inventory_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from agrimart.data.models.product import ProductModel
from agrimart.data.models.inventory_log import InventoryLogModel


class InventoryRepo:
    def __init__(self, db: Session):
        self.db = db

    def update_stock(self, product_id: int, *conditions, values: dict) -> int:
        """
        Conditional UPDATE on a single product row.
        The guard and the write run as one statement, so the database
        serialises concurrent writers on the row.
        Returns rowcount, 0 means the guard did not hold (or no such product).
        """
        stmt = (
            update(ProductModel)
            .where(ProductModel.id == product_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def add_log(self, log: InventoryLogModel) -> InventoryLogModel:
        self.db.add(log)
        self.db.flush()
        return log

    def list_logs(
        self,
        product_id: int,
        kind: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[InventoryLogModel]:
        stmt = select(InventoryLogModel).where(InventoryLogModel.product_id == product_id)
        if kind:
            stmt = stmt.where(InventoryLogModel.kind == kind)
        stmt = stmt.order_by(InventoryLogModel.id.desc()).offset(offset).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def list_logs_for_order(self, order_id: int) -> list[InventoryLogModel]:
        stmt = (
            select(InventoryLogModel)
            .where(InventoryLogModel.order_id == order_id)
            .order_by(InventoryLogModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())
