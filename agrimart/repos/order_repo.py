# agrimart/repos/order_repo.py
from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from agrimart.data.models.order import OrderModel
from agrimart.data.models.order_status_history import OrderStatusHistoryModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int, refresh: bool = False) -> OrderModel | None:
        return self.db.get(OrderModel, order_id, populate_existing=refresh)

    def current_state(self, order_id: int):
        return self.db.execute(
            select(OrderModel.status, OrderModel.payment_status).where(OrderModel.id == order_id)
        ).one_or_none()

    def update_order_version(self, order_id: int, old_version: int, new_data: dict) -> int:
        stmt = (
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def add_history(self, order: OrderModel, entry: OrderStatusHistoryModel) -> OrderStatusHistoryModel:
        order.status_history.append(entry)
        return entry

    def list_by_buyer(
        self,
        buyer_id: int,
        status: str | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[OrderModel], int]:
        conditions = [OrderModel.buyer_id == buyer_id]
        if status:
            conditions.append(OrderModel.status == status)
        return self._page(conditions, OrderModel.created_at.desc(), offset, limit)

    def list_pending_payments(self, offset: int = 0, limit: int = 10) -> tuple[list[OrderModel], int]:
        conditions = [
            OrderModel.status == "pending_payment",
            OrderModel.payment_status == "submitted",
        ]
        #oldest submission first
        return self._page(conditions, OrderModel.payment_submitted_at.asc(), offset, limit)

    def _page(self, conditions, order_by, offset, limit):
        rows = self.db.execute(
            select(OrderModel).where(*conditions).order_by(order_by, OrderModel.id).offset(offset).limit(limit)
        ).scalars().all()
        total = self.db.execute(
            select(func.count()).select_from(OrderModel).where(*conditions)
        ).scalar_one()
        return list(rows), total

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def refresh(self, order: OrderModel):
        self.db.refresh(order)
