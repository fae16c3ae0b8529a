# agrimart/data/models/inventory_log.py
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from agrimart.data.database import Base


class InventoryLogModel(Base):
    """Append-only audit trail, one row per ledger mutation."""

    __tablename__ = "inventory_logs"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    kind = Column(String(10), nullable=False, index=True)  # reserve, release, deduct, add, adjust, damage
    delta = Column(Integer, nullable=False)

    previous_stock_total = Column(Integer, nullable=False)
    previous_stock_reserved = Column(Integer, nullable=False)
    new_stock_total = Column(Integer, nullable=False)
    new_stock_reserved = Column(Integer, nullable=False)

    order_id = Column(Integer, nullable=True, index=True)
    actor_id = Column(Integer, nullable=False)
    reason = Column(String(500), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
