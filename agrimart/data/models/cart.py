# agrimart/data/models/cart.py
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, DateTime, Numeric
from sqlalchemy.orm import relationship

from agrimart.data.database import Base


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    buyer_id = Column(Integer, nullable=False, unique=True)

    version = Column(Integer, nullable=False, default=1)

    # cached totals, recomputed on every change, never authoritative
    item_count = Column(Integer, nullable=False, default=0)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    estimated_tax = Column(Numeric(12, 2), nullable=False, default=0)
    estimated_total = Column(Numeric(12, 2), nullable=False, default=0)

    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.id",
    )
