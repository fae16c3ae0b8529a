# agrimart/data/models/order_item.py
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric
from sqlalchemy.orm import relationship

from agrimart.data.database import Base


class OrderItemModel(Base):
    """Frozen line of an order; catalogue changes after checkout do not touch it."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    product_name = Column(String(200), nullable=False)
    product_unit = Column(String(20), nullable=False)
    hsn_code = Column(String(10), nullable=True)
    gst_rate = Column(Integer, nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    discount_pct = Column(Numeric(5, 2), nullable=False, default=0)
    line_subtotal = Column(Numeric(12, 2), nullable=False)
    line_tax = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    order = relationship("OrderModel", back_populates="items")
