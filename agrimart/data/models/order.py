# agrimart/data/models/order.py
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Numeric, JSON
from sqlalchemy.orm import relationship

from agrimart.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(32), unique=True, nullable=True)
    buyer_id = Column(Integer, nullable=False, index=True)

    customer_snapshot = Column(JSON, nullable=False)
    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)
    customer_notes = Column(String(500), nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False)
    total_discount = Column(Numeric(12, 2), nullable=False, default=0)
    cgst = Column(Numeric(12, 2), nullable=False, default=0)
    sgst = Column(Numeric(12, 2), nullable=False, default=0)
    igst = Column(Numeric(12, 2), nullable=False, default=0)
    total_gst = Column(Numeric(12, 2), nullable=False)
    shipping_charges = Column(Numeric(12, 2), nullable=False, default=0)
    round_off = Column(Numeric(12, 2), nullable=False, default=0)
    grand_total = Column(Numeric(12, 2), nullable=False)

    # pending_payment, paid, accepted, in_transit, delivered, cancelled
    status = Column(String(20), nullable=False, default="pending_payment", index=True)
    version = Column(Integer, nullable=False, default=1)

    # pending, submitted, confirmed, failed
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(20), nullable=False)
    payment_reference = Column(String(100), nullable=True)
    payment_submitted_at = Column(DateTime(timezone=True), nullable=True)
    payment_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    payment_confirmed_by = Column(Integer, nullable=True)

    invoice_number = Column(String(32), nullable=True)
    invoice_date = Column(DateTime(timezone=True), nullable=True)

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
    status_history = relationship(
        "OrderStatusHistoryModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistoryModel.id",
    )
