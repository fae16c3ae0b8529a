# agrimart/data/models/product.py
from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from agrimart.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_total >= 0", name="ck_products_stock_total"),
        CheckConstraint("stock_reserved >= 0", name="ck_products_stock_reserved"),
        CheckConstraint("stock_reserved <= stock_total", name="ck_products_reserved_le_total"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    unit = Column(String(20), nullable=False)
    hsn_code = Column(String(10), nullable=True)

    unit_price = Column(Numeric(12, 2), nullable=False)
    gst_rate = Column(Integer, nullable=False, default=18)

    min_order_qty = Column(Integer, nullable=False, default=1)
    max_order_qty = Column(Integer, nullable=True)  # None = no limit

    # only the inventory ledger writes these two
    stock_total = Column(Integer, nullable=False, default=0)
    stock_reserved = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=10)

    is_active = Column(Boolean, nullable=False, default=True)

    tiers = relationship(
        "ProductTierModel",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductTierModel.min_qty",
    )

    @property
    def stock_available(self) -> int:
        return self.stock_total - self.stock_reserved


class ProductTierModel(Base):
    __tablename__ = "product_tiers"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)

    min_qty = Column(Integer, nullable=False)
    max_qty = Column(Integer, nullable=True)
    unit_price = Column(Numeric(12, 2), nullable=False)
    discount_pct = Column(Numeric(5, 2), nullable=False, default=0)

    product = relationship("ProductModel", back_populates="tiers")
