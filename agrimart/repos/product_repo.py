# agrimart/repos/product_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from agrimart.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int, refresh: bool = False) -> ProductModel | None:
        # refresh=True re-reads the row over whatever the identity map holds
        return self.db.get(ProductModel, product_id, populate_existing=refresh)

    def create_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def list_low_stock(self, limit: int = 20) -> list[ProductModel]:
        available = ProductModel.stock_total - ProductModel.stock_reserved
        stmt = (
            select(ProductModel)
            .where(
                ProductModel.is_active.is_(True),
                available <= ProductModel.low_stock_threshold,
            )
            .order_by(available, ProductModel.id)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
