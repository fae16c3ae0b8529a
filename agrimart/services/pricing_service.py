# agrimart/services/pricing_service.py
from sqlalchemy.orm import Session

from agrimart.data.models.product import ProductModel
from agrimart.domain.errors import NotFound
from agrimart.domain.pricing import PriceBreakdown, PriceSchedule, make_schedule, make_tier, price
from agrimart.repos.product_repo import ProductRepo


def schedule_for_product(product: ProductModel) -> PriceSchedule:
    return make_schedule(
        product.unit_price,
        product.gst_rate,
        [make_tier(t.min_qty, t.max_qty, t.unit_price, t.discount_pct) for t in product.tiers],
    )


def price_product(product: ProductModel, quantity: int) -> PriceBreakdown:
    """Unrounded breakdown for a live product record."""
    return price(schedule_for_product(product), quantity)


class PricingService:
    def __init__(self, db: Session):
        self.products = ProductRepo(db)

    def calculate_price(self, product_id: int, quantity: int) -> PriceBreakdown:
        product = self.products.get_product(product_id)
        if product is None:
            raise NotFound("product", product_id)
        return price_product(product, quantity).rounded()
