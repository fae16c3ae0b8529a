# agrimart/data/seed.py
from decimal import Decimal

from agrimart.data.database import SessionLocal
from agrimart.data.models import ProductModel, ProductTierModel

SAMPLE_PRODUCTS = [
    {
        "name": "Urea 46% N (45 kg bag)",
        "unit": "bag",
        "hsn_code": "31021000",
        "unit_price": Decimal("266.50"),
        "gst_rate": 5,
        "min_order_qty": 10,
        "stock_total": 2000,
        "tiers": [(50, 199, Decimal("260.00"), Decimal("2.44")), (200, None, Decimal("250.00"), Decimal("6.19"))],
    },
    {
        "name": "Drip irrigation lateral 16mm (400 m roll)",
        "unit": "roll",
        "hsn_code": "39172390",
        "unit_price": Decimal("2450.00"),
        "gst_rate": 12,
        "min_order_qty": 1,
        "max_order_qty": 100,
        "stock_total": 150,
        "tiers": [(10, None, Decimal("2300.00"), Decimal("6.12"))],
    },
    {
        "name": "Chlorpyrifos 20% EC (1 L)",
        "unit": "bottle",
        "hsn_code": "38089199",
        "unit_price": Decimal("100.00"),
        "gst_rate": 18,
        "min_order_qty": 1,
        "stock_total": 500,
        "tiers": [(5, None, Decimal("90.00"), Decimal("10.00"))],
    },
]


def seed():
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return
        for data in SAMPLE_PRODUCTS:
            data = dict(data)
            tiers = data.pop("tiers")
            product = ProductModel(**data)
            product.tiers = [
                ProductTierModel(min_qty=lo, max_qty=hi, unit_price=price, discount_pct=pct)
                for lo, hi, price, pct in tiers
            ]
            db.add(product)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    seed()
