# agrimart/api/routers/pricing.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agrimart.api.dependencies import http_error
from agrimart.data.database import get_db
from agrimart.domain.errors import OrderingError
from agrimart.domain.schemas import PriceOut
from agrimart.services.pricing_service import PricingService

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("/{product_id}", response_model=PriceOut)
def calculate_price(
    product_id: int,
    quantity: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    svc = PricingService(db)
    try:
        return svc.calculate_price(product_id, quantity)
    except OrderingError as e:
        raise http_error(e)
