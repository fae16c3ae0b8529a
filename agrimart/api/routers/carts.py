#agrimart/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agrimart.api.dependencies import http_error
from agrimart.data.database import get_db
from agrimart.domain.errors import OrderingError, Unauthorized
from agrimart.domain.schemas import CartOut, CartSummaryOut, ItemIn, QuantityIn
from agrimart.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(db: Session):
    return CartService(db)


def _require_owner(buyer_id: int, actor_id: int):
    # carts are private to the buyer
    if buyer_id != actor_id:
        raise http_error(Unauthorized(actor_id, f"access cart of buyer {buyer_id}"))


@router.get("/{buyer_id}", response_model=CartOut)
def get_cart(
    buyer_id: int,
    actor_id: int = Query(...),
    db: Session = Depends(get_db),
):
    _require_owner(buyer_id, actor_id)
    svc = get_service(db)
    try:
        return svc.get_cart(buyer_id)
    except OrderingError as e:
        raise http_error(e)


@router.get("/{buyer_id}/summary", response_model=CartSummaryOut)
def get_cart_summary(
    buyer_id: int,
    actor_id: int = Query(...),
    db: Session = Depends(get_db),
):
    _require_owner(buyer_id, actor_id)
    svc = get_service(db)
    try:
        return svc.get_cart_summary(buyer_id)
    except OrderingError as e:
        raise http_error(e)


@router.post("/{buyer_id}/items", response_model=CartOut)
def add_item(
    buyer_id: int,
    payload: ItemIn,
    actor_id: int = Query(...),
    db: Session = Depends(get_db),
):
    _require_owner(buyer_id, actor_id)
    svc = get_service(db)
    try:
        return svc.add_item(buyer_id, payload.product_id, payload.quantity)
    except OrderingError as e:
        raise http_error(e)


@router.put("/{buyer_id}/items/{product_id}", response_model=CartOut)
def update_item(
    buyer_id: int,
    product_id: int,
    payload: QuantityIn,
    actor_id: int = Query(...),
    db: Session = Depends(get_db),
):
    _require_owner(buyer_id, actor_id)
    svc = get_service(db)
    try:
        return svc.update_item(buyer_id, product_id, payload.quantity)
    except OrderingError as e:
        raise http_error(e)


@router.delete("/{buyer_id}/items/{product_id}", response_model=CartOut)
def remove_item(
    buyer_id: int,
    product_id: int,
    actor_id: int = Query(...),
    db: Session = Depends(get_db),
):
    _require_owner(buyer_id, actor_id)
    svc = get_service(db)
    try:
        return svc.remove_item(buyer_id, product_id)
    except OrderingError as e:
        raise http_error(e)


@router.delete("/{buyer_id}", response_model=CartOut)
def clear_cart(
    buyer_id: int,
    actor_id: int = Query(...),
    db: Session = Depends(get_db),
):
    _require_owner(buyer_id, actor_id)
    svc = get_service(db)
    try:
        return svc.clear(buyer_id)
    except OrderingError as e:
        raise http_error(e)
