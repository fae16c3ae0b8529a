# agrimart/api/routers/inventory.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agrimart.api.dependencies import http_error, require_staff
from agrimart.data.database import get_db
from agrimart.domain.errors import OrderingError
from agrimart.domain.schemas import AdjustIn, LedgerEntryOut, ProductStockOut, StockChangeIn
from agrimart.services.inventory_service import InventoryService

router = APIRouter(prefix="/inventory", tags=["inventory"])


def get_service(db: Session = Depends(get_db)) -> InventoryService:
    return InventoryService(db)


@router.get("/low-stock", response_model=List[ProductStockOut])
def list_low_stock(
    actor_id: int = Query(...),
    role: str = Query(...),
    limit: int = Query(20, ge=1, le=100),
    svc: InventoryService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, "view low stock")
        return svc.list_low_stock(limit)
    except OrderingError as e:
        raise http_error(e)


@router.get("/{product_id}", response_model=ProductStockOut)
def get_stock(product_id: int, svc: InventoryService = Depends(get_service)):
    try:
        return svc.get_stock(product_id)
    except OrderingError as e:
        raise http_error(e)


@router.get("/{product_id}/logs", response_model=List[LedgerEntryOut])
def list_logs(
    product_id: int,
    actor_id: int = Query(...),
    role: str = Query(...),
    kind: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    svc: InventoryService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, f"view ledger of product {product_id}")
        return svc.list_entries(product_id, kind, limit, offset)
    except OrderingError as e:
        raise http_error(e)


@router.post("/{product_id}/reserve", response_model=LedgerEntryOut)
def reserve(
    product_id: int,
    payload: StockChangeIn,
    actor_id: int = Query(...),
    role: str = Query(...),
    svc: InventoryService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, f"reserve stock of product {product_id}")
        return svc.reserve(product_id, payload.quantity, payload.order_id, actor_id)
    except OrderingError as e:
        raise http_error(e)


@router.post("/{product_id}/release", response_model=LedgerEntryOut)
def release(
    product_id: int,
    payload: StockChangeIn,
    actor_id: int = Query(...),
    role: str = Query(...),
    svc: InventoryService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, f"release stock of product {product_id}")
        return svc.release(
            product_id, payload.quantity, payload.order_id, actor_id, payload.reason or "Released manually"
        )
    except OrderingError as e:
        raise http_error(e)


@router.post("/{product_id}/deduct", response_model=LedgerEntryOut)
def deduct(
    product_id: int,
    payload: StockChangeIn,
    actor_id: int = Query(...),
    role: str = Query(...),
    svc: InventoryService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, f"deduct stock of product {product_id}")
        return svc.deduct(product_id, payload.quantity, payload.order_id, actor_id)
    except OrderingError as e:
        raise http_error(e)


@router.post("/{product_id}/add", response_model=LedgerEntryOut)
def add_stock(
    product_id: int,
    payload: StockChangeIn,
    actor_id: int = Query(...),
    role: str = Query(...),
    svc: InventoryService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, f"add stock to product {product_id}")
        return svc.add(product_id, payload.quantity, actor_id, payload.reason or "Stock received from supplier")
    except OrderingError as e:
        raise http_error(e)


@router.post("/{product_id}/adjust", response_model=LedgerEntryOut)
def adjust(
    product_id: int,
    payload: AdjustIn,
    actor_id: int = Query(...),
    role: str = Query(...),
    svc: InventoryService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, f"adjust stock of product {product_id}")
        return svc.adjust(product_id, payload.delta, actor_id, payload.reason)
    except OrderingError as e:
        raise http_error(e)


@router.post("/{product_id}/damage", response_model=LedgerEntryOut)
def mark_damaged(
    product_id: int,
    payload: StockChangeIn,
    actor_id: int = Query(...),
    role: str = Query(...),
    svc: InventoryService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, f"write off stock of product {product_id}")
        return svc.mark_damaged(product_id, payload.quantity, actor_id, payload.reason)
    except OrderingError as e:
        raise http_error(e)
