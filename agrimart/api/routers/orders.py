# agrimart/api/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agrimart.api.dependencies import (
    get_lock_service,
    get_notifier,
    get_profile_client,
    http_error,
    require_staff,
)
from agrimart.data.database import get_db
from agrimart.domain.errors import OrderingError, Unauthorized
from agrimart.domain.schemas import CancelIn, OrderCreate, OrderListOut, OrderOut, StatusUpdateIn
from agrimart.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    lock_service=Depends(get_lock_service),
    profile_client=Depends(get_profile_client),
    notifier=Depends(get_notifier),
) -> OrderService:
    return OrderService(db, lock_service, profile_client, notifier)


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    actor_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    """
    Checkout: turns the buyer's cart into an order and reserves stock.
    Notification is queued after commit.
    """
    if payload.buyer_id != actor_id:
        raise http_error(Unauthorized(actor_id, f"place an order for buyer {payload.buyer_id}"))
    try:
        return svc.create_order(
            buyer_id=payload.buyer_id,
            shipping_address=payload.shipping_address.model_dump(exclude_none=True),
            payment_method=payload.payment_method,
            billing_address=payload.billing_address.model_dump(exclude_none=True) if payload.billing_address else None,
            customer_notes=payload.customer_notes,
        )
    except OrderingError as e:
        raise http_error(e)


@router.get("/", response_model=OrderListOut)
def list_orders(
    buyer_id: int = Query(...),
    actor_id: int = Query(...),
    role: str = Query("retailer"),
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    svc: OrderService = Depends(get_service),
):
    try:
        if buyer_id != actor_id:
            require_staff(actor_id, role, f"list orders of buyer {buyer_id}")
        return svc.list_buyer_orders(buyer_id, status, page, limit)
    except OrderingError as e:
        raise http_error(e)


@router.get("/pending-payments", response_model=OrderListOut)
def list_pending_payments(
    actor_id: int = Query(...),
    role: str = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    svc: OrderService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, "list pending payments")
        return svc.list_pending_payment_orders(page, limit)
    except OrderingError as e:
        raise http_error(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    actor_id: int = Query(...),
    role: str = Query("retailer"),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.get_order(order_id, actor_id, role)
    except OrderingError as e:
        raise http_error(e)


@router.post("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: int,
    payload: StatusUpdateIn,
    actor_id: int = Query(...),
    role: str = Query(...),
    svc: OrderService = Depends(get_service),
):
    """Staff-only step through the fulfilment flow (accepted, in_transit, delivered, cancelled)."""
    try:
        require_staff(actor_id, role, f"change status of order {order_id}")
        return svc.transition_status(order_id, actor_id, payload.status, payload.note)
    except OrderingError as e:
        raise http_error(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    payload: CancelIn,
    actor_id: int = Query(...),
    role: str = Query("retailer"),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.cancel_order(order_id, actor_id, payload.reason, role)
    except OrderingError as e:
        raise http_error(e)


@router.get("/{order_id}/invoice")
def get_invoice(
    order_id: int,
    actor_id: int = Query(...),
    role: str = Query("retailer"),
    svc: OrderService = Depends(get_service),
):
    try:
        # ownership check first, invoice data carries the buyer's GSTIN
        svc.get_order(order_id, actor_id, role)
        return svc.get_invoice_data(order_id)
    except OrderingError as e:
        raise http_error(e)