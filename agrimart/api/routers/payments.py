# agrimart/api/routers/payments.py
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
from agrimart.domain.errors import OrderingError
from agrimart.domain.schemas import OrderOut, PaymentRejectIn, PaymentSubmitIn
from agrimart.services.payment_service import PaymentService

router = APIRouter(prefix="/orders/{order_id}/payment", tags=["payments"])


def get_service(
    db: Session = Depends(get_db),
    lock_service=Depends(get_lock_service),
    profile_client=Depends(get_profile_client),
    notifier=Depends(get_notifier),
) -> PaymentService:
    return PaymentService(db, lock_service, notifier, profile_client)


@router.post("/submit", response_model=OrderOut)
def submit_payment(
    order_id: int,
    payload: PaymentSubmitIn,
    actor_id: int = Query(...),
    svc: PaymentService = Depends(get_service),
):
    """Buyer reports a UPI / bank transfer; staff verifies it offline."""
    try:
        return svc.submit_payment(order_id, actor_id, payload.payment_method, payload.payment_reference)
    except OrderingError as e:
        raise http_error(e)


@router.post("/confirm", response_model=OrderOut)
def confirm_payment(
    order_id: int,
    actor_id: int = Query(...),
    role: str = Query(...),
    svc: PaymentService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, f"confirm payment for order {order_id}")
        return svc.confirm_payment(order_id, actor_id)
    except OrderingError as e:
        raise http_error(e)


@router.post("/reject", response_model=OrderOut)
def reject_payment(
    order_id: int,
    payload: PaymentRejectIn,
    actor_id: int = Query(...),
    role: str = Query(...),
    svc: PaymentService = Depends(get_service),
):
    try:
        require_staff(actor_id, role, f"reject payment for order {order_id}")
        return svc.reject_payment(order_id, actor_id, payload.reason)
    except OrderingError as e:
        raise http_error(e)
