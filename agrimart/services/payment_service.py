# agrimart/services/payment_service.py
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from agrimart.data.models.order_status_history import OrderStatusHistoryModel
from agrimart.domain.errors import InvalidPaymentState, Unauthorized, ValidationError
from agrimart.domain.order_status import PAYMENT_METHODS, OrderStatus, PaymentStatus
from agrimart.services.lock_service import LockService
from agrimart.services.notification_service import NotificationService
from agrimart.services.order_service import OrderService, order_to_dict
from agrimart.services.profile_client import ProfileClient
from agrimart.utils.settings import INVOICE_NUMBER_PREFIX
from agrimart.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentService:
    """
    Manual payment attestation.

    The buyer reports a transfer (submit), staff verifies it against the bank
    statement and confirms or rejects. Confirmation is the only way an order
    reaches paid, and it issues the invoice number in the same commit.
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService,
        notification_service: NotificationService | None = None,
        profile_client: ProfileClient | None = None,
    ):
        self.orders = OrderService(db, lock_service, profile_client, notification_service)
        self.repo = self.orders.repo
        self.lock_service = lock_service
        self.notification_service = self.orders.notification_service

    def submit_payment(
        self,
        order_id: int,
        buyer_id: int,
        method: str | None = None,
        reference: str | None = None,
    ) -> Dict[str, Any]:
        if method is not None and method not in PAYMENT_METHODS:
            raise ValidationError("payment_method", f"must be one of {PAYMENT_METHODS}")
        if reference is not None and len(reference) > 100:
            raise ValidationError("payment_reference", "cannot exceed 100 characters")

        with self.lock_service.order_lock(order_id):
            order = self.orders._require_order(order_id)
            if order.buyer_id != buyer_id:
                raise Unauthorized(buyer_id, f"submit payment for order {order_id}")

            if order.status != OrderStatus.PENDING_PAYMENT.value:
                raise InvalidPaymentState(order_id, order.payment_status, order.status, "order is not awaiting payment")
            if order.payment_status == PaymentStatus.CONFIRMED.value:
                raise InvalidPaymentState(order_id, order.payment_status, order.status, "payment already confirmed")

            # a failed attestation can be submitted again
            values = {
                "payment_status": PaymentStatus.SUBMITTED.value,
                "payment_submitted_at": datetime.now(timezone.utc),
                "payment_reference": reference,
                "version": order.version + 1,
            }
            if method:
                values["payment_method"] = method

            try:
                self._update(order, values)
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

        self.repo.refresh(order)
        logger.info(f"Payment submitted for order {order_id} by buyer {buyer_id}, ref {reference}")
        self.notification_service.payment_submitted(order.id, order.order_number)
        return order_to_dict(order)

    def confirm_payment(self, order_id: int, staff_id: int) -> Dict[str, Any]:
        with self.lock_service.order_lock(order_id):
            order = self.orders._require_order(order_id)
            self._require_submitted(order)

            now = datetime.now(timezone.utc)
            try:
                self.orders.apply_transition(
                    order,
                    OrderStatus.PAID,
                    staff_id,
                    "Payment confirmed",
                    changes={
                        "payment_status": PaymentStatus.CONFIRMED.value,
                        "payment_confirmed_at": now,
                        "payment_confirmed_by": staff_id,
                        "invoice_number": f"{INVOICE_NUMBER_PREFIX}-{now:%Y%m%d}-{order.id:05d}",
                        "invoice_date": now,
                    },
                )
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

        self.repo.refresh(order)
        logger.info(f"Payment confirmed for order {order_id} by staff {staff_id}, invoice {order.invoice_number}")
        self.notification_service.order_status_changed(order.buyer_id, order.id, order.status)
        return order_to_dict(order)

    def reject_payment(self, order_id: int, staff_id: int, reason: str) -> Dict[str, Any]:
        if not reason or not reason.strip():
            raise ValidationError("reason", "is required")

        with self.lock_service.order_lock(order_id):
            order = self.orders._require_order(order_id)
            self._require_submitted(order)

            try:
                self._update(
                    order,
                    {
                        "payment_status": PaymentStatus.FAILED.value,
                        "version": order.version + 1,
                    },
                )
                # order status is unchanged, the note records the rejection
                self.repo.add_history(
                    order,
                    OrderStatusHistoryModel(
                        status=order.status,
                        note=f"Payment rejected: {reason}",
                        actor_id=staff_id,
                        created_at=datetime.now(timezone.utc),
                    ),
                )
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

        self.repo.refresh(order)
        logger.info(f"Payment rejected for order {order_id} by staff {staff_id}: {reason}")
        return order_to_dict(order)

    def _require_submitted(self, order):
        if order.status != OrderStatus.PENDING_PAYMENT.value:
            raise InvalidPaymentState(order.id, order.payment_status, order.status, "order is not awaiting payment")
        if order.payment_status != PaymentStatus.SUBMITTED.value:
            raise InvalidPaymentState(order.id, order.payment_status, order.status, "payment has not been submitted")

    def _update(self, order, values: dict):
        rowcount = self.repo.update_order_version(order.id, order.version, values)
        if rowcount == 0:
            state = self.repo.current_state(order.id)
            raise InvalidPaymentState(
                order.id,
                state.payment_status if state else order.payment_status,
                state.status if state else order.status,
                "order changed concurrently",
            )
