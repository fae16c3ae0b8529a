# agrimart/services/notification_service.py
from agrimart.celery_worker import celery_app
from agrimart.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Order notifications, dispatched through Celery after the order is committed.
    A broker outage is logged and never rolls back the order.
    """

    def order_placed(self, buyer_id: int, order_id: int, order_number: str):
        self._dispatch(send_order_placed_task, buyer_id, order_id, order_number)

    def order_status_changed(self, buyer_id: int, order_id: int, status: str):
        self._dispatch(send_status_changed_task, buyer_id, order_id, status)

    def payment_submitted(self, order_id: int, order_number: str):
        self._dispatch(send_payment_submitted_task, order_id, order_number)

    @staticmethod
    def _dispatch(task, *args):
        try:
            task.delay(*args)
        except Exception as e:
            logger.warning(f"Failed to queue {task.name}{args}: {e}")


@celery_app.task(name="agrimart.services.notification_service.send_order_placed_task")
def send_order_placed_task(buyer_id: int, order_id: int, order_number: str):
    # the email/SMS gateway hooks in here
    logger.info(f"[NOTIFICATION] Buyer {buyer_id}: order {order_number} ({order_id}) placed, awaiting payment")
    return {"buyer_id": buyer_id, "order_id": order_id, "event": "order_placed"}


@celery_app.task(name="agrimart.services.notification_service.send_status_changed_task")
def send_status_changed_task(buyer_id: int, order_id: int, status: str):
    logger.info(f"[NOTIFICATION] Buyer {buyer_id}: order {order_id} is now {status}")
    return {"buyer_id": buyer_id, "order_id": order_id, "event": "status_changed", "status": status}


@celery_app.task(name="agrimart.services.notification_service.send_payment_submitted_task")
def send_payment_submitted_task(order_id: int, order_number: str):
    logger.info(f"[NOTIFICATION] Staff: payment submitted for order {order_number} ({order_id}), needs confirmation")
    return {"order_id": order_id, "event": "payment_submitted"}
