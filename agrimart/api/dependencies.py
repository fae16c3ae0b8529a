# agrimart/api/dependencies.py
from functools import lru_cache

from fastapi import HTTPException

from agrimart.domain.errors import OrderingError, Unauthorized
from agrimart.services.lock_service import LockService
from agrimart.services.notification_service import NotificationService
from agrimart.services.order_service import STAFF_ROLES
from agrimart.services.profile_client import ProfileClient
from agrimart.utils.logging import get_logger

logger = get_logger(__name__)


@lru_cache
def get_lock_service() -> LockService:
    return LockService()


@lru_cache
def get_profile_client() -> ProfileClient:
    return ProfileClient()


@lru_cache
def get_notifier() -> NotificationService:
    return NotificationService()


def require_staff(actor_id: int, role: str, action: str):
    if role not in STAFF_ROLES:
        raise Unauthorized(actor_id, action)


def http_error(e: OrderingError) -> HTTPException:
    if e.http_status >= 500:
        logger.error(f"{type(e).__name__}: {e}")
    return HTTPException(status_code=e.http_status, detail=e.to_dict())
