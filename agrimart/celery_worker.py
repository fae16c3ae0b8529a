# agrimart/celery_worker.py
from celery import Celery

from agrimart.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "agrimart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# register tasks explicitly
celery_app.conf.imports = (
    "agrimart.services.notification_service",
)

celery_app.conf.timezone = "UTC"
