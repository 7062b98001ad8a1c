# cart_service/celery_worker.py
from celery import Celery

from cart_service.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CLEANUP_INTERVAL_SECONDS,
)

celery_app = Celery(
    "cart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# taski musza byc zaimportowane zeby Celery je zarejestrowal
celery_app.conf.imports = (
    "cart_service.tasks.cleanup",
)

celery_app.conf.beat_schedule = {
    "cleanup-expired-session-carts": {
        "task": "cart_service.tasks.cleanup.cleanup_expired_session_carts_task",
        "schedule": CLEANUP_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
