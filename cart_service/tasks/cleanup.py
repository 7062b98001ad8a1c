# cart_service/tasks/cleanup.py
from cart_service.celery_worker import celery_app
from cart_service.services.cart_cache import CartCache
from cart_service.utils.retry import redis_retry
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


def build_cart_cache() -> CartCache:
    return CartCache.from_url()


@redis_retry()
def _sweep(cache: CartCache) -> int:
    return cache.cleanup_expired_session_carts()


@celery_app.task(name="cart_service.tasks.cleanup.cleanup_expired_session_carts_task")
def cleanup_expired_session_carts_task():
    """
    Zapasowe sprzatanie indeksow sesji z TTL <= 0.
    Redis sam usuwa wygasle klucze, wiec zwykle nie ma nic do zrobienia.
    """
    logger.info("Cleanup session carts task started")

    cache = build_cart_cache()
    cleaned = _sweep(cache)

    logger.info(f"Cleanup session carts task finished, removed {cleaned}")
    return {"cleaned": cleaned}
