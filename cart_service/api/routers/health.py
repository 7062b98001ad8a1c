# cart_service/api/routers/health.py
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cart_service.data.database import get_db
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request, db: Session = Depends(get_db)):
    checks = {"database": "ok", "redis": "ok", "product_service": "ok"}

    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check bazy nieudany: {e}")
        checks["database"] = "unavailable"

    # redis lezy = koszyk dziala dalej bez cache
    try:
        request.app.state.cart_cache.ping()
    except RedisError as e:
        logger.warning(f"Health check redisa nieudany: {e}")
        checks["redis"] = "unavailable"

    # product-service potrzebny tylko przy dodawaniu, nie wplywa na status
    if not request.app.state.product_client.health_check():
        checks["product_service"] = "unavailable"

    healthy = checks["database"] == "ok"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "success": healthy,
            "service": "cart-service",
            "status": "healthy" if healthy else "unhealthy",
            "checks": checks,
        },
    )
