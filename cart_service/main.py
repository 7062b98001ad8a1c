# cart_service/main.py
from fastapi import FastAPI
import uvicorn

from cart_service.data.database import Base, engine
from cart_service.api.routers import carts, health
from cart_service.services.cart_cache import CartCache
from cart_service.services.product_client import ProductClient
from cart_service.utils.logging import get_logger

# import modeli przed create_all
from cart_service.data.models import CartModel, CartItemModel  # noqa: F401

logger = get_logger(__name__)


def init_db() -> None:
    logger.info(f"Tabele w Base.metadata: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Nie udalo sie utworzyc tabel: {e}")
        raise
    logger.info("Tabele bazy gotowe")


def create_app(
    cart_cache: CartCache | None = None,
    product_client: ProductClient | None = None,
) -> FastAPI:
    """
    Fabryka aplikacji.
    Cache i klient product-service tworzone raz na proces i trzymane
    w app.state, routery biora je stamtad.
    """
    init_db()

    app = FastAPI(
        title="Cart Service",
        version="1.0.0",
    )

    app.state.cart_cache = cart_cache or CartCache.from_url()
    app.state.product_client = product_client or ProductClient()

    # Include routers
    app.include_router(health.router)
    app.include_router(carts.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
