# cart_service/services/product_client.py
from decimal import Decimal, InvalidOperation

import requests
from requests import RequestException

from cart_service.domain.schemas import ProductInfo
from cart_service.utils.settings import PRODUCT_SERVICE_URL, PRODUCT_SERVICE_TIMEOUT
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


class ProductServiceError(Exception):
    """product-service nie odpowiedzial albo zwrocil blad."""


def _parse_price(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, str):
        #np. "$1299.99" -> 1299.99, minus zostaje
        value = "".join(ch for ch in value if ch.isdigit() or ch in ".-")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    return price if price.is_finite() else Decimal("0")


class ProductClient:
    """
    Klient HTTP product-service.
    Bez retry - tylko timeout na pojedyncze zapytanie.
    """

    def __init__(self, base_url: str | None = None, timeout: float = PRODUCT_SERVICE_TIMEOUT):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    def get_product(self, product_id: str) -> ProductInfo | None:
        url = f"{self.base_url}/api/v1/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        try:
            resp = requests.get(url, timeout=self.timeout)
        except RequestException as e:
            logger.error(f"product-service niedostepny ({url}): {e}")
            raise ProductServiceError(f"product-service niedostepny: {e}") from e

        if resp.status_code == 404:
            logger.info(f"Produkt {product_id} nie istnieje")
            return None

        try:
            resp.raise_for_status()
            body = resp.json()
        except (RequestException, ValueError) as e:
            raise ProductServiceError(f"Blad odpowiedzi product-service: {e}") from e

        if not body.get("success", False):
            raise ProductServiceError(body.get("message") or "Blad pobierania produktu")

        return self._to_product_info(body.get("data") or {})

    def health_check(self) -> bool:
        try:
            resp = requests.get(f"{self.base_url}/health", timeout=self.timeout)
            return resp.status_code == 200
        except RequestException as e:
            logger.warning(f"Health check product-service nieudany: {e}")
            return False

    @staticmethod
    def _to_product_info(data: dict) -> ProductInfo:
        # cena sprzedazy = cena promocyjna jesli jest, inaczej regularna
        price = _parse_price(data.get("price"))
        discount = data.get("discountPrice")
        if discount is not None and _parse_price(discount) > 0:
            price = _parse_price(discount)

        if price <= 0:
            raise ProductServiceError(f"Niepoprawna cena produktu {data.get('id')}: {data.get('price')!r}")

        inventory = data.get("inventory") or {}

        return ProductInfo(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            price=price,
            available_quantity=int(inventory.get("availableQuantity") or 0),
        )
