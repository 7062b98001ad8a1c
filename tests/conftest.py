import fnmatch
import math
import os

# baza w pamieci zanim cokolwiek zaimportuje settings
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
import redis
from fastapi.testclient import TestClient

from cart_service.data.database import Base, SessionLocal, engine
from cart_service.data.models import CartModel, CartItemModel  # noqa: F401
from cart_service.domain.schemas import ProductInfo
from cart_service.main import create_app
from cart_service.services.cart_cache import CartCache
from cart_service.services.cart_service import CartService
from cart_service.services.product_client import ProductServiceError


class FakeRedis:
    """
    Redis w pamieci: get/set/setex/delete/expire/ttl/scan_iter.
    Zegar przesuwany recznie przez advance().
    """

    def __init__(self):
        self.store = {}
        self.expiry = {}
        self.now = 0.0

    def advance(self, seconds):
        self.now += seconds

    def _alive(self, key):
        exp = self.expiry.get(key)
        if exp is not None and exp <= self.now:
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.store

    def get(self, key):
        return self.store[key] if self._alive(key) else None

    def set(self, key, value, ex=None):
        self.store[key] = value
        if ex:
            self.expiry[key] = self.now + ex
        else:
            self.expiry.pop(key, None)
        return True

    def setex(self, key, ttl, value):
        return self.set(key, value, ex=ttl)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._alive(key):
                del self.store[key]
                self.expiry.pop(key, None)
                removed += 1
        return removed

    def expire(self, key, ttl):
        if not self._alive(key):
            return False
        self.expiry[key] = self.now + ttl
        return True

    def ttl(self, key):
        if not self._alive(key):
            return -2
        exp = self.expiry.get(key)
        if exp is None:
            return -1
        return int(math.ceil(exp - self.now))

    def scan_iter(self, match=None):
        for key in list(self.store):
            if self._alive(key) and (match is None or fnmatch.fnmatchcase(key, match)):
                yield key

    def ping(self):
        return True


class BrokenRedis:
    """Kazda komenda konczy sie bledem polaczenia."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.ConnectionError("Connection refused")

        return fail


class StubProductClient:
    def __init__(self):
        self.unavailable = False
        self.calls = []
        self.products = {
            "p1": {"id": "p1", "name": "Keyboard", "price": "1000", "available_quantity": 100},
            "p2": {"id": "p2", "name": "Mouse", "price": "2000", "available_quantity": 100},
            "p3": {"id": "p3", "name": "Monitor", "price": "500", "available_quantity": 100},
            "last-one": {"id": "last-one", "name": "Lamp", "price": "10", "available_quantity": 1},
        }

    def get_product(self, product_id):
        self.calls.append(product_id)
        if self.unavailable:
            raise ProductServiceError("product-service timeout")
        data = self.products.get(product_id)
        return ProductInfo(**data) if data else None

    def health_check(self):
        return not self.unavailable


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return CartCache(fake_redis, key_prefix="cart:", default_ttl=1800, session_cart_ttl=1800)


@pytest.fixture
def broken_cache():
    return CartCache(BrokenRedis(), key_prefix="cart:", default_ttl=1800, session_cart_ttl=1800)


@pytest.fixture
def product_client():
    return StubProductClient()


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def service(db, cache, product_client):
    return CartService(db=db, cache=cache, product_client=product_client)


@pytest.fixture
def test_client(db, cache, product_client):
    app = create_app(cart_cache=cache, product_client=product_client)
    with TestClient(app) as client:
        yield client
