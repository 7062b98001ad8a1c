import json

import redis

from cart_service.domain.cart import Cart
from cart_service.domain.errors import CartError
from cart_service.utils.settings import (
    REDIS_URL,
    CART_CACHE_PREFIX,
    CART_CACHE_TTL_SECONDS,
    SESSION_CART_TTL_SECONDS,
)
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


class CartCache:
    """
    -koszyk jako JSON pod {prefix}cart:{id}
    -indeksy {prefix}user:{id} i {prefix}session:{id} -> id koszyka
    -kazdy klucz ma wlasny TTL, wygasanie robi sam redis

    Bledy redisa (RedisError) leca wyzej, serwis traktuje cache jako best-effort.
    """

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = CART_CACHE_PREFIX,
        default_ttl: int = CART_CACHE_TTL_SECONDS,
        session_cart_ttl: int = SESSION_CART_TTL_SECONDS,
    ):
        self.redis = client
        self.key_prefix = key_prefix
        self.default_ttl = default_ttl
        self.session_cart_ttl = session_cart_ttl

    @classmethod
    def from_url(cls, url: str | None = None, **kwargs) -> "CartCache":
        client = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        return cls(client, **kwargs)

    #klucze
    def _cart_key(self, cart_id: str) -> str:
        return f"{self.key_prefix}cart:{cart_id}"

    def _user_key(self, user_id: str) -> str:
        return f"{self.key_prefix}user:{user_id}"

    def _session_key(self, session_id: str) -> str:
        return f"{self.key_prefix}session:{session_id}"

    #blob koszyka
    def set_cart(self, cart_id: str, cart: Cart, is_session_cart: bool = False) -> None:
        ttl = self.session_cart_ttl if is_session_cart else self.default_ttl
        #SETEX cart:cart:<id> 1800 "{...}"
        self.redis.setex(self._cart_key(cart_id), ttl, json.dumps(cart.to_dict()))

    def get_cart(self, cart_id: str) -> Cart | None:
        value = self.redis.get(self._cart_key(cart_id))
        if not value:
            return None

        # uszkodzony wpis = brak w cache, nie blad
        try:
            return Cart.from_dict(json.loads(value))
        except (ValueError, KeyError, TypeError, CartError) as e:
            logger.warning(f"Nie udalo sie odczytac koszyka {cart_id} z cache: {e}")
            return None

    def delete_cart(self, cart_id: str) -> None:
        self.redis.delete(self._cart_key(cart_id))

    #indeks user -> koszyk, dluzszy TTL
    def set_user_cart_id(self, user_id: str, cart_id: str) -> None:
        self.redis.setex(self._user_key(user_id), self.default_ttl * 2, cart_id)

    def get_user_cart_id(self, user_id: str) -> str | None:
        return self.redis.get(self._user_key(user_id))

    def delete_user_cart(self, user_id: str) -> None:
        self.redis.delete(self._user_key(user_id))

    #indeks sesja -> koszyk
    def set_session_cart_id(self, session_id: str, cart_id: str) -> None:
        self.redis.setex(self._session_key(session_id), self.session_cart_ttl, cart_id)

    def get_session_cart_id(self, session_id: str) -> str | None:
        return self.redis.get(self._session_key(session_id))

    def delete_session_cart(self, session_id: str) -> None:
        self.redis.delete(self._session_key(session_id))

    #timeout sesji
    def extend_session_cart_ttl(self, session_id: str) -> bool:
        cart_id = self.get_session_cart_id(session_id)
        if not cart_id:
            return False

        # przedluza oba klucze: indeks sesji i blob koszyka
        self.redis.expire(self._session_key(session_id), self.session_cart_ttl)
        self.redis.expire(self._cart_key(cart_id), self.session_cart_ttl)
        return True

    def get_session_cart_remaining_ttl(self, session_id: str) -> int:
        # -2 brak klucza, -1 klucz bez expire
        return int(self.redis.ttl(self._session_key(session_id)))

    def is_session_cart_active(self, session_id: str) -> bool:
        return self.get_session_cart_remaining_ttl(session_id) > 0

    def cleanup_expired_session_carts(self) -> int:
        cleaned = 0

        for key in self.redis.scan_iter(match=f"{self.key_prefix}session:*"):
            if self.redis.ttl(key) > 0:
                continue

            cart_id = self.redis.get(key)
            if cart_id:
                self.delete_cart(cart_id)
            self.redis.delete(key)
            cleaned += 1

        if cleaned:
            logger.info(f"Wyczyszczono {cleaned} wygaslych koszykow sesji")
        return cleaned

    def ping(self) -> bool:
        return bool(self.redis.ping())
