import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from cart_service.domain.cart import Cart
from cart_service.domain.errors import CartError, Err, ErrorKind, Ok, Result
from cart_service.repos.cart_repo import CartRepo
from cart_service.services.cart_cache import CartCache
from cart_service.services.product_client import ProductClient, ProductServiceError
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


def use_case(name: str):
    """
    Zamienia wyjatki na Result:
    CartError -> Err z jego rodzajem, product-service -> EXTERNAL_SERVICE,
    cala reszta -> INTERNAL z ogolnym komunikatem (bez szczegolow na zewnatrz).
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except CartError as e:
                logger.info(f"[{name}] {e.kind.value}: {e.message}")
                return Err.from_error(e)
            except ProductServiceError as e:
                logger.warning(f"[{name}] product-service: {e}")
                return Err(ErrorKind.EXTERNAL_SERVICE, "Serwis produktow jest niedostepny")
            except Exception:
                logger.exception(f"[{name}] nieoczekiwany blad")
                return Err(ErrorKind.INTERNAL, f"Wystapil blad podczas operacji: {name}")

        return wrapper

    return decorator


def _require_owner(user_id: str | None, session_id: str | None) -> None:
    if not user_id and not session_id:
        raise CartError(ErrorKind.VALIDATION, "Wymagane ID uzytkownika albo ID sesji")


class CartService:
    """
    Use case'y koszyka.
    Schemat: walidacja -> odczyt koszyka (user, potem sesja) -> zmiana agregatu
    -> zapis w repo -> aktualizacja cache (best-effort) -> Ok / Err.

    Brak lockow i retry - dwa rownolegle requesty na tym samym koszyku
    moga nadpisac sobie zmiany.
    """

    def __init__(
        self,
        db: Session,
        cache: CartCache,
        product_client: ProductClient,
    ):
        self.repo = CartRepo(db)
        self.cache = cache
        self.product_client = product_client

    #query
    @use_case("get_cart")
    def get_cart(self, user_id: str | None = None, session_id: str | None = None) -> Result[Cart | None]:
        _require_owner(user_id, session_id)

        cart = None
        if user_id:
            cart = self._cached_cart(self.cache.get_user_cart_id, user_id)
            if cart is not None and cart.user_id != user_id:
                cart = None

            if cart is None:
                cart = self.repo.find_by_user_id(user_id)
                if cart:
                    self._refresh_cache(cart)

        if cart is None and session_id:
            cart = self._cached_cart(self.cache.get_session_cart_id, session_id)
            if cart is not None and cart.session_id != session_id:
                cart = None

            if cart is not None:
                #aktywnosc usera - przedluz sesje
                logger.info(f"Przedluzam TTL koszyka sesji {session_id}")
                self._cache_call(self.cache.extend_session_cart_ttl, session_id)
            else:
                cart = self.repo.find_by_session_id(session_id)
                if cart:
                    self._refresh_cache(cart)

        if cart is None:
            return Ok(None, "Koszyk jest pusty")
        return Ok(cart, "Pobrano koszyk")

    @use_case("get_session_status")
    def get_session_status(self, session_id: str | None) -> Result[Dict[str, Any]]:
        if not session_id:
            raise CartError(ErrorKind.VALIDATION, "ID sesji jest wymagane")

        ttl = self._cache_call(self.cache.get_session_cart_remaining_ttl, session_id, default=-2)
        return Ok({"session_id": session_id, "remaining_ttl": ttl, "active": ttl > 0})

    #commands
    @use_case("add_item")
    def add_item(
        self,
        product_id: str,
        quantity: int,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> Result[Cart]:
        _require_owner(user_id, session_id)
        if not product_id or not product_id.strip():
            raise CartError(ErrorKind.VALIDATION, "ID produktu jest wymagane")
        if quantity < 1:
            raise CartError(ErrorKind.VALIDATION, "Ilosc musi byc wieksza niz 0")

        logger.info(f"Pobieranie danych produktu {product_id} z product-service")
        product = self.product_client.get_product(product_id)
        if product is None:
            raise CartError(ErrorKind.PRODUCT_NOT_FOUND, f"Produkt {product_id} nie istnieje")

        if product.available_quantity < quantity:
            raise CartError(
                ErrorKind.INSUFFICIENT_STOCK,
                f"Brak wystarczajacej ilosci produktu, dostepne: {product.available_quantity}",
            )

        cart = self._find_cart(user_id, session_id)
        if cart is None:
            #zalogowany user dostaje koszyk usera
            cart = Cart.create_for_user(user_id) if user_id else Cart.create_for_session(session_id)
            logger.info(f"Tworze nowy koszyk {cart.id}")

        cart.add_item(product_id, quantity, product.price)
        self._persist(cart)
        self._refresh_cache(cart)

        logger.info(f"Produkt {product_id} (x{quantity}) dodany do koszyka {cart.id}")
        return Ok(cart, "Produkt dodany do koszyka")

    @use_case("update_item_quantity")
    def update_item_quantity(
        self,
        product_id: str,
        quantity: int,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> Result[Cart | None]:
        _require_owner(user_id, session_id)
        if quantity < 0:
            raise CartError(ErrorKind.VALIDATION, "Ilosc nie moze byc ujemna")

        cart = self._find_cart(user_id, session_id)
        if cart is None:
            raise CartError(ErrorKind.NOT_FOUND, "Koszyk nie istnieje")

        cart.update_item_quantity(product_id, quantity)

        if cart.is_empty():
            self._delete_everywhere(cart, user_id, session_id)
            return Ok(None, "Produkt usuniety, koszyk jest pusty")

        self._persist(cart)
        self._refresh_cache(cart)
        return Ok(cart, "Zmieniono ilosc produktu")

    @use_case("remove_item")
    def remove_item(
        self,
        product_id: str,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> Result[Cart | None]:
        _require_owner(user_id, session_id)

        cart = self._find_cart(user_id, session_id)
        if cart is None:
            raise CartError(ErrorKind.NOT_FOUND, "Koszyk nie istnieje")

        cart.remove_item(product_id)

        if cart.is_empty():
            self._delete_everywhere(cart, user_id, session_id)
            return Ok(None, "Produkt usuniety, koszyk jest pusty")

        self._persist(cart)
        self._refresh_cache(cart)
        return Ok(cart, "Produkt usuniety z koszyka")

    @use_case("clear_cart")
    def clear_cart(self, user_id: str | None = None, session_id: str | None = None) -> Result[Cart]:
        _require_owner(user_id, session_id)

        cart = self._find_cart(user_id, session_id)
        if cart is None:
            # nie ma czego czyscic - pusty koszyk, bez zapisu
            empty = Cart.create_for_user(user_id) if user_id else Cart.create_for_session(session_id)
            return Ok(empty, "Koszyk jest juz pusty")

        cart.clear()
        self._persist(cart)
        self._refresh_cache(cart)

        logger.info(f"Wyczyszczono koszyk {cart.id}")
        return Ok(cart, "Koszyk wyczyszczony")

    @use_case("delete_cart")
    def delete_cart(self, user_id: str | None = None, session_id: str | None = None) -> Result[str | None]:
        _require_owner(user_id, session_id)

        cart = self._find_cart(user_id, session_id)
        if cart is None:
            logger.info(f"Brak koszyka do usuniecia: user={user_id}, session={session_id}")
            return Ok(None, "Koszyk zostal juz usuniety albo nie istnieje")

        logger.info(f"Usuwanie koszyka: {cart.summary()}")
        self._delete_everywhere(cart, user_id, session_id)
        return Ok(cart.id, "Koszyk usuniety")

    @use_case("transfer_cart")
    def transfer_cart(self, user_id: str | None, session_id: str | None) -> Result[Cart]:
        """
        Logowanie: koszyk sesji przechodzi na usera.
        User ma juz koszyk -> merge (ilosci sie sumuja), koszyk sesji usuwany.
        User nie ma koszyka -> ten sam koszyk zmienia wlasciciela.
        """
        if not user_id:
            raise CartError(ErrorKind.VALIDATION, "ID uzytkownika jest wymagane")
        if not session_id:
            raise CartError(ErrorKind.VALIDATION, "ID sesji jest wymagane")

        session_cart = self.repo.find_by_session_id(session_id)
        user_cart = self.repo.find_by_user_id(user_id)

        if session_cart is None:
            if user_cart is None:
                user_cart = self.repo.save(Cart.create_for_user(user_id))
                logger.info(f"Brak koszyka sesji {session_id}, utworzono pusty koszyk {user_cart.id}")
            self._refresh_cache(user_cart)
            return Ok(user_cart, "Brak koszyka sesji do przeniesienia")

        if user_cart is not None:
            user_cart.merge_with(session_cart)
            self.repo.update(user_cart)
            self.repo.delete_cart(session_cart.id)

            self._cache_call(self.cache.delete_session_cart, session_id)
            self._cache_call(self.cache.delete_cart, session_cart.id)
            self._refresh_cache(user_cart)

            logger.info(f"Koszyk sesji {session_cart.id} scalony z koszykiem {user_cart.id}")
            return Ok(user_cart, "Koszyki zostaly scalone")

        session_cart.transfer_to_user(user_id)
        self.repo.update(session_cart)

        self._cache_call(self.cache.delete_session_cart, session_id)
        self._refresh_cache(session_cart)

        logger.info(f"Koszyk {session_cart.id} przeniesiony na uzytkownika {user_id}")
        return Ok(session_cart, "Koszyk zostal przeniesiony")

    @use_case("cleanup_session_cart")
    def cleanup_session_cart(self, session_id: str | None) -> Result[str | None]:
        if not session_id:
            raise CartError(ErrorKind.VALIDATION, "ID sesji jest wymagane")

        cart = self.repo.find_by_session_id(session_id)
        if cart is None:
            logger.info(f"Brak koszyka dla sesji {session_id}")
            return Ok(None, "Brak koszyka sesji do wyczyszczenia")

        self._delete_everywhere(cart, None, session_id)
        return Ok(cart.id, "Koszyk sesji wyczyszczony")

    #helpers
    def _find_cart(self, user_id: str | None, session_id: str | None) -> Cart | None:
        cart = None
        if user_id:
            cart = self.repo.find_by_user_id(user_id)
        if cart is None and session_id:
            cart = self.repo.find_by_session_id(session_id)
        return cart

    def _persist(self, cart: Cart) -> Cart:
        if cart.is_persisted:
            return self.repo.update(cart)
        return self.repo.save(cart)

    def _delete_everywhere(self, cart: Cart, user_id: str | None, session_id: str | None) -> None:
        self.repo.delete_cart(cart.id)

        jobs = [(self.cache.delete_cart, cart.id)]
        for uid in {user_id, cart.user_id} - {None}:
            jobs.append((self.cache.delete_user_cart, uid))
        for sid in {session_id, cart.session_id} - {None}:
            jobs.append((self.cache.delete_session_cart, sid))

        #klucze niezalezne - kasowane rownolegle, kazdy blad osobno polykany
        with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
            futures = [pool.submit(self._cache_call, fn, arg) for fn, arg in jobs]
            for future in futures:
                future.result()

    def _refresh_cache(self, cart: Cart) -> None:
        try:
            self.cache.set_cart(cart.id, cart, cart.is_session_cart)
        except RedisError as e:
            logger.warning(f"Zapis koszyka {cart.id} do cache nieudany, usuwam stary wpis: {e}")
            #stary blob nie moze zostac w cache, nastepny odczyt idzie do bazy
            self._cache_call(self.cache.delete_cart, cart.id)
            if cart.user_id:
                self._cache_call(self.cache.delete_user_cart, cart.user_id)
            if cart.session_id:
                self._cache_call(self.cache.delete_session_cart, cart.session_id)
            return

        if cart.user_id:
            self._cache_call(self.cache.set_user_cart_id, cart.user_id, cart.id)
        if cart.session_id:
            self._cache_call(self.cache.set_session_cart_id, cart.session_id, cart.id)

    def _cached_cart(self, index_lookup, owner_id: str) -> Cart | None:
        cart_id = self._cache_call(index_lookup, owner_id)
        if not cart_id:
            return None
        return self._cache_call(self.cache.get_cart, cart_id)

    @staticmethod
    def _cache_call(fn, *args, default=None):
        try:
            return fn(*args)
        except RedisError as e:
            logger.warning(f"Cache {getattr(fn, '__name__', fn)} nieudane, pomijam: {e}")
            return default
