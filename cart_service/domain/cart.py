# cart_service/domain/cart.py
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List

from cart_service.domain.errors import CartError, ErrorKind

#ceny trzymane z dokladnoscia do grosza, tak jak kolumna Numeric(12, 2)
_CENT = Decimal("0.01")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _blank(value: str | None) -> bool:
    return value is None or str(value).strip() == ""


def _to_decimal(value) -> Decimal:
    try:
        price = Decimal(str(value))
        if not price.is_finite():
            raise InvalidOperation
        return price.quantize(_CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise CartError(ErrorKind.VALIDATION, "Cena musi byc liczba")


def _parse_dt(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _validate_line(product_id: str, quantity: int, price: Decimal) -> None:
    if _blank(product_id):
        raise CartError(ErrorKind.VALIDATION, "ID produktu jest wymagane")
    if quantity < 1:
        raise CartError(ErrorKind.VALIDATION, "Ilosc musi byc wieksza niz 0")
    if price <= 0:
        raise CartError(ErrorKind.VALIDATION, "Cena musi byc wieksza niz 0")


class CartItem:
    """Pozycja w koszyku: produkt, cena jednostkowa, ilosc."""

    def __init__(self, product_id: str, quantity: int, price, added_at: datetime | None = None):
        price = _to_decimal(price)
        _validate_line(product_id, quantity, price)

        self.product_id = str(product_id).strip()
        self.quantity = int(quantity)
        self.price = price
        self.added_at = added_at or _now()

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    def increase_quantity(self, quantity: int) -> None:
        if quantity < 1:
            raise CartError(ErrorKind.VALIDATION, "Dodawana ilosc musi byc wieksza niz 0")
        self.quantity += int(quantity)

    def update_quantity(self, quantity: int) -> None:
        if quantity < 1:
            raise CartError(ErrorKind.VALIDATION, "Ilosc musi byc wieksza niz 0")
        self.quantity = int(quantity)

    def copy(self) -> "CartItem":
        return CartItem(self.product_id, self.quantity, self.price, self.added_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": str(self.price),
            "subtotal": str(self.subtotal),
            "added_at": self.added_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartItem":
        return cls(
            product_id=data["product_id"],
            quantity=data["quantity"],
            price=data["price"],
            added_at=_parse_dt(data["added_at"]),
        )

    def __repr__(self) -> str:
        return f"CartItem(product_id={self.product_id!r}, quantity={self.quantity}, price={self.price})"


class Cart:
    """
    Agregat koszyka, bez I/O.

    Wlascicielem jest dokladnie jedno z: user_id (zalogowany) albo
    session_id (anonimowy). Pozycje kluczowane po product_id, ta sama
    pozycja nigdy nie wystepuje dwa razy - ilosci sie sumuja.
    Przejscie wlasciciela tylko w jedna strone: sesja -> user.
    """

    def __init__(
        self,
        id: str | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
        items: List[CartItem] | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        if _blank(user_id) and _blank(session_id):
            raise CartError(ErrorKind.VALIDATION, "Wymagane user_id albo session_id")
        if not _blank(user_id) and not _blank(session_id):
            raise CartError(ErrorKind.VALIDATION, "Koszyk nie moze miec jednoczesnie user_id i session_id")

        #id podane = koszyk juz zapisany
        self._is_persisted = id is not None
        self.id = id or str(uuid.uuid4())
        self.user_id = None if _blank(user_id) else str(user_id).strip()
        self.session_id = None if _blank(session_id) else str(session_id).strip()

        self._items: Dict[str, CartItem] = {}
        for item in items or []:
            if item.product_id in self._items:
                self._items[item.product_id].increase_quantity(item.quantity)
            else:
                self._items[item.product_id] = item

        self.created_at = created_at or _now()
        self.updated_at = updated_at or self.created_at

    #factory
    @classmethod
    def create_for_session(cls, session_id: str) -> "Cart":
        if _blank(session_id):
            raise CartError(ErrorKind.VALIDATION, "ID sesji jest wymagane")
        return cls(session_id=session_id)

    @classmethod
    def create_for_user(cls, user_id: str) -> "Cart":
        if _blank(user_id):
            raise CartError(ErrorKind.VALIDATION, "ID uzytkownika jest wymagane")
        return cls(user_id=user_id)

    #commands
    def add_item(self, product_id: str, quantity: int, price) -> None:
        price = _to_decimal(price)
        _validate_line(product_id, quantity, price)
        product_id = str(product_id).strip()

        existing = self._items.get(product_id)
        if existing:
            # cena istniejacej pozycji zostaje, rosnie tylko ilosc
            existing.increase_quantity(quantity)
        else:
            self._items[product_id] = CartItem(product_id, quantity, price)

        self._touch()

    def remove_item(self, product_id: str) -> None:
        if _blank(product_id):
            raise CartError(ErrorKind.VALIDATION, "ID produktu jest wymagane")

        product_id = str(product_id).strip()
        if product_id not in self._items:
            raise CartError(ErrorKind.DOMAIN_RULE, "Produktu nie ma w koszyku")

        del self._items[product_id]
        self._touch()

    def update_item_quantity(self, product_id: str, quantity: int) -> None:
        if _blank(product_id):
            raise CartError(ErrorKind.VALIDATION, "ID produktu jest wymagane")
        if quantity < 0:
            raise CartError(ErrorKind.VALIDATION, "Ilosc nie moze byc ujemna")

        if quantity == 0:
            self.remove_item(product_id)
            return

        item = self.find_item(product_id)
        if not item:
            raise CartError(ErrorKind.DOMAIN_RULE, "Produktu nie ma w koszyku")

        item.update_quantity(quantity)
        self._touch()

    def clear(self) -> None:
        self._items.clear()
        self._touch()

    def transfer_to_user(self, user_id: str) -> None:
        if _blank(user_id):
            raise CartError(ErrorKind.VALIDATION, "ID uzytkownika jest wymagane")
        if self.user_id:
            raise CartError(ErrorKind.DOMAIN_RULE, "Koszyk nalezy juz do uzytkownika")

        self.user_id = str(user_id).strip()
        self.session_id = None
        self._touch()

    def merge_with(self, other: "Cart") -> None:
        for other_item in other.items:
            existing = self._items.get(other_item.product_id)
            if existing:
                existing.increase_quantity(other_item.quantity)
            else:
                self._items[other_item.product_id] = CartItem(
                    other_item.product_id,
                    other_item.quantity,
                    other_item.price,
                )

        self._touch()

    #query
    @property
    def items(self) -> List[CartItem]:
        return [item.copy() for item in self._items.values()]

    @property
    def is_session_cart(self) -> bool:
        return self.user_id is None

    @property
    def is_persisted(self) -> bool:
        return self._is_persisted

    def mark_persisted(self) -> None:
        self._is_persisted = True

    def find_item(self, product_id: str) -> CartItem | None:
        if _blank(product_id):
            return None
        return self._items.get(str(product_id).strip())

    def has_item(self, product_id: str) -> bool:
        return self.find_item(product_id) is not None

    def get_item_quantity(self, product_id: str) -> int:
        item = self.find_item(product_id)
        return item.quantity if item else 0

    @property
    def total_items(self) -> int:
        return sum(i.quantity for i in self._items.values())

    @property
    def total_amount(self) -> Decimal:
        return sum((i.subtotal for i in self._items.values()), Decimal("0"))

    @property
    def unique_item_count(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "total_items": self.total_items,
            "total_amount": self.total_amount,
            "unique_item_count": self.unique_item_count,
            "is_empty": self.is_empty(),
        }

    #forma transportowa (cache)
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "items": [i.to_dict() for i in self._items.values()],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "total_items": self.total_items,
            "total_amount": str(self.total_amount),
            "unique_item_count": self.unique_item_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cart":
        return cls(
            id=data["id"],
            user_id=data.get("user_id"),
            session_id=data.get("session_id"),
            items=[CartItem.from_dict(i) for i in data.get("items", [])],
            created_at=_parse_dt(data["created_at"]),
            updated_at=_parse_dt(data["updated_at"]),
        )

    def _touch(self) -> None:
        self.updated_at = _now()

    def __repr__(self) -> str:
        owner = f"user_id={self.user_id!r}" if self.user_id else f"session_id={self.session_id!r}"
        return f"Cart(id={self.id!r}, {owner}, items={self.unique_item_count})"
