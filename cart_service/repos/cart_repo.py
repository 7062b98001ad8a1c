# cart_service/repos/cart_repo.py
from datetime import timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from cart_service.data.models.cart import CartModel
from cart_service.data.models.cart_item import CartItemModel
from cart_service.domain.cart import Cart, CartItem
from cart_service.domain.errors import CartError, ErrorKind
from cart_service.utils.logging import get_logger

logger = get_logger(__name__)


def _aware(dt):
    #sqlite gubi strefe czasowa
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class CartRepo:
    """
    Zapis agregatu Cart w bazie.
    Agregat nic nie wie o SQLAlchemy, mapowanie tylko tutaj.
    """

    def __init__(self, db: Session):
        self.db = db

    #query
    def find_by_id(self, cart_id: str) -> Cart | None:
        model = self.db.get(CartModel, cart_id)
        return self._to_domain(model) if model else None

    def find_by_user_id(self, user_id: str) -> Cart | None:
        model = self.db.execute(
            select(CartModel)
            .where(CartModel.user_id == user_id)
            .order_by(CartModel.updated_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return self._to_domain(model) if model else None

    def find_by_session_id(self, session_id: str) -> Cart | None:
        model = self.db.execute(
            select(CartModel)
            .where(CartModel.session_id == session_id)
            .order_by(CartModel.updated_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return self._to_domain(model) if model else None

    #commands
    def save(self, cart: Cart) -> Cart:
        model = self.db.get(CartModel, cart.id)
        if model is None:
            model = CartModel(id=cart.id, created_at=cart.created_at)
            self.db.add(model)

        return self._write(model, cart)

    def update(self, cart: Cart) -> Cart:
        model = self.db.get(CartModel, cart.id)
        if model is None:
            raise CartError(ErrorKind.NOT_FOUND, "Koszyk nie istnieje")

        return self._write(model, cart)

    def delete_cart(self, cart_id: str) -> None:
        model = self.db.get(CartModel, cart_id)
        if model is None:
            return

        try:
            #pozycje leca kaskada
            self.db.delete(model)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Usunieto koszyk {cart_id} z bazy")

    #mapowanie
    def _write(self, model: CartModel, cart: Cart) -> Cart:
        model.user_id = cart.user_id
        model.session_id = cart.session_id
        model.updated_at = cart.updated_at

        # diff po product_id zamiast delete+insert (unikalnosc cart_id/product_id w jednym flushu)
        wanted = {i.product_id: i for i in cart.items}
        for row in list(model.items):
            item = wanted.pop(row.product_id, None)
            if item is None:
                model.items.remove(row)
            else:
                row.quantity = item.quantity
                row.price = item.price

        for item in wanted.values():
            model.items.append(
                CartItemModel(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price=item.price,
                    added_at=item.added_at,
                )
            )

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        cart.mark_persisted()
        logger.info(f"Zapisano koszyk {cart.id} ({cart.unique_item_count} pozycji)")
        return cart

    @staticmethod
    def _to_domain(model: CartModel) -> Cart:
        return Cart(
            id=model.id,
            user_id=model.user_id,
            session_id=model.session_id,
            items=[
                CartItem(
                    product_id=row.product_id,
                    quantity=row.quantity,
                    price=row.price,
                    added_at=_aware(row.added_at),
                )
                for row in model.items
            ],
            created_at=_aware(model.created_at),
            updated_at=_aware(model.updated_at),
        )
