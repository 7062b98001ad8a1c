# cart_service/domain/schemas.py
from pydantic import BaseModel, Field
from typing import Any, List
from decimal import Decimal
from datetime import datetime

from cart_service.domain.cart import Cart


class AddItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: str = Field(..., min_length=1, description="ID produktu")
    quantity: int = Field(..., gt=0, description="Ilość produktu (musi być > 0)")


class UpdateItemIn(BaseModel):
    """Schema dla zmiany ilości (0 usuwa pozycję)."""

    quantity: int = Field(..., ge=0, description="Nowa ilość (>= 0)")


class CleanupSessionIn(BaseModel):
    """Schema dla sprzątania koszyka sesji (gdy brak nagłówka X-Session-ID)."""

    session_id: str | None = Field(default=None, min_length=1)


class CartItemOut(BaseModel):
    """Schema dla produktu w koszyku (response)."""

    product_id: str
    quantity: int
    price: Decimal
    subtotal: Decimal
    added_at: datetime


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    id: str
    user_id: str | None = None
    session_id: str | None = None
    items: List[CartItemOut]
    total_items: int
    total_amount: Decimal
    unique_item_count: int
    is_empty: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_cart(cls, cart: Cart) -> "CartOut":
        return cls(
            id=cart.id,
            user_id=cart.user_id,
            session_id=cart.session_id,
            items=[
                CartItemOut(
                    product_id=i.product_id,
                    quantity=i.quantity,
                    price=i.price,
                    subtotal=i.subtotal,
                    added_at=i.added_at,
                )
                for i in cart.items
            ],
            total_items=cart.total_items,
            total_amount=cart.total_amount,
            unique_item_count=cart.unique_item_count,
            is_empty=cart.is_empty(),
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )


class SessionStatusOut(BaseModel):
    session_id: str
    remaining_ttl: int
    active: bool


class ProductInfo(BaseModel):
    """Produkt z product-service, tylko pola potrzebne koszykowi."""

    id: str
    name: str
    price: Decimal
    available_quantity: int = 0


class ApiResponse(BaseModel):
    """Koperta odpowiedzi: {success, message?, data?, error?}."""

    success: bool
    message: str | None = None
    data: Any = None
    error: str | None = None

