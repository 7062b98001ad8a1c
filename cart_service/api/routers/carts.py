#cart_service/api/routers/carts.py
from dataclasses import dataclass

from fastapi import APIRouter, Body, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from cart_service.data.database import get_db
from cart_service.domain.cart import Cart
from cart_service.domain.errors import Err, Result
from cart_service.domain.schemas import (
    AddItemIn,
    ApiResponse,
    CartOut,
    CleanupSessionIn,
    SessionStatusOut,
    UpdateItemIn,
)
from cart_service.services.cart_service import CartService

router = APIRouter(prefix="/api/v1/cart", tags=["cart"])


@dataclass(frozen=True)
class Identity:
    user_id: str | None
    session_id: str | None


def get_identity(
    authorization: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> Identity:
    # weryfikacja tokenu poza tym serwisem, Bearer niesie id usera
    user_id = None
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            user_id = token.strip()

    session_id = x_session_id.strip() if x_session_id and x_session_id.strip() else None
    return Identity(user_id=user_id, session_id=session_id)


def get_service(request: Request, db: Session = Depends(get_db)) -> CartService:
    return CartService(
        db=db,
        cache=request.app.state.cart_cache,
        product_client=request.app.state.product_client,
    )


def _cart_data(cart: Cart | None):
    if cart is None:
        return None
    return CartOut.from_cart(cart).model_dump(mode="json")


def _respond(result: Result, data=None, status_code: int = 200) -> JSONResponse:
    if isinstance(result, Err):
        body = ApiResponse(success=False, message=result.message, error=result.kind.value)
        return JSONResponse(status_code=result.status_code, content=body.model_dump(mode="json"))

    body = ApiResponse(success=True, message=result.message, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _cart_response(result: Result, status_code: int = 200) -> JSONResponse:
    data = _cart_data(result.value) if result.ok else None
    return _respond(result, data=data, status_code=status_code)


@router.get("", response_model=ApiResponse)
def get_cart(
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    return _cart_response(svc.get_cart(identity.user_id, identity.session_id))


@router.post("/items", response_model=ApiResponse, status_code=201)
def add_item(
    payload: AddItemIn,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    result = svc.add_item(
        product_id=payload.product_id,
        quantity=payload.quantity,
        user_id=identity.user_id,
        session_id=identity.session_id,
    )
    return _cart_response(result, status_code=201)


@router.put("/items/{product_id}", response_model=ApiResponse)
def update_item(
    product_id: str,
    payload: UpdateItemIn,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    result = svc.update_item_quantity(
        product_id=product_id,
        quantity=payload.quantity,
        user_id=identity.user_id,
        session_id=identity.session_id,
    )
    return _cart_response(result)


@router.delete("/items/{product_id}", response_model=ApiResponse)
def remove_item(
    product_id: str,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    result = svc.remove_item(
        product_id=product_id,
        user_id=identity.user_id,
        session_id=identity.session_id,
    )
    return _cart_response(result)


@router.delete("", response_model=ApiResponse)
def clear_cart(
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    return _cart_response(svc.clear_cart(identity.user_id, identity.session_id))


@router.delete("/delete", response_model=ApiResponse)
def delete_cart(
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    result = svc.delete_cart(identity.user_id, identity.session_id)
    data = {"deleted_cart_id": result.value} if result.ok else None
    return _respond(result, data=data)


@router.post("/transfer", response_model=ApiResponse)
def transfer_cart(
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    if not identity.user_id:
        body = ApiResponse(success=False, message="Wymagane uwierzytelnienie", error="MISSING_TOKEN")
        return JSONResponse(status_code=401, content=body.model_dump(mode="json"))

    return _cart_response(svc.transfer_cart(identity.user_id, identity.session_id))


@router.post("/cleanup-session", response_model=ApiResponse)
def cleanup_session_cart(
    payload: CleanupSessionIn | None = Body(default=None),
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    session_id = identity.session_id or (payload.session_id if payload else None)
    result = svc.cleanup_session_cart(session_id)
    data = {"deleted_cart_id": result.value} if result.ok else None
    return _respond(result, data=data)


@router.get("/session/status", response_model=ApiResponse)
def session_status(
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    result = svc.get_session_status(identity.session_id)
    data = SessionStatusOut(**result.value).model_dump(mode="json") if result.ok else None
    return _respond(result, data=data)
