# cart_service/domain/errors.py
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION_ERROR"
    DOMAIN_RULE = "DOMAIN_RULE_VIOLATION"
    NOT_FOUND = "CART_NOT_FOUND"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE_ERROR"
    INTERNAL = "INTERNAL_ERROR"


#kod HTTP dla kazdego rodzaju bledu
HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.DOMAIN_RULE: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PRODUCT_NOT_FOUND: 404,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.EXTERNAL_SERVICE: 502,
    ErrorKind.INTERNAL: 500,
}


class CartError(Exception):
    """Jedyny wyjatek domeny koszyka, rodzaj bledu w polu kind."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    message: str | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    details: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    @classmethod
    def from_error(cls, error: CartError) -> "Err":
        return cls(kind=error.kind, message=error.message)


Result = Ok[T] | Err
