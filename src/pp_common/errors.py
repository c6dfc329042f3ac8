"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Request payload / query parameters
  2xxx: Auth
  3xxx: Offer
  4xxx: Order
  9xxx: System / upstream
"""

from collections.abc import Iterable, Mapping
from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.errors = errors
        super().__init__(message)


def format_validation_errors(raw: Iterable[Mapping[str, Any]]) -> list[dict[str, str]]:
    """Flatten pydantic/FastAPI error dicts into [{"field": "a.b", "message": "..."}]."""
    formatted = []
    for err in raw:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        formatted.append({"field": ".".join(loc) or "__root__", "message": str(err.get("msg", ""))})
    return formatted


# --- 1xxx: Request ---

class PayloadValidationError(AppError):
    def __init__(self, errors: list[dict[str, str]]) -> None:
        super().__init__(1001, "Validation error", 400, errors=errors)


class InvalidPaginationError(AppError):
    def __init__(self, page: int, limit: int) -> None:
        super().__init__(
            1002, f"Invalid pagination parameters: page={page}, limit={limit}", 400
        )


# --- 2xxx: Auth ---

class UnauthorizedError(AppError):
    def __init__(self, detail: str = "Invalid signature") -> None:
        super().__init__(2001, detail, 401)


class ForbiddenError(AppError):
    def __init__(self) -> None:
        super().__init__(2002, "Only the offer owner may perform this action", 403)


# --- 3xxx: Offer ---

class OfferNotFoundError(AppError):
    def __init__(self, offer_id: int) -> None:
        super().__init__(3001, f"Offer not found: {offer_id}", 404)


# --- 4xxx: Order ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4001, f"Order not found: {order_id}", 404)


class InvalidStatusTransitionError(AppError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            4002, f"Order status cannot change from {current} to {requested}", 400
        )


# --- 9xxx: System ---

class UpstreamLookupError(AppError):
    """Identity service failure. The upstream detail is logged, never returned."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(9001, "Internal server error", 500)


class InternalError(AppError):
    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(9002, "Internal server error", 500)
