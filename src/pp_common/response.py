"""Unified API response envelopes.

Success:
{
    "message": "Offer retrieved successfully",
    "data": { ... }               // or "order" / "orders" + "pagination"
}

Error:
{
    "code": 3001,
    "message": "Offer not found: 42",
    "errors": [{"field": "margin", "message": "..."}]   // validation only
}
"""

from typing import Any

from pydantic import BaseModel


class ApiResponse(BaseModel):
    message: str = "success"
    data: Any = None


class OrderEnvelope(BaseModel):
    message: str
    order: Any


class Pagination(BaseModel):
    page: int
    limit: int
    total_orders: int
    total_pages: int


class OrderListEnvelope(BaseModel):
    message: str
    orders: list[Any]
    pagination: Pagination


class ErrorResponse(BaseModel):
    code: int
    message: str
    errors: list[dict[str, str]] | None = None


def success_response(data: Any = None, message: str = "success") -> ApiResponse:
    return ApiResponse(message=message, data=data)


def error_response(
    code: int, message: str, errors: list[dict[str, str]] | None = None
) -> ErrorResponse:
    return ErrorResponse(code=code, message=message, errors=errors)
