# src/pp_order/application/schemas.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.pp_common.enums import OrderStatus
from src.pp_common.response import Pagination
from src.pp_order.domain.models import Order


class OrderPayload(BaseModel):
    """Taker-supplied order fields.

    id, status and counterparty are never read from the client: unknown keys
    are dropped and the service fills those in itself.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    unit_price: float = Field(gt=0, allow_inf_nan=False)
    fiat_amount: float = Field(gt=0, allow_inf_nan=False)
    fiat_currency: str = Field(min_length=1)
    payment_method: str = Field(min_length=1)
    currency: str = Field(min_length=1)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class OrderOut(BaseModel):
    id: str
    counterparty_identity: str
    unit_price: float
    fiat_amount: float
    fiat_currency: str
    payment_method: str
    currency: str
    attachment_ref: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, o: Order) -> "OrderOut":
        return cls(
            id=o.id,
            counterparty_identity=o.counterparty_identity,
            unit_price=o.unit_price,
            fiat_amount=o.fiat_amount,
            fiat_currency=o.fiat_currency,
            payment_method=o.payment_method,
            currency=o.currency,
            attachment_ref=o.attachment_ref,
            status=o.status,
            created_at=o.created_at,
            updated_at=o.updated_at,
        )


class MakerOrderOut(OrderOut):
    """Order as seen from outside its offer: carries the maker for routing."""

    maker_address: str

    @classmethod
    def from_offer_order(cls, o: Order, maker_address: str) -> "MakerOrderOut":
        return cls(**OrderOut.from_domain(o).model_dump(), maker_address=maker_address)


class PlacedOrderOut(MakerOrderOut):
    offer_id: int


class OrderPageOut(BaseModel):
    orders: list[MakerOrderOut]
    pagination: Pagination
