"""Pydantic schemas for pp_offer requests and responses.

Request payloads carry every invariant that can be checked without storage:
non-empty details, positive bounds, min <= max, non-blank strings. Numbers
go through pydantic's float parsing, so "12.5" is accepted and "abc" is a
validation error rather than a silently passed string.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.pp_offer.domain.models import Offer, OfferDetail, OfferTerms
from src.pp_order.application.schemas import OrderOut

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class OfferDetailIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    accepted_currencies: list[str] = Field(min_length=1)
    payment_method: str = Field(min_length=1)
    language: str = ""
    instructions: str = ""

    @field_validator("accepted_currencies")
    @classmethod
    def non_blank_unique(cls, v: list[str]) -> list[str]:
        cleaned = [c.strip() for c in v]
        if any(not c for c in cleaned):
            raise ValueError("currency codes must not be blank")
        # set semantics, first occurrence wins
        return list(dict.fromkeys(cleaned))


class OfferPayload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    details: list[OfferDetailIn] = Field(min_length=1)
    min_unit_amount: float = Field(gt=0, allow_inf_nan=False)
    max_unit_amount: float = Field(gt=0, allow_inf_nan=False)
    margin: float = Field(gt=0, allow_inf_nan=False)
    contact_handle: str = Field(min_length=1)
    transfer_time_window: str = Field(min_length=1)

    @model_validator(mode="after")
    def bounds_ordered(self) -> "OfferPayload":
        if self.min_unit_amount > self.max_unit_amount:
            raise ValueError("min_unit_amount must not exceed max_unit_amount")
        return self

    def to_terms(self) -> OfferTerms:
        return OfferTerms(
            details=[
                OfferDetail(
                    accepted_currencies=d.accepted_currencies,
                    payment_method=d.payment_method,
                    language=d.language,
                    instructions=d.instructions,
                )
                for d in self.details
            ],
            min_unit_amount=self.min_unit_amount,
            max_unit_amount=self.max_unit_amount,
            margin=self.margin,
            contact_handle=self.contact_handle,
            transfer_time_window=self.transfer_time_window,
        )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OfferDetailOut(BaseModel):
    accepted_currencies: list[str]
    payment_method: str
    language: str
    instructions: str

    @classmethod
    def from_domain(cls, d: OfferDetail) -> "OfferDetailOut":
        return cls(
            accepted_currencies=list(d.accepted_currencies),
            payment_method=d.payment_method,
            language=d.language,
            instructions=d.instructions,
        )


class OfferSummary(BaseModel):
    """List item — everything except the order list."""

    id: int
    owner_identity: str
    display_name: str
    avatar_ref: str
    details: list[OfferDetailOut]
    min_unit_amount: float
    max_unit_amount: float
    margin: float
    contact_handle: str
    transfer_time_window: str
    completed_order_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def _fields_from_domain(cls, o: Offer, currency: str | None) -> dict:
        details = o.details if currency is None else [d for d in o.details if d.accepts(currency)]
        return dict(
            id=o.id,
            owner_identity=o.owner_identity,
            display_name=o.display_name,
            avatar_ref=o.avatar_ref,
            details=[OfferDetailOut.from_domain(d) for d in details],
            min_unit_amount=o.min_unit_amount,
            max_unit_amount=o.max_unit_amount,
            margin=o.margin,
            contact_handle=o.contact_handle,
            transfer_time_window=o.transfer_time_window,
            completed_order_count=o.completed_order_count,
            created_at=o.created_at,
            updated_at=o.updated_at,
        )

    @classmethod
    def from_domain(cls, o: Offer) -> "OfferSummary":
        return cls(**cls._fields_from_domain(o, None))


class OfferView(OfferSummary):
    """Full offer with its orders (insertion order).

    `currency` narrows the returned details only; orders are never filtered.
    """

    orders: list[OrderOut]

    @classmethod
    def from_domain(cls, o: Offer, currency: str | None = None) -> "OfferView":
        return cls(
            **cls._fields_from_domain(o, currency),
            orders=[OrderOut.from_domain(order) for order in o.orders],
        )


class OfferUpsertResult(BaseModel):
    offer: OfferView
    created: bool
