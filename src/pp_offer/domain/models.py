"""Domain models for pp_offer — pure dataclasses, no business logic."""

from dataclasses import dataclass, field
from datetime import datetime

from src.pp_order.domain.models import Order


@dataclass
class OfferDetail:
    """One advertised way to pay: currencies x method x language."""

    accepted_currencies: list[str]
    payment_method: str
    language: str = ""
    instructions: str = ""

    def accepts(self, currency: str) -> bool:
        return currency in self.accepted_currencies


@dataclass
class OfferTerms:
    """Caller-editable part of an offer (everything createOrUpdate overwrites)."""

    details: list[OfferDetail]
    min_unit_amount: float
    max_unit_amount: float
    margin: float  # percent
    contact_handle: str
    transfer_time_window: str


@dataclass
class Offer:
    id: int
    owner_identity: str
    display_name: str
    avatar_ref: str
    details: list[OfferDetail]
    min_unit_amount: float
    max_unit_amount: float
    margin: float
    contact_handle: str
    transfer_time_window: str
    completed_order_count: int = 0
    orders: list[Order] = field(default_factory=list)  # insertion order
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def accepts(self, currency: str) -> bool:
        return any(d.accepts(currency) for d in self.details)

    @property
    def payment_methods(self) -> set[str]:
        return {d.payment_method for d in self.details}
