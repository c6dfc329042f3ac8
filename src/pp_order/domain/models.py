"""Order domain model — pure dataclass, no SQLAlchemy dependency.

Orders have no table of their own: they live inside their offer's `orders`
JSONB array and are always read and written together with the offer.
"""
from dataclasses import dataclass
from datetime import datetime

from src.pp_common.enums import OrderStatus


@dataclass
class Order:
    id: str
    counterparty_identity: str  # taker; taken from the verified signature
    unit_price: float
    fiat_amount: float
    fiat_currency: str
    payment_method: str
    currency: str
    attachment_ref: str | None = None  # payment proof blob ref
    status: str = OrderStatus.PENDING.value
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_paid(self) -> bool:
        return self.status == OrderStatus.PAID.value


@dataclass
class Attachment:
    """Uploaded payment proof, not yet stored."""

    filename: str
    content: bytes
    content_type: str | None = None
