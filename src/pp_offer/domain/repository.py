# src/pp_offer/domain/repository.py
"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock or in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.

The offer row is the unit of storage: its embedded order list is read and
written together with it, never on its own.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pp_gateway.identity.models import IdentityProfile
from src.pp_offer.domain.models import Offer, OfferTerms


class OfferRepositoryProtocol(Protocol):
    async def upsert_offer(
        self,
        db: AsyncSession,
        owner_identity: str,
        terms: OfferTerms,
        profile: IdentityProfile,
    ) -> tuple[Offer, bool]:
        """Insert or overwrite the owner's offer. Returns (offer, created)."""
        ...

    async def list_offers(self, db: AsyncSession) -> list[Offer]: ...

    async def get_offer_by_id(self, db: AsyncSession, offer_id: int) -> Offer | None: ...

    async def get_offer_by_owner(
        self, db: AsyncSession, owner_identity: str
    ) -> Offer | None: ...

    async def get_offer_for_update(
        self, db: AsyncSession, offer_id: int
    ) -> Offer | None:
        """Load the offer and hold its row lock until the transaction ends."""
        ...

    async def save_orders(self, db: AsyncSession, offer: Offer) -> None:
        """Persist orders + completed_order_count of a locked offer."""
        ...
