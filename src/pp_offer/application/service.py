"""OfferApplicationService — thin composition layer for the Offer Store.

create_or_update resolves the owner's profile BEFORE opening the write, so a
slow or failing identity service never leaves a half-written offer. The
write itself is a single upsert statement; the row lock it takes serializes
it against concurrent order-ledger writes on the same offer.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pp_common.errors import OfferNotFoundError
from src.pp_gateway.identity.models import ProfileLookupProtocol
from src.pp_offer.application.schemas import (
    OfferPayload,
    OfferSummary,
    OfferUpsertResult,
    OfferView,
)
from src.pp_offer.domain.repository import OfferRepositoryProtocol
from src.pp_offer.infrastructure.persistence import OfferRepository

logger = logging.getLogger(__name__)


class OfferApplicationService:
    def __init__(
        self,
        profiles: ProfileLookupProtocol,
        repo: OfferRepositoryProtocol | None = None,
    ) -> None:
        self._profiles = profiles
        self._repo: OfferRepositoryProtocol = repo or OfferRepository()

    async def create_or_update(
        self, db: AsyncSession, owner_identity: str, payload: OfferPayload
    ) -> OfferUpsertResult:
        profile = await self._profiles.get_profile(owner_identity)
        try:
            offer, created = await self._repo.upsert_offer(
                db, owner_identity, payload.to_terms(), profile
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "offer %d %s for %s", offer.id, "created" if created else "updated", owner_identity
        )
        return OfferUpsertResult(offer=OfferView.from_domain(offer), created=created)

    async def list_offers(
        self, db: AsyncSession, currency: str | None = None
    ) -> list[OfferSummary]:
        offers = await self._repo.list_offers(db)
        if currency:
            offers = [o for o in offers if o.accepts(currency)]
        return [OfferSummary.from_domain(o) for o in offers]

    async def get_offer(
        self, db: AsyncSession, offer_id: int, currency: str | None = None
    ) -> OfferView:
        offer = await self._repo.get_offer_by_id(db, offer_id)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        return OfferView.from_domain(offer, currency or None)

    async def get_own_offer(
        self, db: AsyncSession, owner_identity: str
    ) -> OfferView | None:
        """None means "no offer yet", which is not an error."""
        offer = await self._repo.get_offer_by_owner(db, owner_identity)
        return OfferView.from_domain(offer) if offer else None
