"""In-memory collaborators for unit tests.

InMemoryOfferRepository mimics the real repository closely enough to expose
lost updates: every read returns a private copy, every read and write yields
to the event loop, and save_orders rejects a stale version.
"""

import asyncio
import copy
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.pp_common.errors import InternalError, UpstreamLookupError
from src.pp_gateway.identity.models import IdentityProfile
from src.pp_offer.domain.models import Offer, OfferTerms
from src.pp_order.domain.models import Attachment


class InMemoryOfferRepository:
    def __init__(self) -> None:
        self.offers: dict[int, Offer] = {}
        self._next_id = 1

    async def upsert_offer(
        self, db: Any, owner_identity: str, terms: OfferTerms, profile: IdentityProfile
    ) -> tuple[Offer, bool]:
        await asyncio.sleep(0)
        for stored in self.offers.values():
            if stored.owner_identity == owner_identity:
                stored.details = copy.deepcopy(terms.details)
                stored.min_unit_amount = terms.min_unit_amount
                stored.max_unit_amount = terms.max_unit_amount
                stored.margin = terms.margin
                stored.contact_handle = terms.contact_handle
                stored.transfer_time_window = terms.transfer_time_window
                stored.display_name = profile.display_name
                stored.avatar_ref = profile.avatar_ref
                return copy.deepcopy(stored), False
        offer = Offer(
            id=self._next_id,
            owner_identity=owner_identity,
            display_name=profile.display_name,
            avatar_ref=profile.avatar_ref,
            details=copy.deepcopy(terms.details),
            min_unit_amount=terms.min_unit_amount,
            max_unit_amount=terms.max_unit_amount,
            margin=terms.margin,
            contact_handle=terms.contact_handle,
            transfer_time_window=terms.transfer_time_window,
        )
        self.offers[offer.id] = offer
        self._next_id += 1
        return copy.deepcopy(offer), True

    async def list_offers(self, db: Any) -> list[Offer]:
        return [copy.deepcopy(o) for o in self.offers.values()]

    async def get_offer_by_id(self, db: Any, offer_id: int) -> Offer | None:
        await asyncio.sleep(0)
        offer = self.offers.get(offer_id)
        return copy.deepcopy(offer) if offer else None

    async def get_offer_by_owner(self, db: Any, owner_identity: str) -> Offer | None:
        for offer in self.offers.values():
            if offer.owner_identity == owner_identity:
                return copy.deepcopy(offer)
        return None

    async def get_offer_for_update(self, db: Any, offer_id: int) -> Offer | None:
        return await self.get_offer_by_id(db, offer_id)

    async def save_orders(self, db: Any, offer: Offer) -> None:
        await asyncio.sleep(0)
        stored = self.offers[offer.id]
        if stored.version != offer.version:
            raise InternalError("stale offer version")
        stored.orders = copy.deepcopy(offer.orders)
        stored.completed_order_count = offer.completed_order_count
        stored.version += 1
        offer.version += 1


class FakeIdentityService:
    """Profile lookup + signature check. Signatures are valid when sig == "ok"."""

    def __init__(self) -> None:
        self.down = False
        self.lookups: list[str] = []

    async def get_profile(self, identity: str) -> IdentityProfile:
        self.lookups.append(identity)
        if self.down:
            raise UpstreamLookupError("identity service down")
        return IdentityProfile(
            address=identity, display_name=f"name-{identity}", avatar_ref=f"avatar-{identity}"
        )

    async def verify_signature(self, signature: dict[str, Any]) -> bool:
        if self.down:
            raise UpstreamLookupError("identity service down")
        return signature.get("sig") == "ok"


class FakeAttachmentStore:
    def __init__(self) -> None:
        self.saved: list[Attachment] = []

    async def save(self, attachment: Attachment) -> str:
        self.saved.append(attachment)
        return f"/uploads/{attachment.filename}"


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def repo() -> InMemoryOfferRepository:
    return InMemoryOfferRepository()


@pytest.fixture
def identity() -> FakeIdentityService:
    return FakeIdentityService()


@pytest.fixture
def attachments() -> FakeAttachmentStore:
    return FakeAttachmentStore()
