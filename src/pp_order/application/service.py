# src/pp_order/application/service.py
"""OrderLedgerService — append, transition, read and paginate an offer's orders.

Every write is a read-modify-write of the whole offer row. It runs under
  1. a per-offer asyncio.Lock (serializes writers inside this process), and
  2. SELECT ... FOR UPDATE on the row (serializes writers across processes),
and commits orders + completed_order_count together or rolls both back.
Reads take neither lock.
"""
import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pp_common.datetime_utils import utc_now
from src.pp_common.enums import OrderStatus
from src.pp_common.errors import (
    ForbiddenError,
    OfferNotFoundError,
    OrderNotFoundError,
    PayloadValidationError,
)
from src.pp_common.id_generator import generate_order_id
from src.pp_common.response import Pagination
from src.pp_offer.domain.models import Offer
from src.pp_offer.domain.repository import OfferRepositoryProtocol
from src.pp_offer.infrastructure.persistence import OfferRepository
from src.pp_order.application.schemas import (
    MakerOrderOut,
    OrderOut,
    OrderPageOut,
    OrderPayload,
    PlacedOrderOut,
)
from src.pp_order.domain import ledger
from src.pp_order.domain.models import Attachment, Order
from src.pp_order.domain.storage import AttachmentStoreProtocol
from src.pp_order.infrastructure.attachment_store import LocalAttachmentStore

logger = logging.getLogger(__name__)


def _check_payment_method(offer: Offer, payload: OrderPayload) -> None:
    if payload.payment_method not in offer.payment_methods:
        raise PayloadValidationError([{
            "field": "payment_method",
            "message": f"offer {offer.id} does not accept {payload.payment_method!r}",
        }])


class OrderLedgerService:
    def __init__(
        self,
        repo: OfferRepositoryProtocol | None = None,
        attachments: AttachmentStoreProtocol | None = None,
        strict_transitions: bool | None = None,
    ) -> None:
        self._repo: OfferRepositoryProtocol = repo or OfferRepository()
        self._attachments: AttachmentStoreProtocol = attachments or LocalAttachmentStore(
            settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX
        )
        self._strict = (
            settings.STRICT_ORDER_TRANSITIONS if strict_transitions is None else strict_transitions
        )
        # Entries live only while some task holds or waits on the lock.
        self._offer_locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}

    @asynccontextmanager
    async def _offer_lock(self, offer_id: int) -> AsyncIterator[None]:
        lock = self._offer_locks.setdefault(offer_id, asyncio.Lock())
        self._lock_users[offer_id] = self._lock_users.get(offer_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[offer_id] -= 1
            if not self._lock_users[offer_id]:
                del self._lock_users[offer_id]
                del self._offer_locks[offer_id]

    async def _load(self, db: AsyncSession, offer_id: int) -> Offer:
        offer = await self._repo.get_offer_by_id(db, offer_id)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        return offer

    async def _load_for_update(self, db: AsyncSession, offer_id: int) -> Offer:
        offer = await self._repo.get_offer_for_update(db, offer_id)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        return offer

    async def append_order(
        self,
        db: AsyncSession,
        offer_id: int,
        counterparty_identity: str,
        payload: OrderPayload,
        attachment: Attachment | None = None,
    ) -> PlacedOrderOut:
        offer = await self._load(db, offer_id)
        _check_payment_method(offer, payload)

        # Blob goes in before the lock: slow uploads must not block other writers.
        attachment_ref = await self._attachments.save(attachment) if attachment else None

        now = utc_now()
        order = Order(
            id=generate_order_id(),
            counterparty_identity=counterparty_identity,
            unit_price=payload.unit_price,
            fiat_amount=payload.fiat_amount,
            fiat_currency=payload.fiat_currency,
            payment_method=payload.payment_method,
            currency=payload.currency,
            attachment_ref=attachment_ref,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        async with self._offer_lock(offer_id):
            try:
                locked = await self._load_for_update(db, offer_id)
                # details may have changed since the unlocked read
                _check_payment_method(locked, payload)
                ledger.append_order(locked, order)
                await self._repo.save_orders(db, locked)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("order %s appended to offer %d by %s", order.id, offer_id, counterparty_identity)
        return PlacedOrderOut(
            **OrderOut.from_domain(order).model_dump(),
            maker_address=locked.owner_identity,
            offer_id=locked.id,
        )

    async def transition_status(
        self,
        db: AsyncSession,
        offer_id: int,
        order_id: str,
        caller_identity: str,
        new_status: OrderStatus,
    ) -> OrderOut:
        await self._load(db, offer_id)
        async with self._offer_lock(offer_id):
            try:
                offer = await self._load_for_update(db, offer_id)
                if caller_identity != offer.owner_identity:
                    raise ForbiddenError()
                order = ledger.find_order(offer, order_id)
                if order is None:
                    raise OrderNotFoundError(order_id)
                previous = order.status
                ledger.transition_status(order, new_status.value, strict=self._strict)
                ledger.recompute_completed(offer)
                await self._repo.save_orders(db, offer)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "order %s on offer %d: %s -> %s (completed=%d)",
            order_id, offer_id, previous, order.status, offer.completed_order_count,
        )
        return OrderOut.from_domain(order)

    async def get_order(
        self, db: AsyncSession, offer_id: int, order_id: str
    ) -> MakerOrderOut:
        offer = await self._load(db, offer_id)
        order = ledger.find_order(offer, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return MakerOrderOut.from_offer_order(order, offer.owner_identity)

    async def list_orders(
        self, db: AsyncSession, offer_id: int, page: int, limit: int
    ) -> OrderPageOut:
        ledger.check_pagination(page, limit)
        offer = await self._load(db, offer_id)
        result = ledger.paginate_newest_first(offer.orders, page, limit)
        return OrderPageOut(
            orders=[MakerOrderOut.from_offer_order(o, offer.owner_identity) for o in result.orders],
            pagination=Pagination(
                page=result.page,
                limit=result.limit,
                total_orders=result.total_orders,
                total_pages=result.total_pages,
            ),
        )
