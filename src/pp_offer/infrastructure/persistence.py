"""OfferRepository — concrete implementation of OfferRepositoryProtocol.

All queries use raw text() SQL (no ORM). `details` and `orders` are JSONB
columns; they are bound as JSON text with CAST(... AS JSONB) and decoded
back into domain dataclasses here.

Transaction ownership: the CALLER (application service) commits or rolls
back. get_offer_for_update takes a row lock that lasts until then.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pp_common.datetime_utils import parse_iso
from src.pp_common.errors import InternalError
from src.pp_gateway.identity.models import IdentityProfile
from src.pp_offer.domain.models import Offer, OfferDetail, OfferTerms
from src.pp_order.domain.models import Order

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_SUMMARY_COLUMNS = """
    id, owner_identity, display_name, avatar_ref, details,
    min_unit_amount, max_unit_amount, margin,
    contact_handle, transfer_time_window,
    completed_order_count, version, created_at, updated_at
"""

_FULL_COLUMNS = _SUMMARY_COLUMNS + ", orders"

# xmax = 0 only for a freshly inserted row version -> tells insert from update.
_UPSERT_OFFER_SQL = text(f"""
    INSERT INTO offers (owner_identity, display_name, avatar_ref, details,
        min_unit_amount, max_unit_amount, margin,
        contact_handle, transfer_time_window)
    VALUES (:owner_identity, :display_name, :avatar_ref, CAST(:details AS JSONB),
        :min_unit_amount, :max_unit_amount, :margin,
        :contact_handle, :transfer_time_window)
    ON CONFLICT (owner_identity) DO UPDATE
    SET display_name = EXCLUDED.display_name,
        avatar_ref = EXCLUDED.avatar_ref,
        details = EXCLUDED.details,
        min_unit_amount = EXCLUDED.min_unit_amount,
        max_unit_amount = EXCLUDED.max_unit_amount,
        margin = EXCLUDED.margin,
        contact_handle = EXCLUDED.contact_handle,
        transfer_time_window = EXCLUDED.transfer_time_window
    RETURNING {_FULL_COLUMNS}, (xmax = 0) AS created
""")

_LIST_OFFERS_SQL = text(f"""
    SELECT {_SUMMARY_COLUMNS}
    FROM offers
    ORDER BY id
""")

_GET_OFFER_BY_ID_SQL = text(f"""
    SELECT {_FULL_COLUMNS}
    FROM offers
    WHERE id = :offer_id
""")

_GET_OFFER_BY_OWNER_SQL = text(f"""
    SELECT {_FULL_COLUMNS}
    FROM offers
    WHERE owner_identity = :owner_identity
""")

_GET_OFFER_FOR_UPDATE_SQL = text(f"""
    SELECT {_FULL_COLUMNS}
    FROM offers
    WHERE id = :offer_id
    FOR UPDATE
""")

_SAVE_ORDERS_SQL = text("""
    UPDATE offers
    SET orders = CAST(:orders AS JSONB),
        completed_order_count = :completed_order_count,
        version = version + 1
    WHERE id = :offer_id AND version = :version
""")

# ---------------------------------------------------------------------------
# JSON codecs
# ---------------------------------------------------------------------------


def _load_json(value: Any, column: str) -> Any:
    # asyncpg hands back decoded JSONB when SQLAlchemy's codec is installed,
    # raw text otherwise.
    if isinstance(value, (str, bytes)):
        try:
            return json.loads(value)
        except ValueError as e:
            raise InternalError(f"corrupt {column} JSON") from e
    return value


def _details_to_json(details: list[OfferDetail]) -> str:
    return json.dumps([
        {
            "accepted_currencies": d.accepted_currencies,
            "payment_method": d.payment_method,
            "language": d.language,
            "instructions": d.instructions,
        }
        for d in details
    ])


def _json_to_details(value: Any) -> list[OfferDetail]:
    raw = _load_json(value, "details")
    try:
        return [
            OfferDetail(
                accepted_currencies=list(d["accepted_currencies"]),
                payment_method=d["payment_method"],
                language=d.get("language", ""),
                instructions=d.get("instructions", ""),
            )
            for d in raw
        ]
    except (KeyError, TypeError) as e:
        raise InternalError("corrupt details JSON") from e


def _orders_to_json(orders: list[Order]) -> str:
    return json.dumps([
        {
            "id": o.id,
            "counterparty_identity": o.counterparty_identity,
            "unit_price": o.unit_price,
            "fiat_amount": o.fiat_amount,
            "fiat_currency": o.fiat_currency,
            "payment_method": o.payment_method,
            "currency": o.currency,
            "attachment_ref": o.attachment_ref,
            "status": o.status,
            "created_at": o.created_at.isoformat() if o.created_at else None,
            "updated_at": o.updated_at.isoformat() if o.updated_at else None,
        }
        for o in orders
    ])


def _json_to_orders(value: Any) -> list[Order]:
    raw = _load_json(value, "orders") or []
    try:
        return [
            Order(
                id=o["id"],
                counterparty_identity=o["counterparty_identity"],
                unit_price=o["unit_price"],
                fiat_amount=o["fiat_amount"],
                fiat_currency=o["fiat_currency"],
                payment_method=o["payment_method"],
                currency=o["currency"],
                attachment_ref=o.get("attachment_ref"),
                status=o["status"],
                created_at=parse_iso(o.get("created_at")),
                updated_at=parse_iso(o.get("updated_at")),
            )
            for o in raw
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise InternalError("corrupt orders JSON") from e


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_offer(row: Any, with_orders: bool = True) -> Offer:
    return Offer(
        id=row.id,
        owner_identity=row.owner_identity,
        display_name=row.display_name,
        avatar_ref=row.avatar_ref,
        details=_json_to_details(row.details),
        min_unit_amount=row.min_unit_amount,
        max_unit_amount=row.max_unit_amount,
        margin=row.margin,
        contact_handle=row.contact_handle,
        transfer_time_window=row.transfer_time_window,
        completed_order_count=row.completed_order_count,
        orders=_json_to_orders(row.orders) if with_orders else [],
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OfferRepository:
    """Concrete implementation of OfferRepositoryProtocol using raw SQL."""

    async def upsert_offer(
        self,
        db: AsyncSession,
        owner_identity: str,
        terms: OfferTerms,
        profile: IdentityProfile,
    ) -> tuple[Offer, bool]:
        result = await db.execute(
            _UPSERT_OFFER_SQL,
            {
                "owner_identity": owner_identity,
                "display_name": profile.display_name,
                "avatar_ref": profile.avatar_ref,
                "details": _details_to_json(terms.details),
                "min_unit_amount": terms.min_unit_amount,
                "max_unit_amount": terms.max_unit_amount,
                "margin": terms.margin,
                "contact_handle": terms.contact_handle,
                "transfer_time_window": terms.transfer_time_window,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Offer upsert returned no rows")
        return _row_to_offer(row), bool(row.created)

    async def list_offers(self, db: AsyncSession) -> list[Offer]:
        result = await db.execute(_LIST_OFFERS_SQL)
        return [_row_to_offer(row, with_orders=False) for row in result.fetchall()]

    async def get_offer_by_id(self, db: AsyncSession, offer_id: int) -> Offer | None:
        result = await db.execute(_GET_OFFER_BY_ID_SQL, {"offer_id": offer_id})
        row = result.fetchone()
        return _row_to_offer(row) if row else None

    async def get_offer_by_owner(
        self, db: AsyncSession, owner_identity: str
    ) -> Offer | None:
        result = await db.execute(
            _GET_OFFER_BY_OWNER_SQL, {"owner_identity": owner_identity}
        )
        row = result.fetchone()
        return _row_to_offer(row) if row else None

    async def get_offer_for_update(
        self, db: AsyncSession, offer_id: int
    ) -> Offer | None:
        result = await db.execute(_GET_OFFER_FOR_UPDATE_SQL, {"offer_id": offer_id})
        row = result.fetchone()
        return _row_to_offer(row) if row else None

    async def save_orders(self, db: AsyncSession, offer: Offer) -> None:
        result = await db.execute(
            _SAVE_ORDERS_SQL,
            {
                "offer_id": offer.id,
                "orders": _orders_to_json(offer.orders),
                "completed_order_count": offer.completed_order_count,
                "version": offer.version,
            },
        )
        # The row is locked FOR UPDATE, so a version mismatch means the
        # caller skipped get_offer_for_update.
        if result.rowcount != 1:
            raise InternalError(f"Offer {offer.id} changed concurrently (version {offer.version})")
        offer.version += 1
