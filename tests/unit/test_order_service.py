"""Unit tests for OrderLedgerService against the in-memory repository."""
import asyncio

import pytest

from src.pp_common.enums import OrderStatus
from src.pp_common.errors import (
    ForbiddenError,
    InvalidPaginationError,
    InvalidStatusTransitionError,
    OfferNotFoundError,
    OrderNotFoundError,
    PayloadValidationError,
)
from src.pp_offer.domain.models import Offer, OfferDetail
from src.pp_order.application.schemas import OrderPayload
from src.pp_order.application.service import OrderLedgerService
from src.pp_order.domain.models import Attachment

MAKER = "maker-1"
TAKER = "taker-1"


def _payload(**overrides) -> OrderPayload:
    body = {
        "unit_price": 1.05,
        "fiat_amount": 100,
        "fiat_currency": "USD",
        "payment_method": "bank",
        "currency": "PKOIN",
    }
    body.update(overrides)
    return OrderPayload.model_validate(body)


@pytest.fixture
def offer_id(repo) -> int:
    repo.offers[1] = Offer(
        id=1, owner_identity=MAKER, display_name="Maker", avatar_ref="",
        details=[
            OfferDetail(accepted_currencies=["USD"], payment_method="bank"),
            OfferDetail(accepted_currencies=["EUR"], payment_method="sepa"),
        ],
        min_unit_amount=1, max_unit_amount=1000, margin=2,
        contact_handle="@maker", transfer_time_window="15 min",
    )
    return 1


@pytest.fixture
def svc(repo, attachments) -> OrderLedgerService:
    return OrderLedgerService(repo=repo, attachments=attachments, strict_transitions=False)


class TestAppendOrder:
    async def test_appends_pending_order(self, db, repo, svc, offer_id) -> None:
        placed = await svc.append_order(db, offer_id, TAKER, _payload())

        assert placed.status == "pending"
        assert placed.offer_id == offer_id
        assert placed.maker_address == MAKER
        assert placed.counterparty_identity == TAKER
        assert placed.attachment_ref is None
        stored = repo.offers[offer_id]
        assert [o.id for o in stored.orders] == [placed.id]
        assert stored.completed_order_count == 0
        db.commit.assert_awaited_once()

    async def test_new_order_is_last(self, db, repo, svc, offer_id) -> None:
        ids = [(await svc.append_order(db, offer_id, TAKER, _payload())).id for _ in range(3)]
        assert [o.id for o in repo.offers[offer_id].orders] == ids

    async def test_ids_are_unique(self, db, svc, offer_id) -> None:
        ids = {(await svc.append_order(db, offer_id, TAKER, _payload())).id for _ in range(20)}
        assert len(ids) == 20

    async def test_counterparty_is_caller_even_if_payload_claims_otherwise(
        self, db, repo, svc, offer_id
    ) -> None:
        payload = OrderPayload.model_validate({
            "unit_price": 1, "fiat_amount": 5, "fiat_currency": "USD",
            "payment_method": "bank", "currency": "PKOIN",
            "counterparty_identity": "victim", "status": "paid",
        })

        placed = await svc.append_order(db, offer_id, TAKER, payload)

        stored = repo.offers[offer_id].orders[0]
        assert stored.counterparty_identity == TAKER == placed.counterparty_identity
        assert stored.status == "pending"

    async def test_attachment_stored_and_referenced(
        self, db, repo, svc, attachments, offer_id
    ) -> None:
        proof = Attachment(filename="receipt.png", content=b"\x89PNG")

        placed = await svc.append_order(db, offer_id, TAKER, _payload(), proof)

        assert attachments.saved == [proof]
        assert placed.attachment_ref == "/uploads/receipt.png"
        assert repo.offers[offer_id].orders[0].attachment_ref == "/uploads/receipt.png"

    async def test_unknown_offer(self, db, svc, attachments) -> None:
        with pytest.raises(OfferNotFoundError):
            await svc.append_order(
                db, 404, TAKER, _payload(), Attachment(filename="a.png", content=b"x")
            )
        assert attachments.saved == []

    async def test_payment_method_must_be_advertised(
        self, db, repo, svc, attachments, offer_id
    ) -> None:
        with pytest.raises(PayloadValidationError) as exc_info:
            await svc.append_order(
                db, offer_id, TAKER, _payload(payment_method="paypal"),
                Attachment(filename="a.png", content=b"x"),
            )
        assert exc_info.value.errors[0]["field"] == "payment_method"
        assert repo.offers[offer_id].orders == []
        assert attachments.saved == []

    async def test_fifty_concurrent_appends_all_persist(self, db, repo, svc, offer_id) -> None:
        placed = await asyncio.gather(*(
            svc.append_order(db, offer_id, f"taker-{i}", _payload()) for i in range(50)
        ))

        stored = repo.offers[offer_id]
        assert len(stored.orders) == 50
        assert {o.id for o in stored.orders} == {p.id for p in placed}
        assert stored.version == 50

    async def test_payment_method_rechecked_under_lock(self, db, repo, svc, offer_id) -> None:
        load_for_update = repo.get_offer_for_update

        async def maker_dropped_bank(db, offer_id):
            repo.offers[offer_id].details = [
                OfferDetail(accepted_currencies=["EUR"], payment_method="sepa"),
            ]
            return await load_for_update(db, offer_id)

        repo.get_offer_for_update = maker_dropped_bank

        with pytest.raises(PayloadValidationError):
            await svc.append_order(db, offer_id, TAKER, _payload(payment_method="bank"))
        assert repo.offers[offer_id].orders == []
        db.rollback.assert_awaited()

    async def test_locks_released_after_appends(self, db, svc, offer_id) -> None:
        await asyncio.gather(*(svc.append_order(db, offer_id, TAKER, _payload()) for _ in range(5)))

        assert svc._offer_locks == {}
        assert svc._lock_users == {}


class TestTransitionStatus:
    async def test_owner_marks_paid_and_count_follows(self, db, repo, svc, offer_id) -> None:
        a = await svc.append_order(db, offer_id, TAKER, _payload())
        b = await svc.append_order(db, offer_id, TAKER, _payload())

        updated = await svc.transition_status(db, offer_id, a.id, MAKER, OrderStatus.PAID)
        assert updated.status == "paid"
        assert repo.offers[offer_id].completed_order_count == 1

        await svc.transition_status(db, offer_id, b.id, MAKER, OrderStatus.PAID)
        assert repo.offers[offer_id].completed_order_count == 2

        await svc.transition_status(db, offer_id, a.id, MAKER, OrderStatus.PENDING)
        assert repo.offers[offer_id].completed_order_count == 1

    @pytest.mark.parametrize("start", list(OrderStatus))
    @pytest.mark.parametrize("target", list(OrderStatus))
    async def test_non_owner_forbidden_for_every_combination(
        self, db, repo, svc, offer_id, start, target
    ) -> None:
        placed = await svc.append_order(db, offer_id, TAKER, _payload())
        repo.offers[offer_id].orders[0].status = start.value

        with pytest.raises(ForbiddenError):
            await svc.transition_status(db, offer_id, placed.id, TAKER, target)
        assert repo.offers[offer_id].orders[0].status == start.value

    async def test_unknown_order_leaves_count_unchanged(self, db, repo, svc, offer_id) -> None:
        a = await svc.append_order(db, offer_id, TAKER, _payload())
        await svc.transition_status(db, offer_id, a.id, MAKER, OrderStatus.PAID)
        version = repo.offers[offer_id].version

        with pytest.raises(OrderNotFoundError):
            await svc.transition_status(db, offer_id, "missing", MAKER, OrderStatus.PAID)

        assert repo.offers[offer_id].completed_order_count == 1
        assert repo.offers[offer_id].version == version
        db.rollback.assert_awaited()

    async def test_unknown_offer(self, db, svc) -> None:
        with pytest.raises(OfferNotFoundError):
            await svc.transition_status(db, 404, "x", MAKER, OrderStatus.PAID)

    async def test_unknown_offers_leave_no_locks_behind(self, db, svc) -> None:
        for offer_id in range(1000, 3000):
            with pytest.raises(OfferNotFoundError):
                await svc.transition_status(db, offer_id, "x", MAKER, OrderStatus.PAID)

        assert svc._offer_locks == {}

    async def test_failed_transition_releases_lock(self, db, svc, offer_id) -> None:
        with pytest.raises(OrderNotFoundError):
            await svc.transition_status(db, offer_id, "missing", MAKER, OrderStatus.PAID)

        assert svc._offer_locks == {}

    async def test_strict_mode_locks_terminal_states(self, db, repo, attachments, offer_id) -> None:
        strict = OrderLedgerService(repo=repo, attachments=attachments, strict_transitions=True)
        a = await strict.append_order(db, offer_id, TAKER, _payload())
        await strict.transition_status(db, offer_id, a.id, MAKER, OrderStatus.CANCELED)

        with pytest.raises(InvalidStatusTransitionError):
            await strict.transition_status(db, offer_id, a.id, MAKER, OrderStatus.PAID)
        assert repo.offers[offer_id].orders[0].status == "canceled"
        assert repo.offers[offer_id].completed_order_count == 0

    async def test_concurrent_transitions_keep_count_consistent(
        self, db, repo, svc, offer_id
    ) -> None:
        placed = [await svc.append_order(db, offer_id, TAKER, _payload()) for _ in range(10)]

        await asyncio.gather(*(
            svc.transition_status(db, offer_id, p.id, MAKER, OrderStatus.PAID) for p in placed
        ))

        stored = repo.offers[offer_id]
        assert stored.completed_order_count == 10
        assert all(o.status == "paid" for o in stored.orders)


class TestReads:
    async def test_get_order_round_trip(self, db, svc, offer_id) -> None:
        placed = await svc.append_order(db, offer_id, TAKER, _payload(fiat_currency="EUR",
                                                                      payment_method="sepa"))

        fetched = await svc.get_order(db, offer_id, placed.id)

        assert fetched.maker_address == MAKER
        assert fetched.model_dump() == placed.model_dump(exclude={"offer_id"})

    async def test_get_order_missing(self, db, svc, offer_id) -> None:
        with pytest.raises(OrderNotFoundError):
            await svc.get_order(db, offer_id, "nope")

    async def test_get_order_missing_offer(self, db, svc) -> None:
        with pytest.raises(OfferNotFoundError):
            await svc.get_order(db, 404, "nope")

    async def test_list_orders_newest_first(self, db, svc, offer_id) -> None:
        ids = [(await svc.append_order(db, offer_id, TAKER, _payload())).id for _ in range(3)]

        page = await svc.list_orders(db, offer_id, page=1, limit=10)

        assert [o.id for o in page.orders] == list(reversed(ids))
        assert all(o.maker_address == MAKER for o in page.orders)
        assert page.pagination.total_orders == 3
        assert page.pagination.total_pages == 1

    async def test_list_orders_second_page(self, db, svc, offer_id) -> None:
        ids = [(await svc.append_order(db, offer_id, TAKER, _payload())).id for _ in range(5)]

        page = await svc.list_orders(db, offer_id, page=2, limit=2)

        assert [o.id for o in page.orders] == [ids[2], ids[1]]
        assert page.pagination.total_pages == 3

    async def test_invalid_pagination_checked_first(self, db, svc) -> None:
        with pytest.raises(InvalidPaginationError):
            await svc.list_orders(db, 404, page=0, limit=10)

    async def test_list_orders_missing_offer(self, db, svc) -> None:
        with pytest.raises(OfferNotFoundError):
            await svc.list_orders(db, 404, page=1, limit=10)
