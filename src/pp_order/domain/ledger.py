"""Order ledger rules — pure functions over an offer's embedded order list.

Callers hold the offer's lock; nothing here touches storage.
"""
import math
from dataclasses import dataclass

from src.pp_common.datetime_utils import utc_now
from src.pp_common.enums import OrderStatus
from src.pp_common.errors import InvalidPaginationError, InvalidStatusTransitionError
from src.pp_offer.domain.models import Offer
from src.pp_order.domain.models import Order

# Strict mode only: paid and canceled are terminal.
_STRICT_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING.value: frozenset({OrderStatus.PAID.value, OrderStatus.CANCELED.value}),
    OrderStatus.PAID.value: frozenset(),
    OrderStatus.CANCELED.value: frozenset(),
}


@dataclass
class OrderPage:
    orders: list[Order]
    page: int
    limit: int
    total_orders: int
    total_pages: int


def count_completed(orders: list[Order]) -> int:
    return sum(1 for o in orders if o.is_paid)


def recompute_completed(offer: Offer) -> int:
    """Recount paid orders from scratch and store the result on the offer."""
    offer.completed_order_count = count_completed(offer.orders)
    return offer.completed_order_count


def append_order(offer: Offer, order: Order) -> None:
    offer.orders.append(order)


def find_order(offer: Offer, order_id: str) -> Order | None:
    for order in offer.orders:
        if order.id == order_id:
            return order
    return None


def transition_status(order: Order, new_status: str, strict: bool = False) -> None:
    """Set the order status in place.

    Default mode accepts any target status, including same-status and
    paid -> pending corrections. Strict mode only allows pending -> paid/canceled.
    """
    if strict and new_status not in _STRICT_TRANSITIONS[order.status]:
        raise InvalidStatusTransitionError(order.status, new_status)
    order.status = new_status
    order.updated_at = utc_now()


def check_pagination(page: int, limit: int) -> None:
    if page < 1 or limit < 1:
        raise InvalidPaginationError(page, limit)


def paginate_newest_first(orders: list[Order], page: int, limit: int) -> OrderPage:
    check_pagination(page, limit)
    newest_first = list(reversed(orders))
    start = (page - 1) * limit
    return OrderPage(
        orders=newest_first[start:start + limit],
        page=page,
        limit=limit,
        total_orders=len(newest_first),
        total_pages=math.ceil(len(newest_first) / limit),
    )
