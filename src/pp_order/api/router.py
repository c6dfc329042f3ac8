# src/pp_order/api/router.py
"""pp_order REST endpoints (orders are addressed through their offer).

POST  /offers/{offer_id}/orders                      — append order, multipart (auth)
PATCH /offers/{offer_id}/orders/{order_id}/status    — maker sets status (auth)
GET   /offers/{offer_id}/orders/{order_id}           — one order + maker_address
GET   /offers/{offer_id}/orders?page=&limit=         — newest first, paginated
"""
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pp_common.database import get_db_session
from src.pp_common.errors import PayloadValidationError, format_validation_errors
from src.pp_common.response import OrderEnvelope, OrderListEnvelope
from src.pp_gateway.auth.dependencies import get_current_identity
from src.pp_order.application.schemas import OrderPayload, StatusUpdateRequest
from src.pp_order.application.service import OrderLedgerService
from src.pp_order.domain.models import Attachment

router = APIRouter(prefix="/offers", tags=["orders"])

# One instance per process: it owns the per-offer write locks.
_ledger = OrderLedgerService()


def get_ledger_service() -> OrderLedgerService:
    return _ledger


def _parse_order_form(fields: dict[str, str | None]) -> OrderPayload:
    try:
        return OrderPayload.model_validate({k: v for k, v in fields.items() if v is not None})
    except ValidationError as e:
        raise PayloadValidationError(format_validation_errors(e.errors())) from None


async def _read_attachment(upload: UploadFile | None) -> Attachment | None:
    if upload is None or not upload.filename:
        return None
    content = await upload.read(settings.MAX_ATTACHMENT_BYTES + 1)
    if len(content) > settings.MAX_ATTACHMENT_BYTES:
        raise PayloadValidationError([{
            "field": "payment_proof",
            "message": f"attachment exceeds {settings.MAX_ATTACHMENT_BYTES} bytes",
        }])
    if not content:
        return None
    return Attachment(filename=upload.filename, content=content, content_type=upload.content_type)


@router.post("/{offer_id}/orders", response_model=OrderEnvelope, status_code=201)
async def append_order(
    offer_id: int,
    identity: Annotated[str, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderLedgerService, Depends(get_ledger_service)],
    unit_price: Annotated[str | None, Form()] = None,
    fiat_amount: Annotated[str | None, Form()] = None,
    fiat_currency: Annotated[str | None, Form()] = None,
    payment_method: Annotated[str | None, Form()] = None,
    currency: Annotated[str | None, Form()] = None,
    payment_proof: Annotated[UploadFile | None, File()] = None,
) -> OrderEnvelope:
    payload = _parse_order_form({
        "unit_price": unit_price,
        "fiat_amount": fiat_amount,
        "fiat_currency": fiat_currency,
        "payment_method": payment_method,
        "currency": currency,
    })
    attachment = await _read_attachment(payment_proof)
    order = await service.append_order(db, offer_id, identity, payload, attachment)
    return OrderEnvelope(message="Order added successfully", order=order.model_dump(mode="json"))


@router.patch("/{offer_id}/orders/{order_id}/status", response_model=OrderEnvelope)
async def update_order_status(
    offer_id: int,
    order_id: str,
    body: StatusUpdateRequest,
    identity: Annotated[str, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderLedgerService, Depends(get_ledger_service)],
) -> OrderEnvelope:
    order = await service.transition_status(db, offer_id, order_id, identity, body.status)
    return OrderEnvelope(
        message="Order status updated successfully", order=order.model_dump(mode="json")
    )


@router.get("/{offer_id}/orders/{order_id}", response_model=OrderEnvelope)
async def get_order(
    offer_id: int,
    order_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderLedgerService, Depends(get_ledger_service)],
) -> OrderEnvelope:
    order = await service.get_order(db, offer_id, order_id)
    return OrderEnvelope(message="Order retrieved successfully", order=order.model_dump(mode="json"))


@router.get("/{offer_id}/orders", response_model=OrderListEnvelope)
async def list_orders(
    offer_id: int,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderLedgerService, Depends(get_ledger_service)],
    page: int = Query(1, description="1-based page number"),
    limit: int = Query(10, description="Orders per page"),
) -> OrderListEnvelope:
    result = await service.list_orders(db, offer_id, page, limit)
    return OrderListEnvelope(
        message="Orders retrieved successfully",
        orders=[o.model_dump(mode="json") for o in result.orders],
        pagination=result.pagination,
    )
