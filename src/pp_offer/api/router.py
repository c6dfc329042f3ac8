"""pp_offer REST endpoints.

POST /offers                 — create or update the caller's offer (auth)
GET  /offers                 — list offers, optional ?currency= filter
GET  /offers/me              — the caller's own offer or data=null (auth)
GET  /offers/{offer_id}      — full offer with orders, optional ?currency=
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pp_common.database import get_db_session
from src.pp_common.response import ApiResponse, success_response
from src.pp_gateway.auth.dependencies import get_current_identity
from src.pp_gateway.identity.dependencies import get_identity_client
from src.pp_gateway.identity.models import ProfileLookupProtocol
from src.pp_offer.application.schemas import OfferPayload
from src.pp_offer.application.service import OfferApplicationService

router = APIRouter(prefix="/offers", tags=["offers"])


def get_offer_service(
    profiles: Annotated[ProfileLookupProtocol, Depends(get_identity_client)],
) -> OfferApplicationService:
    return OfferApplicationService(profiles=profiles)


@router.post("", response_model=ApiResponse)
async def create_or_update_offer(
    body: OfferPayload,
    response: Response,
    identity: Annotated[str, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OfferApplicationService, Depends(get_offer_service)],
) -> ApiResponse:
    result = await service.create_or_update(db, identity, body)
    if result.created:
        response.status_code = status.HTTP_201_CREATED
        message = "Offer created successfully"
    else:
        message = "Offer updated successfully"
    return success_response(result.offer.model_dump(mode="json"), message)


@router.get("", response_model=ApiResponse)
async def list_offers(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OfferApplicationService, Depends(get_offer_service)],
    currency: str | None = Query(None, description="Only offers accepting this currency"),
) -> ApiResponse:
    offers = await service.list_offers(db, currency)
    return success_response(
        [o.model_dump(mode="json") for o in offers], "Offers retrieved successfully"
    )


@router.get("/me", response_model=ApiResponse)
async def get_own_offer(
    identity: Annotated[str, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OfferApplicationService, Depends(get_offer_service)],
) -> ApiResponse:
    offer = await service.get_own_offer(db, identity)
    if offer is None:
        return success_response(None, "Offer not found")
    return success_response(offer.model_dump(mode="json"), "Offer retrieved successfully")


@router.get("/{offer_id}", response_model=ApiResponse)
async def get_offer(
    offer_id: int,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OfferApplicationService, Depends(get_offer_service)],
    currency: str | None = Query(None, description="Narrow details to this currency"),
) -> ApiResponse:
    offer = await service.get_offer(db, offer_id, currency)
    return success_response(offer.model_dump(mode="json"), "Offer retrieved successfully")
