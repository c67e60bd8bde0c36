"""Offer negotiation REST API routes.

Routes:
    POST   /api/v1/offers                 — Make an offer
    GET    /api/v1/offers/{id}            — Get offer details
    POST   /api/v1/offers/{id}/accept     — Seller accepts
    POST   /api/v1/offers/{id}/reject     — Seller rejects
    POST   /api/v1/offers/{id}/withdraw   — Buyer withdraws
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_escrow.api.deps import get_db_session, get_notification_sink
from marketplace_escrow.domain.events import NotificationSink
from marketplace_escrow.schemas.marketplace import (
    ActingUserRequest,
    MakeOfferRequest,
    OfferResponse,
)
from marketplace_escrow.services.offer_service import OfferService

router = APIRouter(prefix="/api/v1/offers", tags=["Offers"])


def _service(session: AsyncSession, sink: NotificationSink) -> OfferService:
    return OfferService(session, notifier=sink)


@router.post("", response_model=OfferResponse, status_code=201, summary="Make an offer")
async def make_offer(
    request: MakeOfferRequest,
    session: AsyncSession = Depends(get_db_session),
    sink: NotificationSink = Depends(get_notification_sink),
) -> OfferResponse:
    """Only negotiable, available listings accept offers."""
    offer = await _service(session, sink).make_offer(
        listing_id=request.listing_id,
        buyer_id=request.buyer_id,
        amount=request.amount,
    )
    return OfferResponse.model_validate(offer)


@router.get("/{offer_id}", response_model=OfferResponse, summary="Get offer details")
async def get_offer(
    offer_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> OfferResponse:
    offer = await OfferService(session).get_offer(offer_id)
    return OfferResponse.model_validate(offer)


@router.post("/{offer_id}/accept", response_model=OfferResponse, summary="Accept an offer")
async def accept_offer(
    offer_id: uuid.UUID,
    request: ActingUserRequest,
    session: AsyncSession = Depends(get_db_session),
    sink: NotificationSink = Depends(get_notification_sink),
) -> OfferResponse:
    offer = await _service(session, sink).accept_offer(offer_id, request.acting_user_id)
    return OfferResponse.model_validate(offer)


@router.post("/{offer_id}/reject", response_model=OfferResponse, summary="Reject an offer")
async def reject_offer(
    offer_id: uuid.UUID,
    request: ActingUserRequest,
    session: AsyncSession = Depends(get_db_session),
    sink: NotificationSink = Depends(get_notification_sink),
) -> OfferResponse:
    offer = await _service(session, sink).reject_offer(offer_id, request.acting_user_id)
    return OfferResponse.model_validate(offer)


@router.post(
    "/{offer_id}/withdraw",
    response_model=OfferResponse,
    summary="Withdraw an offer",
)
async def withdraw_offer(
    offer_id: uuid.UUID,
    request: ActingUserRequest,
    session: AsyncSession = Depends(get_db_session),
    sink: NotificationSink = Depends(get_notification_sink),
) -> OfferResponse:
    offer = await _service(session, sink).withdraw_offer(offer_id, request.acting_user_id)
    return OfferResponse.model_validate(offer)
