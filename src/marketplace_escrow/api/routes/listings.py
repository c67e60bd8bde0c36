"""Listing REST API routes.

Routes:
    POST   /api/v1/listings               — Post a listing
    GET    /api/v1/listings/{id}          — Get listing details
    PATCH  /api/v1/listings/{id}          — Edit an available listing
    GET    /api/v1/listings/{id}/status   — Status with allowed events
    GET    /api/v1/listings/{id}/offers   — Offers made on the listing
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_escrow.api.deps import get_db_session
from marketplace_escrow.schemas.marketplace import (
    EditListingRequest,
    ListingResponse,
    OfferResponse,
    PostListingRequest,
    StatusResponse,
)
from marketplace_escrow.services.listing_tracker import ListingStateTracker
from marketplace_escrow.services.offer_service import OfferService

router = APIRouter(prefix="/api/v1/listings", tags=["Listings"])


@router.post("", response_model=ListingResponse, status_code=201, summary="Post a listing")
async def post_listing(
    request: PostListingRequest,
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingStateTracker(session).post_listing(
        seller_id=request.seller_id,
        title=request.title,
        price=request.price,
        price_type=request.price_type,
        description=request.description,
    )
    return ListingResponse.model_validate(listing)


@router.get("/{listing_id}", response_model=ListingResponse, summary="Get listing details")
async def get_listing(
    listing_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await ListingStateTracker(session).get_listing(listing_id)
    return ListingResponse.model_validate(listing)


@router.patch("/{listing_id}", response_model=ListingResponse, summary="Edit a listing")
async def edit_listing(
    listing_id: uuid.UUID,
    request: EditListingRequest,
    session: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    """Seller only. A pending or sold listing cannot be edited."""
    listing = await ListingStateTracker(session).edit_listing(
        listing_id,
        acting_user_id=request.acting_user_id,
        title=request.title,
        description=request.description,
        price=request.price,
        price_type=request.price_type,
    )
    return ListingResponse.model_validate(listing)


@router.get(
    "/{listing_id}/status",
    response_model=StatusResponse,
    summary="Listing status",
)
async def get_listing_status(
    listing_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> StatusResponse:
    status = await ListingStateTracker(session).get_status(listing_id)
    return StatusResponse(**status)


@router.get(
    "/{listing_id}/offers",
    response_model=list[OfferResponse],
    summary="Offers on a listing",
)
async def list_offers(
    listing_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> list[OfferResponse]:
    offers = await OfferService(session).list_offers_for_listing(listing_id)
    return [OfferResponse.model_validate(o) for o in offers]
