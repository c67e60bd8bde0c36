"""Pydantic schemas for the marketplace REST API.

These schemas define the request/response shapes for the REST API. They are
separate from the ORM models to maintain clean boundaries between the API
and database layers.

Monetary fields are Decimal with at most two decimal places; the services
re-validate every amount, so these constraints are a first line only.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from marketplace_escrow.domain.enums import PriceType

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class OpenWalletRequest(BaseModel):
    """Request body for opening a wallet."""

    user_id: uuid.UUID
    initial_balance: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        decimal_places=2,
        description="Opening balance, booked as a deposit when non-zero",
        examples=[5000],
    )


class AmountRequest(BaseModel):
    """Request body for a deposit or withdrawal."""

    amount: Decimal = Field(..., gt=0, decimal_places=2, examples=[1000])


class PostListingRequest(BaseModel):
    """Request body for posting a listing."""

    seller_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=200, examples=["Road bike, 54cm"])
    description: str | None = Field(default=None, max_length=5000)
    price: Decimal = Field(..., gt=0, decimal_places=2, examples=[1000])
    price_type: PriceType = PriceType.FIXED


class EditListingRequest(BaseModel):
    """Request body for editing a listing. Omitted fields stay unchanged."""

    acting_user_id: uuid.UUID
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    price: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    price_type: PriceType | None = None


class MakeOfferRequest(BaseModel):
    """Request body for making an offer on a negotiable listing."""

    listing_id: uuid.UUID
    buyer_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2, examples=[800])


class ActingUserRequest(BaseModel):
    """Request body for actions that only need to know who is acting."""

    acting_user_id: uuid.UUID


class PurchaseRequest(BaseModel):
    """Request body for initiating a purchase.

    Fixed-price buy: pass `amount` equal to the listing price.
    Negotiated buy: pass `offer_id` of an accepted offer.
    """

    listing_id: uuid.UUID
    buyer_id: uuid.UUID
    amount: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    offer_id: uuid.UUID | None = None
    idempotency_key: str | None = Field(
        default=None,
        max_length=128,
        description="Optional key that makes a retried purchase request a no-op",
    )


class RefundRequest(BaseModel):
    """Request body for an administrative refund."""

    actor: str = Field(default="SYSTEM", max_length=100)
    reason: str | None = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class WalletResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    balance: Decimal
    created_at: datetime
    updated_at: datetime


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    entry_type: str
    amount: Decimal
    balance_after: Decimal
    reference_id: uuid.UUID | None = None
    created_at: datetime


class ListingResponse(BaseModel):
    """Full listing details."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    seller_id: uuid.UUID
    title: str
    description: str | None = None
    price: Decimal
    price_type: str
    status: str
    created_at: datetime
    updated_at: datetime


class OfferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    listing_id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    amount: Decimal
    status: str
    transaction_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime


class TransactionResponse(BaseModel):
    """Full escrow transaction details."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    item_id: uuid.UUID
    offer_id: uuid.UUID | None = None
    amount: Decimal
    status: str
    created_at: datetime
    resolved_at: datetime | None = None


class StatusResponse(BaseModel):
    """Lightweight status check with the events the current state allows."""

    status: str
    allowed_events: list[str] = Field(
        default_factory=list,
        description="Events that can be fired from the current state",
    )


class MarketEventResponse(BaseModel):
    """A single audit log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    event_type: str
    old_status: str | None = None
    new_status: str
    actor: str
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    recipient_id: uuid.UUID
    event_type: str
    category: str
    title: str
    body: str
    payload: dict | None = None
    read: bool
    created_at: datetime


class MarkReadResponse(BaseModel):
    marked: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    redis: str = "unknown"
