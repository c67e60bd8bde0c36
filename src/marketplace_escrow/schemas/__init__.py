"""Pydantic API schemas."""

from marketplace_escrow.schemas.marketplace import (
    ActingUserRequest,
    AmountRequest,
    EditListingRequest,
    HealthResponse,
    LedgerEntryResponse,
    ListingResponse,
    MakeOfferRequest,
    MarketEventResponse,
    MarkReadResponse,
    NotificationResponse,
    OfferResponse,
    OpenWalletRequest,
    PostListingRequest,
    PurchaseRequest,
    RefundRequest,
    StatusResponse,
    TransactionResponse,
    WalletResponse,
)

__all__ = [
    "ActingUserRequest",
    "AmountRequest",
    "EditListingRequest",
    "HealthResponse",
    "LedgerEntryResponse",
    "ListingResponse",
    "MakeOfferRequest",
    "MarketEventResponse",
    "MarkReadResponse",
    "NotificationResponse",
    "OfferResponse",
    "OpenWalletRequest",
    "PostListingRequest",
    "PurchaseRequest",
    "RefundRequest",
    "StatusResponse",
    "TransactionResponse",
    "WalletResponse",
]
