"""Database infrastructure — engine, ORM models, and repositories."""

from marketplace_escrow.infrastructure.database.engine import (
    build_session_factory,
    close_db,
    init_db,
    session_scope,
)
from marketplace_escrow.infrastructure.database.orm_models import (
    Base,
    EscrowTransaction,
    LedgerEntry,
    Listing,
    MarketEvent,
    Notification,
    Offer,
    Wallet,
)
from marketplace_escrow.infrastructure.database.repositories import (
    EventRepository,
    LedgerEntryRepository,
    ListingRepository,
    NotificationRepository,
    OfferRepository,
    TransactionRepository,
    WalletRepository,
)

__all__ = [
    "Base",
    "EscrowTransaction",
    "LedgerEntry",
    "Listing",
    "MarketEvent",
    "Notification",
    "Offer",
    "Wallet",
    "EventRepository",
    "LedgerEntryRepository",
    "ListingRepository",
    "NotificationRepository",
    "OfferRepository",
    "TransactionRepository",
    "WalletRepository",
    "build_session_factory",
    "init_db",
    "close_db",
    "session_scope",
]
