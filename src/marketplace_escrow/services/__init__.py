"""Application services — use case orchestration."""

from marketplace_escrow.services.escrow_service import EscrowService
from marketplace_escrow.services.ledger import LedgerService
from marketplace_escrow.services.listing_tracker import ListingStateTracker
from marketplace_escrow.services.notification_service import (
    DatabaseNotificationSink,
    LoggingNotificationSink,
    NotificationService,
)
from marketplace_escrow.services.offer_service import OfferService

__all__ = [
    "DatabaseNotificationSink",
    "EscrowService",
    "LedgerService",
    "ListingStateTracker",
    "LoggingNotificationSink",
    "NotificationService",
    "OfferService",
]
