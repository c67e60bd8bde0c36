"""Domain layer — pure business logic with zero framework dependencies."""

from marketplace_escrow.domain.enums import (
    EntityType,
    EventType,
    LedgerEntryType,
    ListingStatus,
    NotificationCategory,
    OfferStatus,
    PriceType,
    TransactionStatus,
)
from marketplace_escrow.domain.events import DomainEvent, NotificationSink
from marketplace_escrow.domain.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    InvalidOfferStateError,
    InvalidTransactionStateError,
    InvalidTransitionError,
    ListingUnavailableError,
    MarketplaceError,
    NotAvailableError,
    NotFoundError,
    UnauthorizedError,
)
from marketplace_escrow.domain.state_machine import (
    ListingStateMachine,
    OfferStateMachine,
    TransactionStateMachine,
    validate_transition,
)

__all__ = [
    "EntityType",
    "EventType",
    "LedgerEntryType",
    "ListingStatus",
    "NotificationCategory",
    "OfferStatus",
    "PriceType",
    "TransactionStatus",
    "DomainEvent",
    "NotificationSink",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidOfferStateError",
    "InvalidTransactionStateError",
    "InvalidTransitionError",
    "ListingUnavailableError",
    "MarketplaceError",
    "NotAvailableError",
    "NotFoundError",
    "UnauthorizedError",
    "ListingStateMachine",
    "OfferStateMachine",
    "TransactionStateMachine",
    "validate_transition",
]
