"""Domain enumerations for the marketplace escrow core.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class ListingStatus(enum.StrEnum):
    """Lifecycle states of a listing.

    Transitions are guarded by ListingStateMachine:
    available -> pending -> sold, or pending -> available on refund/cancel.
    """

    AVAILABLE = "available"
    PENDING = "pending"
    SOLD = "sold"


class PriceType(enum.StrEnum):
    """Whether a listing accepts offers."""

    FIXED = "fixed"
    NEGOTIABLE = "negotiable"


class OfferStatus(enum.StrEnum):
    """Lifecycle states of a price offer. Everything but PENDING is terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class TransactionStatus(enum.StrEnum):
    """Lifecycle states of an escrow transaction.

    ESCROW_HELD is the only non-terminal state; exactly one of the other
    three resolves it.
    """

    ESCROW_HELD = "escrow_held"
    RELEASED = "released"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class EventType(enum.StrEnum):
    """Domain event types.

    Used both for the append-only market_events audit trail and for the
    notifications handed to the NotificationSink.
    """

    # Listing events
    LISTING_POSTED = "LISTING_POSTED"
    LISTING_EDITED = "LISTING_EDITED"
    LISTING_RESERVED = "LISTING_RESERVED"
    LISTING_SOLD = "LISTING_SOLD"
    LISTING_RELEASED = "LISTING_RELEASED"

    # Offer events
    OFFER_CREATED = "OFFER_CREATED"
    OFFER_ACCEPTED = "OFFER_ACCEPTED"
    OFFER_REJECTED = "OFFER_REJECTED"
    OFFER_WITHDRAWN = "OFFER_WITHDRAWN"

    # Escrow events
    PURCHASE_INITIATED = "PURCHASE_INITIATED"
    PAYMENT_RELEASED = "PAYMENT_RELEASED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
    PURCHASE_CANCELLED = "PURCHASE_CANCELLED"


class EntityType(enum.StrEnum):
    """Kinds of entity that appear in the audit trail."""

    LISTING = "listing"
    OFFER = "offer"
    TRANSACTION = "transaction"


class LedgerEntryType(enum.StrEnum):
    """Reasons a wallet balance changed."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    ESCROW_DEBIT = "ESCROW_DEBIT"
    ESCROW_RELEASE = "ESCROW_RELEASE"
    ESCROW_REFUND = "ESCROW_REFUND"


class NotificationCategory(enum.StrEnum):
    """Notification grouping shown to the recipient."""

    OFFER = "offer"
    TRANSACTION = "transaction"
    SYSTEM = "system"
