"""SQLAlchemy 2.0 ORM models for the marketplace escrow core.

Seven tables:
    1. wallets              — Per-user balance, mutated only by the Ledger.
    2. ledger_entries       — Append-only record of every balance change.
    3. listings             — Items for sale and their lifecycle status.
    4. offers               — Price negotiations between buyer and seller.
    5. escrow_transactions  — Funds held between purchase and resolution.
    6. market_events        — Append-only audit log of every status transition.
    7. notifications        — In-app notifications written by the database sink.

Design decisions:
    - UUIDs as primary keys (sqlalchemy.Uuid: native on PostgreSQL, CHAR(32) elsewhere).
    - Decimal for money (no floating point rounding errors).
    - CHECK constraints on status and balance columns back up the domain guards.
    - Status columns are only moved by conditional UPDATEs in the repositories.
    - Offers and transactions are never deleted; they are kept for audit.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MONEY = Numeric(14, 2)
JSON_DOC = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    if hasattr(target, "updated_at"):
        target.updated_at = _utcnow()


# ---------------------------------------------------------------------------
# 1. wallets
# ---------------------------------------------------------------------------
class Wallet(Base):
    """A user's spendable balance."""

    __tablename__ = "wallets"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    balance: Mapped[Decimal] = mapped_column(
        MONEY,
        nullable=False,
        default=Decimal("0"),
        comment="Spendable balance; never negative",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Wallet user={self.user_id} balance={self.balance}>"


# ---------------------------------------------------------------------------
# 2. ledger_entries (Append-Only)
# ---------------------------------------------------------------------------
class LedgerEntry(Base):
    """Immutable record of a single wallet balance change."""

    __tablename__ = "ledger_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("wallets.user_id"), nullable=False
    )
    entry_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="LedgerEntryType value (DEPOSIT, ESCROW_DEBIT, ...)",
    )
    amount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, comment="Signed change: negative for debits"
    )
    balance_after: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    reference_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
        default=None,
        comment="Escrow transaction or listing that caused the change",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_ledger_user", "user_id"),
        Index("idx_ledger_reference", "reference_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry user={self.user_id} type={self.entry_type} "
            f"amount={self.amount} after={self.balance_after}>"
        )


# ---------------------------------------------------------------------------
# 3. listings
# ---------------------------------------------------------------------------
class Listing(Base):
    """An item posted for sale by a seller."""

    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    price_type: Mapped[str] = mapped_column(
        String(12), nullable=False, default="fixed"
    )
    status: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
        default="available",
        comment="Current lifecycle state (guarded by ListingStateMachine)",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('available', 'pending', 'sold')",
            name="ck_listing_valid_status",
        ),
        CheckConstraint(
            "price_type IN ('fixed', 'negotiable')",
            name="ck_listing_valid_price_type",
        ),
        CheckConstraint("price > 0", name="ck_listing_positive_price"),
        Index("idx_listing_seller", "seller_id"),
        Index("idx_listing_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Listing id={self.id} status={self.status} price={self.price}>"


# ---------------------------------------------------------------------------
# 4. offers
# ---------------------------------------------------------------------------
class Offer(Base):
    """A buyer's price proposal on a negotiable listing."""

    __tablename__ = "offers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id"), nullable=False
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        comment="Denormalized from the listing at creation",
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
        default="pending",
        comment="Current negotiation state (guarded by OfferStateMachine)",
    )
    transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
        default=None,
        comment="Escrow transaction that paid this offer, once paid",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'withdrawn')",
            name="ck_offer_valid_status",
        ),
        CheckConstraint("amount > 0", name="ck_offer_positive_amount"),
        Index("idx_offer_listing", "listing_id"),
        Index("idx_offer_buyer", "buyer_id"),
    )

    def __repr__(self) -> str:
        return f"<Offer id={self.id} status={self.status} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 5. escrow_transactions
# ---------------------------------------------------------------------------
class EscrowTransaction(Base):
    """Funds debited from a buyer and held until delivery is confirmed."""

    __tablename__ = "escrow_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    seller_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id"), nullable=False
    )
    offer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("offers.id"),
        nullable=True,
        default=None,
        comment="Accepted offer that set the price, for negotiated buys",
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
        default="escrow_held",
        comment="Current resolution state (guarded by TransactionStateMachine)",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('escrow_held', 'released', 'refunded', 'cancelled')",
            name="ck_transaction_valid_status",
        ),
        CheckConstraint("amount > 0", name="ck_transaction_positive_amount"),
        Index("idx_transaction_buyer", "buyer_id"),
        Index("idx_transaction_seller", "seller_id"),
        Index("idx_transaction_item", "item_id"),
        Index("idx_transaction_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<EscrowTransaction id={self.id} status={self.status} "
            f"amount={self.amount}>"
        )


# ---------------------------------------------------------------------------
# 6. market_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class MarketEvent(Base):
    """Immutable audit record of a listing, offer, or transaction transition.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "market_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    event_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="EventType enum value (e.g., LISTING_RESERVED, PAYMENT_RELEASED)",
    )
    old_status: Mapped[str | None] = mapped_column(String(12), nullable=True)
    new_status: Mapped[str] = mapped_column(String(12), nullable=False)
    actor: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="SYSTEM",
        comment="User id that triggered this event, or SYSTEM",
    )
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata", JSON_DOC, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_event_entity", "entity_type", "entity_id"),
        Index("idx_event_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<MarketEvent {self.entity_type}:{self.entity_id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )


# ---------------------------------------------------------------------------
# 7. notifications
# ---------------------------------------------------------------------------
class Notification(Base):
    """An in-app notification persisted by DatabaseNotificationSink."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    category: Mapped[str] = mapped_column(String(12), nullable=False, default="system")
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    payload: Mapped[dict | None] = mapped_column(JSON_DOC, nullable=True, default=None)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_notification_recipient", "recipient_id", "read"),
    )

    def __repr__(self) -> str:
        return f"<Notification to={self.recipient_id} type={self.event_type} read={self.read}>"


event.listen(Listing, "before_update", _set_updated_at)
event.listen(Offer, "before_update", _set_updated_at)
event.listen(Wallet, "before_update", _set_updated_at)
