"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).

Every status or balance mutation is a single conditional UPDATE. The
WHERE clause carries the precondition, and an affected row count of 0 means
the precondition did not hold at the moment of the write, so there is no
read-then-write gap for a concurrent caller to slip into.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update

from marketplace_escrow.domain.enums import ListingStatus
from marketplace_escrow.infrastructure.database.orm_models import (
    EscrowTransaction,
    LedgerEntry,
    Listing,
    MarketEvent,
    Notification,
    Offer,
    Wallet,
)

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from marketplace_escrow.domain.enums import (
        EntityType,
        EventType,
        LedgerEntryType,
        OfferStatus,
        TransactionStatus,
    )

_NO_SYNC = {"synchronize_session": False}


class WalletRepository:
    """Data access for wallet balances."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, wallet: Wallet) -> Wallet:
        """Insert a new wallet."""
        self._session.add(wallet)
        await self._session.flush()
        return wallet

    async def get_by_user(self, user_id: uuid.UUID) -> Wallet | None:
        """Fetch a wallet, always re-reading the balance from the database."""
        result = await self._session.execute(
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def debit_if_sufficient(self, user_id: uuid.UUID, amount: Decimal) -> bool:
        """Atomically subtract `amount` if the balance covers it."""
        result = await self._session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount, updated_at=datetime.now(UTC))
            .execution_options(**_NO_SYNC)
        )
        return result.rowcount == 1

    async def credit(self, user_id: uuid.UUID, amount: Decimal) -> bool:
        """Atomically add `amount`. Returns False if the wallet does not exist."""
        result = await self._session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(balance=Wallet.balance + amount, updated_at=datetime.now(UTC))
            .execution_options(**_NO_SYNC)
        )
        return result.rowcount == 1

    async def sum_balances(self) -> Decimal:
        """Total of all wallet balances."""
        result = await self._session.execute(
            select(func.coalesce(func.sum(Wallet.balance), 0))
        )
        return Decimal(str(result.scalar_one()))


class LedgerEntryRepository:
    """Data access for the append-only ledger entry log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        user_id: uuid.UUID,
        entry_type: LedgerEntryType,
        amount: Decimal,
        balance_after: Decimal,
        reference_id: uuid.UUID | None = None,
    ) -> LedgerEntry:
        """Append a ledger entry. This is the ONLY write operation allowed."""
        entry = LedgerEntry(
            user_id=user_id,
            entry_type=entry_type.value,
            amount=amount,
            balance_after=balance_after,
            reference_id=reference_id,
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def get_by_user(self, user_id: uuid.UUID, limit: int = 50) -> list[LedgerEntry]:
        """Fetch a user's entries, newest first."""
        result = await self._session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.user_id == user_id)
            .order_by(LedgerEntry.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class ListingRepository:
    """Data access for listings."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, listing: Listing) -> Listing:
        """Insert a new listing."""
        self._session.add(listing)
        await self._session.flush()
        return listing

    async def get_by_id(self, listing_id: uuid.UUID) -> Listing | None:
        """Fetch a listing, always re-reading its status from the database."""
        result = await self._session.execute(
            select(Listing)
            .where(Listing.id == listing_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def compare_and_set_status(
        self,
        listing_id: uuid.UUID,
        expected: ListingStatus,
        new_status: ListingStatus,
        price: Decimal | None = None,
        price_type: str | None = None,
    ) -> bool:
        """Move the status from `expected` to `new_status` in one statement.

        When `price` or `price_type` is given the row must still carry those
        terms, so a reservation never lands on terms the caller did not see.
        """
        conditions = [Listing.id == listing_id, Listing.status == expected.value]
        if price is not None:
            conditions.append(Listing.price == price)
        if price_type is not None:
            conditions.append(Listing.price_type == price_type)
        result = await self._session.execute(
            update(Listing)
            .where(*conditions)
            .values(status=new_status.value, updated_at=datetime.now(UTC))
            .execution_options(**_NO_SYNC)
        )
        return result.rowcount == 1

    async def update_details(self, listing_id: uuid.UUID, **changes: object) -> bool:
        """Apply descriptive field changes, but only while the listing is available."""
        result = await self._session.execute(
            update(Listing)
            .where(
                Listing.id == listing_id,
                Listing.status == ListingStatus.AVAILABLE.value,
            )
            .values(**changes, updated_at=datetime.now(UTC))
            .execution_options(**_NO_SYNC)
        )
        return result.rowcount == 1


class OfferRepository:
    """Data access for offers."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, offer: Offer) -> Offer:
        """Insert a new offer."""
        self._session.add(offer)
        await self._session.flush()
        return offer

    async def get_by_id(self, offer_id: uuid.UUID) -> Offer | None:
        """Fetch an offer, always re-reading its status from the database."""
        result = await self._session.execute(
            select(Offer)
            .where(Offer.id == offer_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_listing(self, listing_id: uuid.UUID) -> list[Offer]:
        """Fetch all offers on a listing, newest first."""
        result = await self._session.execute(
            select(Offer)
            .where(Offer.listing_id == listing_id)
            .order_by(Offer.created_at.desc())
        )
        return list(result.scalars().all())

    async def compare_and_set_status(
        self,
        offer_id: uuid.UUID,
        expected: OfferStatus,
        new_status: OfferStatus,
    ) -> bool:
        """Move the status from `expected` to `new_status` in one statement."""
        result = await self._session.execute(
            update(Offer)
            .where(Offer.id == offer_id, Offer.status == expected.value)
            .values(status=new_status.value, updated_at=datetime.now(UTC))
            .execution_options(**_NO_SYNC)
        )
        return result.rowcount == 1

    async def attach_transaction(
        self,
        offer_id: uuid.UUID,
        transaction_id: uuid.UUID,
    ) -> bool:
        """Link an accepted offer to the transaction paying it, at most once."""
        result = await self._session.execute(
            update(Offer)
            .where(Offer.id == offer_id, Offer.transaction_id.is_(None))
            .values(transaction_id=transaction_id, updated_at=datetime.now(UTC))
            .execution_options(**_NO_SYNC)
        )
        return result.rowcount == 1


class TransactionRepository:
    """Data access for escrow transactions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, transaction: EscrowTransaction) -> EscrowTransaction:
        """Insert a new escrow transaction."""
        self._session.add(transaction)
        await self._session.flush()
        return transaction

    async def get_by_id(self, transaction_id: uuid.UUID) -> EscrowTransaction | None:
        """Fetch a transaction, always re-reading its status from the database."""
        result = await self._session.execute(
            select(EscrowTransaction)
            .where(EscrowTransaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_user(self, user_id: uuid.UUID) -> list[EscrowTransaction]:
        """Fetch transactions where the user is buyer or seller, newest first."""
        result = await self._session.execute(
            select(EscrowTransaction)
            .where(
                (EscrowTransaction.buyer_id == user_id)
                | (EscrowTransaction.seller_id == user_id)
            )
            .order_by(EscrowTransaction.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_by_item(self, item_id: uuid.UUID) -> list[EscrowTransaction]:
        """Fetch all transactions for a listing, newest first."""
        result = await self._session.execute(
            select(EscrowTransaction)
            .where(EscrowTransaction.item_id == item_id)
            .order_by(EscrowTransaction.created_at.desc())
        )
        return list(result.scalars().all())

    async def resolve(
        self,
        transaction_id: uuid.UUID,
        expected: TransactionStatus,
        new_status: TransactionStatus,
    ) -> bool:
        """Move a held transaction to its terminal status in one statement."""
        result = await self._session.execute(
            update(EscrowTransaction)
            .where(
                EscrowTransaction.id == transaction_id,
                EscrowTransaction.status == expected.value,
            )
            .values(status=new_status.value, resolved_at=datetime.now(UTC))
            .execution_options(**_NO_SYNC)
        )
        return result.rowcount == 1

    async def sum_by_status(self, status: TransactionStatus) -> Decimal:
        """Total amount of transactions currently in `status`."""
        result = await self._session.execute(
            select(func.coalesce(func.sum(EscrowTransaction.amount), 0)).where(
                EscrowTransaction.status == status.value
            )
        )
        return Decimal(str(result.scalar_one()))


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        event_type: EventType,
        old_status: str | None,
        new_status: str,
        actor: str = "SYSTEM",
        metadata: dict | None = None,
    ) -> MarketEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = MarketEvent(
            entity_type=entity_type.value,
            entity_id=entity_id,
            event_type=event_type.value,
            old_status=old_status,
            new_status=new_status,
            actor=actor,
            metadata_json=metadata,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_entity(
        self,
        entity_type: EntityType,
        entity_id: uuid.UUID,
    ) -> list[MarketEvent]:
        """Fetch all events for an entity in chronological order."""
        result = await self._session.execute(
            select(MarketEvent)
            .where(
                MarketEvent.entity_type == entity_type.value,
                MarketEvent.entity_id == entity_id,
            )
            .order_by(MarketEvent.created_at.asc())
        )
        return list(result.scalars().all())


class NotificationRepository:
    """Data access for persisted in-app notifications."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, notification: Notification) -> Notification:
        """Insert a notification."""
        self._session.add(notification)
        await self._session.flush()
        return notification

    async def get_by_recipient(
        self,
        recipient_id: uuid.UUID,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Fetch a user's notifications, newest first."""
        query = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        result = await self._session.execute(
            query.order_by(Notification.created_at.desc())
        )
        return list(result.scalars().all())

    async def mark_all_read(self, recipient_id: uuid.UUID) -> int:
        """Mark every unread notification for a user as read. Returns the count."""
        result = await self._session.execute(
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.read.is_(False),
            )
            .values(read=True)
            .execution_options(**_NO_SYNC)
        )
        return result.rowcount
