"""Escrow Service — purchase, hold, and release/refund of buyer funds.

Coordinates between:
    - ListingStateTracker (reservation is the concurrency gate)
    - LedgerService (debit buyer, credit seller or buyer)
    - OfferService (negotiated buys pay an accepted offer)
    - Transaction state machine (a held transaction resolves exactly once)
    - Notification sink and the audit event log

Transaction lifecycle:
    (none) --initiate_purchase--> escrow_held --confirm_delivery--> released
                                  escrow_held --refund-----------> refunded
                                  escrow_held --cancel_purchase--> cancelled

Both REST routes and tests call into this service, ensuring a single source
of truth for the purchase rules.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from statemachine.exceptions import TransitionNotAllowed

from marketplace_escrow.domain.enums import (
    EntityType,
    EventType,
    LedgerEntryType,
    NotificationCategory,
    TransactionStatus,
)
from marketplace_escrow.domain.events import DomainEvent
from marketplace_escrow.domain.exceptions import (
    InvalidTransactionStateError,
    ListingUnavailableError,
    MarketplaceError,
    NotAvailableError,
    PriceMismatchError,
    ReconciliationError,
    SelfPurchaseError,
    TransactionNotFoundError,
    UnauthorizedError,
)
from marketplace_escrow.domain.state_machine import (
    TransactionStateMachine,
    validate_transition,
)
from marketplace_escrow.infrastructure.database.orm_models import EscrowTransaction, Listing
from marketplace_escrow.infrastructure.database.repositories import (
    EventRepository,
    TransactionRepository,
    WalletRepository,
)
from marketplace_escrow.logging_config import get_logger
from marketplace_escrow.services.ledger import LedgerService, normalize_amount
from marketplace_escrow.services.listing_tracker import ListingStateTracker
from marketplace_escrow.services.notification_service import format_money, publish
from marketplace_escrow.services.offer_service import OfferService

if TYPE_CHECKING:
    import uuid
    from collections.abc import Awaitable, Callable
    from decimal import Decimal

    from sqlalchemy.ext.asyncio import AsyncSession

    from marketplace_escrow.domain.events import NotificationSink

logger = get_logger(__name__)


class EscrowService:
    """Orchestrates purchase -> hold -> release/refund."""

    def __init__(
        self,
        session: AsyncSession,
        ledger: LedgerService | None = None,
        listings: ListingStateTracker | None = None,
        offers: OfferService | None = None,
        notifier: NotificationSink | None = None,
    ) -> None:
        self._session = session
        self._ledger = ledger or LedgerService(session)
        self._listings = listings or ListingStateTracker(session)
        self._offers = offers or OfferService(session, listings=self._listings)
        self._notifier = notifier
        self._tx_repo = TransactionRepository(session)
        self._event_repo = EventRepository(session)
        self._wallet_repo = WalletRepository(session)

    # ------------------------------------------------------------------
    # Purchase
    # ------------------------------------------------------------------

    async def initiate_purchase(
        self,
        listing_id: uuid.UUID,
        buyer_id: uuid.UUID,
        amount: Decimal | int | str | None = None,
        offer_id: uuid.UUID | None = None,
    ) -> EscrowTransaction:
        """Reserve the listing, debit the buyer, and hold the funds.

        A fixed-price buy passes `amount`, which must equal the listing price.
        A negotiated buy passes the `offer_id` of an accepted offer; its amount
        is charged (an explicit `amount` must then match it).

        Order matters: the reservation happens before any money moves, and a
        failed debit releases the reservation before this method returns.
        """
        listing = await self._listings.get_listing(listing_id)
        if listing.seller_id == buyer_id:
            raise SelfPurchaseError(str(buyer_id), str(listing_id))

        if offer_id is not None:
            offer = await self._offers.get_payable_offer(offer_id, listing_id, buyer_id)
            price = offer.amount
            if amount is not None and normalize_amount(amount) != price:
                raise PriceMismatchError(str(price), str(amount))
        else:
            if amount is None:
                raise PriceMismatchError(str(listing.price), "nothing")
            price = normalize_amount(amount)
            if price != listing.price:
                raise PriceMismatchError(str(listing.price), str(price))

        # Step 1: reservation is the serialization point. It only lands on the
        # terms checked above; a concurrent edit turns it into PriceMismatch.
        terms = {"price_type": listing.price_type}
        if offer_id is None:
            terms["price"] = listing.price
        try:
            await self._listings.reserve(listing_id, actor=str(buyer_id), **terms)
        except NotAvailableError as err:
            logger.info(
                "escrow.purchase_rejected",
                listing_id=listing_id,
                buyer_id=buyer_id,
                status=err.current_status,
            )
            raise ListingUnavailableError(str(listing_id), err.current_status) from err

        # Step 2: debit; compensate the reservation on any typed failure.
        try:
            await self._ledger.debit(
                buyer_id, price, reference_id=listing_id,
                entry_type=LedgerEntryType.ESCROW_DEBIT,
            )
        except MarketplaceError as err:
            await self._listings.release(listing_id, actor="SYSTEM")
            logger.info(
                "escrow.purchase_rolled_back",
                listing_id=listing_id,
                buyer_id=buyer_id,
                reason=err.code,
            )
            raise

        # Step 3: record the hold.
        transaction = await self._tx_repo.create(
            EscrowTransaction(
                buyer_id=buyer_id,
                seller_id=listing.seller_id,
                item_id=listing.id,
                offer_id=offer_id,
                amount=price,
                status=TransactionStatus.ESCROW_HELD.value,
            )
        )
        if offer_id is not None:
            await self._offers.record_payment(offer_id, transaction.id)

        await self._event_repo.record(
            entity_type=EntityType.TRANSACTION,
            entity_id=transaction.id,
            event_type=EventType.PURCHASE_INITIATED,
            old_status=None,
            new_status=TransactionStatus.ESCROW_HELD.value,
            actor=str(buyer_id),
            metadata={
                "listing_id": str(listing.id),
                "amount": str(price),
                "offer_id": str(offer_id) if offer_id else None,
            },
        )

        # Step 4: tell the seller.
        await publish(
            self._notifier,
            DomainEvent(
                event_type=EventType.PURCHASE_INITIATED,
                recipient_id=listing.seller_id,
                title=f"{listing.title} has a buyer",
                body=f"{format_money(price)} is held in escrow until delivery is confirmed.",
                category=NotificationCategory.TRANSACTION,
                payload={"transaction_id": str(transaction.id), "listing_id": str(listing.id)},
            ),
        )

        logger.info(
            "escrow.purchase_initiated",
            transaction_id=transaction.id,
            listing_id=listing_id,
            buyer_id=buyer_id,
            amount=price,
            negotiated=offer_id is not None,
        )
        return transaction

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def confirm_delivery(
        self,
        transaction_id: uuid.UUID,
        acting_user_id: uuid.UUID,
    ) -> EscrowTransaction:
        """Buyer confirms receipt: pay the seller and mark the listing sold."""
        transaction = await self._get_transaction_or_raise(transaction_id)
        if transaction.buyer_id != acting_user_id:
            raise UnauthorizedError(str(acting_user_id), "confirm delivery")

        transaction = await self._resolve(
            transaction,
            event_name="confirm_delivery",
            payee_id=transaction.seller_id,
            entry_type=LedgerEntryType.ESCROW_RELEASE,
            finish_listing=self._listings.finalize,
            actor=str(acting_user_id),
            event_type=EventType.PAYMENT_RELEASED,
        )
        await publish(
            self._notifier,
            DomainEvent(
                event_type=EventType.PAYMENT_RELEASED,
                recipient_id=transaction.seller_id,
                title="Payment Released",
                body=f"{format_money(transaction.amount)} has been released to your wallet.",
                category=NotificationCategory.TRANSACTION,
                payload={"transaction_id": str(transaction.id)},
            ),
        )
        return transaction

    async def refund(
        self,
        transaction_id: uuid.UUID,
        actor: str = "SYSTEM",
        reason: str | None = None,
    ) -> EscrowTransaction:
        """Administrative/dispute path: return the funds and relist the item."""
        transaction = await self._get_transaction_or_raise(transaction_id)
        transaction = await self._resolve(
            transaction,
            event_name="refund",
            payee_id=transaction.buyer_id,
            entry_type=LedgerEntryType.ESCROW_REFUND,
            finish_listing=self._listings.release,
            actor=actor,
            event_type=EventType.PAYMENT_REFUNDED,
            metadata={"reason": reason} if reason else None,
        )
        await publish(
            self._notifier,
            DomainEvent(
                event_type=EventType.PAYMENT_REFUNDED,
                recipient_id=transaction.buyer_id,
                title="Payment Refunded",
                body=f"{format_money(transaction.amount)} has been returned to your wallet.",
                category=NotificationCategory.TRANSACTION,
                payload={"transaction_id": str(transaction.id), "reason": reason},
            ),
        )
        return transaction

    async def cancel_purchase(
        self,
        transaction_id: uuid.UUID,
        acting_user_id: uuid.UUID,
    ) -> EscrowTransaction:
        """Buyer or seller calls the deal off before delivery."""
        transaction = await self._get_transaction_or_raise(transaction_id)
        if acting_user_id not in (transaction.buyer_id, transaction.seller_id):
            raise UnauthorizedError(str(acting_user_id), "cancel this purchase")

        transaction = await self._resolve(
            transaction,
            event_name="cancel_purchase",
            payee_id=transaction.buyer_id,
            entry_type=LedgerEntryType.ESCROW_REFUND,
            finish_listing=self._listings.release,
            actor=str(acting_user_id),
            event_type=EventType.PURCHASE_CANCELLED,
        )
        counterparty = (
            transaction.seller_id
            if acting_user_id == transaction.buyer_id
            else transaction.buyer_id
        )
        await publish(
            self._notifier,
            DomainEvent(
                event_type=EventType.PURCHASE_CANCELLED,
                recipient_id=counterparty,
                title="Purchase Cancelled",
                body=f"The purchase for {format_money(transaction.amount)} was cancelled.",
                category=NotificationCategory.TRANSACTION,
                payload={"transaction_id": str(transaction.id)},
            ),
        )
        return transaction

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_transaction(self, transaction_id: uuid.UUID) -> EscrowTransaction:
        """Get a transaction or raise."""
        return await self._get_transaction_or_raise(transaction_id)

    async def get_status(self, transaction_id: uuid.UUID) -> dict:
        """Get transaction status with allowed events."""
        transaction = await self._get_transaction_or_raise(transaction_id)
        sm = TransactionStateMachine(transaction.status)
        return {
            "transaction_id": str(transaction.id),
            "status": transaction.status,
            "amount": transaction.amount,
            "allowed_events": sm.get_allowed_events(),
        }

    async def list_transactions_for_user(self, user_id: uuid.UUID) -> list[EscrowTransaction]:
        return await self._tx_repo.get_by_user(user_id)

    async def get_events(self, transaction_id: uuid.UUID) -> list:
        """Get audit trail."""
        await self._get_transaction_or_raise(transaction_id)
        return await self._event_repo.get_by_entity(EntityType.TRANSACTION, transaction_id)

    async def money_supply(self) -> Decimal:
        """Sum of all wallet balances plus everything held in escrow.

        Only deposits and withdrawals change this figure.
        """
        wallets = await self._wallet_repo.sum_balances()
        held = await self._tx_repo.sum_by_status(TransactionStatus.ESCROW_HELD)
        return wallets + held

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_transaction_or_raise(
        self, transaction_id: uuid.UUID
    ) -> EscrowTransaction:
        transaction = await self._tx_repo.get_by_id(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(str(transaction_id))
        return transaction

    async def _resolve(
        self,
        transaction: EscrowTransaction,
        event_name: str,
        payee_id: uuid.UUID,
        entry_type: LedgerEntryType,
        finish_listing: Callable[..., Awaitable[Listing]],
        actor: str,
        event_type: EventType,
        metadata: dict | None = None,
    ) -> EscrowTransaction:
        """Move a held transaction to its terminal state and settle it.

        The status compare-and-set comes first, so of two concurrent
        resolutions only one ever reaches the ledger credit. Anything failing
        after that point has already moved state and is a ReconciliationError.
        """
        old_status = transaction.status
        try:
            new_status = TransactionStatus(
                validate_transition(TransactionStateMachine, old_status, event_name)
            )
        except TransitionNotAllowed as err:
            raise InvalidTransactionStateError(
                str(transaction.id), old_status, event_name
            ) from err

        if not await self._tx_repo.resolve(
            transaction.id,
            expected=TransactionStatus(old_status),
            new_status=new_status,
        ):
            current = await self._get_transaction_or_raise(transaction.id)
            raise InvalidTransactionStateError(str(transaction.id), current.status, event_name)

        step = "ledger_credit"
        try:
            await self._ledger.credit(
                payee_id, transaction.amount,
                reference_id=transaction.id, entry_type=entry_type,
            )
            step = "listing_status"
            await finish_listing(transaction.item_id, actor=actor)
        except MarketplaceError as err:
            logger.critical(
                "escrow.resolution_inconsistent",
                transaction_id=transaction.id,
                step=step,
                error=err.message,
                reconciliation_required=True,
            )
            raise ReconciliationError(str(transaction.id), step, err.message) from err

        await self._event_repo.record(
            entity_type=EntityType.TRANSACTION,
            entity_id=transaction.id,
            event_type=event_type,
            old_status=old_status,
            new_status=new_status.value,
            actor=actor,
            metadata=metadata,
        )
        logger.info(
            f"escrow.{new_status.value}",
            transaction_id=transaction.id,
            payee_id=payee_id,
            amount=transaction.amount,
        )
        return await self._get_transaction_or_raise(transaction.id)
