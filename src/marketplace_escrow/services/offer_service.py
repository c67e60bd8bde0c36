"""Offer Negotiation Engine — price offers between a buyer and a seller.

    pending --accept-->   accepted   (seller)
    pending --reject-->   rejected   (seller)
    pending --withdraw--> withdrawn  (buyer)

Accepting an offer neither reserves the listing nor moves money. The buyer
pays afterwards through EscrowService.initiate_purchase, where the listing
reservation decides between competing accepted offers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from statemachine.exceptions import TransitionNotAllowed

from marketplace_escrow.domain.enums import (
    EntityType,
    EventType,
    ListingStatus,
    NotificationCategory,
    OfferStatus,
    PriceType,
)
from marketplace_escrow.domain.events import DomainEvent
from marketplace_escrow.domain.exceptions import (
    InvalidOfferStateError,
    ListingNotNegotiableError,
    ListingUnavailableError,
    OfferNotAcceptedError,
    OfferNotFoundError,
    SelfPurchaseError,
    UnauthorizedError,
)
from marketplace_escrow.domain.state_machine import OfferStateMachine, validate_transition
from marketplace_escrow.infrastructure.database.orm_models import Offer
from marketplace_escrow.infrastructure.database.repositories import (
    EventRepository,
    OfferRepository,
)
from marketplace_escrow.logging_config import get_logger
from marketplace_escrow.services.ledger import normalize_amount
from marketplace_escrow.services.listing_tracker import ListingStateTracker
from marketplace_escrow.services.notification_service import format_money, publish

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal

    from sqlalchemy.ext.asyncio import AsyncSession

    from marketplace_escrow.domain.events import NotificationSink

logger = get_logger(__name__)

_OFFER_EVENTS = {
    "accept": EventType.OFFER_ACCEPTED,
    "reject": EventType.OFFER_REJECTED,
    "withdraw": EventType.OFFER_WITHDRAWN,
}


class OfferService:
    """Manages the offer negotiation lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        listings: ListingStateTracker | None = None,
        notifier: NotificationSink | None = None,
    ) -> None:
        self._session = session
        self._listings = listings or ListingStateTracker(session)
        self._notifier = notifier
        self._offer_repo = OfferRepository(session)
        self._event_repo = EventRepository(session)

    # ------------------------------------------------------------------
    # Make
    # ------------------------------------------------------------------

    async def make_offer(
        self,
        listing_id: uuid.UUID,
        buyer_id: uuid.UUID,
        amount: Decimal | int | str,
    ) -> Offer:
        """Create a pending offer and notify the seller."""
        value = normalize_amount(amount)
        listing = await self._listings.get_listing(listing_id)

        if listing.price_type != PriceType.NEGOTIABLE:
            raise ListingNotNegotiableError(str(listing_id))
        if listing.status != ListingStatus.AVAILABLE:
            raise ListingUnavailableError(str(listing_id), listing.status)
        if listing.seller_id == buyer_id:
            raise SelfPurchaseError(str(buyer_id), str(listing_id))

        offer = await self._offer_repo.create(
            Offer(
                listing_id=listing.id,
                buyer_id=buyer_id,
                seller_id=listing.seller_id,
                amount=value,
                status=OfferStatus.PENDING.value,
            )
        )
        await self._event_repo.record(
            entity_type=EntityType.OFFER,
            entity_id=offer.id,
            event_type=EventType.OFFER_CREATED,
            old_status=None,
            new_status=OfferStatus.PENDING.value,
            actor=str(buyer_id),
            metadata={"listing_id": str(listing.id), "amount": str(value)},
        )
        await publish(
            self._notifier,
            DomainEvent(
                event_type=EventType.OFFER_CREATED,
                recipient_id=listing.seller_id,
                title=f"New Offer on {listing.title}",
                body=f"You received an offer of {format_money(value)}.",
                category=NotificationCategory.OFFER,
                payload={"offer_id": str(offer.id), "listing_id": str(listing.id)},
            ),
        )

        logger.info("offer.created", offer_id=offer.id, listing_id=listing_id, amount=value)
        return offer

    # ------------------------------------------------------------------
    # Respond
    # ------------------------------------------------------------------

    async def accept_offer(self, offer_id: uuid.UUID, acting_user_id: uuid.UUID) -> Offer:
        """Seller accepts. The buyer is told to proceed to payment."""
        offer = await self._get_offer_or_raise(offer_id)
        if offer.seller_id != acting_user_id:
            raise UnauthorizedError(str(acting_user_id), "accept this offer")

        offer = await self._transition(offer, "accept", acting_user_id)
        await publish(
            self._notifier,
            DomainEvent(
                event_type=EventType.OFFER_ACCEPTED,
                recipient_id=offer.buyer_id,
                title="Offer Accepted!",
                body=(
                    f"Your offer for {format_money(offer.amount)} has been accepted. "
                    "Proceed to payment."
                ),
                category=NotificationCategory.OFFER,
                payload={"offer_id": str(offer.id), "listing_id": str(offer.listing_id)},
            ),
        )
        return offer

    async def reject_offer(self, offer_id: uuid.UUID, acting_user_id: uuid.UUID) -> Offer:
        """Seller rejects. Stale offers on a reserved listing can still be rejected."""
        offer = await self._get_offer_or_raise(offer_id)
        if offer.seller_id != acting_user_id:
            raise UnauthorizedError(str(acting_user_id), "reject this offer")

        offer = await self._transition(offer, "reject", acting_user_id)
        await publish(
            self._notifier,
            DomainEvent(
                event_type=EventType.OFFER_REJECTED,
                recipient_id=offer.buyer_id,
                title="Offer Rejected",
                body="Unfortunately, your recent offer was not accepted.",
                category=NotificationCategory.OFFER,
                payload={"offer_id": str(offer.id), "listing_id": str(offer.listing_id)},
            ),
        )
        return offer

    async def withdraw_offer(self, offer_id: uuid.UUID, acting_user_id: uuid.UUID) -> Offer:
        """Buyer withdraws a pending offer."""
        offer = await self._get_offer_or_raise(offer_id)
        if offer.buyer_id != acting_user_id:
            raise UnauthorizedError(str(acting_user_id), "withdraw this offer")

        offer = await self._transition(offer, "withdraw", acting_user_id)
        await publish(
            self._notifier,
            DomainEvent(
                event_type=EventType.OFFER_WITHDRAWN,
                recipient_id=offer.seller_id,
                title="Offer Withdrawn",
                body=f"An offer of {format_money(offer.amount)} was withdrawn.",
                category=NotificationCategory.OFFER,
                payload={"offer_id": str(offer.id), "listing_id": str(offer.listing_id)},
            ),
        )
        return offer

    # ------------------------------------------------------------------
    # Payment hand-off (called by EscrowService)
    # ------------------------------------------------------------------

    async def get_payable_offer(
        self,
        offer_id: uuid.UUID,
        listing_id: uuid.UUID,
        buyer_id: uuid.UUID,
    ) -> Offer:
        """Return the offer if `buyer_id` may pay it for `listing_id` now."""
        offer = await self._get_offer_or_raise(offer_id)
        if offer.buyer_id != buyer_id:
            raise UnauthorizedError(str(buyer_id), "pay this offer")
        if offer.listing_id != listing_id:
            raise OfferNotAcceptedError(str(offer_id), "offer is for a different listing")
        if offer.status != OfferStatus.ACCEPTED:
            raise OfferNotAcceptedError(str(offer_id), f"status is {offer.status}")
        if offer.transaction_id is not None:
            raise OfferNotAcceptedError(str(offer_id), "offer has already been paid")
        return offer

    async def record_payment(self, offer_id: uuid.UUID, transaction_id: uuid.UUID) -> None:
        """Link the accepted offer to the escrow transaction that paid it."""
        if not await self._offer_repo.attach_transaction(offer_id, transaction_id):
            raise OfferNotAcceptedError(str(offer_id), "offer has already been paid")

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_offer(self, offer_id: uuid.UUID) -> Offer:
        return await self._get_offer_or_raise(offer_id)

    async def list_offers_for_listing(self, listing_id: uuid.UUID) -> list[Offer]:
        await self._listings.get_listing(listing_id)
        return await self._offer_repo.get_by_listing(listing_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_offer_or_raise(self, offer_id: uuid.UUID) -> Offer:
        offer = await self._offer_repo.get_by_id(offer_id)
        if offer is None:
            raise OfferNotFoundError(str(offer_id))
        return offer

    async def _transition(self, offer: Offer, event_name: str, actor: uuid.UUID) -> Offer:
        """Validate with the state machine, then compare-and-set the row."""
        old_status = offer.status
        try:
            new_status = OfferStatus(
                validate_transition(OfferStateMachine, old_status, event_name)
            )
        except TransitionNotAllowed as err:
            raise InvalidOfferStateError(str(offer.id), old_status, event_name) from err

        swapped = await self._offer_repo.compare_and_set_status(
            offer.id, expected=OfferStatus(old_status), new_status=new_status
        )
        if not swapped:
            current = await self._get_offer_or_raise(offer.id)
            raise InvalidOfferStateError(str(offer.id), current.status, event_name)

        await self._event_repo.record(
            entity_type=EntityType.OFFER,
            entity_id=offer.id,
            event_type=_OFFER_EVENTS[event_name],
            old_status=old_status,
            new_status=new_status.value,
            actor=str(actor),
        )
        logger.info(
            f"offer.{new_status.value}",
            offer_id=offer.id,
            listing_id=offer.listing_id,
            actor=actor,
        )
        return await self._get_offer_or_raise(offer.id)
