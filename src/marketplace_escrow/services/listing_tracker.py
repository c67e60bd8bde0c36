"""Listing State Tracker — owns each listing's lifecycle status.

reserve / finalize / release are atomic check-and-set operations. reserve is
the serialization point for purchases: of several concurrent attempts on one
listing, exactly one conditional UPDATE matches `status = 'available'`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from statemachine.exceptions import TransitionNotAllowed

from marketplace_escrow.domain.enums import (
    EntityType,
    EventType,
    ListingStatus,
    PriceType,
)
from marketplace_escrow.domain.exceptions import (
    InvalidTransitionError,
    ListingNotFoundError,
    ListingUnavailableError,
    NotAvailableError,
    PriceMismatchError,
    UnauthorizedError,
)
from marketplace_escrow.domain.state_machine import ListingStateMachine, validate_transition
from marketplace_escrow.infrastructure.database.orm_models import Listing
from marketplace_escrow.infrastructure.database.repositories import (
    EventRepository,
    ListingRepository,
)
from marketplace_escrow.logging_config import get_logger
from marketplace_escrow.services.ledger import normalize_amount

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

_TRANSITION_EVENTS = {
    "reserve": EventType.LISTING_RESERVED,
    "finalize": EventType.LISTING_SOLD,
    "release": EventType.LISTING_RELEASED,
}


class ListingStateTracker:
    """Atomic status transitions for listings."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._listing_repo = ListingRepository(session)
        self._event_repo = EventRepository(session)

    # ------------------------------------------------------------------
    # Posting and editing
    # ------------------------------------------------------------------

    async def post_listing(
        self,
        seller_id: uuid.UUID,
        title: str,
        price: Decimal | int | str,
        price_type: PriceType = PriceType.FIXED,
        description: str | None = None,
    ) -> Listing:
        """Create a listing in `available`."""
        listing = await self._listing_repo.create(
            Listing(
                seller_id=seller_id,
                title=title,
                description=description,
                price=normalize_amount(price),
                price_type=PriceType(price_type).value,
                status=ListingStatus.AVAILABLE.value,
            )
        )
        await self._event_repo.record(
            entity_type=EntityType.LISTING,
            entity_id=listing.id,
            event_type=EventType.LISTING_POSTED,
            old_status=None,
            new_status=ListingStatus.AVAILABLE.value,
            actor=str(seller_id),
            metadata={"price": str(listing.price), "price_type": listing.price_type},
        )
        logger.info("listing.posted", listing_id=listing.id, price=listing.price)
        return listing

    async def edit_listing(
        self,
        listing_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        title: str | None = None,
        description: str | None = None,
        price: Decimal | int | str | None = None,
        price_type: PriceType | None = None,
    ) -> Listing:
        """Change descriptive fields. Seller only, and only while available.

        A pending or sold listing has a transaction in flight or completed
        against its current terms, so it is frozen.
        """
        listing = await self.get_listing(listing_id)
        if listing.seller_id != acting_user_id:
            raise UnauthorizedError(str(acting_user_id), "edit this listing")
        if listing.status != ListingStatus.AVAILABLE:
            raise ListingUnavailableError(str(listing_id), listing.status)

        changes: dict[str, object] = {}
        if title is not None:
            changes["title"] = title
        if description is not None:
            changes["description"] = description
        if price is not None:
            changes["price"] = normalize_amount(price)
        if price_type is not None:
            changes["price_type"] = PriceType(price_type).value
        if not changes:
            return listing

        if not await self._listing_repo.update_details(listing_id, **changes):
            current = await self.get_listing(listing_id)
            logger.info(
                "listing.edit_lost_race", listing_id=listing_id, status=current.status
            )
            raise ListingUnavailableError(str(listing_id), current.status)

        listing = await self.get_listing(listing_id)
        await self._event_repo.record(
            entity_type=EntityType.LISTING,
            entity_id=listing.id,
            event_type=EventType.LISTING_EDITED,
            old_status=listing.status,
            new_status=listing.status,
            actor=str(acting_user_id),
            metadata={key: str(value) for key, value in changes.items()},
        )
        logger.info("listing.edited", listing_id=listing_id, fields=sorted(changes))
        return listing

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def reserve(
        self,
        listing_id: uuid.UUID,
        actor: str = "SYSTEM",
        *,
        price: Decimal | None = None,
        price_type: PriceType | None = None,
    ) -> Listing:
        """available -> pending. Raises NotAvailableError if not available.

        `price` and `price_type` pin the terms the buyer agreed to. If the
        seller edited them in the meantime the reservation is refused with
        PriceMismatchError and the listing stays available.
        """
        terms = {}
        if price is not None:
            terms["price"] = price
        if price_type is not None:
            terms["price_type"] = PriceType(price_type).value
        return await self._transition(listing_id, "reserve", actor, terms)

    async def finalize(self, listing_id: uuid.UUID, actor: str = "SYSTEM") -> Listing:
        """pending -> sold. Raises InvalidTransitionError if not pending."""
        return await self._transition(listing_id, "finalize", actor)

    async def release(self, listing_id: uuid.UUID, actor: str = "SYSTEM") -> Listing:
        """pending -> available. Raises InvalidTransitionError if not pending."""
        return await self._transition(listing_id, "release", actor)

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_listing(self, listing_id: uuid.UUID) -> Listing:
        """Get a listing or raise."""
        listing = await self._listing_repo.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(str(listing_id))
        return listing

    async def get_status(self, listing_id: uuid.UUID) -> dict:
        """Get listing status with allowed events."""
        listing = await self.get_listing(listing_id)
        sm = ListingStateMachine(listing.status)
        return {
            "listing_id": str(listing.id),
            "status": listing.status,
            "allowed_events": sm.get_allowed_events(),
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _transition(
        self,
        listing_id: uuid.UUID,
        event_name: str,
        actor: str,
        terms: dict[str, object] | None = None,
    ) -> Listing:
        listing = await self.get_listing(listing_id)
        old_status = listing.status

        try:
            new_status = ListingStatus(
                validate_transition(ListingStateMachine, old_status, event_name)
            )
        except TransitionNotAllowed as err:
            raise self._rejection(listing_id, old_status, event_name) from err

        swapped = await self._listing_repo.compare_and_set_status(
            listing_id,
            expected=ListingStatus(old_status),
            new_status=new_status,
            **(terms or {}),
        )
        if not swapped:
            current = await self.get_listing(listing_id)
            if current.status == old_status and terms:
                logger.info(
                    "listing.terms_changed",
                    listing_id=listing_id,
                    price=current.price,
                    price_type=current.price_type,
                )
                raise PriceMismatchError(
                    f"{current.price} ({current.price_type})",
                    f"{terms.get('price', current.price)} "
                    f"({terms.get('price_type', current.price_type)})",
                )
            logger.info(
                "listing.transition_lost_race",
                listing_id=listing_id,
                event=event_name,
                status=current.status,
            )
            raise self._rejection(listing_id, current.status, event_name)

        await self._event_repo.record(
            entity_type=EntityType.LISTING,
            entity_id=listing_id,
            event_type=_TRANSITION_EVENTS[event_name],
            old_status=old_status,
            new_status=new_status.value,
            actor=actor,
        )
        logger.info(
            f"listing.{event_name}",
            listing_id=listing_id,
            old_status=old_status,
            new_status=new_status.value,
        )
        return await self.get_listing(listing_id)

    @staticmethod
    def _rejection(listing_id: uuid.UUID, status: str, event_name: str) -> Exception:
        if event_name == "reserve":
            return NotAvailableError(str(listing_id), status)
        return InvalidTransitionError(str(listing_id), status, event_name)
