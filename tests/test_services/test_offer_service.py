"""Tests for OfferService: making and responding to offers."""

from __future__ import annotations

import uuid

import pytest

from marketplace_escrow.domain.enums import OfferStatus, PriceType
from marketplace_escrow.domain.exceptions import (
    InvalidAmountError,
    InvalidOfferStateError,
    ListingNotNegotiableError,
    ListingUnavailableError,
    OfferNotAcceptedError,
    OfferNotFoundError,
    SelfPurchaseError,
    UnauthorizedError,
)
from marketplace_escrow.services.listing_tracker import ListingStateTracker
from marketplace_escrow.services.offer_service import OfferService


@pytest.fixture
def seller() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def buyer() -> uuid.UUID:
    return uuid.uuid4()


class TestMakeOffer:
    @pytest.mark.asyncio
    async def test_offer_is_pending_and_seller_notified(
        self, session, sink, make_listing, seller, buyer
    ) -> None:
        listing = await make_listing(seller, price=1000, price_type=PriceType.NEGOTIABLE)

        offer = await OfferService(session, notifier=sink).make_offer(listing.id, buyer, 800)

        assert offer.status == OfferStatus.PENDING
        assert offer.seller_id == seller
        assert sink.types_for(seller) == ["OFFER_CREATED"]
        assert "800.00" in sink.events[0].body

    @pytest.mark.asyncio
    async def test_fixed_price_listing_refuses_offers(
        self, session, sink, make_listing, seller, buyer
    ) -> None:
        listing = await make_listing(seller, price_type=PriceType.FIXED)
        with pytest.raises(ListingNotNegotiableError):
            await OfferService(session, notifier=sink).make_offer(listing.id, buyer, 800)
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_pending_listing_refuses_offers(
        self, session, make_listing, seller, buyer
    ) -> None:
        listing = await make_listing(seller, price_type=PriceType.NEGOTIABLE)
        await ListingStateTracker(session).reserve(listing.id)

        with pytest.raises(ListingUnavailableError):
            await OfferService(session).make_offer(listing.id, buyer, 800)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, "1.001"])
    async def test_invalid_amount(self, session, make_listing, seller, buyer, amount) -> None:
        listing = await make_listing(seller, price_type=PriceType.NEGOTIABLE)
        with pytest.raises(InvalidAmountError):
            await OfferService(session).make_offer(listing.id, buyer, amount)

    @pytest.mark.asyncio
    async def test_seller_cannot_bid_on_own_listing(
        self, session, make_listing, seller
    ) -> None:
        listing = await make_listing(seller, price_type=PriceType.NEGOTIABLE)
        with pytest.raises(SelfPurchaseError):
            await OfferService(session).make_offer(listing.id, seller, 800)


class TestRespond:
    @pytest.fixture
    def offer_for(self, session, make_listing, seller, buyer):
        async def _make():
            listing = await make_listing(seller, price=1000, price_type=PriceType.NEGOTIABLE)
            return await OfferService(session).make_offer(listing.id, buyer, 800)

        return _make

    @pytest.mark.asyncio
    async def test_accept_notifies_buyer(self, session, sink, offer_for, seller, buyer) -> None:
        offer = await offer_for()
        accepted = await OfferService(session, notifier=sink).accept_offer(offer.id, seller)

        assert accepted.status == OfferStatus.ACCEPTED
        assert sink.types_for(buyer) == ["OFFER_ACCEPTED"]
        assert "Proceed to payment" in sink.events[0].body

    @pytest.mark.asyncio
    async def test_accept_does_not_reserve_listing(
        self, session, offer_for, seller
    ) -> None:
        offer = await offer_for()
        await OfferService(session).accept_offer(offer.id, seller)

        listing = await ListingStateTracker(session).get_listing(offer.listing_id)
        assert listing.status == "available"

    @pytest.mark.asyncio
    async def test_reject_notifies_buyer(self, session, sink, offer_for, seller, buyer) -> None:
        offer = await offer_for()
        rejected = await OfferService(session, notifier=sink).reject_offer(offer.id, seller)

        assert rejected.status == OfferStatus.REJECTED
        assert sink.types_for(buyer) == ["OFFER_REJECTED"]

    @pytest.mark.asyncio
    async def test_buyer_withdraws(self, session, offer_for, buyer) -> None:
        offer = await offer_for()
        withdrawn = await OfferService(session).withdraw_offer(offer.id, buyer)
        assert withdrawn.status == OfferStatus.WITHDRAWN

    @pytest.mark.asyncio
    async def test_buyer_cannot_accept(self, session, offer_for, buyer) -> None:
        offer = await offer_for()
        with pytest.raises(UnauthorizedError):
            await OfferService(session).accept_offer(offer.id, buyer)

    @pytest.mark.asyncio
    async def test_seller_cannot_withdraw(self, session, offer_for, seller) -> None:
        offer = await offer_for()
        with pytest.raises(UnauthorizedError):
            await OfferService(session).withdraw_offer(offer.id, seller)

    @pytest.mark.asyncio
    async def test_accepting_twice_is_invalid(self, session, sink, offer_for, seller) -> None:
        offer = await offer_for()
        svc = OfferService(session, notifier=sink)
        await svc.accept_offer(offer.id, seller)

        with pytest.raises(InvalidOfferStateError):
            await svc.accept_offer(offer.id, seller)
        assert len(sink.events) == 1

    @pytest.mark.asyncio
    async def test_withdrawn_offer_cannot_be_accepted(
        self, session, offer_for, seller, buyer
    ) -> None:
        offer = await offer_for()
        svc = OfferService(session)
        await svc.withdraw_offer(offer.id, buyer)

        with pytest.raises(InvalidOfferStateError):
            await svc.accept_offer(offer.id, seller)

    @pytest.mark.asyncio
    async def test_unknown_offer(self, session, seller) -> None:
        with pytest.raises(OfferNotFoundError):
            await OfferService(session).accept_offer(uuid.uuid4(), seller)

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_undo_accept(
        self, session, failing_sink, offer_for, seller
    ) -> None:
        offer = await offer_for()
        accepted = await OfferService(session, notifier=failing_sink).accept_offer(
            offer.id, seller
        )
        assert accepted.status == OfferStatus.ACCEPTED


class TestPayableOffer:
    @pytest.mark.asyncio
    async def test_pending_offer_is_not_payable(
        self, session, make_listing, seller, buyer
    ) -> None:
        listing = await make_listing(seller, price_type=PriceType.NEGOTIABLE)
        svc = OfferService(session)
        offer = await svc.make_offer(listing.id, buyer, 800)

        with pytest.raises(OfferNotAcceptedError):
            await svc.get_payable_offer(offer.id, listing.id, buyer)

    @pytest.mark.asyncio
    async def test_someone_elses_offer_is_not_payable(
        self, session, make_listing, seller, buyer
    ) -> None:
        listing = await make_listing(seller, price_type=PriceType.NEGOTIABLE)
        svc = OfferService(session)
        offer = await svc.make_offer(listing.id, buyer, 800)
        await svc.accept_offer(offer.id, seller)

        with pytest.raises(UnauthorizedError):
            await svc.get_payable_offer(offer.id, listing.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_lists_offers_for_listing(self, session, make_listing, seller) -> None:
        listing = await make_listing(seller, price_type=PriceType.NEGOTIABLE)
        svc = OfferService(session)
        await svc.make_offer(listing.id, uuid.uuid4(), 700)
        await svc.make_offer(listing.id, uuid.uuid4(), 750)

        offers = await svc.list_offers_for_listing(listing.id)
        assert len(offers) == 2
