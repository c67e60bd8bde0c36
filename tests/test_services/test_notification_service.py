"""Tests for notification sinks and the in-app inbox."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from marketplace_escrow.config import get_settings
from marketplace_escrow.domain.enums import EventType, NotificationCategory, PriceType
from marketplace_escrow.domain.events import DomainEvent, NotificationSink
from marketplace_escrow.services.ledger import LedgerService
from marketplace_escrow.services.notification_service import (
    DatabaseNotificationSink,
    LoggingNotificationSink,
    NotificationService,
    build_notification_sink,
    format_money,
    publish,
)
from marketplace_escrow.services.offer_service import OfferService


def _event(recipient_id: uuid.UUID) -> DomainEvent:
    return DomainEvent(
        event_type=EventType.OFFER_CREATED,
        recipient_id=recipient_id,
        title="New Offer on Guitar",
        body="You received an offer of NPR 250.00.",
        category=NotificationCategory.OFFER,
        payload={"offer_id": "abc"},
    )


class TestSinks:
    def test_sinks_satisfy_protocol(self, session) -> None:
        assert isinstance(LoggingNotificationSink(), NotificationSink)
        assert isinstance(DatabaseNotificationSink(session), NotificationSink)

    def test_factory_follows_settings(self, session, monkeypatch) -> None:
        monkeypatch.setattr(get_settings(), "notification_sink", "log")
        assert isinstance(build_notification_sink(session), LoggingNotificationSink)

        monkeypatch.setattr(get_settings(), "notification_sink", "database")
        assert isinstance(build_notification_sink(session), DatabaseNotificationSink)

    @pytest.mark.asyncio
    async def test_logging_sink_emits(self) -> None:
        await LoggingNotificationSink().emit(_event(uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_publish_swallows_sink_failure(self, failing_sink) -> None:
        await publish(failing_sink, _event(uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_publish_without_sink_is_a_no_op(self) -> None:
        await publish(None, _event(uuid.uuid4()))

    def test_format_money(self) -> None:
        assert format_money(1234.5) == "NPR 1,234.50"


class TestInbox:
    @pytest.mark.asyncio
    async def test_database_sink_persists_and_marks_read(self, session) -> None:
        recipient = uuid.uuid4()
        sink = DatabaseNotificationSink(session)
        await sink.emit(_event(recipient))
        await sink.emit(_event(recipient))
        await sink.emit(_event(uuid.uuid4()))

        inbox = NotificationService(session)
        items = await inbox.list_for_user(recipient)
        assert len(items) == 2
        assert items[0].title == "New Offer on Guitar"
        assert items[0].payload == {"offer_id": "abc"}
        assert not items[0].read

        assert await inbox.mark_all_as_read(recipient) == 2
        assert await inbox.list_for_user(recipient, unread_only=True) == []
        assert await inbox.mark_all_as_read(recipient) == 0

    @pytest.mark.asyncio
    async def test_failed_insert_keeps_business_work(self, session_factory) -> None:
        user_id = uuid.uuid4()
        async with session_factory() as session:
            await LedgerService(session).open_wallet(user_id, 100)

            # A null title violates the NOT NULL constraint at flush time.
            broken = DomainEvent(
                event_type=EventType.OFFER_CREATED,
                recipient_id=user_id,
                title=None,
            )
            await publish(DatabaseNotificationSink(session), broken)
            await session.commit()

        async with session_factory() as check:
            assert await LedgerService(check).get_balance(user_id) == Decimal("100.00")
            assert await NotificationService(check).list_for_user(user_id) == []

    @pytest.mark.asyncio
    async def test_offer_flow_fills_both_inboxes(self, session, make_listing) -> None:
        seller = uuid.uuid4()
        buyer = uuid.uuid4()
        listing = await make_listing(seller, price=300, price_type=PriceType.NEGOTIABLE)
        offers = OfferService(session, notifier=DatabaseNotificationSink(session))

        offer = await offers.make_offer(listing.id, buyer, 250)
        await offers.accept_offer(offer.id, seller)

        inbox = NotificationService(session)
        seller_items = await inbox.list_for_user(seller)
        buyer_items = await inbox.list_for_user(buyer)
        assert [n.event_type for n in seller_items] == ["OFFER_CREATED"]
        assert [n.event_type for n in buyer_items] == ["OFFER_ACCEPTED"]
        assert buyer_items[0].category == "offer"
