"""Shared test fixtures for the marketplace escrow test suite.

Provides:
    - A fresh SQLite database (file-backed, via aiosqlite) per test
    - Sessions and a session factory for concurrency scenarios
    - A recording NotificationSink
    - Factory helpers for wallets and listings
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from marketplace_escrow.domain.enums import PriceType
from marketplace_escrow.infrastructure.database.engine import build_session_factory
from marketplace_escrow.infrastructure.database.orm_models import Base
from marketplace_escrow.services.ledger import LedgerService
from marketplace_escrow.services.listing_tracker import ListingStateTracker

# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path):
    """A throwaway database with every table created."""
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as db_session:
        yield db_session


# ---------------------------------------------------------------------------
# Notification Fixtures
# ---------------------------------------------------------------------------


class RecordingSink:
    """NotificationSink that keeps every event it is given."""

    def __init__(self) -> None:
        self.events = []

    async def emit(self, event) -> None:  # noqa: ANN001
        self.events.append(event)

    def types_for(self, recipient_id: uuid.UUID) -> list[str]:
        return [e.event_type.value for e in self.events if e.recipient_id == recipient_id]


class FailingSink:
    """NotificationSink whose delivery always blows up."""

    async def emit(self, event) -> None:  # noqa: ANN001
        raise ConnectionError("push gateway unreachable")


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


# ---------------------------------------------------------------------------
# Data Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_wallet(session):
    """Open a wallet for a new user and return the user id."""

    async def _make(balance: Decimal | int | str = 0) -> uuid.UUID:
        user_id = uuid.uuid4()
        await LedgerService(session).open_wallet(user_id, balance)
        return user_id

    return _make


@pytest.fixture
def make_listing(session):
    """Post a listing for `seller_id` and return it."""

    async def _make(
        seller_id: uuid.UUID,
        price: Decimal | int | str = 1000,
        price_type: PriceType = PriceType.FIXED,
        title: str = "Road bike, 54cm",
    ):
        return await ListingStateTracker(session).post_listing(
            seller_id=seller_id,
            title=title,
            price=price,
            price_type=price_type,
        )

    return _make
