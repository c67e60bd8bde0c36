#!/usr/bin/env python3
"""Marketplace Escrow — End-to-End Simulation.

Simulates three scenarios with SellerBot and BuyerBot users:

    Scenario 1: Buy Now
        - Seller lists a fixed-price bike for 1000
        - Buyer (balance 1500) buys it -> funds held in escrow
        - Buyer confirms delivery -> seller paid, listing sold

    Scenario 2: Negotiation
        - Seller lists a negotiable guitar for 1000
        - Two buyers make offers; the seller rejects one and accepts the other
        - The accepted buyer pays the offer amount, then confirms delivery

    Scenario 3: Race and Refund
        - Two buyers try to buy the same camera; only one reservation wins
        - The winner's purchase is refunded -> camera is available again

Every scenario ends by checking that the money supply (all wallet balances
plus everything held in escrow) only changed through deposits.

Usage:
    # Option A: With Docker (PostgreSQL):
    docker compose up -d
    uv run python simulation.py

    # Option B: Without Docker (SQLite in-memory):
    uv run python simulation.py --sqlite

    # Run a specific scenario:
    uv run python simulation.py --sqlite --scenario 2
"""

from __future__ import annotations

import argparse
import asyncio
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import create_async_engine

from marketplace_escrow.domain.enums import PriceType
from marketplace_escrow.domain.exceptions import MarketplaceError
from marketplace_escrow.infrastructure.database.engine import (
    _get_session_factory,
    build_session_factory,
    close_db,
    init_db,
)
from marketplace_escrow.infrastructure.database.orm_models import Base
from marketplace_escrow.logging_config import get_logger, setup_logging
from marketplace_escrow.services.escrow_service import EscrowService
from marketplace_escrow.services.ledger import LedgerService
from marketplace_escrow.services.listing_tracker import ListingStateTracker
from marketplace_escrow.services.notification_service import LoggingNotificationSink
from marketplace_escrow.services.offer_service import OfferService

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

# Module-level state
_sqlite_engine = None
_sqlite_session_factory = None
_sink = LoggingNotificationSink()


async def init_database(use_sqlite: bool = False) -> None:
    """Initialize database engine and create tables."""
    global _sqlite_engine, _sqlite_session_factory

    if use_sqlite:
        _sqlite_engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
        _sqlite_session_factory = build_session_factory(_sqlite_engine)
        async with _sqlite_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.sqlite_initialized")
    else:
        await init_db()


def get_session():
    """Get a fresh database session."""
    if _sqlite_session_factory is not None:
        return _sqlite_session_factory()
    return _get_session_factory()()


async def shutdown_database() -> None:
    """Close database connections."""
    global _sqlite_engine, _sqlite_session_factory

    if _sqlite_engine is not None:
        await _sqlite_engine.dispose()
        _sqlite_engine = None
        _sqlite_session_factory = None
    else:
        await close_db()


# ---------------------------------------------------------------------------
# Bots
# ---------------------------------------------------------------------------
@dataclass
class User:
    """A marketplace user with a wallet. Each action is its own unit of work."""

    name: str
    user_id: uuid.UUID = field(default_factory=uuid.uuid4)

    async def open_wallet(self, balance: int) -> None:
        async with get_session() as session:
            await LedgerService(session).open_wallet(self.user_id, balance)
            await session.commit()

    async def balance(self) -> Decimal:
        async with get_session() as session:
            return await LedgerService(session).get_balance(self.user_id)


@dataclass
class SellerBot(User):
    async def post(self, title: str, price: int, negotiable: bool = False):
        price_type = PriceType.NEGOTIABLE if negotiable else PriceType.FIXED
        async with get_session() as session:
            listing = await ListingStateTracker(session).post_listing(
                self.user_id, title, price, price_type=price_type
            )
            await session.commit()
        print(f"  {self.name} listed '{title}' for {price} ({price_type})")
        return listing

    async def respond(self, offer_id: uuid.UUID, accept: bool) -> None:
        async with get_session() as session:
            svc = OfferService(session, notifier=_sink)
            if accept:
                await svc.accept_offer(offer_id, self.user_id)
            else:
                await svc.reject_offer(offer_id, self.user_id)
            await session.commit()
        print(f"  {self.name} {'accepted' if accept else 'rejected'} offer {str(offer_id)[:8]}")


@dataclass
class BuyerBot(User):
    async def offer(self, listing_id: uuid.UUID, amount: int):
        async with get_session() as session:
            offer = await OfferService(session, notifier=_sink).make_offer(
                listing_id, self.user_id, amount
            )
            await session.commit()
        print(f"  {self.name} offered {amount}")
        return offer

    async def buy(self, listing_id: uuid.UUID, amount=None, offer_id=None):
        """Attempt a purchase. Returns None when the marketplace refuses it."""
        async with get_session() as session:
            try:
                tx = await EscrowService(session, notifier=_sink).initiate_purchase(
                    listing_id, self.user_id, amount=amount, offer_id=offer_id
                )
            except MarketplaceError as exc:
                await session.rollback()
                print(f"  ❌ {self.name} could not buy: {exc.code}")
                return None
            await session.commit()
        print(f"  ✅ {self.name} paid {tx.amount} into escrow")
        return tx

    async def confirm(self, transaction_id: uuid.UUID) -> None:
        async with get_session() as session:
            await EscrowService(session, notifier=_sink).confirm_delivery(
                transaction_id, self.user_id
            )
            await session.commit()
        print(f"  {self.name} confirmed delivery")


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


async def print_balances(*users: User) -> None:
    for user in users:
        print(f"  💰 {user.name}: {await user.balance()}")


async def print_audit_trail(transaction_id: uuid.UUID) -> None:
    """Print the audit trail for a transaction."""
    async with get_session() as session:
        events = await EscrowService(session).get_events(transaction_id)
    print("\n  📜 Audit Trail:")
    for i, evt in enumerate(events, 1):
        old = evt.old_status or "—"
        print(f"    {i}. [{evt.event_type}] {old} → {evt.new_status} (by {evt.actor})")
    print()


async def money_supply() -> Decimal:
    async with get_session() as session:
        return await EscrowService(session).money_supply()


# ===========================================================================
# Scenarios
# ===========================================================================
async def scenario_1_buy_now() -> None:
    banner("SCENARIO 1: Buy Now")
    seller, buyer = SellerBot("Sita"), BuyerBot("Bikash")
    await seller.open_wallet(0)
    await buyer.open_wallet(1500)
    supply = await money_supply()

    bike = await seller.post("Road bike, 54cm", 1000)
    tx = await buyer.buy(bike.id, amount=1000)
    await print_balances(seller, buyer)

    section("Delivery")
    await buyer.confirm(tx.id)
    await print_balances(seller, buyer)
    await print_audit_trail(tx.id)

    assert await money_supply() == supply


async def scenario_2_negotiation() -> None:
    banner("SCENARIO 2: Negotiation")
    seller = SellerBot("Ram")
    low, high = BuyerBot("Hari"), BuyerBot("Gita")
    await seller.open_wallet(0)
    await low.open_wallet(1000)
    await high.open_wallet(1000)
    supply = await money_supply()

    guitar = await seller.post("Acoustic guitar", 1000, negotiable=True)
    low_offer = await low.offer(guitar.id, 500)
    high_offer = await high.offer(guitar.id, 700)
    await seller.respond(low_offer.id, accept=False)
    await seller.respond(high_offer.id, accept=True)

    section("Payment")
    tx = await high.buy(guitar.id, offer_id=high_offer.id)
    await high.confirm(tx.id)
    await print_balances(seller, low, high)

    assert await money_supply() == supply


async def scenario_3_race_and_refund() -> None:
    banner("SCENARIO 3: Race and Refund")
    seller = SellerBot("Anil")
    first, second = BuyerBot("Maya"), BuyerBot("Nabin")
    await seller.open_wallet(0)
    await first.open_wallet(800)
    await second.open_wallet(800)
    supply = await money_supply()

    camera = await seller.post("Film camera", 600)
    results = [
        await first.buy(camera.id, amount=600),
        await second.buy(camera.id, amount=600),
    ]
    winner = next(tx for tx in results if tx is not None)

    section("Refund")
    async with get_session() as session:
        await EscrowService(session, notifier=_sink).refund(
            winner.id, actor="support", reason="item not as described"
        )
        await session.commit()
        listing = await ListingStateTracker(session).get_listing(camera.id)
    print(f"  Camera is {listing.status} again")
    await print_balances(seller, first, second)

    assert await money_supply() == supply


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_buy_now,
    2: scenario_2_negotiation,
    3: scenario_3_race_and_refund,
}


async def run(num: int = 0, use_sqlite: bool = False) -> None:
    """Run one scenario, or all of them when num is 0."""
    await init_database(use_sqlite=use_sqlite)
    try:
        if num and num not in SCENARIOS:
            print(f"Unknown scenario {num}. Available: {', '.join(map(str, SCENARIOS))}")
            return
        for key, scenario in SCENARIOS.items():
            if num in (0, key):
                await scenario()
        print("\n" + "=" * 70)
        print("  ✅ SIMULATION COMPLETED — money supply conserved")
        print("=" * 70 + "\n")
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Marketplace Escrow Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1, 2, or 3). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use SQLite in-memory instead of PostgreSQL (no Docker needed).",
    )
    args = parser.parse_args()
    asyncio.run(run(args.scenario, use_sqlite=args.sqlite))
