"""HTTP-level tests for the REST API.

The app runs in-process over httpx's ASGI transport with the database
session dependency pointed at the per-test SQLite database.
"""

from __future__ import annotations

import uuid

import httpx
import pytest
import pytest_asyncio

from marketplace_escrow.api.deps import get_db_session, get_redis_client
from marketplace_escrow.api.middleware import status_for
from marketplace_escrow.domain.exceptions import (
    InsufficientFundsError,
    InvalidOfferStateError,
    ListingNotFoundError,
    ListingUnavailableError,
    ReconciliationError,
    UnauthorizedError,
)
from marketplace_escrow.main import create_app


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the idempotency helpers."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def set(self, key, value, ex=None, nx=False):  # noqa: ANN001
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def delete(self, key):  # noqa: ANN001
        return 1 if self.store.pop(key, None) is not None else 0


@pytest.fixture
def redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def client(session_factory, redis):
    app = create_app()

    async def _session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_redis_client] = lambda: redis

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def _wallet(client, balance: int) -> str:
    user_id = str(uuid.uuid4())
    resp = await client.post(
        "/api/v1/wallets", json={"user_id": user_id, "initial_balance": balance}
    )
    assert resp.status_code == 201
    return user_id


async def _listing(client, seller_id: str, price: int, price_type: str = "fixed") -> str:
    resp = await client.post(
        "/api/v1/listings",
        json={
            "seller_id": seller_id,
            "title": "Road bike, 54cm",
            "price": price,
            "price_type": price_type,
        },
    )
    assert resp.status_code == 201
    return resp.json()["id"]


class TestErrorMapping:
    def test_status_codes(self) -> None:
        assert status_for(ListingNotFoundError("x")) == 404
        assert status_for(UnauthorizedError("u", "do it")) == 403
        assert status_for(InvalidOfferStateError("o", "accepted", "accept")) == 409
        assert status_for(ListingUnavailableError("l", "pending")) == 409
        assert status_for(ReconciliationError("t", "ledger_credit", "boom")) == 500
        assert status_for(InsufficientFundsError("u", "10", "5")) == 400


class TestWallets:
    @pytest.mark.asyncio
    async def test_open_deposit_withdraw(self, client) -> None:
        user_id = await _wallet(client, 100)

        resp = await client.post(f"/api/v1/wallets/{user_id}/deposit", json={"amount": 50})
        assert resp.status_code == 200
        resp = await client.post(f"/api/v1/wallets/{user_id}/withdraw", json={"amount": 30})
        assert resp.status_code == 200

        resp = await client.get(f"/api/v1/wallets/{user_id}")
        assert float(resp.json()["balance"]) == 120.0

        entries = (await client.get(f"/api/v1/wallets/{user_id}/entries")).json()
        assert len(entries) == 3

    @pytest.mark.asyncio
    async def test_overdraw_is_400(self, client) -> None:
        user_id = await _wallet(client, 10)
        resp = await client.post(f"/api/v1/wallets/{user_id}/withdraw", json={"amount": 11})
        assert resp.status_code == 400
        assert resp.json()["error"] == "INSUFFICIENT_FUNDS"

    @pytest.mark.asyncio
    async def test_unknown_wallet_is_404(self, client) -> None:
        resp = await client.get(f"/api/v1/wallets/{uuid.uuid4()}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_negative_amount_fails_validation(self, client) -> None:
        user_id = await _wallet(client, 10)
        resp = await client.post(f"/api/v1/wallets/{user_id}/deposit", json={"amount": -1})
        assert resp.status_code == 422


class TestPurchaseFlow:
    @pytest.mark.asyncio
    async def test_buy_now_and_confirm(self, client) -> None:
        seller = await _wallet(client, 0)
        buyer = await _wallet(client, 1500)
        listing_id = await _listing(client, seller, 1000)

        resp = await client.post(
            "/api/v1/transactions",
            json={"listing_id": listing_id, "buyer_id": buyer, "amount": 1000},
        )
        assert resp.status_code == 201
        tx = resp.json()
        assert tx["status"] == "escrow_held"

        listing = (await client.get(f"/api/v1/listings/{listing_id}")).json()
        assert listing["status"] == "pending"

        resp = await client.post(
            f"/api/v1/transactions/{tx['id']}/confirm", json={"acting_user_id": seller}
        )
        assert resp.status_code == 403

        resp = await client.post(
            f"/api/v1/transactions/{tx['id']}/confirm", json={"acting_user_id": buyer}
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "released"

        resp = await client.post(
            f"/api/v1/transactions/{tx['id']}/confirm", json={"acting_user_id": buyer}
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "INVALID_TRANSACTION_STATE"

        seller_wallet = (await client.get(f"/api/v1/wallets/{seller}")).json()
        assert float(seller_wallet["balance"]) == 1000.0

        inbox = (await client.get(f"/api/v1/users/{seller}/notifications")).json()
        assert {n["event_type"] for n in inbox} == {"PURCHASE_INITIATED", "PAYMENT_RELEASED"}

        events = (await client.get(f"/api/v1/transactions/{tx['id']}/events")).json()
        assert events[0]["metadata"]["listing_id"] == listing_id

    @pytest.mark.asyncio
    async def test_failed_purchase_leaves_listing_available(self, client) -> None:
        seller = await _wallet(client, 0)
        buyer = await _wallet(client, 500)
        listing_id = await _listing(client, seller, 1000)

        resp = await client.post(
            "/api/v1/transactions",
            json={"listing_id": listing_id, "buyer_id": buyer, "amount": 1000},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "INSUFFICIENT_FUNDS"

        listing = (await client.get(f"/api/v1/listings/{listing_id}")).json()
        assert listing["status"] == "available"

    @pytest.mark.asyncio
    async def test_repeated_idempotency_key_is_409(self, client, redis) -> None:
        seller = await _wallet(client, 0)
        buyer = await _wallet(client, 5000)
        listing_id = await _listing(client, seller, 1000)
        body = {
            "listing_id": listing_id,
            "buyer_id": buyer,
            "amount": 1000,
            "idempotency_key": "purchase-1",
        }

        assert (await client.post("/api/v1/transactions", json=body)).status_code == 201
        resp = await client.post("/api/v1/transactions", json=body)
        assert resp.status_code == 409
        assert resp.json()["error"] == "DUPLICATE_OPERATION"

        wallet = (await client.get(f"/api/v1/wallets/{buyer}")).json()
        assert float(wallet["balance"]) == 4000.0

    @pytest.mark.asyncio
    async def test_failed_purchase_frees_its_idempotency_key(self, client, redis) -> None:
        seller = await _wallet(client, 0)
        buyer = await _wallet(client, 500)
        listing_id = await _listing(client, seller, 1000)
        body = {
            "listing_id": listing_id,
            "buyer_id": buyer,
            "amount": 1000,
            "idempotency_key": "purchase-2",
        }

        assert (await client.post("/api/v1/transactions", json=body)).status_code == 400
        assert redis.store == {}

        await client.post(f"/api/v1/wallets/{buyer}/deposit", json={"amount": 500})
        assert (await client.post("/api/v1/transactions", json=body)).status_code == 201


class TestOfferFlow:
    @pytest.mark.asyncio
    async def test_negotiate_then_pay(self, client) -> None:
        seller = await _wallet(client, 0)
        buyer = await _wallet(client, 1000)
        listing_id = await _listing(client, seller, 1000, price_type="negotiable")

        resp = await client.post(
            "/api/v1/offers",
            json={"listing_id": listing_id, "buyer_id": buyer, "amount": 700},
        )
        assert resp.status_code == 201
        offer_id = resp.json()["id"]

        resp = await client.post(
            f"/api/v1/offers/{offer_id}/accept", json={"acting_user_id": buyer}
        )
        assert resp.status_code == 403
        assert (await client.get(f"/api/v1/offers/{offer_id}")).json()["status"] == "pending"

        resp = await client.post(
            f"/api/v1/offers/{offer_id}/accept", json={"acting_user_id": seller}
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "accepted"

        resp = await client.post(
            "/api/v1/transactions",
            json={"listing_id": listing_id, "buyer_id": buyer, "offer_id": offer_id},
        )
        assert resp.status_code == 201
        assert float(resp.json()["amount"]) == 700.0

        offers = (await client.get(f"/api/v1/listings/{listing_id}/offers")).json()
        assert offers[0]["transaction_id"] == resp.json()["id"]

    @pytest.mark.asyncio
    async def test_offer_on_fixed_price_listing_is_400(self, client) -> None:
        seller = await _wallet(client, 0)
        listing_id = await _listing(client, seller, 1000)

        resp = await client.post(
            "/api/v1/offers",
            json={"listing_id": listing_id, "buyer_id": str(uuid.uuid4()), "amount": 700},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "LISTING_NOT_NEGOTIABLE"


class TestListings:
    @pytest.mark.asyncio
    async def test_edit_and_status(self, client) -> None:
        seller = await _wallet(client, 0)
        listing_id = await _listing(client, seller, 1000)

        resp = await client.patch(
            f"/api/v1/listings/{listing_id}",
            json={"acting_user_id": seller, "price": 900},
        )
        assert resp.status_code == 200
        assert float(resp.json()["price"]) == 900.0

        status = (await client.get(f"/api/v1/listings/{listing_id}/status")).json()
        assert status == {"status": "available", "allowed_events": ["reserve"]}

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client) -> None:
        resp = await client.get(
            f"/api/v1/listings/{uuid.uuid4()}", headers={"X-Request-ID": "req-42"}
        )
        assert resp.status_code == 404
        assert resp.headers["X-Request-ID"] == "req-42"
