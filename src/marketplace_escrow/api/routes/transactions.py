"""Escrow transaction REST API routes.

Routes:
    POST   /api/v1/transactions                   — Initiate a purchase (hold funds)
    GET    /api/v1/transactions/{id}              — Get transaction details
    GET    /api/v1/transactions/{id}/status       — Status with allowed events
    GET    /api/v1/transactions/{id}/events       — Audit trail
    POST   /api/v1/transactions/{id}/confirm      — Buyer confirms delivery
    POST   /api/v1/transactions/{id}/refund       — Administrative refund
    POST   /api/v1/transactions/{id}/cancel       — Buyer or seller cancels
    GET    /api/v1/users/{user_id}/transactions   — A user's purchases and sales
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_escrow.api.deps import (
    get_db_session,
    get_notification_sink,
    get_redis_client,
)
from marketplace_escrow.domain.events import NotificationSink
from marketplace_escrow.domain.exceptions import DuplicateOperationError
from marketplace_escrow.infrastructure.redis_client import (
    claim_idempotency,
    release_idempotency,
)
from marketplace_escrow.logging_config import get_logger
from marketplace_escrow.schemas.marketplace import (
    ActingUserRequest,
    MarketEventResponse,
    PurchaseRequest,
    RefundRequest,
    StatusResponse,
    TransactionResponse,
)
from marketplace_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1", tags=["Transactions"])
logger = get_logger(__name__)


def _service(session: AsyncSession, sink: NotificationSink) -> EscrowService:
    return EscrowService(session, notifier=sink)


# ---------------------------------------------------------------------------
# Purchase
# ---------------------------------------------------------------------------


@router.post(
    "/transactions",
    response_model=TransactionResponse,
    status_code=201,
    summary="Initiate a purchase",
)
async def initiate_purchase(
    request: PurchaseRequest,
    session: AsyncSession = Depends(get_db_session),
    sink: NotificationSink = Depends(get_notification_sink),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> TransactionResponse:
    """Reserve the listing, debit the buyer, and hold the funds in escrow.

    With an `idempotency_key`, a repeated request is rejected with 409
    instead of charging the buyer twice.
    """
    key = request.idempotency_key
    claimed = False
    if key is not None:
        if redis is None:
            logger.warning("idempotency.unavailable", idempotency_key=key)
        elif not await claim_idempotency(redis, key):
            raise DuplicateOperationError(key)
        else:
            claimed = True

    try:
        transaction = await _service(session, sink).initiate_purchase(
            listing_id=request.listing_id,
            buyer_id=request.buyer_id,
            amount=request.amount,
            offer_id=request.offer_id,
        )
    except Exception:
        if claimed:
            await release_idempotency(redis, key)
        raise
    return TransactionResponse.model_validate(transaction)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


@router.post(
    "/transactions/{transaction_id}/confirm",
    response_model=TransactionResponse,
    summary="Confirm delivery and release funds",
)
async def confirm_delivery(
    transaction_id: uuid.UUID,
    request: ActingUserRequest,
    session: AsyncSession = Depends(get_db_session),
    sink: NotificationSink = Depends(get_notification_sink),
) -> TransactionResponse:
    """Buyer only. escrow_held -> released; the seller is paid."""
    transaction = await _service(session, sink).confirm_delivery(
        transaction_id, request.acting_user_id
    )
    return TransactionResponse.model_validate(transaction)


@router.post(
    "/transactions/{transaction_id}/refund",
    response_model=TransactionResponse,
    summary="Refund the buyer",
)
async def refund(
    transaction_id: uuid.UUID,
    request: RefundRequest,
    session: AsyncSession = Depends(get_db_session),
    sink: NotificationSink = Depends(get_notification_sink),
) -> TransactionResponse:
    """escrow_held -> refunded; the buyer is repaid and the listing relisted."""
    transaction = await _service(session, sink).refund(
        transaction_id, actor=request.actor, reason=request.reason
    )
    return TransactionResponse.model_validate(transaction)


@router.post(
    "/transactions/{transaction_id}/cancel",
    response_model=TransactionResponse,
    summary="Cancel a purchase",
)
async def cancel_purchase(
    transaction_id: uuid.UUID,
    request: ActingUserRequest,
    session: AsyncSession = Depends(get_db_session),
    sink: NotificationSink = Depends(get_notification_sink),
) -> TransactionResponse:
    transaction = await _service(session, sink).cancel_purchase(
        transaction_id, request.acting_user_id
    )
    return TransactionResponse.model_validate(transaction)


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get transaction details",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> TransactionResponse:
    transaction = await EscrowService(session).get_transaction(transaction_id)
    return TransactionResponse.model_validate(transaction)


@router.get(
    "/transactions/{transaction_id}/status",
    response_model=StatusResponse,
    summary="Get transaction status",
)
async def get_transaction_status(
    transaction_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> StatusResponse:
    status = await EscrowService(session).get_status(transaction_id)
    return StatusResponse(**status)


@router.get(
    "/transactions/{transaction_id}/events",
    response_model=list[MarketEventResponse],
    summary="Get audit trail",
)
async def get_transaction_events(
    transaction_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> list[MarketEventResponse]:
    events = await EscrowService(session).get_events(transaction_id)
    return [MarketEventResponse.model_validate(e) for e in events]


@router.get(
    "/users/{user_id}/transactions",
    response_model=list[TransactionResponse],
    summary="A user's purchases and sales",
)
async def list_transactions_for_user(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> list[TransactionResponse]:
    transactions = await EscrowService(session).list_transactions_for_user(user_id)
    return [TransactionResponse.model_validate(t) for t in transactions]
