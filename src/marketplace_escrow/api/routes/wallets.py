"""Wallet REST API routes.

Routes:
    POST   /api/v1/wallets                     — Open a wallet
    GET    /api/v1/wallets/{user_id}           — Get wallet and balance
    POST   /api/v1/wallets/{user_id}/deposit   — Add money
    POST   /api/v1/wallets/{user_id}/withdraw  — Take money out
    GET    /api/v1/wallets/{user_id}/entries   — Ledger history
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_escrow.api.deps import get_db_session
from marketplace_escrow.schemas.marketplace import (
    AmountRequest,
    LedgerEntryResponse,
    OpenWalletRequest,
    WalletResponse,
)
from marketplace_escrow.services.ledger import LedgerService

router = APIRouter(prefix="/api/v1/wallets", tags=["Wallets"])


@router.post("", response_model=WalletResponse, status_code=201, summary="Open a wallet")
async def open_wallet(
    request: OpenWalletRequest,
    session: AsyncSession = Depends(get_db_session),
) -> WalletResponse:
    svc = LedgerService(session)
    wallet = await svc.open_wallet(request.user_id, request.initial_balance)
    return WalletResponse.model_validate(wallet)


@router.get("/{user_id}", response_model=WalletResponse, summary="Get wallet balance")
async def get_wallet(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> WalletResponse:
    wallet = await LedgerService(session).get_wallet(user_id)
    return WalletResponse.model_validate(wallet)


@router.post(
    "/{user_id}/deposit",
    response_model=LedgerEntryResponse,
    summary="Deposit money into a wallet",
)
async def deposit(
    user_id: uuid.UUID,
    request: AmountRequest,
    session: AsyncSession = Depends(get_db_session),
) -> LedgerEntryResponse:
    entry = await LedgerService(session).deposit(user_id, request.amount)
    return LedgerEntryResponse.model_validate(entry)


@router.post(
    "/{user_id}/withdraw",
    response_model=LedgerEntryResponse,
    summary="Withdraw money from a wallet",
)
async def withdraw(
    user_id: uuid.UUID,
    request: AmountRequest,
    session: AsyncSession = Depends(get_db_session),
) -> LedgerEntryResponse:
    """Fails with INSUFFICIENT_FUNDS rather than overdrawing."""
    entry = await LedgerService(session).withdraw(user_id, request.amount)
    return LedgerEntryResponse.model_validate(entry)


@router.get(
    "/{user_id}/entries",
    response_model=list[LedgerEntryResponse],
    summary="Ledger history, newest first",
)
async def list_entries(
    user_id: uuid.UUID,
    limit: int = Query(default=50, ge=1, le=500),
    session: AsyncSession = Depends(get_db_session),
) -> list[LedgerEntryResponse]:
    entries = await LedgerService(session).list_entries(user_id, limit=limit)
    return [LedgerEntryResponse.model_validate(e) for e in entries]
