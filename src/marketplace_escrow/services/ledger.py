"""Ledger — the only component that mutates wallet balances.

debit and credit are the escrow engine's primitives. deposit and withdraw
are the only operations that bring money into or take it out of the system.
Every mutation appends a ledger entry carrying the resulting balance.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from marketplace_escrow.domain.enums import LedgerEntryType
from marketplace_escrow.domain.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    WalletNotFoundError,
)
from marketplace_escrow.infrastructure.database.orm_models import LedgerEntry, Wallet
from marketplace_escrow.infrastructure.database.repositories import (
    LedgerEntryRepository,
    WalletRepository,
)
from marketplace_escrow.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

_CENT = Decimal("0.01")


def normalize_amount(amount: object, allow_zero: bool = False) -> Decimal:
    """Coerce a monetary amount to a 2-place Decimal or raise InvalidAmountError."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as err:
        raise InvalidAmountError(amount) from err
    if not value.is_finite() or value != value.quantize(_CENT):
        raise InvalidAmountError(amount)
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidAmountError(amount)
    return value.quantize(_CENT)


class LedgerService:
    """Atomic debit/credit over wallet balances."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._wallet_repo = WalletRepository(session)
        self._entry_repo = LedgerEntryRepository(session)

    # ------------------------------------------------------------------
    # Wallet lifecycle
    # ------------------------------------------------------------------

    async def open_wallet(
        self,
        user_id: uuid.UUID,
        initial_balance: Decimal | int | str = Decimal("0"),
    ) -> Wallet:
        """Create a wallet; a non-zero opening balance is booked as a deposit."""
        opening = normalize_amount(initial_balance, allow_zero=True)
        wallet = await self._wallet_repo.create(Wallet(user_id=user_id, balance=opening))
        if opening > 0:
            await self._entry_repo.record(
                user_id, LedgerEntryType.DEPOSIT, opening, balance_after=opening
            )
        logger.info("ledger.wallet_opened", user_id=user_id, balance=opening)
        return wallet

    async def get_wallet(self, user_id: uuid.UUID) -> Wallet:
        wallet = await self._wallet_repo.get_by_user(user_id)
        if wallet is None:
            raise WalletNotFoundError(str(user_id))
        return wallet

    async def get_balance(self, user_id: uuid.UUID) -> Decimal:
        return (await self.get_wallet(user_id)).balance

    async def list_entries(self, user_id: uuid.UUID, limit: int = 50) -> list[LedgerEntry]:
        """Ledger history for a wallet, newest first."""
        await self.get_wallet(user_id)
        return await self._entry_repo.get_by_user(user_id, limit=limit)

    # ------------------------------------------------------------------
    # Escrow primitives
    # ------------------------------------------------------------------

    async def debit(
        self,
        user_id: uuid.UUID,
        amount: Decimal | int | str,
        reference_id: uuid.UUID | None = None,
        entry_type: LedgerEntryType = LedgerEntryType.ESCROW_DEBIT,
    ) -> LedgerEntry:
        """Atomically decrease a balance.

        The sufficiency check and the decrement are one conditional UPDATE,
        so two concurrent debits can never both spend the same funds.

        Raises:
            InvalidAmountError: amount is not a positive 2-place decimal.
            WalletNotFoundError: the user has no wallet.
            InsufficientFundsError: balance < amount.
        """
        value = normalize_amount(amount)
        if not await self._wallet_repo.debit_if_sufficient(user_id, value):
            wallet = await self.get_wallet(user_id)
            logger.info(
                "ledger.debit_rejected",
                user_id=user_id,
                amount=value,
                balance=wallet.balance,
            )
            raise InsufficientFundsError(str(user_id), str(value), str(wallet.balance))
        return await self._book(user_id, entry_type, -value, reference_id)

    async def credit(
        self,
        user_id: uuid.UUID,
        amount: Decimal | int | str,
        reference_id: uuid.UUID | None = None,
        entry_type: LedgerEntryType = LedgerEntryType.ESCROW_RELEASE,
    ) -> LedgerEntry:
        """Atomically increase a balance. Zero is allowed; negatives are not."""
        value = normalize_amount(amount, allow_zero=True)
        if not await self._wallet_repo.credit(user_id, value):
            raise WalletNotFoundError(str(user_id))
        return await self._book(user_id, entry_type, value, reference_id)

    # ------------------------------------------------------------------
    # Money in / money out
    # ------------------------------------------------------------------

    async def deposit(self, user_id: uuid.UUID, amount: Decimal | int | str) -> LedgerEntry:
        normalize_amount(amount)
        return await self.credit(user_id, amount, entry_type=LedgerEntryType.DEPOSIT)

    async def withdraw(self, user_id: uuid.UUID, amount: Decimal | int | str) -> LedgerEntry:
        return await self.debit(user_id, amount, entry_type=LedgerEntryType.WITHDRAWAL)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _book(
        self,
        user_id: uuid.UUID,
        entry_type: LedgerEntryType,
        signed_amount: Decimal,
        reference_id: uuid.UUID | None,
    ) -> LedgerEntry:
        wallet = await self.get_wallet(user_id)
        entry = await self._entry_repo.record(
            user_id,
            entry_type,
            signed_amount,
            balance_after=wallet.balance,
            reference_id=reference_id,
        )
        logger.info(
            "ledger.booked",
            user_id=user_id,
            entry_type=entry_type.value,
            amount=signed_amount,
            balance_after=wallet.balance,
        )
        return entry
