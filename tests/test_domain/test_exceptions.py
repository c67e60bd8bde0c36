"""Tests for domain exception codes and messages."""

from __future__ import annotations

from marketplace_escrow.domain.exceptions import (
    InsufficientFundsError,
    InvalidTransactionStateError,
    ListingNotFoundError,
    MarketplaceError,
    NotFoundError,
    ReconciliationError,
)


class TestExceptionCodes:
    def test_not_found_names_the_entity(self) -> None:
        err = ListingNotFoundError("abc")
        assert isinstance(err, NotFoundError)
        assert err.code == "NOT_FOUND"
        assert err.message == "Listing not found: abc"

    def test_insufficient_funds_carries_amounts(self) -> None:
        err = InsufficientFundsError("u1", "100.00", "50.00")
        assert err.code == "INSUFFICIENT_FUNDS"
        assert err.required == "100.00"
        assert err.available == "50.00"

    def test_invalid_state_uses_entity_specific_code(self) -> None:
        err = InvalidTransactionStateError("t1", "released", "refund")
        assert err.code == "INVALID_TRANSACTION_STATE"
        assert "cannot refund from state released" in err.message

    def test_reconciliation_is_a_marketplace_error(self) -> None:
        err = ReconciliationError("t1", "ledger_credit", "boom")
        assert isinstance(err, MarketplaceError)
        assert err.code == "LEDGER_INCONSISTENCY"
        assert err.step == "ledger_credit"
