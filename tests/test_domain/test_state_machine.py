"""Tests for the listing, offer, and transaction state machine guards.

These tests verify that:
    1. All valid transitions are allowed.
    2. All invalid transitions are blocked.
    3. The convenience function validate_transition works.
    4. Terminal states allow nothing.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from marketplace_escrow.domain.state_machine import (
    ListingStateMachine,
    OfferStateMachine,
    TransactionStateMachine,
    validate_transition,
)


class TestListingLifecycle:
    def test_reserve_then_finalize(self) -> None:
        sm = ListingStateMachine("available")
        sm.reserve()
        assert sm.status == "pending"

        sm.finalize()
        assert sm.status == "sold"

    def test_release_returns_to_available(self) -> None:
        sm = ListingStateMachine("pending")
        sm.release()
        assert sm.status == "available"

        # Can be reserved again
        sm.reserve()
        assert sm.status == "pending"

    def test_cannot_reserve_pending(self) -> None:
        sm = ListingStateMachine("pending")
        with pytest.raises(TransitionNotAllowed):
            sm.reserve()

    def test_cannot_finalize_available(self) -> None:
        sm = ListingStateMachine("available")
        with pytest.raises(TransitionNotAllowed):
            sm.finalize()

    def test_sold_is_final(self) -> None:
        sm = ListingStateMachine("sold")
        assert sm.get_allowed_events() == []


class TestOfferLifecycle:
    @pytest.mark.parametrize(
        ("event", "expected"),
        [("accept", "accepted"), ("reject", "rejected"), ("withdraw", "withdrawn")],
    )
    def test_pending_transitions(self, event: str, expected: str) -> None:
        assert validate_transition(OfferStateMachine, "pending", event) == expected

    @pytest.mark.parametrize("terminal", ["accepted", "rejected", "withdrawn"])
    def test_terminal_states_allow_nothing(self, terminal: str) -> None:
        assert OfferStateMachine(terminal).get_allowed_events() == []

    def test_cannot_accept_twice(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition(OfferStateMachine, "accepted", "accept")

    def test_cannot_withdraw_rejected(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition(OfferStateMachine, "rejected", "withdraw")


class TestTransactionLifecycle:
    def test_held_allowed_events(self) -> None:
        allowed = TransactionStateMachine("escrow_held").get_allowed_events()
        assert set(allowed) == {"confirm_delivery", "refund", "cancel_purchase"}

    @pytest.mark.parametrize("terminal", ["released", "refunded", "cancelled"])
    def test_resolves_exactly_once(self, terminal: str) -> None:
        for event in ("confirm_delivery", "refund", "cancel_purchase"):
            with pytest.raises(TransitionNotAllowed):
                validate_transition(TransactionStateMachine, terminal, event)

    def test_confirm_delivery(self) -> None:
        result = validate_transition(TransactionStateMachine, "escrow_held", "confirm_delivery")
        assert result == "released"


class TestValidateTransitionFunction:
    def test_valid_transition(self) -> None:
        assert validate_transition(ListingStateMachine, "available", "reserve") == "pending"

    def test_invalid_event_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition(ListingStateMachine, "available", "nonexistent_event")

    def test_invalid_status(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            ListingStateMachine("INVALID_STATUS")


class TestAllowedEventsAreFireable:
    """Whatever a status endpoint advertises must be accepted by validate_transition."""

    @pytest.mark.parametrize(
        ("machine_cls", "status"),
        [
            (ListingStateMachine, "available"),
            (ListingStateMachine, "pending"),
            (OfferStateMachine, "pending"),
            (TransactionStateMachine, "escrow_held"),
        ],
    )
    def test_each_allowed_event_fires(self, machine_cls, status: str) -> None:  # noqa: ANN001
        allowed = machine_cls(status).get_allowed_events()
        assert allowed
        for event in allowed:
            assert validate_transition(machine_cls, status, event) != status

    def test_status_reads_back_start_value(self) -> None:
        assert OfferStateMachine("withdrawn").status == "withdrawn"
