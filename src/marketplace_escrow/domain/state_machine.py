"""State machine guards for listings, offers, and escrow transactions.

Uses python-statemachine to enforce legal transitions at the domain level.
Each service fires the named event on a throwaway machine built from the
entity's last-read status before it issues the conditional UPDATE that
actually moves the row. An illegal event raises TransitionNotAllowed.

Transition tables:

    Listing
        available -> pending        (reserve)
        pending   -> sold           (finalize)
        pending   -> available      (release)

    Offer
        pending   -> accepted       (accept)
        pending   -> rejected       (reject)
        pending   -> withdrawn      (withdraw)

    Transaction
        escrow_held -> released     (confirm_delivery)
        escrow_held -> refunded     (refund)
        escrow_held -> cancelled    (cancel_purchase)
"""

from __future__ import annotations

from statemachine import State, StateMachine


class _StatusMixin:
    """Start a machine at a persisted status string and expose it back."""

    def __init__(self, current_status: str) -> None:
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches the enum value)."""
        return str(self.current_state_value)

    def get_allowed_events(self) -> list[str]:
        """Return the ids of the events that can fire from the current state."""
        return [event.id for event in self.allowed_events]


class ListingStateMachine(_StatusMixin, StateMachine):
    """Guards listing lifecycle transitions.

    Usage:
        sm = ListingStateMachine("available")
        sm.reserve()
        sm.status  # "pending"
    """

    available = State(initial=True)
    pending = State()
    sold = State(final=True)

    reserve = available.to(pending)
    finalize = pending.to(sold)
    release = pending.to(available)


class OfferStateMachine(_StatusMixin, StateMachine):
    """Guards offer negotiation transitions. Every non-pending state is final."""

    pending = State(initial=True)
    accepted = State(final=True)
    rejected = State(final=True)
    withdrawn = State(final=True)

    accept = pending.to(accepted)
    reject = pending.to(rejected)
    withdraw = pending.to(withdrawn)


class TransactionStateMachine(_StatusMixin, StateMachine):
    """Guards escrow transaction resolution. A transaction resolves exactly once."""

    escrow_held = State(initial=True)
    released = State(final=True)
    refunded = State(final=True)
    cancelled = State(final=True)

    confirm_delivery = escrow_held.to(released)
    refund = escrow_held.to(refunded)
    cancel_purchase = escrow_held.to(cancelled)


def validate_transition(
    machine_cls: type[_StatusMixin],
    current_status: str,
    event_name: str,
) -> str:
    """Validate a state transition and return the new status.

    Creates a temporary state machine, fires the named event, and returns
    the resulting status string.

    Args:
        machine_cls: One of the machine classes above.
        current_status: Current status value.
        event_name: The event to fire (e.g., "reserve").

    Returns:
        The new status string after the transition.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = machine_cls(current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status
