"""Domain exceptions for the marketplace escrow core.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "MARKETPLACE_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Lookup Errors ---


class NotFoundError(MarketplaceError):
    """Raised when a referenced entity does not exist."""

    entity = "Entity"

    def __init__(self, entity_id: str) -> None:
        super().__init__(
            message=f"{self.entity} not found: {entity_id}",
            code="NOT_FOUND",
        )
        self.entity_id = entity_id


class ListingNotFoundError(NotFoundError):
    entity = "Listing"


class OfferNotFoundError(NotFoundError):
    entity = "Offer"


class TransactionNotFoundError(NotFoundError):
    entity = "Transaction"


class WalletNotFoundError(NotFoundError):
    entity = "Wallet"


# --- Money Errors ---


class InvalidAmountError(MarketplaceError):
    """Raised for non-positive or malformed monetary amounts."""

    def __init__(self, amount: object) -> None:
        super().__init__(
            message=f"Invalid amount: {amount}",
            code="INVALID_AMOUNT",
        )
        self.amount = amount


class InsufficientFundsError(MarketplaceError):
    """Raised when a debit exceeds the wallet balance."""

    def __init__(self, user_id: str, required: str, available: str) -> None:
        super().__init__(
            message=(
                f"Insufficient funds for {user_id}: "
                f"required {required}, available {available}"
            ),
            code="INSUFFICIENT_FUNDS",
        )
        self.user_id = user_id
        self.required = required
        self.available = available


# --- Listing Availability Errors ---


class NotAvailableError(MarketplaceError):
    """Raised by the listing tracker when a listing cannot be reserved."""

    def __init__(self, listing_id: str, current_status: str) -> None:
        super().__init__(
            message=f"Listing {listing_id} is not available (status: {current_status})",
            code="NOT_AVAILABLE",
        )
        self.listing_id = listing_id
        self.current_status = current_status


class ListingUnavailableError(MarketplaceError):
    """Raised when an offer or purchase targets a listing that is not available."""

    def __init__(self, listing_id: str, current_status: str) -> None:
        super().__init__(
            message=f"Listing {listing_id} is unavailable (status: {current_status})",
            code="LISTING_UNAVAILABLE",
        )
        self.listing_id = listing_id
        self.current_status = current_status


class ListingNotNegotiableError(MarketplaceError):
    """Raised when an offer is made on a fixed-price listing."""

    def __init__(self, listing_id: str) -> None:
        super().__init__(
            message=f"Listing {listing_id} does not accept offers",
            code="LISTING_NOT_NEGOTIABLE",
        )
        self.listing_id = listing_id


# --- State Machine Errors ---


class InvalidStateError(MarketplaceError):
    """Base for attempts to fire an event the entity's current state forbids."""

    entity = "Entity"
    error_code = "INVALID_STATE"

    def __init__(self, entity_id: str, current_state: str, attempted: str) -> None:
        super().__init__(
            message=(
                f"{self.entity} {entity_id}: cannot {attempted} "
                f"from state {current_state}"
            ),
            code=self.error_code,
        )
        self.entity_id = entity_id
        self.current_state = current_state
        self.attempted = attempted


class InvalidTransitionError(InvalidStateError):
    """Listing status transition not allowed (e.g. finalize on an available listing)."""

    entity = "Listing"
    error_code = "INVALID_TRANSITION"


class InvalidOfferStateError(InvalidStateError):
    entity = "Offer"
    error_code = "INVALID_OFFER_STATE"


class InvalidTransactionStateError(InvalidStateError):
    entity = "Transaction"
    error_code = "INVALID_TRANSACTION_STATE"


# --- Authorization / Terms Errors ---


class UnauthorizedError(MarketplaceError):
    """Raised when the acting user is not allowed to perform the action."""

    def __init__(self, user_id: str, action: str) -> None:
        super().__init__(
            message=f"User {user_id} is not allowed to {action}",
            code="UNAUTHORIZED",
        )
        self.user_id = user_id
        self.action = action


class SelfPurchaseError(MarketplaceError):
    """Raised when a seller tries to buy or bid on their own listing."""

    def __init__(self, user_id: str, listing_id: str) -> None:
        super().__init__(
            message=f"User {user_id} is the seller of listing {listing_id}",
            code="SELF_PURCHASE",
        )


class PriceMismatchError(MarketplaceError):
    """Raised when a payment amount differs from the agreed price."""

    def __init__(self, expected: str, offered: str) -> None:
        super().__init__(
            message=f"Price mismatch: expected {expected}, got {offered}",
            code="PRICE_MISMATCH",
        )
        self.expected = expected
        self.offered = offered


class OfferNotAcceptedError(MarketplaceError):
    """Raised when a negotiated buy references an offer that cannot be paid."""

    def __init__(self, offer_id: str, reason: str) -> None:
        super().__init__(
            message=f"Offer {offer_id} cannot be paid: {reason}",
            code="OFFER_NOT_ACCEPTED",
        )
        self.offer_id = offer_id


# --- Idempotency Errors ---


class DuplicateOperationError(MarketplaceError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )


# --- Fatal Errors ---


class ReconciliationError(MarketplaceError):
    """A step failed after money or status had already moved.

    Not recoverable by the caller. Logged at critical level for manual
    reconciliation.
    """

    def __init__(self, transaction_id: str, step: str, detail: str) -> None:
        super().__init__(
            message=(
                f"Transaction {transaction_id} left inconsistent at step "
                f"'{step}': {detail}"
            ),
            code="LEDGER_INCONSISTENCY",
        )
        self.transaction_id = transaction_id
        self.step = step
