"""Tests for domain enumerations."""

from __future__ import annotations

from marketplace_escrow.domain.enums import (
    EventType,
    LedgerEntryType,
    ListingStatus,
    OfferStatus,
    PriceType,
    TransactionStatus,
)


class TestListingStatus:
    def test_all_statuses_exist(self) -> None:
        assert {s.value for s in ListingStatus} == {"available", "pending", "sold"}

    def test_status_is_str_enum(self) -> None:
        assert isinstance(ListingStatus.AVAILABLE, str)
        assert ListingStatus.AVAILABLE == "available"


class TestOfferAndTransactionStatus:
    def test_offer_statuses(self) -> None:
        assert {s.value for s in OfferStatus} == {
            "pending", "accepted", "rejected", "withdrawn",
        }

    def test_transaction_statuses(self) -> None:
        assert {s.value for s in TransactionStatus} == {
            "escrow_held", "released", "refunded", "cancelled",
        }


class TestEventType:
    def test_all_event_types_exist(self) -> None:
        # 5 listing + 4 offer + 4 escrow
        assert len(EventType) == 13

    def test_event_type_is_str_enum(self) -> None:
        assert isinstance(EventType.OFFER_CREATED, str)


class TestMiscEnums:
    def test_price_types(self) -> None:
        assert PriceType.FIXED == "fixed"
        assert PriceType.NEGOTIABLE == "negotiable"

    def test_ledger_entry_types(self) -> None:
        assert LedgerEntryType("ESCROW_DEBIT") is LedgerEntryType.ESCROW_DEBIT
