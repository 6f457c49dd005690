"""Tests for duplicate detection."""

import pytest
from datetime import date
from decimal import Decimal

from app.services.deduplication_service import (
    DuplicateDetector,
    description_similarity,
    generate_transaction_hash,
    is_duplicate,
)
from app.services.import_cache import ImportResultCache


class TestTransactionHash:
    """Test fingerprint generation for exact-duplicate storage."""

    def test_same_inputs_same_hash(self):
        """Identical inputs should produce identical hashes."""
        hash1 = generate_transaction_hash(
            date(2024, 1, 15),
            Decimal("50.00"),
            "AMAZON PURCHASE",
            "couple-1"
        )
        hash2 = generate_transaction_hash(
            date(2024, 1, 15),
            Decimal("50.00"),
            "AMAZON PURCHASE",
            "couple-1"
        )
        assert hash1 == hash2

    def test_different_date_different_hash(self):
        """Different dates should produce different hashes."""
        hash1 = generate_transaction_hash(date(2024, 1, 15), Decimal("50.00"), "AMAZON", "couple-1")
        hash2 = generate_transaction_hash(date(2024, 1, 16), Decimal("50.00"), "AMAZON", "couple-1")
        assert hash1 != hash2

    def test_different_amount_different_hash(self):
        """Different amounts should produce different hashes."""
        hash1 = generate_transaction_hash(date(2024, 1, 15), Decimal("50.00"), "AMAZON", "couple-1")
        hash2 = generate_transaction_hash(date(2024, 1, 15), Decimal("51.00"), "AMAZON", "couple-1")
        assert hash1 != hash2

    def test_different_couple_different_hash(self):
        """Different couples should produce different hashes."""
        hash1 = generate_transaction_hash(date(2024, 1, 15), Decimal("50.00"), "AMAZON", "couple-1")
        hash2 = generate_transaction_hash(date(2024, 1, 15), Decimal("50.00"), "AMAZON", "couple-2")
        assert hash1 != hash2

    def test_description_normalized(self):
        """Case and surrounding whitespace are ignored."""
        hash1 = generate_transaction_hash(date(2024, 1, 15), Decimal("50"), "  Amazon ", "couple-1")
        hash2 = generate_transaction_hash(date(2024, 1, 15), Decimal("50.00"), "AMAZON", "couple-1")
        assert hash1 == hash2

    def test_hash_is_sha256(self):
        """Hash should be a 64-character hex string (SHA256)."""
        h = generate_transaction_hash(date(2024, 1, 15), Decimal("50.00"), "TEST", "couple-1")
        assert len(h) == 64
        assert all(c in "0123456789abcdef" for c in h)


class TestIsDuplicate:
    """Test fingerprint lookups against stored expenses."""

    def test_not_duplicate_when_empty(self, db_session):
        assert is_duplicate(db_session, "nonexistent_hash", "couple-1") is False

    def test_duplicate_when_exists(self, db_session, sample_expense):
        sample_expense.fingerprint = "abc123"
        db_session.commit()
        assert is_duplicate(db_session, "abc123", "couple-1") is True

    def test_other_couple_not_duplicate(self, db_session, sample_expense):
        sample_expense.fingerprint = "abc123"
        db_session.commit()
        assert is_duplicate(db_session, "abc123", "couple-2") is False


class TestDescriptionSimilarity:
    """Test fuzzy description comparison."""

    def test_identical(self):
        assert description_similarity("Starbucks Coffee", "  starbucks   COFFEE ") == 1.0

    def test_containment(self):
        score = description_similarity("STARBUCKS", "STARBUCKS STORE 1234")
        assert 0.8 <= score < 1.0

    def test_unrelated(self):
        assert description_similarity("NETFLIX", "SHELL OIL") < 0.5

    def test_empty(self):
        assert description_similarity("", "anything") == 0.0


class TestDuplicateDetector:
    """Test scoring of candidates against existing expenses."""

    @pytest.fixture
    def detector(self):
        return DuplicateDetector()

    def test_exact_match_is_auto_skipped(self, detector, make_transaction, make_expense):
        status = detector.status_for(make_transaction(), [make_expense()])

        assert status.has_duplicates is True
        assert status.highest_confidence == 1.0
        assert status.auto_skip is True
        assert status.needs_review is False
        assert status.matched_expenses[0].reasons[0] == "Same date"

    def test_amount_must_match_exactly(self, detector, make_transaction, make_expense):
        check = detector.compare(make_transaction(amount="4.51"), make_expense())
        assert check.is_duplicate is False
        assert check.confidence == 0.0

    def test_outside_date_tolerance(self, detector, make_transaction, make_expense):
        check = detector.compare(
            make_transaction(txn_date=date(2024, 1, 18)),
            make_expense(expense_date=date(2024, 1, 15))
        )
        assert check.is_duplicate is False

    def test_one_day_apart_needs_review(self, detector, make_transaction, make_expense):
        status = detector.status_for(
            make_transaction(txn_date=date(2024, 1, 16)),
            [make_expense(expense_date=date(2024, 1, 15))]
        )
        assert status.highest_confidence == pytest.approx(0.9)
        assert status.auto_skip is False
        assert status.needs_review is True

    def test_partial_description_same_day(self, detector, make_transaction, make_expense):
        """A partly similar description is only a duplicate on the same day."""
        transaction = make_transaction(description="AMAZON MARKETPLACE")
        expense = make_expense(description="AMAZON PRIME")
        similarity = description_similarity(transaction.description, expense.description)
        assert 0.5 <= similarity < 0.8

        same_day = detector.compare(transaction, expense)
        assert same_day.is_duplicate is True
        assert same_day.confidence == pytest.approx(0.85)

        next_day = detector.compare(
            make_transaction(description="AMAZON MARKETPLACE", txn_date=date(2024, 1, 16)),
            expense
        )
        assert next_day.is_duplicate is False

    def test_no_match(self, detector, make_transaction, make_expense):
        status = detector.status_for(make_transaction(description="NETFLIX", amount="15.99"), [make_expense()])
        assert status.has_duplicates is False
        assert status.duplicate_count == 0
        assert status.matched_expenses == []

    def test_lookback_window(self, detector, make_transaction, make_expense):
        """Expenses older than the lookback window are ignored."""
        statuses = detector.detect_for_transactions(
            [make_transaction()], [make_expense()], reference_date=date(2024, 6, 1)
        )
        assert statuses[0].has_duplicates is False

    def test_idempotent(self, detector, make_transaction, make_expense):
        transactions = [make_transaction(), make_transaction(description="UBER TRIP", amount="12.00")]
        expenses = [make_expense()]
        first = detector.detect_for_transactions(transactions, expenses, date(2024, 1, 20))
        second = detector.detect_for_transactions(transactions, expenses, date(2024, 1, 20))
        assert first == second

    def test_cached_results_reused(self, make_transaction, make_expense):
        cache = ImportResultCache()
        detector = DuplicateDetector(cache=cache)
        transaction = make_transaction()

        first = detector.status_for(transaction, [make_expense()])
        # With an empty expense list the cached answer must still come back
        second = detector.status_for(transaction, [])

        assert second == first
        assert cache.get_cached_duplicate_result(transaction) == first

    def test_summarize(self, detector, make_transaction, make_expense):
        expense = make_expense()
        statuses = [
            detector.status_for(make_transaction(), [expense]),
            detector.status_for(make_transaction(txn_date=date(2024, 1, 16)), [expense]),
            detector.status_for(make_transaction(description="NETFLIX", amount="15.99"), [expense]),
        ]
        summary = detector.summarize(statuses)
        assert summary == {"total": 3, "none": 1, "possible": 0, "likely": 1, "definite": 1}

    def test_filter_out_duplicates(self, detector, make_transaction, make_expense):
        transactions = [make_transaction(), make_transaction(description="NETFLIX", amount="15.99")]
        statuses = detector.detect_for_transactions(transactions, [make_expense()], date(2024, 1, 20))
        kept = detector.filter_out_duplicates(transactions, statuses)
        assert [t.description for t in kept] == ["NETFLIX"]
