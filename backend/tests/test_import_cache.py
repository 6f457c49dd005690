"""Tests for the import result cache."""

from datetime import date

from app.schemas.transaction import CategorySuggestion, DuplicateStatus, SuggestionSource
from app.services.import_cache import ImportCache, ImportResultCache, generate_key


class TestGenerateKey:
    """Test cache key construction."""

    def test_format(self, make_transaction):
        transaction = make_transaction(description="  Starbucks Coffee ", amount="5.5")
        assert generate_key(transaction, "dup") == "dup:2024-01-15:5.50:starbucks coffee"

    def test_ignores_case(self, make_transaction):
        assert (
            generate_key(make_transaction(description="UBER"))
            == generate_key(make_transaction(description="uber"))
        )

    def test_ignores_raw_data(self, make_transaction):
        first = make_transaction()
        second = make_transaction()
        second.raw_data = {"row_index": 9}
        assert generate_key(first) == generate_key(second)


class TestImportCache:
    """Test TTL behaviour with a controllable clock."""

    def test_set_and_get(self, clock):
        cache = ImportCache(ttl_minutes=30, clock=clock)
        cache.set("k", {"value": 1})

        entry = cache.get("k")
        assert entry["value"] == 1
        assert entry["timestamp"] == clock.now
        assert cache.has("k")

    def test_expires_after_ttl(self, clock):
        cache = ImportCache(ttl_minutes=30, clock=clock)
        cache.set("k", {"value": 1})

        clock.advance(30 * 60)
        assert cache.get("k") is not None

        clock.advance(1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, clock):
        cache = ImportCache(ttl_minutes=30, clock=clock)
        cache.set("short", {"v": 1}, ttl_minutes=1)
        cache.set("long", {"v": 2})

        clock.advance(120)
        assert cache.get("short") is None
        assert cache.get("long") is not None

    def test_clean_expired_and_stats(self, clock):
        cache = ImportCache(ttl_minutes=1, clock=clock)
        cache.set("a", {})
        clock.advance(30)
        cache.set("b", {})
        clock.advance(45)

        stats = cache.stats()
        assert stats["total_entries"] == 2
        assert stats["active_entries"] == 1
        assert stats["expired_entries"] == 1

        assert cache.clean_expired() == 1
        assert len(cache) == 1

    def test_delete_and_clear(self, clock):
        cache = ImportCache(clock=clock)
        cache.set("dup:a", {})
        cache.set("dup:b", {})
        cache.set("cat:a", {})

        assert cache.delete("missing") is False
        assert cache.delete_prefix("dup:") == 2
        assert cache.clear() == 1


class TestImportResultCache:
    """Test duplicate and category memoization."""

    def test_duplicate_round_trip(self, clock, make_transaction):
        cache = ImportResultCache(clock=clock)
        transaction = make_transaction()
        status = DuplicateStatus(has_duplicates=True, duplicate_count=1, highest_confidence=0.9)

        assert cache.get_cached_duplicate_result(transaction) is None
        cache.cache_duplicate_result(transaction, status)
        assert cache.get_cached_duplicate_result(transaction) == status

    def test_category_expires(self, clock, make_transaction):
        cache = ImportResultCache(ttl_minutes=30, clock=clock)
        transaction = make_transaction()
        suggestion = CategorySuggestion(
            category_key="food", confidence=1.0, source=SuggestionSource.keyword_match
        )

        cache.cache_category_suggestion(transaction, suggestion)
        clock.advance(31 * 60)
        assert cache.get_cached_category_suggestion(transaction) is None

    def test_scopes_are_isolated(self, clock, make_transaction):
        """Results for one couple are never served to another."""
        cache = ImportResultCache(clock=clock)
        transaction = make_transaction()
        status = DuplicateStatus(has_duplicates=True, duplicate_count=1, highest_confidence=1.0)

        cache.scoped("couple-1").cache_duplicate_result(transaction, status)

        assert cache.scoped("couple-1").get_cached_duplicate_result(transaction) == status
        assert cache.scoped("couple-2").get_cached_duplicate_result(transaction) is None
        assert cache.get_cached_duplicate_result(transaction) is None

    def test_clear_scope(self, clock, make_transaction):
        cache = ImportResultCache(clock=clock)
        transaction = make_transaction()
        status = DuplicateStatus()
        suggestion = CategorySuggestion(category_key="food", confidence=1.0)

        cache.scoped("couple-1").cache_duplicate_result(transaction, status)
        cache.scoped("couple-1").cache_category_suggestion(transaction, suggestion)
        cache.scoped("couple-2").cache_duplicate_result(transaction, status)

        assert cache.scoped("couple-1").clear_scope() == 2
        assert cache.scoped("couple-2").get_cached_duplicate_result(transaction) == status

    def test_batch_helpers(self, clock, make_transaction):
        cache = ImportResultCache(clock=clock)
        first = make_transaction()
        second = make_transaction(description="UBER TRIP", amount="12.00", txn_date=date(2024, 1, 16))
        suggestion = CategorySuggestion(category_key="transport", confidence=0.5)

        assert cache.batch_cache_category_suggestions([(second, suggestion)]) == 1
        hits = cache.batch_get_cached_category_suggestions([first, second])
        assert hits == {1: suggestion}

        cache.batch_cache_duplicate_results([(first, DuplicateStatus())])
        assert list(cache.batch_get_cached_duplicate_results([first, second])) == [0]

    def test_clean_and_clear_all(self, clock, make_transaction):
        cache = ImportResultCache(ttl_minutes=1, clock=clock)
        cache.cache_duplicate_result(make_transaction(), DuplicateStatus())
        clock.advance(61)

        assert cache.clean_all() == {"duplicates": 1, "categories": 0}
        assert cache.stats()["duplicates"]["total_entries"] == 0
        assert cache.clear_all() == {"duplicates": 0, "categories": 0}
