"""
In-memory TTL cache for import results.

Duplicate checks and category suggestions are memoized per transaction so
re-previewing the same statement is cheap. Entries expire ``ttl_minutes``
after they are written; nothing is persisted.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.schemas.transaction import ParsedTransaction, DuplicateStatus, CategorySuggestion

logger = logging.getLogger(__name__)

DUPLICATE_PREFIX = "dup"
CATEGORY_PREFIX = "cat"


def generate_key(transaction: ParsedTransaction, prefix: str = "txn") -> str:
    """``{prefix}:{iso date}:{amount}:{description}`` with a lower-cased, trimmed description."""
    description = transaction.description.lower().strip()
    return f"{prefix}:{transaction.date.isoformat()}:{transaction.amount:.2f}:{description}"


class ImportCache:
    """Key/value store with absolute per-entry expiry."""

    def __init__(self, ttl_minutes: float = 30, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_minutes * 60
        self._clock = clock
        self._entries: Dict[str, Dict[str, Any]] = {}

    generate_key = staticmethod(generate_key)

    def set(self, key: str, value: Dict[str, Any], ttl_minutes: Optional[float] = None) -> None:
        now = self._clock()
        ttl = self.ttl_seconds if ttl_minutes is None else ttl_minutes * 60
        self._entries[key] = {
            "value": {**value, "timestamp": now},
            "expires_at": now + ttl,
        }

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry["expires_at"]:
            del self._entries[key]
            return None
        return entry["value"]

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clean_expired(self) -> int:
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if now > entry["expires_at"]]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Evicted %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        active = sum(1 for entry in self._entries.values() if now <= entry["expires_at"])
        return {
            "total_entries": len(self._entries),
            "active_entries": active,
            "expired_entries": len(self._entries) - active,
            "ttl_minutes": self.ttl_seconds / 60,
        }

    def __len__(self) -> int:
        return len(self._entries)


class ImportResultCache:
    """The duplicate ("dup") and category ("cat") caches used during a preview."""

    def __init__(
        self,
        ttl_minutes: float = 30,
        clock: Callable[[], float] = time.time,
        duplicates: Optional[ImportCache] = None,
        categories: Optional[ImportCache] = None,
        scope: Optional[str] = None
    ):
        self.duplicates = duplicates if duplicates is not None else ImportCache(ttl_minutes, clock)
        self.categories = categories if categories is not None else ImportCache(ttl_minutes, clock)
        self.scope = scope

    def scoped(self, scope: str) -> "ImportResultCache":
        """A view over the same stores whose keys are namespaced by ``scope`` (e.g. a couple id)."""
        return ImportResultCache(duplicates=self.duplicates, categories=self.categories, scope=scope)

    def _key(self, transaction: ParsedTransaction, namespace: str) -> str:
        prefix = f"{namespace}@{self.scope}" if self.scope else namespace
        return generate_key(transaction, prefix)

    def clear_scope(self) -> int:
        """Drop every entry written through this scope."""
        if not self.scope:
            return 0
        return (
            self.duplicates.delete_prefix(f"{DUPLICATE_PREFIX}@{self.scope}:")
            + self.categories.delete_prefix(f"{CATEGORY_PREFIX}@{self.scope}:")
        )

    def cache_duplicate_result(self, transaction: ParsedTransaction, status: DuplicateStatus) -> None:
        key = self._key(transaction, DUPLICATE_PREFIX)
        self.duplicates.set(key, {"status": status.model_dump(mode="json")})

    def get_cached_duplicate_result(self, transaction: ParsedTransaction) -> Optional[DuplicateStatus]:
        entry = self.duplicates.get(self._key(transaction, DUPLICATE_PREFIX))
        if entry is None:
            return None
        return DuplicateStatus.model_validate(entry["status"])

    def cache_category_suggestion(
        self,
        transaction: ParsedTransaction,
        suggestion: CategorySuggestion
    ) -> None:
        key = self._key(transaction, CATEGORY_PREFIX)
        self.categories.set(key, {"suggestion": suggestion.model_dump(mode="json")})

    def get_cached_category_suggestion(
        self,
        transaction: ParsedTransaction
    ) -> Optional[CategorySuggestion]:
        entry = self.categories.get(self._key(transaction, CATEGORY_PREFIX))
        if entry is None:
            return None
        return CategorySuggestion.model_validate(entry["suggestion"])

    def batch_cache_duplicate_results(self, pairs: Iterable) -> int:
        count = 0
        for transaction, status in pairs:
            self.cache_duplicate_result(transaction, status)
            count += 1
        return count

    def batch_get_cached_duplicate_results(
        self,
        transactions: List[ParsedTransaction]
    ) -> Dict[int, DuplicateStatus]:
        """Cached statuses keyed by position in ``transactions``; misses are absent."""
        hits = {}
        for index, transaction in enumerate(transactions):
            status = self.get_cached_duplicate_result(transaction)
            if status is not None:
                hits[index] = status
        return hits

    def batch_cache_category_suggestions(self, pairs: Iterable) -> int:
        count = 0
        for transaction, suggestion in pairs:
            self.cache_category_suggestion(transaction, suggestion)
            count += 1
        return count

    def batch_get_cached_category_suggestions(
        self,
        transactions: List[ParsedTransaction]
    ) -> Dict[int, CategorySuggestion]:
        hits = {}
        for index, transaction in enumerate(transactions):
            suggestion = self.get_cached_category_suggestion(transaction)
            if suggestion is not None:
                hits[index] = suggestion
        return hits

    def clean_all(self) -> Dict[str, int]:
        return {
            "duplicates": self.duplicates.clean_expired(),
            "categories": self.categories.clean_expired(),
        }

    def clear_all(self) -> Dict[str, int]:
        return {
            "duplicates": self.duplicates.clear(),
            "categories": self.categories.clear(),
        }

    def stats(self) -> Dict[str, Any]:
        return {
            "duplicates": self.duplicates.stats(),
            "categories": self.categories.stats(),
        }
