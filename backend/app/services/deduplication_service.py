"""
Deduplication service for imported transactions.

Imported rows are compared against the couple's existing expenses by date
proximity, exact amount and fuzzy description similarity.
"""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from difflib import SequenceMatcher
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.models.expense import Expense
from app.schemas.transaction import ParsedTransaction, DuplicateMatch, DuplicateStatus
from app.services.import_cache import ImportResultCache

_WHITESPACE_RX = re.compile(r"\s+")

PARTIAL_SIMILARITY = 0.5
MIN_CONTAINED_LENGTH = 4


def generate_transaction_hash(
    txn_date: date,
    amount: Decimal,
    description: str,
    couple_id: str
) -> str:
    """
    Generate SHA256 fingerprint for exact-duplicate storage.
    Uses date|amount|description|couple_id
    """
    components = [
        txn_date.isoformat(),
        f"{Decimal(amount):.2f}",
        description.strip().lower(),
        str(couple_id)
    ]
    combined = "|".join(components)
    return hashlib.sha256(combined.encode()).hexdigest()


def normalize_description(text: Optional[str]) -> str:
    return _WHITESPACE_RX.sub(" ", (text or "").lower()).strip()


def description_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Similarity in [0, 1] between two bank descriptions.

    Identical strings score 1.0. When one contains the other (and the shorter
    has at least four characters) the score is at least 0.8. Otherwise the
    best of the character ratio and word overlap.
    """
    first, second = normalize_description(a), normalize_description(b)
    if not first or not second:
        return 0.0
    if first == second:
        return 1.0

    ratio = SequenceMatcher(None, first, second).ratio()

    words_a, words_b = set(first.split()), set(second.split())
    jaccard = len(words_a & words_b) / len(words_a | words_b)

    score = max(ratio, jaccard)

    shorter, longer = sorted((first, second), key=len)
    if len(shorter) >= MIN_CONTAINED_LENGTH and shorter in longer:
        score = max(score, 0.8 + 0.2 * len(shorter) / len(longer))

    return min(score, 1.0)


@dataclass
class DuplicateCheck:
    is_duplicate: bool
    confidence: float
    reasons: List[str] = field(default_factory=list)
    expense: Optional[Any] = None


class DuplicateDetector:
    """Scores candidate transactions against existing expenses."""

    def __init__(
        self,
        date_tolerance_days: int = 2,
        description_similarity: float = 0.8,
        high_confidence: float = 0.8,
        auto_skip_threshold: float = 0.95,
        lookback_days: int = 90,
        cache: Optional[ImportResultCache] = None
    ):
        self.date_tolerance_days = date_tolerance_days
        self.description_threshold = description_similarity
        self.high_confidence = high_confidence
        self.auto_skip_threshold = auto_skip_threshold
        self.lookback_days = lookback_days
        self.cache = cache

    def compare(self, transaction: ParsedTransaction, expense: Expense) -> DuplicateCheck:
        if expense.date is None or expense.amount is None:
            return DuplicateCheck(False, 0.0)

        if Decimal(expense.amount).quantize(Decimal("0.01")) != transaction.amount.quantize(Decimal("0.01")):
            return DuplicateCheck(False, 0.0)

        days_apart = abs((transaction.date - expense.date).days)
        if days_apart > self.date_tolerance_days:
            return DuplicateCheck(False, 0.0)

        score = 0.0
        reasons = []

        if days_apart == 0:
            score += 0.3
            reasons.append("Same date")
        elif days_apart == 1:
            score += 0.2
            reasons.append("1 day apart")
        else:
            score += 0.1
            reasons.append(f"{days_apart} days apart")

        score += 0.4
        reasons.append("Exact amount match")

        similarity = description_similarity(transaction.description, expense.description)
        similar = similarity >= self.description_threshold
        partial = similarity >= PARTIAL_SIMILARITY

        if similar:
            score += 0.3
            reasons.append(f"Similar description ({similarity:.0%})")
        elif partial:
            score += 0.15
            reasons.append(f"Partially similar description ({similarity:.0%})")

        is_duplicate = similar or (partial and days_apart == 0)
        confidence = max(0.0, min(round(score, 4), 1.0))

        return DuplicateCheck(is_duplicate, confidence, reasons, expense)

    def find_duplicates(
        self,
        transaction: ParsedTransaction,
        expenses: Iterable[Expense]
    ) -> List[DuplicateCheck]:
        matches = []
        for expense in expenses:
            check = self.compare(transaction, expense)
            if check.is_duplicate or check.confidence > 0.5:
                matches.append(check)
        matches.sort(key=lambda c: c.confidence, reverse=True)
        return matches

    def status_for(
        self,
        transaction: ParsedTransaction,
        expenses: Sequence[Expense]
    ) -> DuplicateStatus:
        if self.cache is not None:
            cached = self.cache.get_cached_duplicate_result(transaction)
            if cached is not None:
                return cached

        matches = self.find_duplicates(transaction, expenses)
        highest = matches[0].confidence if matches else 0.0
        auto_skip = highest >= self.auto_skip_threshold

        status = DuplicateStatus(
            has_duplicates=bool(matches),
            duplicate_count=len(matches),
            highest_confidence=highest,
            needs_review=bool(matches) and not auto_skip,
            auto_skip=auto_skip,
            matched_expenses=[
                DuplicateMatch(
                    expense_id=str(m.expense.id) if getattr(m.expense, "id", None) is not None else None,
                    description=m.expense.description,
                    amount=m.expense.amount,
                    date=m.expense.date,
                    confidence=m.confidence,
                    reasons=m.reasons,
                )
                for m in matches
            ],
        )

        if self.cache is not None:
            self.cache.cache_duplicate_result(transaction, status)
        return status

    def detect_for_transactions(
        self,
        transactions: Sequence[ParsedTransaction],
        expenses: Sequence[Expense],
        reference_date: Optional[date] = None
    ) -> List[DuplicateStatus]:
        """Status per transaction, comparing only expenses inside the lookback window."""
        reference_date = reference_date or date.today()
        cutoff = reference_date - timedelta(days=self.lookback_days)
        recent = [e for e in expenses if e.date is not None and e.date >= cutoff]
        return [self.status_for(t, recent) for t in transactions]

    def summarize(self, results: Sequence[DuplicateStatus]) -> Dict[str, int]:
        summary = {
            "total": len(results),
            "none": 0,
            "possible": 0,
            "likely": 0,
            "definite": 0,
        }
        for status in results:
            if not status.has_duplicates:
                summary["none"] += 1
            elif status.highest_confidence >= self.auto_skip_threshold:
                summary["definite"] += 1
            elif status.highest_confidence >= self.high_confidence:
                summary["likely"] += 1
            else:
                summary["possible"] += 1
        return summary

    def filter_out_duplicates(
        self,
        transactions: Sequence[ParsedTransaction],
        results: Sequence[DuplicateStatus],
        threshold: Optional[float] = None
    ) -> List[ParsedTransaction]:
        """Drop transactions whose best match reaches ``threshold`` (default: auto-skip)."""
        threshold = self.auto_skip_threshold if threshold is None else threshold
        return [
            t for t, status in zip(transactions, results)
            if not (status.has_duplicates and status.highest_confidence >= threshold)
        ]


def is_duplicate(db: Session, fingerprint: str, couple_id: str) -> bool:
    """Check if an expense with this fingerprint already exists for the couple"""
    return db.query(Expense).filter(
        Expense.couple_id == couple_id,
        Expense.fingerprint == fingerprint
    ).first() is not None
