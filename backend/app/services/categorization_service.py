"""
Category suggestions for imported transactions.

Past expenses with the same (or a very similar) description win first;
otherwise keywords are scored per category. An LLM can be consulted for
low-confidence rows when ``ai_auto_categorize`` is enabled.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.ai.prompts.categorization import CATEGORIZATION_SYSTEM, CATEGORIZATION_USER
from app.config import settings
from app.schemas.transaction import ParsedTransaction, CategorySuggestion, SuggestionSource
from app.services.import_cache import ImportResultCache

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "other"
MAX_KEYWORD_SCORE = 10

DEFAULT_CATEGORIES: Dict[str, Dict[str, Any]] = {
    "food": {"name": "Food & Dining", "icon": "🍔", "default_budget": 500},
    "groceries": {"name": "Groceries", "icon": "🛒", "default_budget": 400},
    "transport": {"name": "Transport", "icon": "🚗", "default_budget": 200},
    "home": {"name": "Home & Utilities", "icon": "🏠", "default_budget": 800},
    "fun": {"name": "Entertainment", "icon": "🎉", "default_budget": 300},
    "other": {"name": "Other", "icon": "💡", "default_budget": 200},
}

DEFAULT_CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "food": [
        "restaurant", "cafe", "coffee", "pizza", "burger", "mcdonald", "mcdonalds",
        "burger king", "kfc", "subway", "starbucks", "dunkin", "chipotle",
        "taco bell", "wendys", "dominos", "pizza hut", "panera", "chick-fil-a",
        "five guys", "shake shack", "panda express", "popeyes",
        "diner", "bistro", "grill", "bar", "pub", "eatery",
        "food", "dining", "meal", "lunch", "dinner", "breakfast", "brunch",
        "uber eats", "doordash", "grubhub", "postmates", "deliveroo",
    ],
    "groceries": [
        "supermarket", "grocery", "market", "whole foods", "trader joe",
        "safeway", "kroger", "albertsons", "publix", "wegmans", "aldi",
        "costco", "walmart", "target", "sams club", "food lion",
        "harris teeter", "stop & shop", "shoprite", "meijer", "heb", "sprouts",
    ],
    "transport": [
        "uber", "lyft", "taxi", "cab", "gasoline", "fuel", "shell",
        "exxon", "chevron", "mobil", "sunoco", "citgo",
        "parking", "garage", "metro", "bus", "train",
        "transit", "toll", "ezpass", "rental car", "zipcar",
        "hertz", "avis", "car wash", "oil change",
    ],
    "home": [
        "rent", "lease", "landlord", "mortgage",
        "utilities", "electric", "electricity", "water",
        "internet", "wifi", "cable", "phone",
        "comcast", "xfinity", "verizon", "at&t", "spectrum", "t-mobile",
        "furniture", "ikea", "home depot", "lowes", "wayfair",
        "repair", "maintenance", "plumber", "cleaning",
    ],
    "fun": [
        "movie", "cinema", "theater", "theatre", "amc", "regal",
        "netflix", "hulu", "disney", "hbo", "spotify", "apple music",
        "youtube", "playstation", "xbox", "nintendo", "steam", "gaming",
        "concert", "ticket", "ticketmaster", "museum", "zoo",
        "gym", "fitness", "yoga", "spa", "salon", "massage", "barber",
    ],
    "other": [
        "amazon", "ebay", "paypal", "venmo", "zelle",
        "atm", "withdrawal", "transfer", "payment", "misc",
    ],
}

_NON_ALNUM_RX = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RX = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    text = _NON_ALNUM_RX.sub(" ", (text or "").lower().strip())
    return _WHITESPACE_RX.sub(" ", text).strip()


def word_overlap(first: str, second: str) -> float:
    """Jaccard overlap of words longer than two characters"""
    words_a = {w for w in first.split(" ") if len(w) > 2}
    words_b = {w for w in second.split(" ") if len(w) > 2}
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def keyword_score(description: str, keywords: Iterable[str]):
    """Return (score, matched keywords): exact 10, whole word 5, substring 2."""
    normalized = normalize_text(description)
    score = 0
    matched = []
    for keyword in keywords:
        normalized_keyword = normalize_text(keyword)
        if not normalized_keyword:
            continue
        if normalized == normalized_keyword:
            score += 10
        elif re.search(rf"\b{re.escape(normalized_keyword)}\b", normalized):
            score += 5
        elif normalized_keyword in normalized:
            score += 2
        else:
            continue
        matched.append(keyword)
    return score, matched


def _category_of(expense: Any) -> Optional[str]:
    if isinstance(expense, dict):
        return expense.get("category_key") or expense.get("category")
    return getattr(expense, "category_key", None)


def _description_of(expense: Any) -> str:
    if isinstance(expense, dict):
        return expense.get("description") or ""
    return getattr(expense, "description", None) or ""


def learn_from_past_expenses(
    description: str,
    past_expenses: Sequence[Any]
) -> Optional[CategorySuggestion]:
    normalized = normalize_text(description)

    for expense in past_expenses:
        category = _category_of(expense)
        if category and normalize_text(_description_of(expense)) == normalized:
            return CategorySuggestion(
                category_key=category,
                confidence=1.0,
                matched_keywords=["exact_match"],
                source=SuggestionSource.learned_exact,
            )

    best_key, best_similarity = None, 0.0
    for expense in past_expenses:
        category = _category_of(expense)
        if not category:
            continue
        similarity = word_overlap(normalized, normalize_text(_description_of(expense)))
        if similarity > 0.7 and similarity > best_similarity:
            best_key, best_similarity = category, similarity

    if best_key is None:
        return None
    return CategorySuggestion(
        category_key=best_key,
        confidence=best_similarity,
        matched_keywords=["similar_transaction"],
        source=SuggestionSource.learned_similar,
    )


def add_custom_keyword(
    custom_keywords: Dict[str, List[str]],
    category_key: str,
    keyword: str
) -> Dict[str, List[str]]:
    """Return a copy of ``custom_keywords`` with ``keyword`` added to the category."""
    updated = {key: list(words) for key, words in custom_keywords.items()}
    normalized = normalize_text(keyword)
    words = updated.setdefault(category_key, [])
    if normalized and normalized not in words:
        words.append(normalized)
    return updated


def suggestion_stats(suggestions: Iterable[CategorySuggestion]) -> Dict[str, Any]:
    stats: Dict[str, Any] = {
        "total": 0,
        "high_confidence": 0,
        "medium_confidence": 0,
        "low_confidence": 0,
        "by_category": {},
    }
    for suggestion in suggestions:
        stats["total"] += 1
        if suggestion.confidence > 0.7:
            stats["high_confidence"] += 1
        elif suggestion.confidence >= 0.4:
            stats["medium_confidence"] += 1
        else:
            stats["low_confidence"] += 1
        by_category = stats["by_category"]
        by_category[suggestion.category_key] = by_category.get(suggestion.category_key, 0) + 1
    return stats


def _fallback(categories: Sequence[str], preferred: Optional[str] = None) -> CategorySuggestion:
    """Zero-confidence suggestion for a key the couple actually has."""
    if preferred and preferred in categories:
        key = preferred
    elif FALLBACK_CATEGORY in categories or not categories:
        key = FALLBACK_CATEGORY
    else:
        key = categories[0]
    return CategorySuggestion(
        category_key=key,
        confidence=0.0,
        source=SuggestionSource.default,
    )


class CategorySuggester:
    """Keyword and history based category suggestions."""

    def __init__(
        self,
        keywords: Optional[Dict[str, List[str]]] = None,
        min_confidence: float = 0.2,
        display_threshold: Optional[float] = None,
        cache: Optional[ImportResultCache] = None,
        ai_client=None,
        fallback_key: Optional[str] = None
    ):
        self.keywords = {
            key: list(words)
            for key, words in (keywords if keywords is not None else DEFAULT_CATEGORY_KEYWORDS).items()
        }
        self.min_confidence = min_confidence
        self.display_threshold = (
            settings.category_display_threshold if display_threshold is None else display_threshold
        )
        self.cache = cache
        self._ai_client = ai_client
        self.fallback_key = fallback_key

    def _keywords_for(
        self,
        category_key: str,
        custom_keywords: Optional[Dict[str, List[str]]]
    ) -> List[str]:
        key = category_key.lower()
        words = list(self.keywords.get(key, []))
        if custom_keywords:
            words.extend(custom_keywords.get(key, []))
        return words

    def suggest(
        self,
        description: Optional[str],
        available_categories: Optional[Sequence[str]] = None,
        custom_keywords: Optional[Dict[str, List[str]]] = None,
        past_expenses: Optional[Sequence[Any]] = None
    ) -> CategorySuggestion:
        """Best category for ``description``; never None."""
        categories = list(available_categories or DEFAULT_CATEGORIES.keys())
        if not description or not description.strip():
            return _fallback(categories, self.fallback_key)

        if past_expenses:
            learned = learn_from_past_expenses(description, past_expenses)
            if learned and learned.confidence > 0.8:
                return learned

        best_key, best_score, best_matched = None, -1, []
        for category_key in categories:
            score, matched = keyword_score(description, self._keywords_for(category_key, custom_keywords))
            if score > best_score:
                best_key, best_score, best_matched = category_key, score, matched

        confidence = min(max(best_score, 0) / MAX_KEYWORD_SCORE, 1.0)
        if best_key is None or confidence < self.min_confidence:
            return _fallback(categories, self.fallback_key)

        return CategorySuggestion(
            category_key=best_key,
            confidence=confidence,
            matched_keywords=best_matched,
            source=SuggestionSource.keyword_match,
        )

    def suggest_for_transaction(
        self,
        transaction: ParsedTransaction,
        available_categories: Optional[Sequence[str]] = None,
        custom_keywords: Optional[Dict[str, List[str]]] = None,
        past_expenses: Optional[Sequence[Any]] = None
    ) -> CategorySuggestion:
        if self.cache is not None:
            cached = self.cache.get_cached_category_suggestion(transaction)
            if cached is not None:
                return cached

        suggestion = self.suggest(
            transaction.description, available_categories, custom_keywords, past_expenses
        )

        if self.cache is not None:
            self.cache.cache_category_suggestion(transaction, suggestion)
        return suggestion

    def suggest_for_transactions(
        self,
        transactions: Sequence[ParsedTransaction],
        available_categories: Optional[Sequence[str]] = None,
        custom_keywords: Optional[Dict[str, List[str]]] = None,
        past_expenses: Optional[Sequence[Any]] = None
    ) -> List[CategorySuggestion]:
        return [
            self.suggest_for_transaction(t, available_categories, custom_keywords, past_expenses)
            for t in transactions
        ]

    def is_confident(self, suggestion: CategorySuggestion) -> bool:
        return suggestion.confidence >= self.display_threshold

    def _get_ai_client(self):
        if self._ai_client is None:
            from app.ai.client import AIClient
            self._ai_client = AIClient()
        return self._ai_client

    async def suggest_with_ai(
        self,
        transaction: ParsedTransaction,
        available_categories: Optional[Sequence[str]] = None,
        custom_keywords: Optional[Dict[str, List[str]]] = None,
        past_expenses: Optional[Sequence[Any]] = None
    ) -> CategorySuggestion:
        """Keyword suggestion, upgraded by the LLM when it is not confident."""
        suggestion = self.suggest_for_transaction(
            transaction, available_categories, custom_keywords, past_expenses
        )
        if suggestion.source == SuggestionSource.ai:
            return suggestion
        if not settings.ai_auto_categorize or self.is_confident(suggestion):
            return suggestion

        categories = list(available_categories or DEFAULT_CATEGORIES.keys())
        try:
            result = await self._get_ai_client().complete_json(
                system_prompt=CATEGORIZATION_SYSTEM.format(category_keys=", ".join(categories)),
                user_prompt=CATEGORIZATION_USER.format(
                    description=transaction.description,
                    amount=f"{transaction.amount:.2f}",
                    date=transaction.date.isoformat(),
                ),
                temperature=0.1,
                max_tokens=100
            )
        except Exception as e:
            logger.warning(f"AI categorization failed: {e}")
            return suggestion

        category_key = result.get("category_key") if isinstance(result, dict) else None
        if category_key not in categories:
            logger.warning(f"AI returned unknown category: {category_key}")
            return suggestion

        try:
            confidence = float(result.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5

        ai_suggestion = CategorySuggestion(
            category_key=category_key,
            confidence=max(0.0, min(confidence, 1.0)),
            source=SuggestionSource.ai,
        )
        if self.cache is not None:
            self.cache.cache_category_suggestion(transaction, ai_suggestion)
        return ai_suggestion
