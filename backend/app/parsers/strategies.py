"""
Text extraction strategies for statements without column structure.

Each strategy turns the full text of a statement into candidate
transactions. ``StatementTextExtractor`` runs them in order and keeps the
largest result, so a new bank layout is supported by adding a strategy.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from app.models.expense import TransactionType
from app.parsers.normalizers import parse_date, parse_amount, clean_description
from app.schemas.transaction import ParsedTransaction

logger = logging.getLogger(__name__)

TABLE_START_KEYWORDS = ("description", "details")
TABLE_END_KEYWORDS = ("total", "balance summary", "end of statement")
FIELD_SPLIT_RX = re.compile(r"\s{2,}|\t")

_DESC = r"([A-Za-z0-9][A-Za-z0-9 \t\-\*&'./#]*?)"
_AMOUNT = r"(\(?-?[\d,]+\.\d{2}\)?)"

# Order matters: the DR/CR layout goes first so the indicator is not lost
# to a looser pattern matching the same text.
TRANSACTION_PATTERNS: List[Pattern] = [
    re.compile(r"(\d{2}/\d{2}/\d{4})[ \t]+" + _DESC + r"[ \t]+" + _AMOUNT + r"[ \t]*(DR|CR)\b", re.IGNORECASE),
    re.compile(r"(\d{2}/\d{2}/\d{4})[ \t]+" + _DESC + r"[ \t]+" + _AMOUNT, re.IGNORECASE),
    re.compile(r"(\d{4}-\d{2}-\d{2})[ \t]+" + _DESC + r"[ \t]+" + _AMOUNT, re.IGNORECASE),
    re.compile(r"(\d{2}-\d{2}-\d{4})[ \t]+" + _DESC + r"[ \t]+" + _AMOUNT, re.IGNORECASE),
]


def composite_key(transaction: ParsedTransaction) -> Tuple[str, str, str]:
    """Key used to drop the same transaction matched twice."""
    return (
        transaction.date.isoformat(),
        f"{transaction.amount:.2f}",
        transaction.description[:20],
    )


def dedupe(transactions: Iterable[ParsedTransaction]) -> List[ParsedTransaction]:
    seen = set()
    unique = []
    for transaction in transactions:
        key = composite_key(transaction)
        if key in seen:
            continue
        seen.add(key)
        unique.append(transaction)
    return unique


class ExtractionStrategy(ABC):
    """Turns statement text into candidate transactions."""

    name: str = ""

    @abstractmethod
    def attempt(self, text: str, date_format: str = "auto") -> Optional[List[ParsedTransaction]]:
        """Return candidates, or None when the layout is not recognised."""
        pass


class TableExtractionStrategy(ExtractionStrategy):
    """
    Reads column-aligned transaction tables.

    A header line mentioning a date and a description opens the table and a
    totals/summary line closes it. Rows are split on runs of two or more
    spaces; the first field is the date and the first later field holding a
    non-zero amount ends the description.
    """

    name = "table"

    def attempt(self, text: str, date_format: str = "auto") -> Optional[List[ParsedTransaction]]:
        transactions = []
        in_table = False

        for line in text.splitlines():
            lowered = line.lower()

            if "date" in lowered and any(k in lowered for k in TABLE_START_KEYWORDS):
                in_table = True
                continue

            if in_table and any(k in lowered for k in TABLE_END_KEYWORDS):
                in_table = False
                continue

            if not in_table:
                continue

            transaction = self._parse_line(line, date_format)
            if transaction is not None:
                transactions.append(transaction)

        return transactions or None

    def _parse_line(self, line: str, date_format: str = "auto") -> Optional[ParsedTransaction]:
        parts = [p.strip() for p in FIELD_SPLIT_RX.split(line) if p.strip()]
        if len(parts) < 2:
            return None

        txn_date = parse_date(parts[0], date_format)
        if txn_date is None:
            return None

        for i in range(1, len(parts)):
            value = parse_amount(parts[i])
            if value == 0:
                continue
            description = clean_description(" ".join(parts[1:i]))
            if not description:
                return None
            return ParsedTransaction(
                date=txn_date,
                description=description,
                amount=abs(value),
                type=TransactionType.credit if value < 0 else TransactionType.debit,
                raw_data={"original_line": line},
            )
        return None


class PatternExtractionStrategy(ExtractionStrategy):
    """Applies regular expressions for "date description amount [DR|CR]" layouts."""

    name = "pattern"

    def __init__(self, patterns: Optional[Sequence[Pattern]] = None):
        self.patterns = list(patterns) if patterns is not None else list(TRANSACTION_PATTERNS)

    def attempt(self, text: str, date_format: str = "auto") -> Optional[List[ParsedTransaction]]:
        transactions = []
        seen = set()

        for pattern in self.patterns:
            for match in pattern.finditer(text):
                transaction = self._from_match(match, date_format)
                if transaction is None:
                    continue
                key = composite_key(transaction)
                if key in seen:
                    continue
                seen.add(key)
                transactions.append(transaction)

        return transactions or None

    def _from_match(self, match: re.Match, date_format: str = "auto") -> Optional[ParsedTransaction]:
        groups = match.groups()
        date_str, description, amount_str = groups[0], groups[1], groups[2]
        indicator = groups[3] if len(groups) > 3 else None

        txn_date = parse_date(date_str, date_format)
        if txn_date is None:
            return None

        value = parse_amount(amount_str)
        if value == 0:
            return None

        description = clean_description(description)
        if not description:
            return None

        if indicator:
            txn_type = TransactionType.credit if indicator.upper() == "CR" else TransactionType.debit
        else:
            txn_type = TransactionType.credit if value < 0 else TransactionType.debit

        return ParsedTransaction(
            date=txn_date,
            description=description,
            amount=abs(value),
            type=txn_type,
            raw_data={"original_text": match.group(0)},
        )


class StatementTextExtractor:
    """
    Runs strategies in order and keeps the largest result.

    Later strategies are only tried while the best result is smaller than
    ``min_transactions``; on equal counts the earlier strategy wins.
    """

    def __init__(
        self,
        strategies: Optional[Sequence[ExtractionStrategy]] = None,
        min_transactions: int = 5
    ):
        self.strategies = list(strategies) if strategies is not None else [
            TableExtractionStrategy(),
            PatternExtractionStrategy(),
        ]
        self.min_transactions = min_transactions

    def extract(
        self,
        text: str,
        date_format: str = "auto"
    ) -> Tuple[List[ParsedTransaction], Optional[str]]:
        """Return (sorted unique transactions, name of the winning strategy)."""
        best: List[ParsedTransaction] = []
        best_name = None

        for strategy in self.strategies:
            if best and len(best) >= self.min_transactions:
                break
            candidates = strategy.attempt(text, date_format) or []
            logger.debug("Strategy %s found %d transactions", strategy.name, len(candidates))
            if len(candidates) > len(best):
                best, best_name = candidates, strategy.name

        ordered = sorted(best, key=lambda t: t.date)
        return dedupe(ordered), best_name
