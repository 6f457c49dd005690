"""
Normalizers for raw statement text.

None of these raise on bad input: an unreadable date is ``None`` and an
unreadable amount is ``Decimal("0")``. Callers skip rows with either.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from dateutil import parser as date_parser

AUTO = "auto"
MONTH_FIRST = "MM/DD/YYYY"
DAY_FIRST = "DD/MM/YYYY"

_DAY_MONTH_YEAR = "day_month_year"
_YEAR_MONTH_DAY = "year_month_day"

# Tried in order
DATE_PATTERNS = [
    (re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})$"), _DAY_MONTH_YEAR),
    (re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$"), _YEAR_MONTH_DAY),
    (re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$"), _DAY_MONTH_YEAR),
]

# Shapes that count as "a date cell" when trimming CSV footers
DATE_LIKE_PATTERNS = [
    re.compile(r"^\d{2}/\d{2}/\d{4}$"),
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),
    re.compile(r"^\d{2}-\d{2}-\d{4}$"),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}$"),
]

# Longest symbols first so "MX$" is not read as "$"
CURRENCY_SYMBOLS = {
    "COL$": "COP",
    "US$": "USD",
    "MX$": "MXN",
    "R$": "BRL",
    "S/": "PEN",
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "CNY",
}
CURRENCY_CODE_RX = re.compile(r"\b(USD|MXN|COP|PEN|EUR|GBP|CNY|BRL)\b")

_PLAIN_NUMBER_RX = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")
_FALLBACK_YEAR_RX = re.compile(r"\d{4}")
_WHITESPACE_RX = re.compile(r"\s+")
_ASTERISKS_RX = re.compile(r"\*{2,}")


def _expand_year(year: int) -> int:
    if year >= 100:
        return year
    return 2000 + year if year < 70 else 1900 + year


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(text: Optional[str], date_format: str = AUTO) -> Optional[date]:
    """
    Parse a statement date.

    Slash and dash dates are read day-first. In ``auto`` mode a day-first
    reading that is not a real calendar date is retried month-first, so
    ``01/15/2024`` still reads as 15 January. ``date_format`` may force
    ``MM/DD/YYYY`` or ``DD/MM/YYYY``.
    """
    if not text or not isinstance(text, str):
        return None

    cleaned = text.strip()
    if not cleaned:
        return None

    for pattern, order in DATE_PATTERNS:
        match = pattern.match(cleaned)
        if not match:
            continue

        if order == _YEAR_MONTH_DAY:
            year, month, day = (int(g) for g in match.groups())
            return _safe_date(year, month, day)

        first, second, year = (int(g) for g in match.groups())
        year = _expand_year(year)

        if date_format == MONTH_FIRST:
            return _safe_date(year, first, second)
        if date_format == DAY_FIRST:
            return _safe_date(year, second, first)

        return _safe_date(year, second, first) or _safe_date(year, first, second)

    # Generic fallback for things like "15 Jan 2024"; needs an explicit year
    if len(cleaned) > 40 or not _FALLBACK_YEAR_RX.search(cleaned):
        return None
    try:
        parsed = date_parser.parse(cleaned, dayfirst=date_format != MONTH_FIRST)
    except (ValueError, OverflowError):
        return None
    return parsed.date()


def is_date_like(value: Optional[str]) -> bool:
    if not value or not isinstance(value, str):
        return False
    stripped = value.strip()
    return any(rx.match(stripped) for rx in DATE_LIKE_PATTERNS)


def parse_amount(text: Union[str, int, float, Decimal, None]) -> Decimal:
    """
    Parse a currency-formatted amount.

    Currency symbols, ISO codes, thousands separators and whitespace are
    dropped. ``(12.50)`` is negative. Anything else that is not a plain
    number gives ``Decimal("0")``.
    """
    if text is None:
        return Decimal("0")
    if isinstance(text, Decimal):
        return text
    if isinstance(text, (int, float)):
        return Decimal(str(text))

    cleaned = CURRENCY_CODE_RX.sub("", str(text))
    for symbol in CURRENCY_SYMBOLS:
        cleaned = cleaned.replace(symbol, "")
    cleaned = re.sub(r"[,\s]", "", cleaned)

    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = cleaned[1:-1]
        negative = True

    if not _PLAIN_NUMBER_RX.match(cleaned):
        return Decimal("0")

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")

    return -abs(value) if negative else value


def detect_currency(text: Optional[str]) -> Optional[str]:
    """Return the ISO code implied by a symbol or code in ``text``."""
    if not text:
        return None

    value = str(text).strip()
    code = CURRENCY_CODE_RX.search(value)
    if code:
        return code.group(1)

    for symbol, currency in CURRENCY_SYMBOLS.items():
        if symbol in value:
            return currency
    return None


def clean_description(text: Optional[str]) -> str:
    if not text:
        return ""
    text = _WHITESPACE_RX.sub(" ", str(text))
    text = _ASTERISKS_RX.sub("*", text)
    return text.strip()


def is_zero_amount(text: Optional[str]) -> bool:
    """True for cells like ``0.00`` or ``$0``, which parse to zero legitimately."""
    digits = re.sub(r"\D", "", str(text or ""))
    return bool(digits) and not digits.strip("0")
