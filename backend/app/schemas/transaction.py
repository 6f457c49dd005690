"""
Parsed transaction, duplicate and category schemas.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import date
from decimal import Decimal
from enum import Enum

from app.models.expense import TransactionType


class ParsedTransaction(BaseModel):
    """A candidate transaction read from a bank statement.

    ``amount`` is always a positive magnitude; the direction lives in ``type``.
    ``raw_data`` is provenance for debugging and never takes part in comparisons.
    """
    date: date
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    type: TransactionType = TransactionType.debit
    currency: Optional[str] = None
    balance: Optional[Decimal] = None
    raw_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str) -> str:
        value = " ".join(value.split())
        if not value:
            raise ValueError("description must not be blank")
        return value


class StatementMetadata(BaseModel):
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    parsed_at: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    total_pages: Optional[int] = None
    strategy: Optional[str] = None
    total_rows: Optional[int] = None
    successful_rows: Optional[int] = None
    error_rows: Optional[int] = None
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    headers: List[str] = Field(default_factory=list)
    detected_columns: Dict[str, Optional[str]] = Field(default_factory=dict)


class ParseResult(BaseModel):
    transactions: List[ParsedTransaction]
    metadata: StatementMetadata = Field(default_factory=StatementMetadata)


class DuplicateMatch(BaseModel):
    expense_id: Optional[str] = None
    description: str
    amount: Decimal
    date: date
    confidence: float
    reasons: List[str] = Field(default_factory=list)


class DuplicateStatus(BaseModel):
    has_duplicates: bool = False
    duplicate_count: int = Field(0, ge=0)
    highest_confidence: float = Field(0.0, ge=0.0, le=1.0)
    needs_review: bool = False
    auto_skip: bool = False
    matched_expenses: List[DuplicateMatch] = Field(default_factory=list)


class SuggestionSource(str, Enum):
    default = "default"
    keyword_match = "keyword_match"
    learned_exact = "learned_exact"
    learned_similar = "learned_similar"
    ai = "ai"


class CategorySuggestion(BaseModel):
    category_key: str
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    matched_keywords: List[str] = Field(default_factory=list)
    source: SuggestionSource = SuggestionSource.default
