"""
Expense schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from app.models.expense import TransactionType, ExpenseSource


class ExpenseCreate(BaseModel):
    couple_id: str
    paid_by: str
    partner_id: Optional[str] = None
    amount: Decimal = Field(..., gt=0)
    currency: Optional[str] = None
    description: str = Field(..., min_length=1)
    category_key: str = "other"
    date: date
    transaction_type: TransactionType = TransactionType.debit
    paid_by_percentage: int = Field(50, ge=0, le=100)
    paid_by_share: Decimal
    partner_share: Decimal
    source: ExpenseSource = ExpenseSource.bank_import
    fingerprint: Optional[str] = None


class ExpenseResponse(BaseModel):
    id: str
    couple_id: str
    paid_by: str
    partner_id: Optional[str]
    amount: Decimal
    currency: Optional[str]
    description: str
    category_key: str
    date: date
    transaction_type: TransactionType
    paid_by_percentage: int
    paid_by_share: Decimal
    partner_share: Decimal
    source: ExpenseSource
    import_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ExpenseListResponse(BaseModel):
    items: List[ExpenseResponse]
    total: int
