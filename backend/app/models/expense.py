"""
Expense database model.
"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, Numeric, Integer, Text, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.database import Base


class TransactionType(str, enum.Enum):
    """Direction of money movement as read from a bank statement."""
    debit = "debit"
    credit = "credit"


class ExpenseSource(str, enum.Enum):
    manual = "manual"
    bank_import = "bank_import"
    receipt = "receipt"


class Expense(Base):
    """Shared expense between two partners."""

    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    couple_id = Column(String(64), nullable=False, index=True)
    paid_by = Column(String(64), nullable=False)
    partner_id = Column(String(64), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)  # Always positive, direction in transaction_type
    currency = Column(String(3), nullable=True)
    description = Column(Text, nullable=False)
    category_key = Column(String(64), nullable=False, default="other")
    date = Column(Date, nullable=False, index=True)
    transaction_type = Column(Enum(TransactionType), nullable=False, default=TransactionType.debit)

    # Split between the payer and the partner
    paid_by_percentage = Column(Integer, nullable=False, default=50)
    paid_by_share = Column(Numeric(12, 2), nullable=False)
    partner_share = Column(Numeric(12, 2), nullable=False)

    source = Column(Enum(ExpenseSource), nullable=False, default=ExpenseSource.manual)
    fingerprint = Column(String(64), nullable=True, index=True)
    import_id = Column(String(36), ForeignKey("import_logs.id"), nullable=True)
    receipt_path = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    import_log = relationship("ImportLog", back_populates="expenses")

    __table_args__ = (
        Index("idx_expense_couple_date", "couple_id", "date"),
    )
