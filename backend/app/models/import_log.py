"""
Import log database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Enum, Text
from sqlalchemy.orm import relationship
import enum
from app.database import Base


class ImportStatus(str, enum.Enum):
    """Import status enumeration."""
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class ImportLog(Base):
    """Import log model for tracking statement imports."""

    __tablename__ = "import_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    couple_id = Column(String(64), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    file_type = Column(String(8), nullable=True)
    status = Column(Enum(ImportStatus), nullable=False, default=ImportStatus.pending)
    transactions_parsed = Column(Integer, default=0, nullable=False)
    transactions_imported = Column(Integer, default=0, nullable=False)
    transactions_skipped = Column(Integer, default=0, nullable=False)
    error_type = Column(String(32), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    expenses = relationship("Expense", back_populates="import_log")
