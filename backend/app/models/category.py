"""
Category database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Numeric, JSON, UniqueConstraint
from app.database import Base


class Category(Base):
    """Budget category owned by a couple."""

    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    couple_id = Column(String(64), nullable=False, index=True)
    key = Column(String(64), nullable=False)
    name = Column(String(100), nullable=False)
    icon = Column(String(16), nullable=True)
    default_budget = Column(Numeric(12, 2), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    keywords = Column(JSON, nullable=False, default=list)  # Extra matching keywords for suggestions
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("couple_id", "key", name="uq_category_couple_key"),
    )
