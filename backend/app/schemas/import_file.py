"""
Statement import schemas.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from decimal import Decimal

from app.models.import_log import ImportStatus
from app.schemas.transaction import (
    ParsedTransaction,
    StatementMetadata,
    CategorySuggestion,
    DuplicateStatus,
)


class ImportFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount: Optional[Decimal] = Field(None, ge=0)
    max_amount: Optional[Decimal] = Field(None, ge=0)
    exclude_credits: bool = False
    exclude_descriptions: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_ranges(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        if self.min_amount is not None and self.max_amount is not None and self.min_amount > self.max_amount:
            raise ValueError("min_amount must not exceed max_amount")
        return self


class ImportConfig(BaseModel):
    """Who paid and how imported expenses are split"""
    couple_id: str = Field(..., min_length=1)
    paid_by: str = Field(..., min_length=1)
    partner_id: Optional[str] = None
    split_percentage: int = Field(50, ge=0, le=100, description="Share carried by the payer")
    default_category_key: str = "other"
    date_format: str = "auto"
    filters: ImportFilters = Field(default_factory=ImportFilters)


class PreviewTransaction(BaseModel):
    index: int
    transaction: ParsedTransaction
    suggestion: CategorySuggestion
    confident_category: bool
    duplicate: DuplicateStatus
    selected: bool


class ImportPreviewResponse(BaseModel):
    import_id: str
    filename: str
    file_type: str
    transactions: List[PreviewTransaction]
    metadata: StatementMetadata
    filtered_out: int = 0
    duplicate_summary: Dict[str, int] = Field(default_factory=dict)
    category_stats: Dict[str, Any] = Field(default_factory=dict)
    issues: List[Dict[str, Any]] = Field(default_factory=list)


class ImportConfirmRequest(BaseModel):
    selected_indices: Optional[List[int]] = Field(
        None, description="Rows to import; defaults to the rows preselected in the preview"
    )
    category_overrides: Dict[int, str] = Field(default_factory=dict)


class ImportStatusResponse(BaseModel):
    import_id: str
    status: ImportStatus
    filename: str
    transactions_parsed: int = 0
    transactions_imported: int = 0
    transactions_skipped: int = 0
    errors: List[str] = []

    class Config:
        from_attributes = True


class ImportLogResponse(BaseModel):
    id: str
    couple_id: str
    filename: str
    file_type: Optional[str]
    status: ImportStatus
    transactions_parsed: int
    transactions_imported: int
    transactions_skipped: int
    error_type: Optional[str]
    error_message: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
