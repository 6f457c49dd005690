"""
Pydantic schemas package.
"""

from app.schemas.expense import (
    ExpenseCreate,
    ExpenseResponse,
    ExpenseListResponse,
)
from app.schemas.import_file import (
    ImportFilters,
    ImportConfig,
    PreviewTransaction,
    ImportPreviewResponse,
    ImportConfirmRequest,
    ImportStatusResponse,
    ImportLogResponse,
)
from app.schemas.transaction import (
    ParsedTransaction,
    StatementMetadata,
    ParseResult,
    DuplicateMatch,
    DuplicateStatus,
    SuggestionSource,
    CategorySuggestion,
)
from app.schemas.upload_queue import (
    UploadStatus,
    UploadPriority,
    ReceiptUpload,
    QueueItem,
    EnqueueResult,
    ProcessResult,
    RetryResult,
    QueueStatusSummary,
)

__all__ = [
    "ExpenseCreate",
    "ExpenseResponse",
    "ExpenseListResponse",
    "ImportFilters",
    "ImportConfig",
    "PreviewTransaction",
    "ImportPreviewResponse",
    "ImportConfirmRequest",
    "ImportStatusResponse",
    "ImportLogResponse",
    "ParsedTransaction",
    "StatementMetadata",
    "ParseResult",
    "DuplicateMatch",
    "DuplicateStatus",
    "SuggestionSource",
    "CategorySuggestion",
    "UploadStatus",
    "UploadPriority",
    "ReceiptUpload",
    "QueueItem",
    "EnqueueResult",
    "ProcessResult",
    "RetryResult",
    "QueueStatusSummary",
]
