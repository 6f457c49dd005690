from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict
from enum import Enum


class UploadStatus(str, Enum):
    pending = "pending"
    uploading = "uploading"
    failed = "failed"


class UploadPriority(str, Enum):
    high = "high"
    medium = "medium"
    normal = "normal"
    low = "low"


PRIORITY_ORDER = {
    UploadPriority.high: 0,
    UploadPriority.medium: 1,
    UploadPriority.normal: 2,
    UploadPriority.low: 3,
}


class ReceiptUpload(BaseModel):
    """What the capture flow hands to the queue"""
    image_uri: str
    couple_id: str
    user_id: str
    expense_id: Optional[str] = None
    note: Optional[str] = None
    priority: UploadPriority = UploadPriority.normal

    @field_validator("image_uri", "couple_id", "user_id")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value


class QueueItem(BaseModel):
    id: str
    image_uri: str
    couple_id: str
    user_id: str
    expense_id: Optional[str] = None
    note: Optional[str] = None
    status: UploadStatus = UploadStatus.pending
    retry_count: int = Field(0, ge=0)
    timestamp: float
    priority: UploadPriority = UploadPriority.normal
    last_error: Optional[str] = None


class EnqueueResult(BaseModel):
    success: bool = True
    queued: bool
    uploaded: bool = False
    queue_id: Optional[str] = None
    url: Optional[str] = None


class ProcessResult(BaseModel):
    processed: int = 0
    successful: int = 0
    failed: int = 0
    expired: int = 0
    skipped_reason: Optional[str] = None


class RetryResult(BaseModel):
    retried: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0


class QueueStatusSummary(BaseModel):
    total: int = 0
    pending: int = 0
    uploading: int = 0
    failed: int = 0
    is_processing: bool = False
    is_online: bool = False
    oldest_timestamp: Optional[float] = None
    by_priority: Optional[Dict[str, int]] = None
    average_retry_count: Optional[float] = None
    permanently_failed: Optional[int] = None


class NetworkStateUpdate(BaseModel):
    online: bool
