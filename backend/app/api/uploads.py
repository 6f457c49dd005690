"""
Receipt upload queue endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, UploadFile, File, Form, HTTPException

from app.config import settings
from app.dependencies import get_network, get_upload_queue
from app.schemas.upload_queue import (
    UploadPriority,
    ReceiptUpload,
    QueueItem,
    EnqueueResult,
    ProcessResult,
    RetryResult,
    QueueStatusSummary,
    NetworkStateUpdate,
)
from app.services.network import NetworkMonitor
from app.services.upload_queue import OfflineUploadQueue

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("/receipts", response_model=EnqueueResult)
async def upload_receipt(
    file: UploadFile = File(...),
    couple_id: str = Form(...),
    user_id: str = Form(...),
    expense_id: Optional[str] = Form(None),
    note: Optional[str] = Form(None),
    priority: UploadPriority = Form(UploadPriority.normal),
    queue: OfflineUploadQueue = Depends(get_upload_queue)
):
    """Store a receipt image now, or queue it when offline"""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")
    if not couple_id.strip() or not user_id.strip():
        raise HTTPException(status_code=400, detail="Missing required fields")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty image")

    image_path = queue.uploader.save_bytes(content, file.filename, couple_id)

    receipt = ReceiptUpload(
        image_uri=str(image_path),
        couple_id=couple_id,
        user_id=user_id,
        expense_id=expense_id,
        note=note,
        priority=priority,
    )
    try:
        return await queue.enqueue(receipt)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/process", response_model=ProcessResult)
async def process_queue(
    respect_priority: bool = False,
    cleanup_expired: bool = False,
    max_age_days: Optional[float] = None,
    queue: OfflineUploadQueue = Depends(get_upload_queue)
):
    days = max_age_days if max_age_days is not None else settings.upload_max_age_days
    return await queue.process_upload_queue(
        respect_priority=respect_priority,
        cleanup_expired=cleanup_expired,
        max_age=days * 24 * 60 * 60
    )


@router.post("/retry", response_model=RetryResult)
async def retry_failed(
    max_retries: Optional[int] = None,
    use_exponential_backoff: bool = False,
    queue: OfflineUploadQueue = Depends(get_upload_queue)
):
    return await queue.retry_failed_uploads(
        max_retries=max_retries,
        use_exponential_backoff=use_exponential_backoff
    )


@router.get("/status", response_model=QueueStatusSummary)
async def get_status(
    include_stats: bool = False,
    queue: OfflineUploadQueue = Depends(get_upload_queue)
):
    return queue.get_queue_status(include_stats=include_stats)


@router.get("", response_model=list[QueueItem])
async def list_queued(queue: OfflineUploadQueue = Depends(get_upload_queue)):
    return queue.get_queued_receipts()


@router.delete("/{item_id}")
async def remove_item(item_id: str, queue: OfflineUploadQueue = Depends(get_upload_queue)):
    if not queue.remove_from_queue(item_id):
        raise HTTPException(status_code=404, detail="Queue item not found")
    return {"deleted": True}


@router.post("/network")
async def set_network_state(
    update: NetworkStateUpdate,
    network: NetworkMonitor = Depends(get_network)
):
    """Report connectivity changes; going online triggers a queue pass"""
    network.set_online(update.online)
    return {"online": network.is_online()}
