"""
Offline receipt upload queue.

Item lifecycle::

    pending -> uploading -> (removed on success) | failed
    failed  -> uploading on retry while retry_count < max_retries

Failed items at the retry cap are reported as skipped and stay queued until
removed explicitly. The whole queue is persisted after every state change so
a crash loses at most the in-flight upload.
"""

import asyncio
import logging
import time
import uuid
from typing import Awaitable, Callable, Dict, List, Optional

from app.schemas.upload_queue import (
    UploadStatus,
    PRIORITY_ORDER,
    ReceiptUpload,
    QueueItem,
    EnqueueResult,
    ProcessResult,
    RetryResult,
    QueueStatusSummary,
)
from app.services.network import NetworkMonitor
from app.services.queue_storage import UploadQueueRepository
from app.services.receipt_storage import ReceiptUploader

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 7 * 24 * 60 * 60


class OfflineUploadQueue:

    def __init__(
        self,
        repository: UploadQueueRepository,
        uploader: ReceiptUploader,
        network: NetworkMonitor,
        max_retries: int = 3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time
    ):
        self.repository = repository
        self.uploader = uploader
        self.network = network
        self.max_retries = max_retries
        self._sleep = sleep
        self._clock = clock
        self._busy = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._pending_tasks = set()

    def is_online(self) -> bool:
        return self.network.is_online()

    @property
    def is_processing(self) -> bool:
        return self._busy

    async def enqueue(self, receipt: ReceiptUpload) -> EnqueueResult:
        """Upload right away when online, otherwise (or on failure) queue it."""
        if not receipt.image_uri:
            raise ValueError("Invalid image URI")
        if not receipt.couple_id or not receipt.user_id:
            raise ValueError("Missing required fields")

        item = QueueItem(
            id=uuid.uuid4().hex,
            image_uri=receipt.image_uri,
            couple_id=receipt.couple_id,
            user_id=receipt.user_id,
            expense_id=receipt.expense_id,
            note=receipt.note,
            status=UploadStatus.pending,
            retry_count=0,
            timestamp=self._clock(),
            priority=receipt.priority,
        )

        if self.is_online():
            try:
                url = await self.uploader.upload(item)
                return EnqueueResult(queued=False, uploaded=True, url=url)
            except Exception as e:
                logger.warning("Immediate upload failed, queuing: %s", e)
                item.last_error = str(e)

        items = self.repository.load()
        items.append(item)
        self.repository.save(items)
        return EnqueueResult(queued=True, uploaded=False, queue_id=item.id)

    async def process_upload_queue(
        self,
        respect_priority: bool = False,
        cleanup_expired: bool = False,
        max_age: float = DEFAULT_MAX_AGE_SECONDS
    ) -> ProcessResult:
        """Upload every pending item once."""
        if not self.is_online():
            return ProcessResult(skipped_reason="offline")
        if self._busy:
            return ProcessResult(skipped_reason="already_processing")

        self._busy = True
        try:
            return await self._process(respect_priority, cleanup_expired, max_age)
        finally:
            self._busy = False

    async def _process(self, respect_priority: bool, cleanup_expired: bool, max_age: float) -> ProcessResult:
        result = ProcessResult()
        items = self.repository.load()

        # Items left "uploading" were interrupted mid-flight
        for item in items:
            if item.status == UploadStatus.uploading:
                item.status = UploadStatus.pending

        if cleanup_expired:
            now = self._clock()
            kept = [item for item in items if now - item.timestamp <= max_age]
            result.expired = len(items) - len(kept)
            items = kept
            if result.expired:
                logger.info("Dropped %d expired uploads", result.expired)

        if respect_priority:
            items.sort(key=lambda item: PRIORITY_ORDER[item.priority])

        self.repository.save(items)

        for item_id in [i.id for i in items if i.status == UploadStatus.pending]:
            item = self._mark_uploading(item_id)
            if item is None:
                continue
            result.processed += 1

            try:
                await self.uploader.upload(item)
            except Exception as e:
                logger.warning("Upload %s failed: %s", item.id, e)
                self._record_failure(item.id, e)
                result.failed += 1
            else:
                self._remove(item.id)
                result.successful += 1

        return result

    # Writes made after an await reload the queue and touch only the item in
    # flight; enqueue and remove may have run in between.

    def _mark_uploading(self, item_id: str) -> Optional[QueueItem]:
        items = self.repository.load()
        for item in items:
            if item.id == item_id:
                item.status = UploadStatus.uploading
                self.repository.save(items)
                return item
        return None

    def _record_failure(self, item_id: str, error: Exception) -> None:
        items = self.repository.load()
        for item in items:
            if item.id == item_id:
                item.status = UploadStatus.failed
                item.retry_count += 1
                item.last_error = str(error)
                self.repository.save(items)
                return

    def _remove(self, item_id: str) -> bool:
        items = self.repository.load()
        kept = [item for item in items if item.id != item_id]
        if len(kept) == len(items):
            return False
        self.repository.save(kept)
        return True

    async def retry_failed_uploads(
        self,
        max_retries: Optional[int] = None,
        use_exponential_backoff: bool = False
    ) -> RetryResult:
        """Retry failed items under the cap; those at the cap count as skipped."""
        max_retries = self.max_retries if max_retries is None else max_retries
        result = RetryResult()

        if not self.is_online() or self._busy:
            items = self.repository.load()
            result.skipped = self._count_exhausted(items, max_retries)
            return result

        self._busy = True
        try:
            retryable = [
                item.id for item in self.repository.load()
                if item.status == UploadStatus.failed and item.retry_count < max_retries
            ]

            for item_id in retryable:
                if use_exponential_backoff:
                    current = next((i for i in self.repository.load() if i.id == item_id), None)
                    if current is None:
                        continue
                    await self._sleep(2 ** current.retry_count)

                item = self._mark_uploading(item_id)
                if item is None:
                    continue
                result.retried += 1

                try:
                    await self.uploader.upload(item)
                except Exception as e:
                    logger.warning("Retry of upload %s failed: %s", item.id, e)
                    self._record_failure(item.id, e)
                    result.failed += 1
                else:
                    self._remove(item.id)
                    result.successful += 1

            result.skipped = self._count_exhausted(self.repository.load(), max_retries)
            if result.skipped:
                logger.info("%d uploads exhausted their retries", result.skipped)
            return result
        finally:
            self._busy = False

    def _count_exhausted(self, items: List[QueueItem], max_retries: int) -> int:
        return sum(
            1 for item in items
            if item.status == UploadStatus.failed and item.retry_count >= max_retries
        )

    def get_queue_status(self, include_stats: bool = False) -> QueueStatusSummary:
        items = self.repository.load()
        summary = QueueStatusSummary(
            total=len(items),
            pending=sum(1 for i in items if i.status == UploadStatus.pending),
            uploading=sum(1 for i in items if i.status == UploadStatus.uploading),
            failed=sum(1 for i in items if i.status == UploadStatus.failed),
            is_processing=self._busy,
            is_online=self.is_online(),
            oldest_timestamp=min((i.timestamp for i in items), default=None),
        )

        if include_stats:
            by_priority: Dict[str, int] = {}
            for item in items:
                by_priority[item.priority.value] = by_priority.get(item.priority.value, 0) + 1
            summary.by_priority = by_priority
            summary.average_retry_count = (
                sum(i.retry_count for i in items) / len(items) if items else 0.0
            )
            summary.permanently_failed = self._count_exhausted(items, self.max_retries)

        return summary

    def get_queued_receipts(self) -> List[QueueItem]:
        return self.repository.load()

    def remove_from_queue(self, item_id: str) -> bool:
        return self._remove(item_id)

    def clear_queue(self) -> None:
        self.repository.clear()

    def start_network_listener(
        self,
        auto_process_on_online: bool = True,
        delay_seconds: float = 1.0
    ) -> Callable[[], None]:
        """
        Watch the network monitor; going online schedules a queue pass.

        Must be called from a running event loop. Calling it again replaces
        the previous subscription.
        """
        self.stop_network_listener()
        loop = asyncio.get_running_loop()

        def run_pass() -> None:
            task = loop.create_task(self.process_upload_queue())
            self._pending_tasks.add(task)
            task.add_done_callback(self._pending_tasks.discard)

        def on_change(was_online: bool, is_online: bool) -> None:
            if auto_process_on_online and not was_online and is_online:
                logger.info("Back online, processing upload queue in %.1fs", delay_seconds)
                loop.call_soon_threadsafe(loop.call_later, delay_seconds, run_pass)

        self._unsubscribe = self.network.subscribe(on_change)
        return self.stop_network_listener

    def stop_network_listener(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
