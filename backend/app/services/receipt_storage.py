"""
Receipt uploaders used by the offline queue.
"""

import asyncio
import logging
import shutil
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from app.schemas.upload_queue import QueueItem

logger = logging.getLogger(__name__)


class ReceiptUploader(ABC):

    @abstractmethod
    async def upload(self, item: QueueItem) -> str:
        """Upload the receipt image and return where it now lives. Raises on failure."""
        pass


class LocalReceiptStore(ReceiptUploader):
    """Copies receipt images into ``receipts_path/<couple_id>/``."""

    def __init__(self, receipts_path: Union[str, Path]):
        self.receipts_path = Path(receipts_path)

    def _copy(self, source: Path, couple_id: str) -> Path:
        if not source.is_file():
            raise FileNotFoundError(f"Receipt image not found: {source}")

        target_dir = self.receipts_path / couple_id
        target_dir.mkdir(parents=True, exist_ok=True)

        target = target_dir / f"{uuid.uuid4().hex}_{source.name}"
        shutil.copy2(source, target)
        return target

    async def upload(self, item: QueueItem) -> str:
        source = Path(item.image_uri.replace("file://", "", 1))
        target = await asyncio.to_thread(self._copy, source, item.couple_id)
        logger.info("Stored receipt %s for couple %s", target.name, item.couple_id)
        return str(target)

    def save_bytes(self, content: bytes, filename: str, couple_id: str) -> Path:
        """Write an uploaded image to the pending area so it can be queued"""
        pending_dir = self.receipts_path / "_pending" / couple_id
        pending_dir.mkdir(parents=True, exist_ok=True)

        file_path = pending_dir / f"{uuid.uuid4().hex}_{Path(filename).name}"
        with open(file_path, 'wb') as f:
            f.write(content)
        return file_path
