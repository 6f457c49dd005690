"""
Durable storage for the offline upload queue.

The queue is saved as one opaque JSON list, either in a ``storage_entries``
row or in a local file. A payload that cannot be read is logged and replaced
with an empty queue.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Union

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from app.models.storage_entry import read_entry, write_entry, delete_entry
from app.schemas.upload_queue import QueueItem

logger = logging.getLogger(__name__)

QUEUE_KEY = "offline_queue"

_items_adapter = TypeAdapter(List[QueueItem])


def dump_items(items: List[QueueItem]) -> str:
    return _items_adapter.dump_json(items).decode()


def load_items(payload: str) -> List[QueueItem]:
    return _items_adapter.validate_json(payload)


class UploadQueueRepository(ABC):

    @abstractmethod
    def load(self) -> List[QueueItem]:
        pass

    @abstractmethod
    def save(self, items: List[QueueItem]) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryQueueRepository(UploadQueueRepository):
    """Non-durable repository for tests and ephemeral runs."""

    def __init__(self, items: Union[List[QueueItem], None] = None):
        self._payload = dump_items(items or [])
        self.save_count = 0

    def load(self) -> List[QueueItem]:
        return load_items(self._payload)

    def save(self, items: List[QueueItem]) -> None:
        self._payload = dump_items(items)
        self.save_count += 1

    def clear(self) -> None:
        self._payload = "[]"


class DatabaseQueueRepository(UploadQueueRepository):
    """Stores the queue in the ``storage_entries`` table."""

    def __init__(self, session_factory: Callable[[], Session], key: str = QUEUE_KEY):
        self.session_factory = session_factory
        self.key = key

    def load(self) -> List[QueueItem]:
        db = self.session_factory()
        try:
            payload = read_entry(db, self.key)
            if not payload:
                return []
            try:
                return load_items(payload)
            except (ValidationError, ValueError) as e:
                logger.error("Failed to read upload queue, resetting it: %s", e)
                write_entry(db, self.key, "[]")
                return []
        finally:
            db.close()

    def save(self, items: List[QueueItem]) -> None:
        db = self.session_factory()
        try:
            write_entry(db, self.key, dump_items(items))
        finally:
            db.close()

    def clear(self) -> None:
        db = self.session_factory()
        try:
            delete_entry(db, self.key)
        finally:
            db.close()


class JsonFileQueueRepository(UploadQueueRepository):
    """Stores the queue as a JSON file, replaced atomically on save."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[QueueItem]:
        if not self.path.exists():
            return []
        try:
            return load_items(self.path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError, OSError) as e:
            logger.error("Failed to read upload queue file %s, resetting it: %s", self.path, e)
            self.save([])
            return []

    def save(self, items: List[QueueItem]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(dump_items(items), encoding="utf-8")
        tmp_path.replace(self.path)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


def make_queue_repository(backend: str, session_factory=None, path=None) -> UploadQueueRepository:
    if backend == "file":
        return JsonFileQueueRepository(path)
    if backend == "database":
        return DatabaseQueueRepository(session_factory)
    if backend == "memory":
        return InMemoryQueueRepository()
    raise ValueError(f"Unknown upload queue backend: {backend}")
