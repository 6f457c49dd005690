"""Tests for upload queue persistence and the network monitor."""

import asyncio

import pytest

from app.models.storage_entry import read_entry, write_entry
from app.schemas.upload_queue import QueueItem, UploadStatus
from app.services.network import NetworkMonitor
from app.services.queue_storage import (
    QUEUE_KEY,
    DatabaseQueueRepository,
    InMemoryQueueRepository,
    JsonFileQueueRepository,
    make_queue_repository,
)
from app.services.receipt_storage import LocalReceiptStore


def make_item(item_id, status=UploadStatus.pending):
    return QueueItem(
        id=item_id,
        image_uri=f"file:///tmp/{item_id}.jpg",
        couple_id="couple-1",
        user_id="user-a",
        status=status,
        timestamp=1_700_000_000.0,
    )


class TestJsonFileRepository:
    """Test the file-backed queue."""

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFileQueueRepository(tmp_path / "queue.json").load() == []

    def test_round_trip(self, tmp_path):
        repository = JsonFileQueueRepository(tmp_path / "nested" / "queue.json")
        items = [make_item("a"), make_item("b", UploadStatus.failed)]

        repository.save(items)

        assert repository.load() == items
        assert not (tmp_path / "nested" / "queue.json.tmp").exists()

    def test_corrupt_file_resets(self, tmp_path):
        path = tmp_path / "queue.json"
        path.write_text("{not json", encoding="utf-8")
        repository = JsonFileQueueRepository(path)

        assert repository.load() == []
        assert path.read_text(encoding="utf-8") == "[]"

    def test_clear(self, tmp_path):
        path = tmp_path / "queue.json"
        repository = JsonFileQueueRepository(path)
        repository.save([make_item("a")])

        repository.clear()

        assert not path.exists()
        assert repository.load() == []


class TestDatabaseRepository:
    """Test the storage_entries backed queue."""

    def test_round_trip(self, session_factory):
        repository = DatabaseQueueRepository(session_factory)
        items = [make_item("a")]

        repository.save(items)
        repository.save(items + [make_item("b")])

        assert [i.id for i in repository.load()] == ["a", "b"]

    def test_empty(self, session_factory):
        assert DatabaseQueueRepository(session_factory).load() == []

    def test_corrupt_entry_resets(self, db_session, session_factory):
        write_entry(db_session, QUEUE_KEY, '[{"id": "a"}]')
        repository = DatabaseQueueRepository(session_factory)

        assert repository.load() == []
        db_session.expire_all()
        assert read_entry(db_session, QUEUE_KEY) == "[]"

    def test_clear(self, db_session, session_factory):
        repository = DatabaseQueueRepository(session_factory)
        repository.save([make_item("a")])

        repository.clear()

        assert read_entry(db_session, QUEUE_KEY) is None


class TestRepositoryFactory:
    """Test backend selection from settings."""

    def test_backends(self, tmp_path, session_factory):
        assert isinstance(make_queue_repository("memory"), InMemoryQueueRepository)
        assert isinstance(
            make_queue_repository("file", path=tmp_path / "q.json"), JsonFileQueueRepository
        )
        assert isinstance(
            make_queue_repository("database", session_factory=session_factory),
            DatabaseQueueRepository
        )

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            make_queue_repository("redis")

    def test_memory_is_isolated_copy(self):
        repository = InMemoryQueueRepository()
        items = [make_item("a")]
        repository.save(items)

        items[0].status = UploadStatus.failed

        assert repository.load()[0].status == UploadStatus.pending
        assert repository.save_count == 1


class TestNetworkMonitor:
    """Test connectivity notifications."""

    def test_notifies_on_change_only(self):
        network = NetworkMonitor(online=True)
        events = []
        network.subscribe(lambda was, now: events.append((was, now)))

        network.set_online(True)
        network.set_online(False)
        network.set_online(False)
        network.set_online(True)

        assert events == [(True, False), (False, True)]
        assert network.is_online() is True

    def test_unsubscribe(self):
        network = NetworkMonitor()
        events = []
        unsubscribe = network.subscribe(lambda was, now: events.append(now))

        unsubscribe()
        network.set_online(False)

        assert events == []
        assert network.listener_count == 0

    def test_failing_listener_does_not_block_others(self):
        network = NetworkMonitor()
        events = []

        def broken(was, now):
            raise RuntimeError("listener bug")

        network.subscribe(broken)
        network.subscribe(lambda was, now: events.append(now))
        network.set_online(False)

        assert events == [False]


class TestLocalReceiptStore:
    """Test the local receipt uploader."""

    def test_save_then_upload(self, tmp_path):
        store = LocalReceiptStore(tmp_path / "receipts")
        pending = store.save_bytes(b"jpeg-bytes", "lunch.jpg", "couple-1")
        item = make_item("a").model_copy(update={"image_uri": f"file://{pending}"})

        stored = asyncio.run(store.upload(item))

        assert stored.startswith(str(tmp_path / "receipts" / "couple-1"))
        assert stored.endswith("_lunch.jpg")

    def test_missing_source(self, tmp_path):
        store = LocalReceiptStore(tmp_path / "receipts")
        item = make_item("a").model_copy(update={"image_uri": str(tmp_path / "nope.jpg")})

        with pytest.raises(FileNotFoundError):
            asyncio.run(store.upload(item))
