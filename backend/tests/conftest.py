"""Shared test fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("UPLOAD_QUEUE_BACKEND", "memory")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date
from decimal import Decimal
import uuid

from app.config import settings
from app.database import Base, get_db as database_get_db
from app.dependencies import get_db as dependencies_get_db
from app.main import app
from app.models.category import Category
from app.models.expense import Expense, ExpenseSource, TransactionType
from app.schemas.transaction import ParsedTransaction
from app.services.receipt_storage import LocalReceiptStore


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUploader(LocalReceiptStore):
    """Records upload calls and fails while ``fail`` is set."""

    def __init__(self, receipts_path):
        super().__init__(receipts_path)
        self.calls = []
        self.fail = False

    async def upload(self, item):
        self.calls.append(item.id)
        if self.fail:
            raise ConnectionError("network unreachable")
        return f"receipts/{item.couple_id}/{item.id}"


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test using in-memory SQLite."""
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_session):
    """Session factory bound to the test database, for code that opens its own sessions."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_session.get_bind())


@pytest.fixture
def data_dirs(tmp_path, monkeypatch):
    """Point every file location in settings at a temporary directory."""
    monkeypatch.setattr(settings, "import_inbox_path", str(tmp_path / "imports" / "inbox"))
    monkeypatch.setattr(settings, "import_processed_path", str(tmp_path / "imports" / "processed"))
    monkeypatch.setattr(settings, "import_failed_path", str(tmp_path / "imports" / "failed"))
    monkeypatch.setattr(settings, "receipts_path", str(tmp_path / "receipts"))
    monkeypatch.setattr(settings, "upload_queue_file", str(tmp_path / "offline_queue.json"))
    monkeypatch.setattr(settings, "upload_queue_backend", "memory")
    monkeypatch.setattr(settings, "upload_auto_process_on_online", False)
    monkeypatch.setattr(settings, "ai_auto_categorize", False)
    return tmp_path


@pytest.fixture(scope="function")
def client(db_session, data_dirs):
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    # Override both get_db functions (some code uses app.database, routes use app.dependencies)
    app.dependency_overrides[database_get_db] = override_get_db
    app.dependency_overrides[dependencies_get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def uploader(tmp_path):
    return FakeUploader(tmp_path / "receipts")


@pytest.fixture
def make_transaction():
    """Factory for parsed statement rows."""
    def _make(
        description="STARBUCKS COFFEE",
        amount="4.50",
        txn_date=date(2024, 1, 15),
        txn_type=TransactionType.debit
    ):
        return ParsedTransaction(
            date=txn_date,
            description=description,
            amount=Decimal(amount),
            type=txn_type,
        )
    return _make


@pytest.fixture
def make_expense():
    """Factory for unsaved expenses."""
    def _make(
        description="STARBUCKS COFFEE",
        amount="4.50",
        expense_date=date(2024, 1, 15),
        couple_id="couple-1",
        category_key="food"
    ):
        amount = Decimal(amount)
        return Expense(
            id=str(uuid.uuid4()),
            couple_id=couple_id,
            paid_by="user-a",
            amount=amount,
            description=description,
            category_key=category_key,
            date=expense_date,
            transaction_type=TransactionType.debit,
            paid_by_percentage=50,
            paid_by_share=amount / 2,
            partner_share=amount - amount / 2,
            source=ExpenseSource.manual,
        )
    return _make


@pytest.fixture
def sample_expense(db_session, make_expense):
    """Create a stored expense."""
    expense = make_expense()
    db_session.add(expense)
    db_session.commit()
    db_session.refresh(expense)
    return expense


@pytest.fixture
def sample_category(db_session):
    """Create a couple category with a custom keyword."""
    category = Category(
        id=str(uuid.uuid4()),
        couple_id="couple-1",
        key="pets",
        name="Pets",
        icon="🐶",
        default_budget=Decimal("100"),
        is_default=False,
        keywords=["petco"],
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category
