"""
Import service for bank statement processing.

Preview: parse -> filter -> category suggestions -> duplicate checks, with
results memoized in the import cache. Confirm: map the selected rows to
expenses and commit them in batches.
"""

import logging
import shutil
import uuid
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ErrorType, StatementImportError, format_error_for_user
from app.models.category import Category
from app.models.expense import Expense
from app.models.import_log import ImportLog, ImportStatus
from app.parsers import parse_bank_statement, validate_transactions
from app.schemas.expense import ExpenseCreate
from app.schemas.import_file import (
    ImportConfig,
    ImportConfirmRequest,
    ImportPreviewResponse,
    ImportStatusResponse,
    PreviewTransaction,
)
from app.schemas.transaction import ParsedTransaction, ParseResult
from app.services.categorization_service import CategorySuggester, DEFAULT_CATEGORIES, suggestion_stats
from app.services.deduplication_service import DuplicateDetector, is_duplicate
from app.services.import_cache import ImportCache, ImportResultCache
from app.services.transaction_mapper import (
    filter_transactions,
    map_transaction_to_expense,
    to_model,
    validate_expense,
)

logger = logging.getLogger(__name__)


class PendingImportStore:
    """Previews awaiting confirmation, dropped after the cache TTL."""

    def __init__(self, ttl_minutes: float = 30, cache: Optional[ImportCache] = None):
        self._cache = cache if cache is not None else ImportCache(ttl_minutes=ttl_minutes)

    def save(self, import_id: str, data: Dict[str, Any]) -> None:
        self._cache.set(f"import:{import_id}", data)

    def get(self, import_id: str) -> Optional[Dict[str, Any]]:
        return self._cache.get(f"import:{import_id}")

    def pop(self, import_id: str) -> Optional[Dict[str, Any]]:
        data = self.get(import_id)
        self._cache.delete(f"import:{import_id}")
        return data


def save_upload(file_content: bytes, filename: str) -> Tuple[Path, str]:
    """Save uploaded file and return path and import_id"""
    import_id = str(uuid.uuid4())

    inbox_path = Path(settings.import_inbox_path)
    inbox_path.mkdir(parents=True, exist_ok=True)

    file_path = inbox_path / f"{import_id}_{Path(filename).name}"
    with open(file_path, 'wb') as f:
        f.write(file_content)

    return file_path, import_id


def _archive(file_path: Optional[Path], target_dir: str) -> None:
    if file_path is None or not file_path.exists():
        return
    target = Path(target_dir)
    target.mkdir(parents=True, exist_ok=True)
    shutil.move(str(file_path), str(target / file_path.name))


def parse_file(file_path: Path, filename: str, date_format: str = "auto") -> ParseResult:
    with open(file_path, 'rb') as f:
        content = f.read()
    return parse_bank_statement(content, filename=filename, date_format=date_format)


def get_recent_expenses(
    db: Session,
    couple_id: str,
    reference_date: Optional[date] = None,
    lookback_days: Optional[int] = None
) -> List[Expense]:
    """Expenses inside the duplicate lookback window"""
    reference_date = reference_date or date.today()
    lookback_days = settings.duplicate_lookback_days if lookback_days is None else lookback_days
    cutoff = reference_date - timedelta(days=lookback_days)

    return db.query(Expense).filter(
        Expense.couple_id == couple_id,
        Expense.date >= cutoff
    ).order_by(Expense.date.desc()).all()


def get_category_context(db: Session, couple_id: str) -> Tuple[List[str], Dict[str, List[str]]]:
    """Return the couple's category keys and their custom keywords"""
    categories = db.query(Category).filter(Category.couple_id == couple_id).all()
    if not categories:
        return list(DEFAULT_CATEGORIES.keys()), {}

    keys = [c.key for c in categories]
    custom = {c.key: list(c.keywords or []) for c in categories if c.keywords}
    return keys, custom


def make_detector(cache: Optional[ImportResultCache] = None) -> DuplicateDetector:
    return DuplicateDetector(
        date_tolerance_days=settings.duplicate_date_tolerance_days,
        description_similarity=settings.duplicate_description_similarity,
        auto_skip_threshold=settings.duplicate_auto_skip_threshold,
        lookback_days=settings.duplicate_lookback_days,
        cache=cache,
    )


async def build_preview(
    transactions: Sequence[ParsedTransaction],
    expenses: Sequence[Expense],
    detector: DuplicateDetector,
    suggester: CategorySuggester,
    available_categories: Optional[Sequence[str]] = None,
    custom_keywords: Optional[Dict[str, List[str]]] = None,
    reference_date: Optional[date] = None
) -> List[PreviewTransaction]:
    """Annotate every row with a category suggestion and its duplicate status"""
    statuses = detector.detect_for_transactions(transactions, expenses, reference_date)

    rows = []
    for index, (transaction, status) in enumerate(zip(transactions, statuses)):
        suggestion = await suggester.suggest_with_ai(
            transaction, available_categories, custom_keywords, expenses
        )
        rows.append(PreviewTransaction(
            index=index,
            transaction=transaction,
            suggestion=suggestion,
            confident_category=suggester.is_confident(suggestion),
            duplicate=status,
            selected=not status.auto_skip,
        ))
    return rows


async def preview_import(
    db: Session,
    file_content: bytes,
    filename: str,
    config: ImportConfig,
    cache: ImportResultCache,
    pending: PendingImportStore,
    reference_date: Optional[date] = None
) -> ImportPreviewResponse:
    """Parse an uploaded statement and return the annotated rows for review"""
    expire_stale_imports(db, pending)
    file_path, import_id = save_upload(file_content, filename)

    import_log = ImportLog(
        id=import_id,
        couple_id=config.couple_id,
        filename=filename,
        status=ImportStatus.pending
    )
    db.add(import_log)
    db.commit()

    try:
        return await _preview(
            db, import_log, file_path, filename, config, cache, pending, reference_date
        )
    except StatementImportError as e:
        _fail_import(db, import_log, e, file_path)
        raise
    except Exception as e:
        db.rollback()
        error = format_error_for_user(e, file_name=filename)
        logger.error("Preview %s failed: %s", import_id, e)
        _fail_import(db, import_log, error, file_path)
        raise error from e


def _fail_import(
    db: Session,
    import_log: ImportLog,
    error: StatementImportError,
    file_path: Optional[Path] = None
) -> None:
    import_log.status = ImportStatus.failed
    import_log.error_type = error.error_type.value
    import_log.error_message = error.user_message
    db.commit()
    _archive(file_path, settings.import_failed_path)


def expire_stale_imports(
    db: Session,
    pending: PendingImportStore,
    now: Optional[datetime] = None
) -> int:
    """Fail pending imports whose preview is gone. Returns how many were expired."""
    cutoff = (now or datetime.utcnow()) - timedelta(minutes=settings.cache_ttl_minutes)
    stale = db.query(ImportLog).filter(
        ImportLog.status == ImportStatus.pending,
        ImportLog.created_at < cutoff
    ).all()

    expired = 0
    for import_log in stale:
        if pending.get(import_log.id) is not None:
            continue
        import_log.status = ImportStatus.failed
        import_log.error_type = ErrorType.EXPIRED.value
        import_log.error_message = "The preview expired before it was confirmed"
        expired += 1

    if expired:
        db.commit()
        logger.info("Expired %d unconfirmed imports", expired)
    return expired


async def _preview(
    db: Session,
    import_log: ImportLog,
    file_path: Path,
    filename: str,
    config: ImportConfig,
    cache: ImportResultCache,
    pending: PendingImportStore,
    reference_date: Optional[date]
) -> ImportPreviewResponse:
    import_id = import_log.id
    result = parse_file(file_path, filename, config.date_format)

    if len(result.transactions) > settings.max_import_size:
        raise StatementImportError(
            ErrorType.VALIDATION,
            f"Statement has {len(result.transactions)} transactions; "
            f"the limit is {settings.max_import_size}",
            suggestions=["Split the statement into smaller date ranges"],
        )

    import_log.file_type = result.metadata.file_type
    import_log.transactions_parsed = len(result.transactions)
    db.commit()

    transactions = filter_transactions(result.transactions, config.filters)
    validation = validate_transactions(transactions, today=reference_date)

    scoped_cache = cache.scoped(config.couple_id)
    expenses = get_recent_expenses(db, config.couple_id, reference_date)
    categories, custom_keywords = get_category_context(db, config.couple_id)

    detector = make_detector(scoped_cache)
    suggester = CategorySuggester(cache=scoped_cache, fallback_key=config.default_category_key)

    rows = await build_preview(
        transactions, expenses, detector, suggester, categories, custom_keywords, reference_date
    )

    pending.save(import_id, {
        "file_path": str(file_path),
        "filename": filename,
        "config": config,
        "rows": rows,
    })

    logger.info(
        "Preview %s: %d parsed, %d after filters, %d flagged as duplicates",
        import_id, len(result.transactions), len(transactions),
        sum(1 for r in rows if r.duplicate.has_duplicates)
    )

    return ImportPreviewResponse(
        import_id=import_id,
        filename=filename,
        file_type=result.metadata.file_type or "",
        transactions=rows,
        metadata=result.metadata,
        filtered_out=len(result.transactions) - len(transactions),
        duplicate_summary=detector.summarize([r.duplicate for r in rows]),
        category_stats=suggestion_stats(r.suggestion for r in rows),
        issues=[
            {"index": issue["index"], "errors": issue["errors"]}
            for issue in validation["issues"]
        ],
    )


def batch_import_expenses(
    db: Session,
    expenses: Sequence[ExpenseCreate],
    import_id: Optional[str] = None,
    batch_size: Optional[int] = None
) -> Tuple[int, List[str]]:
    """
    Commit expenses in chunks of ``batch_size``.
    A chunk that fails is rolled back and reported; later chunks still run.
    """
    batch_size = batch_size or settings.max_batch_size
    imported = 0
    errors: List[str] = []

    for start in range(0, len(expenses), batch_size):
        chunk = expenses[start:start + batch_size]
        try:
            db.add_all([to_model(expense, import_id) for expense in chunk])
            db.commit()
            imported += len(chunk)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Batch starting at %d failed: %s", start, e)
            errors.append(f"Batch {start // batch_size + 1} failed: {e}")

    return imported, errors


def confirm_import(
    db: Session,
    import_id: str,
    request: ImportConfirmRequest,
    pending: PendingImportStore,
    cache: Optional[ImportResultCache] = None
) -> ImportStatusResponse:
    data = pending.get(import_id)
    if data is None:
        raise ValueError(f"Import {import_id} not found or expired")

    import_log = db.query(ImportLog).filter(ImportLog.id == import_id).first()
    if import_log is None:
        raise ValueError(f"Import {import_id} not found")

    config: ImportConfig = data["config"]
    rows: List[PreviewTransaction] = data["rows"]
    file_path = Path(data["file_path"])

    if request.selected_indices is None:
        selected = [r for r in rows if r.selected]
    else:
        wanted = set(request.selected_indices)
        selected = [r for r in rows if r.index in wanted]

    import_log.status = ImportStatus.processing
    db.commit()

    errors: List[str] = []
    expenses: List[ExpenseCreate] = []
    seen = set()
    skipped = len(rows) - len(selected)

    for row in selected:
        category_key = request.category_overrides.get(row.index)
        if category_key is None and row.confident_category:
            category_key = row.suggestion.category_key

        expense = map_transaction_to_expense(row.transaction, config, category_key)

        problems = validate_expense(expense)
        if problems:
            errors.append(f"Row {row.index}: {'; '.join(problems)}")
            skipped += 1
            continue

        if expense.fingerprint in seen or is_duplicate(db, expense.fingerprint, config.couple_id):
            skipped += 1
            continue
        seen.add(expense.fingerprint)
        expenses.append(expense)

    try:
        imported, batch_errors = batch_import_expenses(db, expenses, import_id)
    except Exception as e:
        db.rollback()
        import_log.status = ImportStatus.failed
        import_log.error_type = ErrorType.DATABASE.value
        import_log.error_message = str(e)
        db.commit()
        _archive(file_path, settings.import_failed_path)
        pending.pop(import_id)
        raise

    errors.extend(batch_errors)
    skipped += len(expenses) - imported

    import_log.status = ImportStatus.completed if imported or not expenses else ImportStatus.failed
    import_log.transactions_imported = imported
    import_log.transactions_skipped = skipped
    if errors:
        import_log.error_message = "; ".join(errors[:10])
    db.commit()

    _archive(file_path, settings.import_processed_path)
    pending.pop(import_id)

    # The couple's expense set changed, so cached duplicate checks are stale
    if cache is not None:
        cache.scoped(config.couple_id).clear_scope()

    logger.info("Import %s: %d imported, %d skipped", import_id, imported, skipped)

    return ImportStatusResponse(
        import_id=import_id,
        status=import_log.status,
        filename=import_log.filename,
        transactions_parsed=import_log.transactions_parsed,
        transactions_imported=imported,
        transactions_skipped=skipped,
        errors=errors
    )


def get_import_status(db: Session, import_id: str) -> ImportStatusResponse:
    """Get status of an import"""
    import_log = db.query(ImportLog).filter(ImportLog.id == import_id).first()
    if not import_log:
        raise ValueError(f"Import {import_id} not found")

    return ImportStatusResponse(
        import_id=import_log.id,
        status=import_log.status,
        filename=import_log.filename,
        transactions_parsed=import_log.transactions_parsed or 0,
        transactions_imported=import_log.transactions_imported or 0,
        transactions_skipped=import_log.transactions_skipped or 0,
        errors=[import_log.error_message] if import_log.error_message else []
    )


def get_import_history(
    db: Session,
    couple_id: Optional[str] = None,
    limit: int = 20,
    pending: Optional[PendingImportStore] = None
):
    """Get recent import history"""
    if pending is not None:
        expire_stale_imports(db, pending)
    query = db.query(ImportLog)
    if couple_id:
        query = query.filter(ImportLog.couple_id == couple_id)
    return query.order_by(ImportLog.created_at.desc()).limit(limit).all()


def list_expenses(db: Session, couple_id: str, limit: int = 100, offset: int = 0):
    query = db.query(Expense).filter(Expense.couple_id == couple_id)
    total = query.count()
    items = query.order_by(Expense.date.desc()).offset(offset).limit(limit).all()
    return items, total
