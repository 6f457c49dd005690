"""
Turns parsed statement rows into couple expenses.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.models.expense import Expense, ExpenseSource, TransactionType
from app.schemas.expense import ExpenseCreate
from app.schemas.import_file import ImportConfig, ImportFilters
from app.schemas.transaction import ParsedTransaction
from app.services.deduplication_service import generate_transaction_hash

CENT = Decimal("0.01")


def calculate_split(amount: Decimal, paid_by_percentage: int) -> Tuple[Decimal, Decimal]:
    """
    Return (payer share, partner share).
    The payer share is rounded half-up to the cent and the partner takes the
    remainder, so the two always sum to ``amount``.
    """
    amount = Decimal(amount)
    if amount <= 0:
        raise ValueError("Invalid amount: must be a positive number")
    if not 0 <= paid_by_percentage <= 100:
        raise ValueError("Invalid percentage: must be between 0 and 100")

    total = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    payer = (total * paid_by_percentage / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    return payer, total - payer


def filter_transactions(
    transactions: Sequence[ParsedTransaction],
    filters: Optional[ImportFilters] = None
) -> List[ParsedTransaction]:
    if filters is None:
        return list(transactions)

    excluded = [d.lower() for d in filters.exclude_descriptions if d.strip()]
    filtered = []
    for t in transactions:
        if filters.start_date and t.date < filters.start_date:
            continue
        if filters.end_date and t.date > filters.end_date:
            continue
        if filters.min_amount and t.amount < filters.min_amount:
            continue
        if filters.max_amount and t.amount > filters.max_amount:
            continue
        if filters.exclude_credits and t.type == TransactionType.credit:
            continue
        if excluded and any(e in t.description.lower() for e in excluded):
            continue
        filtered.append(t)
    return filtered


def map_transaction_to_expense(
    transaction: ParsedTransaction,
    config: ImportConfig,
    category_key: Optional[str] = None
) -> ExpenseCreate:
    payer_share, partner_share = calculate_split(transaction.amount, config.split_percentage)
    return ExpenseCreate(
        couple_id=config.couple_id,
        paid_by=config.paid_by,
        partner_id=config.partner_id,
        amount=transaction.amount,
        currency=transaction.currency,
        description=transaction.description,
        category_key=category_key or config.default_category_key,
        date=transaction.date,
        transaction_type=transaction.type,
        paid_by_percentage=config.split_percentage,
        paid_by_share=payer_share,
        partner_share=partner_share,
        source=ExpenseSource.bank_import,
        fingerprint=generate_transaction_hash(
            transaction.date, transaction.amount, transaction.description, config.couple_id
        ),
    )


def validate_expense(expense: ExpenseCreate) -> List[str]:
    """Return a list of problems; empty when the expense can be stored."""
    errors = []
    if not expense.couple_id:
        errors.append("Missing couple_id")
    if not expense.paid_by:
        errors.append("Missing paid_by")
    if expense.amount <= 0:
        errors.append("Amount must be greater than 0")
    if not expense.description.strip():
        errors.append("Description is required")
    if not expense.category_key:
        errors.append("Category is required")
    if expense.paid_by_share + expense.partner_share != expense.amount.quantize(CENT):
        errors.append("Split amounts do not sum to the total")
    return errors


def validate_expenses(expenses: Sequence[ExpenseCreate]) -> Dict[str, Any]:
    valid, invalid = [], []
    for index, expense in enumerate(expenses):
        errors = validate_expense(expense)
        if errors:
            invalid.append({"index": index, "expense": expense, "errors": errors})
        else:
            valid.append(expense)
    return {
        "total": len(expenses),
        "valid": len(valid),
        "invalid": len(invalid),
        "valid_expenses": valid,
        "invalid_expenses": invalid,
        "all_valid": not invalid,
    }


def to_model(expense: ExpenseCreate, import_id: Optional[str] = None) -> Expense:
    return Expense(**expense.model_dump(), import_id=import_id)
