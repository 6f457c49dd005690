"""
Database models package.
"""

from app.models.expense import Expense, ExpenseSource, TransactionType
from app.models.import_log import ImportLog, ImportStatus
from app.models.category import Category
from app.models.storage_entry import StorageEntry, read_entry, write_entry, delete_entry

__all__ = [
    "Expense",
    "ExpenseSource",
    "TransactionType",
    "ImportLog",
    "ImportStatus",
    "Category",
    "StorageEntry",
    "read_entry",
    "write_entry",
    "delete_entry",
]
