"""
Structured errors for statement imports.

Every failure that can reach a user carries a friendly message and a list of
things to try next. Low-level exceptions are wrapped with
``format_error_for_user`` before they leave the import pipeline.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class ErrorType(str, Enum):
    NO_READABLE_DATA = "NO_READABLE_DATA"
    NO_TRANSACTIONS = "NO_TRANSACTIONS"
    PDF_EXTRACTION = "PDF_EXTRACTION"
    FILE_READ = "FILE_READ"
    FILE_FORMAT = "FILE_FORMAT"
    PARSING = "PARSING"
    VALIDATION = "VALIDATION"
    DATABASE = "DATABASE"
    NETWORK = "NETWORK"
    PERMISSION = "PERMISSION"
    DUPLICATE = "DUPLICATE"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"


class ErrorSeverity(str, Enum):
    CRITICAL = "CRITICAL"  # Blocks all operations
    ERROR = "ERROR"
    WARNING = "WARNING"  # Operation succeeded with issues
    INFO = "INFO"


ERROR_TITLES = {
    ErrorType.NO_READABLE_DATA: "Empty File",
    ErrorType.NO_TRANSACTIONS: "No Transactions Found",
    ErrorType.PDF_EXTRACTION: "PDF Could Not Be Read",
    ErrorType.FILE_READ: "File Access Error",
    ErrorType.FILE_FORMAT: "Invalid File Format",
    ErrorType.PARSING: "Parsing Error",
    ErrorType.VALIDATION: "Validation Error",
    ErrorType.DATABASE: "Database Error",
    ErrorType.NETWORK: "Network Error",
    ErrorType.PERMISSION: "Permission Denied",
    ErrorType.DUPLICATE: "Duplicate Detection",
    ErrorType.EXPIRED: "Import Expired",
    ErrorType.UNKNOWN: "Unexpected Error",
}

EMPTY_FILE_SUGGESTIONS = [
    "Check that the file is not empty",
    "Try exporting the statement again from your bank",
    "Try a CSV export instead of a PDF",
]

NO_TRANSACTIONS_SUGGESTIONS = [
    "Try downloading a CSV export instead",
    "Make sure the statement is not a scanned image",
    "Check that the PDF is not password protected",
    "Verify the statement covers a period with transactions",
]

PDF_EXTRACTION_SUGGESTIONS = [
    "Check that the PDF is not password protected",
    "Try downloading a CSV export instead",
    "Make sure the file is a real PDF and not a renamed image",
]

# Ordered: the first rule whose keywords appear in the message wins.
_CLASSIFICATION_RULES = [
    (
        ErrorType.FILE_READ,
        lambda m: "file" in m and ("read" in m or "access" in m),
        [
            "Ensure the file exists and is accessible",
            "Try selecting the file again",
            "Check if the file is open in another application",
        ],
    ),
    (
        ErrorType.FILE_FORMAT,
        lambda m: "format" in m or "invalid file" in m or "unsupported" in m or "binary" in m,
        [
            "Ensure your file is in CSV or PDF format",
            "Try exporting the file again from your bank",
            "Check that the file is not corrupted",
        ],
    ),
    (
        ErrorType.PARSING,
        lambda m: "parse" in m or "column" in m or "header" in m,
        [
            "Verify your bank statement has Date, Description, and Amount columns",
            "Ensure the CSV file uses comma or semicolon delimiters",
            "Check if the file has a header row",
        ],
    ),
    (
        ErrorType.VALIDATION,
        lambda m: "validation" in m or "invalid" in m or "required" in m,
        [
            "Review the highlighted transactions for issues",
            "Check for missing or invalid amounts",
            "Verify all dates are in valid format",
        ],
    ),
    (
        ErrorType.DATABASE,
        lambda m: "database" in m or "sqlalchemy" in m or "integrity" in m,
        [
            "Try the import again",
            "Contact support if the issue persists",
        ],
    ),
    (
        ErrorType.NETWORK,
        lambda m: "network" in m or "timeout" in m or "connection" in m,
        [
            "Check your internet connection",
            "Try again in a few moments",
            "Ensure you have a stable connection",
        ],
    ),
    (
        ErrorType.PERMISSION,
        lambda m: "permission" in m or "denied" in m or "unauthorized" in m,
        [
            "Ensure you have permission to access this file",
            "Try signing out and signing back in",
            "Check your app permissions in device settings",
        ],
    ),
]

_DEFAULT_SUGGESTIONS = [
    "Try the operation again",
    "Contact support if the issue persists",
]


class StatementImportError(Exception):
    """An import failure that is safe to show to the user."""

    def __init__(
        self,
        error_type: ErrorType,
        message: str,
        user_message: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        recoverable: bool = True,
        technical_details: Optional[Dict[str, Any]] = None,
        affected_items: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.user_message = user_message or message
        self.suggestions = list(suggestions or [])
        self.severity = severity
        self.recoverable = recoverable
        self.technical_details = technical_details
        self.affected_items = list(affected_items or [])
        self.timestamp = datetime.now(timezone.utc).isoformat()

    @property
    def title(self) -> str:
        return error_type_title(self.error_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.error_type.value,
            "title": self.title,
            "message": self.message,
            "user_message": self.user_message,
            "suggestions": self.suggestions,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "affected_items": self.affected_items,
            "timestamp": self.timestamp,
        }


def classify_error(error: BaseException):
    """Return ``(ErrorType, suggestions)`` for an arbitrary exception."""
    message = (str(error) or type(error).__name__).lower()
    for error_type, matches, suggestions in _CLASSIFICATION_RULES:
        if matches(message):
            return error_type, list(suggestions)
    return ErrorType.UNKNOWN, list(_DEFAULT_SUGGESTIONS)


def format_error_for_user(
    error: BaseException,
    file_name: Optional[str] = None,
    transaction_count: Optional[int] = None,
) -> StatementImportError:
    """Wrap any exception into a ``StatementImportError``.

    Errors that are already structured are returned unchanged.
    """
    if isinstance(error, StatementImportError):
        return error

    error_type, suggestions = classify_error(error)
    message = str(error) or "An unexpected error occurred"

    user_message = message
    if file_name:
        user_message = f"Error processing {file_name}: {user_message}"
    if transaction_count:
        user_message += f" ({transaction_count} transactions affected)"

    return StatementImportError(
        error_type,
        message,
        user_message=user_message,
        suggestions=suggestions,
        technical_details={
            "original_error": message,
            "exception_type": type(error).__name__,
            "file_name": file_name,
        },
    )


def error_type_title(error_type: ErrorType) -> str:
    return ERROR_TITLES.get(error_type, "Error")


def create_error_summary(errors: Iterable[StatementImportError]) -> Dict[str, Any]:
    """Group errors by type and merge their suggestions."""
    errors = list(errors)
    by_type: Dict[str, List[StatementImportError]] = {}
    suggestions: List[str] = []

    for error in errors:
        by_type.setdefault(error.error_type.value, []).append(error)
        for suggestion in error.suggestions:
            if suggestion not in suggestions:
                suggestions.append(suggestion)

    return {
        "total_errors": len(errors),
        "by_type": by_type,
        "suggestions": suggestions,
        "critical_count": sum(1 for e in errors if e.severity == ErrorSeverity.CRITICAL),
        "recoverable_count": sum(1 for e in errors if e.recoverable),
    }


def format_validation_errors(
    row_errors: Iterable[Dict[str, Any]],
    row_warnings: Iterable[Dict[str, Any]] = (),
) -> List[StatementImportError]:
    """Turn per-row parser errors into structured errors for display."""
    formatted = []

    for err in row_errors:
        formatted.append(StatementImportError(
            ErrorType.VALIDATION,
            f"Row {err.get('row')}: {err.get('error')}",
            user_message=f"Transaction at row {err.get('row')} has an error: {err.get('error')}",
            suggestions=[
                "Fix the data in your bank statement",
                "Or skip this transaction during import",
            ],
            affected_items=[{"row": err.get("row"), "value": err.get("value")}],
        ))

    for warn in row_warnings:
        text = warn.get("error") or warn.get("message") or ""
        formatted.append(StatementImportError(
            ErrorType.VALIDATION,
            text,
            user_message=f"Warning: {text}",
            severity=ErrorSeverity.WARNING,
            affected_items=[{"row": warn["row"]}] if warn.get("row") else [],
        ))

    return formatted
