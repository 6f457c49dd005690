"""
Bank statement entry point: file type detection, parsing and validation.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Union

from app.errors import (
    ErrorType,
    StatementImportError,
    EMPTY_FILE_SUGGESTIONS,
    format_error_for_user,
)
from app.parsers.base import BaseParser
from app.parsers.csv_parser import CSVParser
from app.parsers.pdf_parser import PDFParser, is_pdf
from app.schemas.transaction import ParsedTransaction, ParseResult

logger = logging.getLogger(__name__)

SUPPORTED_FILE_TYPES = ("csv", "pdf")


def get_parsers() -> Dict[str, BaseParser]:
    return {"csv": CSVParser(), "pdf": PDFParser()}


def detect_file_type(filename: Optional[str], content: Union[bytes, str, None] = None) -> str:
    """Detect csv/pdf from the extension, then from the content"""
    if filename and "." in filename:
        extension = filename.lower().rsplit(".", 1)[-1]
        if extension in ("csv", "txt"):
            return "csv"
        if extension == "pdf":
            return "pdf"

    if content:
        if is_pdf(content):
            return "pdf"
        if isinstance(content, str):
            return "csv"

    raise StatementImportError(
        ErrorType.FILE_FORMAT,
        "Unable to detect file type. Please ensure the file is a CSV or PDF.",
        suggestions=["Ensure your file is in CSV or PDF format"],
    )


def _is_empty(content: Union[bytes, str, None]) -> bool:
    return not content or not content.strip()


def parse_bank_statement(
    content: Union[bytes, str, None],
    filename: Optional[str] = None,
    file_type: Optional[str] = None,
    date_format: str = "auto"
) -> ParseResult:
    """
    Parse an uploaded statement into normalized transactions.

    Every failure leaves this function as a ``StatementImportError``.
    """
    try:
        if _is_empty(content):
            raise StatementImportError(
                ErrorType.NO_READABLE_DATA,
                "File is empty or unreadable",
                user_message="The file you selected is empty or could not be read.",
                suggestions=list(EMPTY_FILE_SUGGESTIONS),
            )

        file_type = (file_type or detect_file_type(filename, content)).lower()
        if file_type not in SUPPORTED_FILE_TYPES:
            raise StatementImportError(
                ErrorType.FILE_FORMAT,
                f"Unsupported file type: {file_type}. Only CSV and PDF files are supported.",
                suggestions=["Ensure your file is in CSV or PDF format"],
            )

        parser = get_parsers()[file_type]
        result = parser.parse(content, date_format=date_format)

        if not result.transactions:
            raise StatementImportError(
                ErrorType.NO_TRANSACTIONS,
                "No transactions found in the file",
                suggestions=["Try downloading a CSV export instead"],
            )

        result.metadata.file_name = filename
        result.metadata.file_type = file_type
        result.metadata.parsed_at = datetime.now(timezone.utc).isoformat()
        return result

    except StatementImportError as e:
        logger.error("Statement parsing failed for %s: %s", filename, e.message)
        raise
    except Exception as e:
        error = format_error_for_user(e, file_name=filename)
        logger.error("Statement parsing failed for %s: %s", filename, error.message)
        raise error from e


def validate_transactions(
    transactions: List[ParsedTransaction],
    today: Optional[date] = None
) -> Dict[str, Any]:
    """Split transactions into valid ones and ones with issues (e.g. future dates)."""
    today = today or date.today()
    valid: List[ParsedTransaction] = []
    issues: List[Dict[str, Any]] = []

    for index, transaction in enumerate(transactions):
        errors = []
        if transaction.date > today:
            errors.append("Date is in the future")
        if transaction.amount <= 0:
            errors.append("Invalid or missing amount")
        if not transaction.description.strip():
            errors.append("Missing description")

        if errors:
            issues.append({"index": index, "transaction": transaction, "errors": errors})
        else:
            valid.append(transaction)

    return {
        "valid": len(issues) == 0,
        "valid_transactions": valid,
        "issues": issues,
        "total_count": len(transactions),
        "valid_count": len(valid),
        "invalid_count": len(issues),
    }
