"""
PDF bank statement parser.
"""

import io
import logging
import re
from typing import Any, Dict, List, Optional, Union

import pdfplumber

from app.errors import (
    ErrorType,
    StatementImportError,
    NO_TRANSACTIONS_SUGGESTIONS,
    PDF_EXTRACTION_SUGGESTIONS,
)
from app.parsers.base import BaseParser
from app.parsers.normalizers import parse_date
from app.parsers.strategies import StatementTextExtractor
from app.schemas.transaction import ParseResult, StatementMetadata

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"

ACCOUNT_NUMBER_PATTERNS = [
    re.compile(r"Account\s*(?:Number|No\.?)[\s:]*(\d{4,})", re.IGNORECASE),
    re.compile(r"A/C\s*(?:Number|No\.?)[\s:]*(\d{4,})", re.IGNORECASE),
    re.compile(r"Account[\s:]*(\*+\d{4})", re.IGNORECASE),
]

PERIOD_PATTERNS = [
    re.compile(
        r"Statement\s+Period[\s:]*(\d{2}/\d{2}/\d{4})\s*(?:to|-)\s*(\d{2}/\d{2}/\d{4})",
        re.IGNORECASE,
    ),
    re.compile(r"From[\s:]*(\d{2}/\d{2}/\d{4})\s*(?:to|To)\s*(\d{2}/\d{2}/\d{4})"),
]


def is_pdf(content: Union[bytes, str, None]) -> bool:
    """Check the %PDF magic number"""
    if not content or len(content) < 4:
        return False
    if isinstance(content, str):
        return content[:4] == "%PDF"
    return content[:4] == PDF_MAGIC


def extract_metadata(text: str, date_format: str = "auto") -> Dict[str, Any]:
    """Best-effort bank name, account number and statement period."""
    metadata: Dict[str, Any] = {}

    first_lines = [line.strip() for line in text.splitlines()[:5] if line.strip()]
    if first_lines:
        metadata["bank_name"] = first_lines[0]

    for pattern in ACCOUNT_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match:
            metadata["account_number"] = match.group(1)
            break

    for pattern in PERIOD_PATTERNS:
        match = pattern.search(text)
        if match:
            metadata["period_start"] = parse_date(match.group(1), date_format)
            metadata["period_end"] = parse_date(match.group(2), date_format)
            break

    return metadata


class PDFParser(BaseParser):
    """Parser for text-based PDF statements"""

    file_type = "pdf"

    def __init__(self, extractor: Optional[StatementTextExtractor] = None):
        self.extractor = extractor or StatementTextExtractor()

    def can_parse(self, filename: Optional[str], content: Union[bytes, str, None] = None) -> bool:
        if filename and filename.lower().endswith(".pdf"):
            return True
        return is_pdf(content)

    def extract_text(self, content: bytes):
        """Return (full text, page count)"""
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                pages = [page.extract_text(layout=True) or "" for page in pdf.pages]
        except Exception as e:
            logger.error("PDF text extraction failed: %s", e)
            raise StatementImportError(
                ErrorType.PDF_EXTRACTION,
                f"PDF parsing failed: {e}",
                user_message="The PDF could not be read.",
                suggestions=list(PDF_EXTRACTION_SUGGESTIONS),
                technical_details={"exception_type": type(e).__name__},
            ) from e
        return "\n".join(pages), len(pages)

    def parse(
        self,
        content: Union[bytes, str],
        date_format: str = "auto"
    ) -> ParseResult:
        if isinstance(content, str):
            text, page_count = content, None
        else:
            text, page_count = self.extract_text(content)

        return self.parse_text(text, date_format=date_format, total_pages=page_count)

    def parse_text(
        self,
        text: str,
        date_format: str = "auto",
        total_pages: Optional[int] = None
    ) -> ParseResult:
        """Run the extraction strategies over already-extracted text"""
        metadata = extract_metadata(text, date_format)
        transactions, strategy = self.extractor.extract(text, date_format=date_format)

        if not transactions:
            raise StatementImportError(
                ErrorType.NO_TRANSACTIONS,
                "Could not extract transactions from PDF",
                user_message=(
                    "Could not extract transactions from PDF. This might be a scanned document "
                    "or an unsupported format. Try converting to CSV instead."
                ),
                suggestions=list(NO_TRANSACTIONS_SUGGESTIONS),
            )

        logger.info(
            "PDF parsing complete: %d transactions via %s strategy", len(transactions), strategy
        )

        return ParseResult(
            transactions=transactions,
            metadata=StatementMetadata(
                file_type=self.file_type,
                total_pages=total_pages,
                strategy=strategy,
                successful_rows=len(transactions),
                **metadata,
            ),
        )
