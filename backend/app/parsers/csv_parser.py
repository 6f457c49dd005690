"""
CSV bank statement parser.
"""

import csv
import codecs
import io
import logging
from decimal import Decimal
from typing import List, Dict, Any, Tuple, Optional, Union

from app.errors import ErrorType, StatementImportError, NO_TRANSACTIONS_SUGGESTIONS
from app.models.expense import TransactionType
from app.parsers.base import BaseParser
from app.parsers.normalizers import (
    parse_date,
    parse_amount,
    detect_currency,
    clean_description,
    is_date_like,
    is_zero_amount,
)
from app.schemas.transaction import ParsedTransaction, ParseResult, StatementMetadata

logger = logging.getLogger(__name__)

# English and Spanish header vocabularies, most specific last
COLUMN_MAPPINGS: Dict[str, List[str]] = {
    "date": [
        "date", "transaction date", "posting date", "trans date", "value date", "transaction_date",
        "fecha", "fecha de transacción", "fecha de transaccion", "fecha transacción", "fecha transaccion",
    ],
    "description": [
        "description", "details", "memo", "transaction details", "narration", "particulars",
        "transaction_details",
        "descripción", "descripcion", "detalles", "concepto", "referencia", "movimiento",
    ],
    "amount": [
        "amount", "transaction amount", "value",
        "monto", "importe", "valor", "cantidad",
    ],
    "debit": [
        "debit", "withdrawal", "withdrawals", "debit amount", "debits",
        "débito", "debito", "cargo", "cargos", "retiro", "retiros", "salida", "salidas",
    ],
    "credit": [
        "credit", "deposit", "deposits", "credit amount", "credits",
        "crédito", "credito", "abono", "abonos", "depósito", "deposito", "entrada", "entradas",
    ],
    "balance": [
        "balance", "running balance", "account balance", "closing balance",
        "saldo", "saldo final", "saldo disponible",
    ],
}

ACCOUNT_SUMMARY_HINTS = ["account", "cuenta", "number", "número", "name", "nombre"]
FALLBACK_DELIMITERS = [",", ";", "\t", "|"]
HEADER_SCAN_ROWS = 5


def decode_text(content: Union[bytes, str]) -> str:
    """Decode uploaded CSV bytes, rejecting binary files."""
    if isinstance(content, str):
        return content.lstrip("\ufeff")

    if content.startswith(codecs.BOM_UTF16_LE) or content.startswith(codecs.BOM_UTF16_BE):
        return content.decode("utf-16")

    if b"\x00" in content[:4096]:
        raise StatementImportError(
            ErrorType.FILE_FORMAT,
            "File appears to be binary, not a text CSV file",
            suggestions=[
                "Ensure your file is in CSV or PDF format",
                "Try exporting the file again from your bank",
            ],
        )

    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("latin-1")


def read_rows(text: str) -> List[List[str]]:
    """Split CSV text into non-empty rows, sniffing the delimiter."""
    sample = text[:8192]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters="".join(FALLBACK_DELIMITERS))
    except csv.Error:
        dialect = csv.excel

    reader = csv.reader(io.StringIO(text), dialect)
    return [row for row in reader if row and any(cell.strip() for cell in row)]


def _normalize_cells(row: List[str]) -> List[str]:
    return [(cell or "").lower().strip() for cell in row]


def _matches(cell: str, names: List[str]) -> bool:
    return any(cell == name or name in cell for name in names)


def _looks_numeric(cell: str) -> bool:
    try:
        float(cell)
        return True
    except (TypeError, ValueError):
        return False


def detect_header_row(rows: List[List[str]]) -> Dict[str, Any]:
    """
    Find the header row among the first few rows.

    Returns a dict with ``index`` (-1 when the file seems to have no header),
    ``confidence`` and an optional ``warning``.
    """
    amount_names = COLUMN_MAPPINGS["amount"] + COLUMN_MAPPINGS["debit"] + COLUMN_MAPPINGS["credit"]

    for i, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        cells = _normalize_cells(row)
        date_matches = sum(1 for c in cells if _matches(c, COLUMN_MAPPINGS["date"]))
        amount_matches = sum(1 for c in cells if _matches(c, amount_names))
        description_matches = sum(1 for c in cells if _matches(c, COLUMN_MAPPINGS["description"]))

        if date_matches > 0 and amount_matches > 0:
            total = date_matches + amount_matches + description_matches
            confidence = "high" if total >= 3 else "medium" if total >= 2 else "low"
            return {"index": i, "confidence": confidence, "matches": total}

    if rows and any(_looks_numeric(cell) for cell in rows[0]):
        return {"index": -1, "confidence": "none", "warning": "No header detected"}

    return {"index": 0, "confidence": "uncertain", "warning": "Header detection uncertain"}


def find_column_index(headers: List[str], column_type: str) -> int:
    normalized = _normalize_cells(headers)
    for name in COLUMN_MAPPINGS.get(column_type, []):
        for index, header in enumerate(normalized):
            if header == name or name in header:
                return index
    return -1


def remove_footer_rows(rows: List[List[str]], header_index: int) -> List[List[str]]:
    """Drop trailing summary/disclaimer rows that carry no date."""
    data_rows = rows[header_index + 1:]
    last_valid = len(data_rows) - 1

    for i in range(len(data_rows) - 1, -1, -1):
        row = data_rows[i]
        if not row or all(not (cell or "").strip() for cell in row):
            last_valid = i - 1
            continue
        if any(is_date_like(cell) for cell in row):
            last_valid = i
            break
        last_valid = i - 1

    return data_rows[:last_valid + 1]


def _cell(row: List[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return row[index] or ""


class CSVParser(BaseParser):
    """Parser for CSV bank/card exports"""

    file_type = "csv"

    def can_parse(self, filename: Optional[str], content: Union[bytes, str, None] = None) -> bool:
        if filename:
            return filename.lower().rsplit(".", 1)[-1] in ("csv", "txt")
        return isinstance(content, str)

    def get_preview(
        self,
        content: Union[bytes, str],
        rows: int = 5
    ) -> Tuple[List[str], List[List[str]]]:
        """Return headers and preview rows"""
        all_rows = read_rows(decode_text(content))
        header = detect_header_row(all_rows)
        index = max(header["index"], 0)
        headers = all_rows[index] if all_rows else []
        return headers, all_rows[index + 1:index + 1 + rows]

    def parse(
        self,
        content: Union[bytes, str],
        date_format: str = "auto"
    ) -> ParseResult:
        """Parse CSV and return transactions with parsing metadata"""
        rows = read_rows(decode_text(content))
        if not rows:
            raise StatementImportError(
                ErrorType.NO_READABLE_DATA,
                "CSV file is empty",
                suggestions=["Check that the file is not empty", "Try exporting the statement again"],
            )
        return self._process_rows(rows, date_format)

    def _process_rows(self, rows: List[List[str]], date_format: str) -> ParseResult:
        header = detect_header_row(rows)
        header_index = header["index"]

        if header_index == -1:
            logger.error("CSV header detection failed; first rows: %s", rows[:3])
            raise StatementImportError(
                ErrorType.PARSING,
                "Could not detect header row in CSV file",
                user_message=(
                    'Could not detect header row in CSV file. Please ensure your CSV has header '
                    'columns like "Date", "Description", and "Amount".'
                ),
                suggestions=[
                    "Ensure the first row contains column names",
                    "Check that Date and Amount columns are present",
                    "Verify the file is a valid CSV (not Excel or PDF)",
                ],
            )

        if header.get("warning"):
            logger.warning(
                "Header detection: %s (confidence: %s)", header["warning"], header["confidence"]
            )
        else:
            logger.debug("Header detected at row %d (confidence: %s)", header_index + 1, header["confidence"])

        headers = [h.strip() for h in rows[header_index]]
        if not any(headers):
            raise StatementImportError(
                ErrorType.PARSING,
                "CSV file has empty header row",
                suggestions=["Ensure the first row contains column names"],
            )

        data_rows = remove_footer_rows(rows, header_index)
        if not data_rows:
            raise StatementImportError(
                ErrorType.NO_TRANSACTIONS,
                "No transaction data found in CSV file",
                suggestions=list(NO_TRANSACTIONS_SUGGESTIONS),
            )

        columns = {name: find_column_index(headers, name) for name in COLUMN_MAPPINGS}
        logger.debug("CSV column mapping: %s", columns)

        if columns["date"] == -1:
            raise self._missing_date_column(headers, header["confidence"])

        if columns["amount"] == -1 and columns["debit"] == -1 and columns["credit"] == -1:
            raise StatementImportError(
                ErrorType.PARSING,
                "Could not find amount column in CSV file",
                user_message=(
                    "Could not find amount column in CSV file. "
                    f"Found headers: {', '.join(headers)}"
                ),
                suggestions=[
                    "Ensure your CSV has an Amount / Monto / Importe column",
                    "Or separate Debit and Credit columns",
                ],
            )

        transactions: List[ParsedTransaction] = []
        errors: List[Dict[str, Any]] = []

        for offset, row in enumerate(data_rows):
            row_number = offset + header_index + 2
            error = None
            try:
                transaction, error = self._parse_row(row, row_number, columns, date_format)
            except ValueError as e:
                transaction, error = None, str(e)

            if transaction is not None:
                transactions.append(transaction)
            elif error:
                errors.append({"row": row_number, "error": error, "value": row})

        transactions.sort(key=lambda t: t.date)

        logger.info(
            "CSV parsing complete: %d rows, %d transactions, %d errors",
            len(data_rows), len(transactions), len(errors)
        )
        if errors:
            logger.warning("CSV row errors (first 5): %s", errors[:5])

        if not transactions:
            detail = (
                f"All {len(errors)} rows had errors."
                if errors else "Please verify your CSV file format."
            )
            raise StatementImportError(
                ErrorType.NO_TRANSACTIONS,
                f"No valid transactions found in CSV file. {detail}",
                suggestions=list(NO_TRANSACTIONS_SUGGESTIONS),
                affected_items=errors[:10],
            )

        return ParseResult(
            transactions=transactions,
            metadata=StatementMetadata(
                file_type=self.file_type,
                total_rows=len(data_rows),
                successful_rows=len(transactions),
                error_rows=len(errors),
                errors=errors,
                headers=headers,
                detected_columns={
                    name: headers[index] if index != -1 else None
                    for name, index in columns.items()
                },
            ),
        )

    def _parse_row(
        self,
        row: List[str],
        row_number: int,
        columns: Dict[str, int],
        date_format: str
    ) -> Tuple[Optional[ParsedTransaction], Optional[str]]:
        """Parse a single row. Returns (transaction, None) or (None, reason)."""
        txn_date = parse_date(_cell(row, columns["date"]), date_format)
        if txn_date is None:
            return None, "Invalid date format"

        amount = Decimal("0")
        txn_type = TransactionType.debit
        currency = None

        if columns["amount"] != -1:
            raw_amount = _cell(row, columns["amount"])
            value = parse_amount(raw_amount)
            if value == 0 and raw_amount.strip() and not is_zero_amount(raw_amount):
                return None, f"Amount parsing failed: {raw_amount!r}"
            txn_type = TransactionType.credit if value < 0 else TransactionType.debit
            amount = abs(value)
            currency = detect_currency(raw_amount)
        else:
            raw_debit = _cell(row, columns["debit"])
            raw_credit = _cell(row, columns["credit"])
            debit = parse_amount(raw_debit)
            credit = parse_amount(raw_credit)
            if debit > 0:
                amount, txn_type, currency = debit, TransactionType.debit, detect_currency(raw_debit)
            elif credit > 0:
                amount, txn_type, currency = credit, TransactionType.credit, detect_currency(raw_credit)

        if amount == 0:
            return None, "Zero amount transaction skipped"

        description = clean_description(_cell(row, columns["description"]))
        if not description:
            return None, "Missing description"

        balance = None
        if columns["balance"] != -1 and _cell(row, columns["balance"]).strip():
            balance = parse_amount(_cell(row, columns["balance"]))

        return ParsedTransaction(
            date=txn_date,
            description=description,
            amount=amount,
            type=txn_type,
            currency=currency,
            balance=balance,
            raw_data={"row_index": row_number, "original_row": row},
        ), None

    def _missing_date_column(self, headers: List[str], confidence: str) -> StatementImportError:
        lowered = [h.lower() for h in headers]
        if any(hint in h for h in lowered for hint in ACCOUNT_SUMMARY_HINTS):
            message = "This CSV appears to be an account summary, not a transaction list"
            suggestions = [
                "Download your bank TRANSACTIONS or STATEMENT file instead",
                "The file should have columns like Date, Description and Amount",
            ]
        elif confidence == "uncertain":
            message = "Could not find date column. Header detection was uncertain"
            suggestions = ['Verify your CSV has a header row with a "Date" or "Fecha" column']
        else:
            message = "Could not find date column in CSV file"
            suggestions = ['Ensure your CSV has a "Date" or "Fecha" column']

        return StatementImportError(
            ErrorType.PARSING,
            message,
            user_message=f"{message}. Found headers: {', '.join(headers)}",
            suggestions=suggestions,
        )
