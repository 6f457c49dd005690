"""
File parsers package.
"""

from app.parsers.base import BaseParser
from app.parsers.csv_parser import CSVParser
from app.parsers.pdf_parser import PDFParser
from app.parsers.statement import detect_file_type, parse_bank_statement, validate_transactions

__all__ = [
    'BaseParser',
    'CSVParser',
    'PDFParser',
    'detect_file_type',
    'parse_bank_statement',
    'validate_transactions',
]
