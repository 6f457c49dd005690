"""
Base parser class for bank statement parsing.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union

from app.schemas.transaction import ParseResult


class BaseParser(ABC):
    """Base class for statement parsers"""

    file_type: str = ""

    @abstractmethod
    def can_parse(self, filename: Optional[str], content: Union[bytes, str, None] = None) -> bool:
        """Check if this parser can handle the file"""
        pass

    @abstractmethod
    def parse(
        self,
        content: Union[bytes, str],
        date_format: str = "auto"
    ) -> ParseResult:
        """
        Parse raw file content into transactions.
        Every transaction has a date, a cleaned description, a positive
        amount and a debit/credit type.
        """
        pass
