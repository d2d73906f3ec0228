"""Book records and their repository."""

from src.core.books.book import Book, FieldError
from src.core.books.ocr_fields import ParsedDescription, try_extract_field
from src.core.books.repository import BookRepository

__all__ = ["Book", "FieldError", "BookRepository", "ParsedDescription", "try_extract_field"]
