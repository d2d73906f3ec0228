"""API schemas."""

from src.api.schemas.books import AnalyzeResponse, BookListResponse, BookResponse

__all__ = ["AnalyzeResponse", "BookListResponse", "BookResponse"]
