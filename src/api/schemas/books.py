"""Book schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from src.core.books.book import Book, FieldError


class BookResponse(BaseModel):
    """A stored book."""
    id: int = Field(description="Store-assigned book identifier")
    description: Optional[str] = Field(default=None, description="Free-form description or OCR text")
    image_url: Optional[str] = Field(default=None, description="Public URL of the cover image")

    @classmethod
    def from_book(cls, book: Book) -> "BookResponse":
        return cls(id=book.id, description=book.description, image_url=book.image_url)


class BookListResponse(BaseModel):
    """One page of books."""
    books: list[BookResponse]
    next_cursor: Optional[str] = Field(
        default=None,
        description="Opaque cursor for the next page; present only when a full page was returned",
    )


class FieldErrorResponse(BaseModel):
    """Validation problem with one field."""
    field: str
    message: str

    @classmethod
    def from_error(cls, error: FieldError) -> "FieldErrorResponse":
        return cls(field=error.field, message=error.message)


class AnalyzeResponse(BaseModel):
    """Fields read from the cover image by OCR."""
    book_id: int
    first_name: Optional[str] = Field(default=None, description="Value after the FN label, if found")
    last_name: Optional[str] = Field(default=None, description="Value after the LN label, if found")
    description: str = Field(description="Flattened OCR text now stored on the book")
