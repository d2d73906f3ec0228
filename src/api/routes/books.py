"""Book API endpoints."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile

from src.api.schemas.books import (
    AnalyzeResponse,
    BookListResponse,
    BookResponse,
    FieldErrorResponse,
)
from src.config import Settings, get_settings
from src.core.backends.base import CoverImage
from src.core.books.book import Book
from src.core.books.repository import BookRepository

router = APIRouter(prefix="/v1/books", tags=["Books"])


def get_book_repository(request: Request) -> BookRepository:
    """Get the repository built at startup."""
    return request.app.state.book_repository


def _cover_image(upload: Optional[UploadFile], settings: Settings) -> Optional[CoverImage]:
    """Wrap an uploaded file, or return None if nothing was sent."""
    if upload is None or not upload.filename:
        return None
    if upload.size is not None and upload.size > settings.max_cover_image_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Cover image exceeds {settings.max_cover_image_bytes} bytes",
        )
    return CoverImage(
        stream=upload.file,
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
    )


def _save_or_422(repo: BookRepository, book: Book, attributes: Optional[dict] = None) -> None:
    saved = repo.update(book, attributes) if attributes is not None else repo.save(book)
    if not saved:
        raise HTTPException(
            status_code=422,
            detail=[FieldErrorResponse.from_error(e).model_dump() for e in book.validate()],
        )


def _find_or_404(repo: BookRepository, book_id: int) -> Book:
    book = repo.find(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.get("", response_model=BookListResponse)
def list_books(
    repo: Annotated[BookRepository, Depends(get_book_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
    limit: Optional[int] = Query(default=None, ge=1, le=1000, description="Page size"),
    cursor: Optional[str] = Query(default=None, description="Cursor from a previous page"),
) -> BookListResponse:
    """List books one page at a time."""
    try:
        books, next_cursor = repo.query(
            limit=limit or settings.books_per_page,
            cursor=cursor.encode("ascii") if cursor else None,
        )
    except (ValueError, UnicodeEncodeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid cursor: {e}")

    return BookListResponse(
        books=[BookResponse.from_book(b) for b in books],
        next_cursor=next_cursor.decode("ascii") if next_cursor else None,
    )


@router.get("/{book_id}", response_model=BookResponse)
def get_book(
    book_id: int,
    repo: Annotated[BookRepository, Depends(get_book_repository)],
) -> BookResponse:
    """Get a book."""
    return BookResponse.from_book(_find_or_404(repo, book_id))


@router.post("", response_model=BookResponse, status_code=201)
def create_book(
    repo: Annotated[BookRepository, Depends(get_book_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
    description: Optional[str] = Form(default=None),
    cover_image: Optional[UploadFile] = File(default=None),
) -> BookResponse:
    """
    Create a book.

    If a cover image is sent it is uploaded after the book is first saved,
    since its storage path includes the new book id.
    """
    book = Book(description=description, cover_image=_cover_image(cover_image, settings))
    _save_or_422(repo, book)
    return BookResponse.from_book(book)


@router.put("/{book_id}", response_model=BookResponse)
def update_book(
    book_id: int,
    repo: Annotated[BookRepository, Depends(get_book_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
    description: Optional[str] = Form(default=None),
    cover_image: Optional[UploadFile] = File(default=None),
) -> BookResponse:
    """Update a book's description and/or replace its cover image."""
    book = _find_or_404(repo, book_id)

    attributes = {}
    if description is not None:
        attributes["description"] = description
    cover = _cover_image(cover_image, settings)
    if cover is not None:
        attributes["cover_image"] = cover

    _save_or_422(repo, book, attributes)
    return BookResponse.from_book(book)


@router.delete("/{book_id}")
def delete_book(
    book_id: int,
    repo: Annotated[BookRepository, Depends(get_book_repository)],
) -> dict:
    """Delete a book and its cover image."""
    book = _find_or_404(repo, book_id)
    repo.destroy(book)
    return {"status": "deleted", "book_id": book_id}


@router.post("/{book_id}/analyze", response_model=AnalyzeResponse)
def analyze_book(
    book_id: int,
    repo: Annotated[BookRepository, Depends(get_book_repository)],
) -> AnalyzeResponse:
    """
    Read the cover image with OCR.

    The flattened text replaces the book description. First and last name
    are picked from the tokens following "FN" and "LN".
    """
    book = _find_or_404(repo, book_id)
    parsed = repo.analyze(book)
    return AnalyzeResponse(
        book_id=book.id,
        first_name=parsed.first_name,
        last_name=parsed.last_name,
        description=parsed.text,
    )
