"""Book persistence over a document store, cover images in a bucket, OCR."""

from typing import Any, Optional
from urllib.parse import unquote, urlparse

import structlog

from src.core.backends.base import Bucket, DocumentStore, Entity, OCRService
from src.core.books.book import PERSISTED_FIELDS, SETTABLE_FIELDS, Book
from src.core.books.ocr_fields import ParsedDescription, parse_description
from src.exceptions import MissingImageError, UnknownAttributeError

logger = structlog.get_logger(__name__)

KIND = "Book"
COVER_IMAGE_PREFIX = "cover_images"


class BookRepository:
    """
    Data access for Book records.

    Entities live in the document store under kind "Book". Cover images are
    written to the bucket under cover_images/{id}/{filename} with public
    read access, and their public URL is kept in image_url.

    None of the multi-step operations are transactional: a failure between
    steps (save then upload, delete image then delete entity, delete then
    upload) is propagated and leaves the earlier steps applied.
    """

    def __init__(self, document_store: DocumentStore, bucket: Bucket, ocr: OCRService, ocr_max_results: int = 1) -> None:
        self._store = document_store
        self._bucket = bucket
        self._ocr = ocr
        self._ocr_max_results = ocr_max_results

    # --- Mapping ---

    @staticmethod
    def from_entity(entity: Entity) -> Book:
        """Build a Book from an entity, ignoring properties it does not know."""
        book = Book(id=entity.id)
        for name, value in entity.properties.items():
            if name not in PERSISTED_FIELDS:
                continue
            # Older records stored the OCR text as a list of strings
            if isinstance(value, list):
                value = "\n".join(str(v) for v in value)
            setattr(book, name, value)
        return book

    @staticmethod
    def to_entity(book: Book) -> Entity:
        """Build the entity for a Book, setting only non-empty fields."""
        entity = Entity(kind=KIND, id=book.id)
        for name in PERSISTED_FIELDS:
            value = getattr(book, name)
            if value:
                entity[name] = value
        return entity

    # --- Queries ---

    def query(self, limit: Optional[int] = None, cursor: Optional[bytes] = None) -> tuple[list[Book], Optional[bytes]]:
        """
        List books.

        Args:
            limit: Maximum number of books to return
            cursor: Opaque cursor returned by a previous call

        Returns:
            Books and a cursor for the next page. The cursor is only set when
            a full page came back, so it means "there may be more".
        """
        result = self._store.run_query(KIND, limit=limit, cursor=cursor)
        books = [self.from_entity(entity) for entity in result.entities]

        next_cursor = None
        if limit is not None and len(books) == limit:
            next_cursor = result.cursor

        return books, next_cursor

    def find(self, book_id: int) -> Optional[Book]:
        """Look up a book by id. Returns None if it does not exist."""
        entity = self._store.lookup(KIND, int(book_id))
        if entity is None:
            return None
        return self.from_entity(entity)

    # --- Writes ---

    def save(self, book: Book) -> bool:
        """
        Validate and persist a book, then upload its cover image if attached.

        Returns:
            False if validation failed (nothing is written), True otherwise
        """
        errors = book.validate()
        if errors:
            logger.info("Book validation failed", book_id=book.id, errors=[e.field for e in errors])
            return False

        book.id = self._store.save(self.to_entity(book))
        logger.info("Saved book", book_id=book.id)

        if book.cover_image is not None:
            self.update_image(book)
        return True

    def update(self, book: Book, attributes: dict[str, Any]) -> bool:
        """
        Assign attributes and save.

        Raises:
            UnknownAttributeError: If a name is not a settable book field
        """
        for name in attributes:
            if name not in SETTABLE_FIELDS:
                raise UnknownAttributeError(name)

        for name, value in attributes.items():
            setattr(book, name, value)
        return self.save(book)

    def destroy(self, book: Book) -> None:
        """Delete the cover image (if any), then the entity."""
        if book.image_url:
            self._remove_image(book)

        self._store.delete(KIND, book.id)
        logger.info("Deleted book", book_id=book.id)

    # --- Cover images ---

    def upload_image(self, book: Book) -> None:
        """Upload the attached cover image and persist its public URL."""
        cover = book.cover_image
        if cover is None:
            raise MissingImageError(book.id)

        path = f"{COVER_IMAGE_PREFIX}/{book.id}/{cover.filename}"
        stored = self._bucket.create_file(cover.stream, path, content_type=cover.content_type, acl="public")

        book.image_url = stored.public_url
        book.cover_image = None
        self._store.save(self.to_entity(book))
        logger.info("Uploaded cover image", book_id=book.id, path=stored.path)

    def delete_image(self, book: Book) -> bool:
        """
        Delete the cover image if it lives in the configured bucket and
        persist the book without it.

        Images served from any other host are left alone.

        Returns:
            True if an object was deleted
        """
        deleted = self._remove_image(book)
        if deleted and book.persisted:
            self._store.save(self.to_entity(book))
        return deleted

    def _remove_image(self, book: Book) -> bool:
        """Delete the bucket object and clear image_url without saving."""
        image_uri = urlparse(book.image_url.replace(" ", "%20"))

        if image_uri.hostname != self._bucket.public_host:
            logger.warning(
                "Skipping delete of image outside bucket",
                book_id=book.id,
                host=image_uri.hostname,
                bucket=self._bucket.name,
            )
            return False

        # Object key is the path without its leading slash,
        # e.g. "cover_images/:id/:filename"
        image_path = unquote(image_uri.path[1:])
        self._bucket.file(image_path).delete()

        book.image_url = None
        logger.info("Deleted cover image", book_id=book.id, path=image_path)
        return True

    def update_image(self, book: Book) -> None:
        """Replace the cover image: delete the old one, then upload."""
        if book.image_url:
            self._remove_image(book)
        self.upload_image(book)

    # --- OCR ---

    def analyze(self, book: Book) -> ParsedDescription:
        """
        Run text detection on the cover image and store the text as description.

        Raises:
            MissingImageError: If the book has no cover image
        """
        if not book.image_url:
            raise MissingImageError(book.id)

        responses = self._ocr.detect_text(book.image_url, max_results=self._ocr_max_results)
        parsed = parse_description(responses)

        if parsed.first_name is None or parsed.last_name is None:
            logger.info(
                "OCR labels missing",
                book_id=book.id,
                first_name_found=parsed.first_name is not None,
                last_name_found=parsed.last_name is not None,
            )

        book.description = parsed.text
        book.id = self._store.save(self.to_entity(book))
        logger.info("Analyzed cover image", book_id=book.id, tokens=len(parsed.tokens))
        return parsed
