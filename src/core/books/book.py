"""Book record and its validation."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from src.core.backends.base import CoverImage

# Fields written to and read from the document store.
PERSISTED_FIELDS = ("image_url", "description")

# Fields callers may assign through BookRepository.update.
SETTABLE_FIELDS = PERSISTED_FIELDS + ("cover_image",)


@dataclass
class FieldError:
    """A validation problem with one field."""
    field: str
    message: str


@dataclass
class Book:
    """A book with an optional cover image."""
    id: Optional[int] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    cover_image: Optional[CoverImage] = None  # transient, never persisted

    @property
    def persisted(self) -> bool:
        """True once the book has been saved and has a store-assigned id."""
        return self.id is not None

    def validate(self) -> list[FieldError]:
        """Return every field error; an empty list means the book is valid."""
        errors = []

        if self.description is not None and not isinstance(self.description, str):
            errors.append(FieldError("description", "must be text"))

        if self.image_url:
            parsed = urlparse(self.image_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(FieldError("image_url", "must be an http(s) URL"))

        if self.cover_image is not None:
            if not self.cover_image.filename:
                errors.append(FieldError("cover_image", "must have a filename"))
            elif "/" in self.cover_image.filename or "\\" in self.cover_image.filename:
                errors.append(FieldError("cover_image", "filename must not contain path separators"))
            if not self.cover_image.content_type.startswith("image/"):
                errors.append(FieldError("cover_image", "must be an image"))

        return errors

    def is_valid(self) -> bool:
        return not self.validate()
