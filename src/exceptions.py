"""Application exceptions.

All bookshelf-specific errors inherit from BookshelfError.
"""

from typing import Any, Optional


class BookshelfError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details (for debugging)
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(BookshelfError):
    """Invalid or missing configuration (e.g. no bucket name for the gcloud backend)."""

    def __init__(self, message: str, config_key: Optional[str] = None) -> None:
        super().__init__(message, details={"config_key": config_key} if config_key else None)


class BackendError(BookshelfError):
    """A call to the document store, object store or OCR service failed."""

    def __init__(self, message: str, service: Optional[str] = None) -> None:
        super().__init__(message, details={"service": service} if service else None)
        self.service = service


class NotFoundError(BackendError):
    """The remote resource does not exist."""


class PermissionDeniedError(BackendError):
    """Credentials are missing or not allowed to perform the call."""


class UnavailableError(BackendError):
    """The remote service could not be reached or timed out."""


class InvalidRequestError(BackendError):
    """The remote service rejected the request, e.g. a malformed cursor."""


class UnknownAttributeError(BookshelfError):
    """An update named an attribute the Book does not expose."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown book attribute '{name}'", details={"attribute": name})
        self.name = name


class MissingImageError(BookshelfError):
    """An operation needs a cover image but the book has none."""

    def __init__(self, book_id: Optional[int] = None) -> None:
        super().__init__("Book has no cover image", details={"book_id": book_id})
        self.book_id = book_id
