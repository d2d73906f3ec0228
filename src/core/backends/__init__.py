"""Document store, object store and OCR backends."""

from src.core.backends.base import (
    Bucket,
    CoverImage,
    DocumentStore,
    Entity,
    ObjectStore,
    OCRResponse,
    OCRService,
    QueryResult,
    StoredFile,
    StoredObject,
    TextAnnotation,
)

__all__ = [
    "Bucket",
    "CoverImage",
    "DocumentStore",
    "Entity",
    "ObjectStore",
    "OCRResponse",
    "OCRService",
    "QueryResult",
    "StoredFile",
    "StoredObject",
    "TextAnnotation",
]
