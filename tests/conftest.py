"""Pytest configuration and fixtures."""

import io
import os

import pytest

os.environ["BACKEND"] = "memory"
os.environ["GCS_BUCKET"] = "mybucket"

from fastapi.testclient import TestClient  # noqa: E402

from src.api.routes.books import get_book_repository  # noqa: E402
from src.core.backends.base import CoverImage, Entity  # noqa: E402
from src.core.backends.memory import (  # noqa: E402
    MemoryBucket,
    MemoryDocumentStore,
    MemoryObject,
    MemoryOCRService,
)
from src.core.books.repository import BookRepository  # noqa: E402
from src.main import app  # noqa: E402


class RecordingDocumentStore(MemoryDocumentStore):
    """Memory store that records every call."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple] = []

    def run_query(self, kind, limit=None, cursor=None):
        self.calls.append(("run_query", kind, limit, cursor))
        return super().run_query(kind, limit=limit, cursor=cursor)

    def lookup(self, kind, entity_id):
        self.calls.append(("lookup", kind, entity_id))
        return super().lookup(kind, entity_id)

    def save(self, entity: Entity) -> int:
        self.calls.append(("save", entity.kind, entity.id, dict(entity.properties)))
        return super().save(entity)

    def delete(self, kind, entity_id):
        self.calls.append(("delete", kind, entity_id))
        super().delete(kind, entity_id)


class RecordingObject(MemoryObject):
    def delete(self) -> None:
        self._bucket.calls.append(("delete", self.path))
        super().delete()


class RecordingBucket(MemoryBucket):
    """Memory bucket that records creates and deletes, in order."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.calls: list[tuple] = []

    def create_file(self, stream, path, content_type, acl="public"):
        self.calls.append(("create_file", path, content_type, acl))
        return super().create_file(stream, path, content_type, acl)

    def file(self, path: str) -> RecordingObject:
        return RecordingObject(self, path)


@pytest.fixture
def document_store():
    return RecordingDocumentStore()


@pytest.fixture
def bucket():
    return RecordingBucket("mybucket")


@pytest.fixture
def ocr():
    return MemoryOCRService()


@pytest.fixture
def repo(document_store, bucket, ocr):
    return BookRepository(document_store, bucket, ocr, ocr_max_results=1)


@pytest.fixture
def cover_image():
    """A small PNG cover upload."""
    return CoverImage(stream=io.BytesIO(b"\x89PNG fake"), filename="a.png", content_type="image/png")


@pytest.fixture
def client(repo):
    """Create a test client for the FastAPI app, wired to the test repository."""
    app.dependency_overrides[get_book_repository] = lambda: repo
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
