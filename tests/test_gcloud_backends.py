"""Tests for the Google Cloud backends, using stand-in clients."""

import io
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as gcloud_exceptions
from google.cloud import datastore

from src.core.backends.base import Entity
from src.core.backends.gcloud import (
    CloudStorageBucket,
    DatastoreDocumentStore,
    VisionOCRService,
    translate_errors,
)
from src.exceptions import (
    BackendError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    UnavailableError,
)


class FakeDatastoreClient:
    """Just enough of datastore.Client for DatastoreDocumentStore."""

    def __init__(self) -> None:
        self.entities: dict = {}
        self.next_id = 100
        self.fetches: list = []

    def key(self, kind, *ids):
        return datastore.Key(kind, *ids, project="test-project")

    def put(self, entity):
        if entity.key.is_partial:
            entity.key = entity.key.completed_key(self.next_id)
            self.next_id += 1
        self.entities[entity.key.id] = entity

    def get(self, key):
        return self.entities.get(key.id)

    def delete(self, key):
        self.entities.pop(key.id, None)

    def query(self, kind):
        return FakeQuery(self, kind)


class FakeIterator:
    """Iterator over query results carrying the page token, like the SDK's."""

    def __init__(self, entities, next_page_token) -> None:
        self._entities = entities
        self.next_page_token = next_page_token

    def __iter__(self):
        return iter(self._entities)


class FakeQuery:
    def __init__(self, client: FakeDatastoreClient, kind: str) -> None:
        self.client = client
        self.kind = kind

    def fetch(self, limit=None, start_cursor=None):
        self.client.fetches.append((self.kind, limit, start_cursor))
        rows = [e for _, e in sorted(self.client.entities.items()) if e.key.kind == self.kind]
        offset = int(start_cursor) if start_cursor else 0
        page = rows[offset:] if limit is None else rows[offset:offset + limit]
        end = offset + len(page)
        token = str(end).encode("ascii") if end < len(rows) else None
        return FakeIterator(page, token)


class FakeBlob:
    def __init__(self, name: str) -> None:
        self.name = name
        self.uploads: list = []
        self.deleted = False

    def upload_from_file(self, stream, content_type=None, predefined_acl=None):
        self.uploads.append((stream.read(), content_type, predefined_acl))

    def delete(self):
        self.deleted = True


class FakeGCSBucket:
    def __init__(self, name: str) -> None:
        self.name = name
        self.blobs: dict[str, FakeBlob] = {}

    def blob(self, path: str) -> FakeBlob:
        return self.blobs.setdefault(path, FakeBlob(path))


@pytest.mark.parametrize(
    "error, expected",
    [
        (gcloud_exceptions.NotFound("gone"), NotFoundError),
        (gcloud_exceptions.Forbidden("nope"), PermissionDeniedError),
        (gcloud_exceptions.PermissionDenied("nope"), PermissionDeniedError),
        (gcloud_exceptions.ServiceUnavailable("down"), UnavailableError),
        (gcloud_exceptions.DeadlineExceeded("slow"), UnavailableError),
        (gcloud_exceptions.BadRequest("bad cursor"), InvalidRequestError),
        (gcloud_exceptions.InternalServerError("boom"), BackendError),
    ],
)
def test_translate_errors(error, expected):
    with pytest.raises(expected) as exc_info:
        with translate_errors("datastore"):
            raise error
    assert type(exc_info.value) is expected
    assert exc_info.value.service == "datastore"
    assert exc_info.value.__cause__ is error


def test_translate_errors_passes_other_exceptions():
    with pytest.raises(KeyError):
        with translate_errors("datastore"):
            raise KeyError("x")


def test_datastore_save_lookup_delete():
    client = FakeDatastoreClient()
    store = DatastoreDocumentStore(client)

    entity_id = store.save(Entity(kind="Book", properties={"description": "x"}))
    assert entity_id == 100
    assert "description" in client.entities[100].exclude_from_indexes

    found = store.lookup("Book", entity_id)
    assert found == Entity(kind="Book", id=100, properties={"description": "x"})

    assert store.save(Entity(kind="Book", id=100, properties={"description": "y"})) == 100
    assert store.lookup("Book", 100)["description"] == "y"

    store.delete("Book", 100)
    assert store.lookup("Book", 100) is None


def test_cloud_storage_upload_is_public():
    gcs_bucket = FakeGCSBucket("mybucket")
    bucket = CloudStorageBucket(gcs_bucket)

    stored = bucket.create_file(io.BytesIO(b"img"), "cover_images/1/my cover.png", "image/png", acl="public")

    assert stored.public_url == "https://mybucket.storage.googleapis.com/cover_images/1/my%20cover.png"
    assert gcs_bucket.blobs["cover_images/1/my cover.png"].uploads == [(b"img", "image/png", "publicRead")]


def test_cloud_storage_delete():
    gcs_bucket = FakeGCSBucket("mybucket")
    bucket = CloudStorageBucket(gcs_bucket)

    handle = bucket.file("cover_images/1/a.png")
    handle.delete()

    assert handle.path == "cover_images/1/a.png"
    assert gcs_bucket.blobs["cover_images/1/a.png"].deleted


def _annotations(*texts, error=""):
    return SimpleNamespace(
        error=SimpleNamespace(message=error),
        text_annotations=[SimpleNamespace(description=t) for t in texts],
    )


def test_vision_detect_text():
    requests_seen = []

    class FakeAnnotator:
        def batch_annotate_images(self, requests):
            requests_seen.extend(requests)
            return SimpleNamespace(responses=[_annotations("FN", "Ada")])

    ocr = VisionOCRService(FakeAnnotator())

    responses = ocr.detect_text("https://mybucket.storage.googleapis.com/a.png", max_results=1)

    assert [t.description for t in responses[0].text_annotations] == ["FN", "Ada"]
    assert requests_seen[0].image.source.image_uri == "https://mybucket.storage.googleapis.com/a.png"
    assert requests_seen[0].features[0].max_results == 1


def test_vision_error_response_raises():
    class FakeAnnotator:
        def batch_annotate_images(self, requests):
            return SimpleNamespace(responses=[_annotations(error="image not reachable")])

    with pytest.raises(BackendError, match="image not reachable"):
        VisionOCRService(FakeAnnotator()).detect_text("https://example.com/a.png")


def test_datastore_query_passes_limit_and_cursor():
    client = FakeDatastoreClient()
    store = DatastoreDocumentStore(client)
    for description in ("a", "b", "c"):
        store.save(Entity(kind="Book", properties={"description": description}))

    first = store.run_query("Book", limit=2)
    assert [e["description"] for e in first.entities] == ["a", "b"]
    assert [e.id for e in first.entities] == [100, 101]
    assert first.cursor == b"2"

    second = store.run_query("Book", limit=2, cursor=first.cursor)
    assert [e["description"] for e in second.entities] == ["c"]
    assert second.cursor is None

    assert client.fetches == [("Book", 2, None), ("Book", 2, b"2")]


def test_datastore_query_without_limit():
    client = FakeDatastoreClient()
    store = DatastoreDocumentStore(client)
    store.save(Entity(kind="Book", properties={"description": "a"}))

    result = store.run_query("Book")

    assert [e.kind for e in result.entities] == ["Book"]
    assert result.cursor is None
    assert client.fetches == [("Book", None, None)]
