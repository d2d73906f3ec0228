"""In-memory backends for local development and tests."""

import base64
import copy
from itertools import count
from typing import BinaryIO, Optional
from urllib.parse import quote

import structlog

from src.core.backends.base import (
    Bucket,
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
from src.exceptions import NotFoundError

logger = structlog.get_logger(__name__)


def _encode_cursor(offset: int) -> bytes:
    return base64.urlsafe_b64encode(str(offset).encode("ascii"))


def _decode_cursor(cursor: bytes) -> int:
    try:
        offset = int(base64.urlsafe_b64decode(cursor).decode("ascii"))
    except (ValueError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid cursor: {cursor!r}") from e
    if offset < 0:
        raise ValueError(f"Invalid cursor: {cursor!r}")
    return offset


class MemoryDocumentStore(DocumentStore):
    """Simple in-memory entity store with sequential ids per kind."""

    def __init__(self) -> None:
        self._entities: dict[str, dict[int, dict]] = {}
        self._ids = count(1)

    def run_query(
        self,
        kind: str,
        limit: Optional[int] = None,
        cursor: Optional[bytes] = None,
    ) -> QueryResult:
        """Return entities of a kind ordered by id, starting after the cursor."""
        rows = sorted(self._entities.get(kind, {}).items())
        offset = _decode_cursor(cursor) if cursor else 0
        end = len(rows) if limit is None else offset + limit
        page = rows[offset:end]

        entities = [Entity(kind=kind, id=entity_id, properties=copy.deepcopy(props)) for entity_id, props in page]
        return QueryResult(entities=entities, cursor=_encode_cursor(offset + len(page)))

    def lookup(self, kind: str, entity_id: int) -> Optional[Entity]:
        """Get an entity by id."""
        props = self._entities.get(kind, {}).get(entity_id)
        if props is None:
            return None
        return Entity(kind=kind, id=entity_id, properties=copy.deepcopy(props))

    def save(self, entity: Entity) -> int:
        """Store an entity, allocating an id when it has none."""
        entity_id = entity.id or next(self._ids)
        self._entities.setdefault(entity.kind, {})[entity_id] = copy.deepcopy(entity.properties)
        return entity_id

    def delete(self, kind: str, entity_id: int) -> None:
        """Delete an entity. Missing entities are ignored, as in Datastore."""
        self._entities.get(kind, {}).pop(entity_id, None)


class MemoryObject(StoredObject):
    """Handle on an object held by a MemoryBucket."""

    def __init__(self, bucket: "MemoryBucket", path: str) -> None:
        self._bucket = bucket
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def delete(self) -> None:
        if self._path not in self._bucket.objects:
            raise NotFoundError(f"No such object: {self._path}", service="storage")
        del self._bucket.objects[self._path]


class MemoryBucket(Bucket):
    """Bucket that keeps object bytes in a dict."""

    def __init__(self, name: str) -> None:
        self._name = name
        self.objects: dict[str, tuple[bytes, str]] = {}  # path -> (data, content type)

    @property
    def name(self) -> str:
        return self._name

    def create_file(
        self,
        stream: BinaryIO,
        path: str,
        content_type: str,
        acl: str = "public",
    ) -> StoredFile:
        data = stream.read()
        self.objects[path] = (data, content_type)
        logger.debug("Stored object in memory", bucket=self._name, path=path, size_bytes=len(data))
        return StoredFile(path=path, public_url=f"https://{self.public_host}/{quote(path)}")

    def file(self, path: str) -> MemoryObject:
        return MemoryObject(self, path)


class MemoryObjectStore(ObjectStore):
    """Object store whose buckets live in process memory."""

    def __init__(self) -> None:
        self._buckets: dict[str, MemoryBucket] = {}

    def bucket(self, name: str) -> MemoryBucket:
        if name not in self._buckets:
            self._buckets[name] = MemoryBucket(name)
        return self._buckets[name]


class MemoryOCRService(OCRService):
    """OCR service returning canned text registered per image URL."""

    def __init__(self) -> None:
        self._texts: dict[str, list[str]] = {}

    def register(self, image_url: str, texts: list[str]) -> None:
        """Set the annotations returned for an image URL."""
        self._texts[image_url] = list(texts)

    def detect_text(self, image_url: str, max_results: int = 10) -> list[OCRResponse]:
        annotations = [TextAnnotation(description=t) for t in self._texts.get(image_url, [])]
        return [OCRResponse(text_annotations=annotations)]
