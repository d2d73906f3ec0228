"""Collaborator interfaces for the document store, object store and OCR service."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Optional

# Host that serves public objects of a bucket, virtual-hosted style.
PUBLIC_HOST_TEMPLATE = "{bucket}.storage.googleapis.com"


@dataclass
class Entity:
    """A key/value record in the document store, keyed by kind + id."""
    kind: str
    id: Optional[int] = None  # None means "insert new"
    properties: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        return self.properties[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.properties[name] = value


@dataclass
class QueryResult:
    """One page of query results plus the store's continuation cursor."""
    entities: list[Entity]
    cursor: Optional[bytes] = None


@dataclass
class CoverImage:
    """An uploaded cover image waiting to be written to the bucket."""
    stream: BinaryIO
    filename: str
    content_type: str = "application/octet-stream"


@dataclass
class StoredFile:
    """Result of writing an object to a bucket."""
    path: str
    public_url: str


@dataclass
class TextAnnotation:
    """A single piece of text detected in an image."""
    description: str


@dataclass
class OCRResponse:
    """Text detection result for one image."""
    text_annotations: list[TextAnnotation] = field(default_factory=list)


class DocumentStore(ABC):
    """Entity datastore with query-by-kind and cursor pagination."""

    @abstractmethod
    def run_query(
        self,
        kind: str,
        limit: Optional[int] = None,
        cursor: Optional[bytes] = None,
    ) -> QueryResult:
        """
        Run a query over all entities of a kind.

        Args:
            kind: Entity kind
            limit: Maximum number of entities to return
            cursor: Opaque cursor from a previous query

        Returns:
            Entities in store order and the cursor after the last one
        """
        pass

    @abstractmethod
    def lookup(self, kind: str, entity_id: int) -> Optional[Entity]:
        """Look up a single entity. Returns None if it does not exist."""
        pass

    @abstractmethod
    def save(self, entity: Entity) -> int:
        """Insert or replace an entity and return its (possibly new) id."""
        pass

    @abstractmethod
    def delete(self, kind: str, entity_id: int) -> None:
        """Delete an entity by key."""
        pass


class StoredObject(ABC):
    """Handle on a single object inside a bucket."""

    @property
    @abstractmethod
    def path(self) -> str:
        """Object key within the bucket."""
        pass

    @abstractmethod
    def delete(self) -> None:
        """Delete the object."""
        pass


class Bucket(ABC):
    """A named object-store bucket."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Bucket name."""
        pass

    @property
    def public_host(self) -> str:
        """Host serving this bucket's public objects."""
        return PUBLIC_HOST_TEMPLATE.format(bucket=self.name)

    @abstractmethod
    def create_file(
        self,
        stream: BinaryIO,
        path: str,
        content_type: str,
        acl: str = "public",
    ) -> StoredFile:
        """
        Upload a byte stream as a new object.

        Args:
            stream: Readable binary stream
            path: Object key
            content_type: MIME type stored with the object
            acl: "public" for public-read access, "private" otherwise

        Returns:
            Location of the stored object
        """
        pass

    @abstractmethod
    def file(self, path: str) -> StoredObject:
        """Get a handle on an existing object."""
        pass


class ObjectStore(ABC):
    """Object storage service."""

    @abstractmethod
    def bucket(self, name: str) -> Bucket:
        """Get a bucket handle by name."""
        pass


class OCRService(ABC):
    """Text detection service."""

    @abstractmethod
    def detect_text(self, image_url: str, max_results: int = 10) -> list[OCRResponse]:
        """Detect text in the image served at image_url."""
        pass
