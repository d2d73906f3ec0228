"""Google Cloud backends: Datastore, Cloud Storage and Vision."""

from contextlib import contextmanager
from typing import BinaryIO, Iterator, Optional
from urllib.parse import quote

import structlog
from google.api_core import exceptions as gcloud_exceptions
from google.cloud import datastore, storage, vision

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
from src.exceptions import (
    BackendError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    UnavailableError,
)

logger = structlog.get_logger(__name__)

# Datastore caps indexed strings at 1500 bytes; OCR text easily exceeds that.
UNINDEXED_PROPERTIES = ("description",)

ACL_PRESETS = {
    "public": "publicRead",
    "private": "private",
}


@contextmanager
def translate_errors(service: str) -> Iterator[None]:
    """Re-raise google.api_core errors as BackendError subclasses."""
    try:
        yield
    except gcloud_exceptions.BadRequest as e:
        raise InvalidRequestError(e.message, service=service) from e
    except gcloud_exceptions.NotFound as e:
        raise NotFoundError(e.message, service=service) from e
    except (gcloud_exceptions.Forbidden, gcloud_exceptions.Unauthorized) as e:
        raise PermissionDeniedError(e.message, service=service) from e
    except (gcloud_exceptions.ServiceUnavailable, gcloud_exceptions.DeadlineExceeded) as e:
        raise UnavailableError(e.message, service=service) from e
    except gcloud_exceptions.RetryError as e:
        raise UnavailableError(str(e), service=service) from e
    except gcloud_exceptions.GoogleAPICallError as e:
        raise BackendError(e.message, service=service) from e


class DatastoreDocumentStore(DocumentStore):
    """DocumentStore backed by Cloud Datastore (Firestore in Datastore mode)."""

    def __init__(self, client: datastore.Client) -> None:
        self._client = client

    @classmethod
    def from_settings(
        cls,
        project_id: Optional[str],
        namespace: Optional[str] = None,
        keyfile: Optional[str] = None,
    ) -> "DatastoreDocumentStore":
        """Build a store, using a service account keyfile when one is given."""
        if keyfile:
            client = datastore.Client.from_service_account_json(keyfile, project=project_id, namespace=namespace)
        else:
            client = datastore.Client(project=project_id, namespace=namespace)
        return cls(client)

    @staticmethod
    def _to_entity(native: datastore.Entity) -> Entity:
        return Entity(kind=native.key.kind, id=native.key.id, properties=dict(native))

    def run_query(
        self,
        kind: str,
        limit: Optional[int] = None,
        cursor: Optional[bytes] = None,
    ) -> QueryResult:
        query = self._client.query(kind=kind)
        with translate_errors("datastore"):
            iterator = query.fetch(limit=limit, start_cursor=cursor)
            entities = [self._to_entity(e) for e in iterator]
        return QueryResult(entities=entities, cursor=iterator.next_page_token)

    def lookup(self, kind: str, entity_id: int) -> Optional[Entity]:
        with translate_errors("datastore"):
            native = self._client.get(self._client.key(kind, int(entity_id)))
        if native is None:
            return None
        return self._to_entity(native)

    def save(self, entity: Entity) -> int:
        if entity.id:
            key = self._client.key(entity.kind, entity.id)
        else:
            key = self._client.key(entity.kind)

        native = datastore.Entity(key=key, exclude_from_indexes=UNINDEXED_PROPERTIES)
        native.update(entity.properties)
        with translate_errors("datastore"):
            self._client.put(native)
        return native.key.id

    def delete(self, kind: str, entity_id: int) -> None:
        with translate_errors("datastore"):
            self._client.delete(self._client.key(kind, int(entity_id)))


class CloudStorageObject(StoredObject):
    """Handle on a Cloud Storage blob."""

    def __init__(self, blob: storage.Blob) -> None:
        self._blob = blob

    @property
    def path(self) -> str:
        return self._blob.name

    def delete(self) -> None:
        with translate_errors("storage"):
            self._blob.delete()


class CloudStorageBucket(Bucket):
    """Bucket backed by Cloud Storage."""

    def __init__(self, bucket: storage.Bucket) -> None:
        self._bucket = bucket

    @property
    def name(self) -> str:
        return self._bucket.name

    def create_file(
        self,
        stream: BinaryIO,
        path: str,
        content_type: str,
        acl: str = "public",
    ) -> StoredFile:
        blob = self._bucket.blob(path)
        with translate_errors("storage"):
            blob.upload_from_file(
                stream,
                content_type=content_type,
                predefined_acl=ACL_PRESETS.get(acl, acl),
            )
        logger.debug("Uploaded blob", bucket=self.name, path=path, content_type=content_type)
        # Blob.public_url is path-style; the virtual-host form keeps the
        # bucket in the host so ownership can be checked from the URL alone.
        return StoredFile(path=path, public_url=f"https://{self.public_host}/{quote(path)}")

    def file(self, path: str) -> CloudStorageObject:
        return CloudStorageObject(self._bucket.blob(path))


class CloudStorageObjectStore(ObjectStore):
    """ObjectStore backed by a Cloud Storage client."""

    def __init__(self, client: storage.Client) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, project_id: Optional[str], keyfile: Optional[str] = None) -> "CloudStorageObjectStore":
        if keyfile:
            client = storage.Client.from_service_account_json(keyfile, project=project_id)
        else:
            client = storage.Client(project=project_id)
        return cls(client)

    def bucket(self, name: str) -> CloudStorageBucket:
        return CloudStorageBucket(self._client.bucket(name))


class VisionOCRService(OCRService):
    """Text detection through the Cloud Vision image annotator."""

    def __init__(self, client: vision.ImageAnnotatorClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, keyfile: Optional[str] = None) -> "VisionOCRService":
        if keyfile:
            client = vision.ImageAnnotatorClient.from_service_account_file(keyfile)
        else:
            client = vision.ImageAnnotatorClient()
        return cls(client)

    def detect_text(self, image_url: str, max_results: int = 10) -> list[OCRResponse]:
        request = vision.AnnotateImageRequest(
            image=vision.Image(source=vision.ImageSource(image_uri=image_url)),
            features=[
                vision.Feature(type_=vision.Feature.Type.TEXT_DETECTION, max_results=max_results),
            ],
        )
        with translate_errors("vision"):
            batch = self._client.batch_annotate_images(requests=[request])

        responses = []
        for res in batch.responses:
            if res.error.message:
                raise BackendError(res.error.message, service="vision")
            responses.append(
                OCRResponse(
                    text_annotations=[TextAnnotation(description=t.description) for t in res.text_annotations],
                )
            )
        return responses
