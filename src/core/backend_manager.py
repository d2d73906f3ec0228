"""Backend Manager - builds the collaborators the book repository talks to."""

from dataclasses import dataclass

import structlog
from google.auth.exceptions import DefaultCredentialsError

from src.config import Settings
from src.core.backends.base import Bucket, DocumentStore, OCRService
from src.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


@dataclass
class Backends:
    """Document store, cover image bucket and OCR service for one process."""
    document_store: DocumentStore
    bucket: Bucket
    ocr: OCRService


def create_backends(settings: Settings) -> Backends:
    """
    Construct backends once at startup from settings.

    Args:
        settings: Application settings

    Returns:
        Backends for the configured implementation

    Raises:
        ConfigurationError: If required settings or credentials are missing
    """
    if settings.backend == "memory":
        from src.core.backends.memory import MemoryDocumentStore, MemoryObjectStore, MemoryOCRService

        logger.info("Using in-memory backends", bucket=settings.gcs_bucket or "local")
        return Backends(
            document_store=MemoryDocumentStore(),
            bucket=MemoryObjectStore().bucket(settings.gcs_bucket or "local"),
            ocr=MemoryOCRService(),
        )

    if not settings.gcs_bucket:
        raise ConfigurationError("GCS_BUCKET must be set for the gcloud backend", config_key="gcs_bucket")

    from src.core.backends.gcloud import (
        CloudStorageObjectStore,
        DatastoreDocumentStore,
        VisionOCRService,
    )

    try:
        backends = Backends(
            document_store=DatastoreDocumentStore.from_settings(
                settings.project_id,
                namespace=settings.datastore_namespace,
                keyfile=settings.keyfile,
            ),
            bucket=CloudStorageObjectStore.from_settings(
                settings.project_id,
                keyfile=settings.keyfile,
            ).bucket(settings.gcs_bucket),
            ocr=VisionOCRService.from_settings(keyfile=settings.keyfile),
        )
    except DefaultCredentialsError as e:
        raise ConfigurationError(f"Google Cloud credentials not found: {e}", config_key="keyfile") from e

    logger.info("Using Google Cloud backends", project=settings.project_id, bucket=settings.gcs_bucket)
    return backends
