"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Bookshelf"
    debug: bool = False

    # Backends: "gcloud" talks to Datastore, Cloud Storage and Vision;
    # "memory" keeps everything in-process for local development.
    backend: Literal["gcloud", "memory"] = "gcloud"

    # Google Cloud
    project_id: Optional[str] = None
    datastore_namespace: Optional[str] = None
    gcs_bucket: str = ""
    keyfile: Optional[str] = None  # service account JSON, falls back to ADC

    # Books
    books_per_page: int = 10
    ocr_max_results: int = 1
    max_cover_image_bytes: int = 10 * 1024 * 1024

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
