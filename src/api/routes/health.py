"""Health check endpoints."""

from fastapi import APIRouter

from src.config import get_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check() -> dict:
    """Readiness check - verifies service is ready to accept requests."""
    settings = get_settings()
    return {
        "status": "ready",
        "backend": settings.backend,
        "bucket": settings.gcs_bucket,
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness check - verifies service is running."""
    return {"status": "alive"}
