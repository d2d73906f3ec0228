"""FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from src.api.routes import books_router, health_router
from src.config import get_settings
from src.core.backend_manager import create_backends
from src.core.books.repository import BookRepository
from src.exceptions import (
    BackendError,
    InvalidRequestError,
    MissingImageError,
    NotFoundError,
    PermissionDeniedError,
    UnavailableError,
    UnknownAttributeError,
)
from src.utils.logging import setup_logging

logger = structlog.get_logger(__name__)

settings = get_settings()

# Most specific first; the handler walks this in order.
BACKEND_ERROR_STATUS = [
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (InvalidRequestError, 400),
    (UnavailableError, 503),
    (BackendError, 502),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    setup_logging(debug=settings.debug)
    backends = create_backends(settings)
    app.state.book_repository = BookRepository(
        backends.document_store,
        backends.bucket,
        backends.ocr,
        ocr_max_results=settings.ocr_max_results,
    )
    yield


app = FastAPI(
    title=settings.app_name,
    description="Book records with cover images and OCR-extracted descriptions",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics
Instrumentator().instrument(app).expose(app, endpoint="/metrics")

# Include routers
app.include_router(health_router)
app.include_router(books_router)


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError) -> JSONResponse:
    """
    Map backend failures to HTTP status codes.

    The detail names the failing service, so a 404 from a missing bucket
    object is not mistaken for a missing book.
    """
    status_code = next(code for error_type, code in BACKEND_ERROR_STATUS if isinstance(exc, error_type))
    logger.warning("Backend call failed", path=request.url.path, service=exc.service, error=exc.message)
    detail = f"{exc.service}: {exc.message}" if exc.service else exc.message
    return JSONResponse(status_code=status_code, content={"detail": detail, "service": exc.service})


@app.exception_handler(MissingImageError)
async def missing_image_handler(request: Request, exc: MissingImageError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(UnknownAttributeError)
async def unknown_attribute_handler(request: Request, exc: UnknownAttributeError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.get("/")
async def root():
    """API information endpoint."""
    return {
        "service": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "openapi": "/openapi.json",
        "health": "/health",
        "books": "/v1/books",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=settings.workers,
    )
