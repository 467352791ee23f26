"""SnapSearch Backend - Main FastAPI Application

Visual product search for storefront catalogs.

This module creates and configures the main FastAPI application, including:
- The scan API router (indexing, image search, prompt images)
- Middleware (request ID correlation, CORS)
- Exception handlers mapping domain errors to HTTP status codes
- Health and observability endpoints
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from database import create_all
from dependencies import build_services, close_services
from domain.errors import (
    AssetUploadError,
    EmbeddingServiceError,
    EmbeddingTimeoutError,
    InvalidArgumentError,
    NoProductsToIndexError,
    ProductNotFoundError,
    StoreUnavailableError,
    VisualSearchError,
)

# Observability
from observability.logging_config import configure_logging
from observability.middleware import RequestIDMiddleware
from observability.router import router as observability_router

from scan.router import router as scan_router

# Configure logging
configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

logger = logging.getLogger(__name__)

# Most specific first: the first isinstance match wins
ERROR_STATUS = (
    (InvalidArgumentError, status.HTTP_400_BAD_REQUEST, "invalid_argument"),
    (NoProductsToIndexError, status.HTTP_400_BAD_REQUEST, "no_products"),
    (ProductNotFoundError, status.HTTP_404_NOT_FOUND, "product_not_found"),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE, "store_unavailable"),
    (EmbeddingTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT, "ai_service_timeout"),
    (EmbeddingServiceError, status.HTTP_502_BAD_GATEWAY, "ai_service_error"),
    (AssetUploadError, status.HTTP_502_BAD_GATEWAY, "asset_upload_error"),
)


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    - Startup: create tables in development, wire services
    - Shutdown: cancel running indexing runs, close the HTTP client
    """
    logger.info("SnapSearch API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    if settings.ENVIRONMENT == "development":
        create_all()
    services = build_services(settings)
    app.state.services = services

    yield

    logger.info("SnapSearch API shutting down...")
    await close_services(services)


def create_app() -> FastAPI:
    """Application factory.

    Tests build a fresh app and swap the service graph through
    app.dependency_overrides[get_services].
    """
    docs_enabled = settings.ENVIRONMENT != "production"
    application = FastAPI(
        title="SnapSearch API",
        description="Visual product search: catalog indexing and image similarity search",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    # =========================================================================
    # MIDDLEWARE CONFIGURATION
    # =========================================================================

    # Request ID Middleware (must be first for proper correlation)
    application.add_middleware(RequestIDMiddleware)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # =========================================================================
    # EXCEPTION HANDLERS
    # =========================================================================

    @application.exception_handler(VisualSearchError)
    async def visual_search_exception_handler(
        request: Request,
        exc: VisualSearchError
    ) -> JSONResponse:
        """Map domain errors to status codes; the message is safe to expose."""
        for error_type, status_code, code in ERROR_STATUS:
            if isinstance(exc, error_type):
                logger.warning(
                    f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}",
                    extra={"status_code": status_code, "error_type": type(exc).__name__},
                )
                return error_response(status_code, code, str(exc))

        logger.error(
            f"Unmapped domain error on {request.method} {request.url.path}",
            exc_info=exc
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred. Please try again later.",
        )

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request,
        exc: HTTPException
    ) -> JSONResponse:
        """Render HTTPExceptions raised by handlers and dependencies in the common body."""
        return error_response(exc.status_code, "http_error", str(exc.detail))

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors with field-level details."""
        logger.warning(f"Validation error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "success": False,
                "error": "validation_error",
                "message": "Request validation failed",
                "details": jsonable_errors(exc),
            },
        )

    @application.exception_handler(SQLAlchemyError)
    async def database_exception_handler(
        request: Request,
        exc: SQLAlchemyError
    ) -> JSONResponse:
        """Log the full database error but return a generic message."""
        logger.error(
            f"Database error on {request.method} {request.url.path}",
            exc_info=exc
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "database_error",
            "A database error occurred. Please try again later.",
        )

    @application.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Catch-all: details are logged, never exposed to the client."""
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}",
            exc_info=exc
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred. Please try again later.",
        )

    # =========================================================================
    # ROUTER REGISTRATION
    # =========================================================================

    # Observability (health, metrics, ready)
    application.include_router(observability_router)

    application.include_router(scan_router)

    @application.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        """Root endpoint - API information."""
        return {
            "name": "SnapSearch API",
            "version": "0.1.0",
            "status": "running",
            "docs": "/docs" if docs_enabled else None,
        }

    return application


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Validation errors without the raw input and context objects"""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


app = create_app()


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
