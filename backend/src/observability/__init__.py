"""Observability module for the visual search backend.

Provides structured logging, metrics, request correlation, and health checks.
"""

from .logging_config import configure_logging, get_logger
from .metrics import (
    indexing_runs_total,
    indexing_chunks_total,
    indexing_run_duration_seconds,
    image_searches_total,
    image_search_duration_seconds,
    embedding_service_calls_total,
    prompt_image_generations_total,
)
from .request_id import request_id_var, get_request_id, set_request_id, generate_request_id
from .health import HealthStatus, ComponentHealth
from .middleware import RequestIDMiddleware

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    # Metrics
    "indexing_runs_total",
    "indexing_chunks_total",
    "indexing_run_duration_seconds",
    "image_searches_total",
    "image_search_duration_seconds",
    "embedding_service_calls_total",
    "prompt_image_generations_total",
    # Request ID
    "request_id_var",
    "get_request_id",
    "set_request_id",
    "generate_request_id",
    # Health
    "HealthStatus",
    "ComponentHealth",
    # Middleware
    "RequestIDMiddleware",
]
