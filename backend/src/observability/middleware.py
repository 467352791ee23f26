"""FastAPI middleware for observability.

Provides request ID generation and access logging for all HTTP requests.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .request_id import generate_request_id, set_request_id, reset_request_id
from .logging_config import get_logger

logger = get_logger(__name__)

# Polled constantly by probes and status pollers; not worth an access log line
QUIET_PATHS = {"/metrics", "/health", "/ready"}


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to generate, inject and echo request IDs."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        token = set_request_id(request_id)
        quiet = request.url.path in QUIET_PATHS
        start_time = time.time()

        if not quiet:
            logger.info(
                f"{request.method} {request.url.path}",
                extra={"method": request.method, "path": request.url.path},
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {e}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "error_type": type(e).__name__,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                },
                exc_info=True,
            )
            reset_request_id(token)
            raise

        if not quiet:
            logger.info(
                f"Request completed: {response.status_code}",
                extra={
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                },
            )
        response.headers["X-Request-ID"] = request_id
        reset_request_id(token)
        return response
