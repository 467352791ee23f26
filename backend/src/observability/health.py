"""Health check utilities.

Provides health and readiness checks for the catalog database and the
embedding service.
"""

import time
from enum import Enum
from typing import Dict, Optional
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from domain.embedding.ports import EmbeddingServicePort
from .logging_config import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    """Health check status enum."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health status for a single component."""
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None


def check_database_health(db: Session) -> ComponentHealth:
    """Check catalog database connectivity and health.

    Args:
        db: Database session

    Returns:
        ComponentHealth: Database health status
    """
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000

        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Database connection OK",
            latency_ms=round(latency_ms, 2)
        )
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Database error: {str(e)}"
        )


async def check_embedding_service_health(client: EmbeddingServicePort) -> ComponentHealth:
    """Check the embedding service.

    An unreachable embedding service degrades the system (search and
    indexing fail) but does not make the API itself unhealthy.
    """
    start = time.time()
    report = await client.check_health()
    latency_ms = round((time.time() - start) * 1000, 2)

    if report.healthy:
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message=f"model={report.model}, device={report.device}",
            latency_ms=latency_ms,
        )
    return ComponentHealth(
        status=HealthStatus.DEGRADED,
        message=f"Embedding service error: {report.error}",
        latency_ms=latency_ms,
    )


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    """Determine overall health from component statuses.

    Args:
        components: Dictionary of component health statuses

    Returns:
        HealthStatus: Overall system health
    """
    if all(c.status == HealthStatus.HEALTHY for c in components.values()):
        return HealthStatus.HEALTHY

    if any(c.status == HealthStatus.UNHEALTHY for c in components.values()):
        return HealthStatus.UNHEALTHY

    return HealthStatus.DEGRADED
