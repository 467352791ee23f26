"""Embedding service domain - port and value types"""

from .ports import (
    EmbeddingServicePort,
    EmbeddingMatch,
    HealthReport,
    GeneratedImage,
)

__all__ = [
    "EmbeddingServicePort",
    "EmbeddingMatch",
    "HealthReport",
    "GeneratedImage",
]
