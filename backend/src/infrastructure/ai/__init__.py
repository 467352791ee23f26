"""AI Infrastructure - Adapter for the external embedding service.

This module contains the concrete implementation of the embedding domain port.
"""

from .embedding_service_client import EmbeddingServiceClient

__all__ = [
    "EmbeddingServiceClient",
]
