"""Error taxonomy for the indexing and search core.

Every failure the core surfaces is one of these. The HTTP layer maps them
to status codes in main.py; nothing below the routers knows about HTTP.
"""

from typing import Optional


class VisualSearchError(Exception):
    """Base exception for the indexing and search core"""
    pass


class InvalidArgumentError(VisualSearchError, ValueError):
    """Caller supplied bad input. Never retried."""
    pass


class NoProductsToIndexError(VisualSearchError):
    """Catalog is empty, so an indexing run cannot start"""
    pass


class StoreUnavailableError(VisualSearchError):
    """Catalog store timed out or could not be reached"""
    pass


class ProductNotFoundError(VisualSearchError):
    """No catalog record exists for the requested slug"""
    pass


class AssetUploadError(VisualSearchError):
    """Generated asset could not be uploaded to asset hosting"""
    pass


class EmbeddingError(VisualSearchError):
    """Base exception for embedding service calls"""
    pass


class EmbeddingTimeoutError(EmbeddingError):
    """Embedding service did not answer before the deadline"""
    pass


class EmbeddingServiceError(EmbeddingError):
    """Embedding service returned an error status or could not be reached.

    Attributes:
        status_code: Upstream HTTP status, None for transport failures
        upstream_message: Error text extracted from the upstream body
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        upstream_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.upstream_message = upstream_message


class IndexingChunkError(EmbeddingServiceError):
    """A chunk of an indexing run was rejected; later chunks were not sent"""

    def __init__(self, chunk_number: int, cause: EmbeddingError):
        upstream = getattr(cause, "upstream_message", None) or str(cause)
        super().__init__(
            f"Indexing failed on chunk {chunk_number}: {upstream}",
            status_code=getattr(cause, "status_code", None),
            upstream_message=upstream,
        )
        self.chunk_number = chunk_number
        self.cause = cause
