"""Embedding Service Port - Abstract interface for the external AI service.

Business logic (indexing and search orchestrators) depends on this port,
not on the HTTP client that implements it.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from catalog.schemas import CatalogItem


@dataclass(frozen=True)
class EmbeddingMatch:
    """One match returned by image search, in service relevance order.

    Attributes:
        slug: Catalog slug of the matched product
        name: Display name reported by the service (may be empty)
        image: Image URL of the matched product
        text: Explanatory snippet from the service
    """
    slug: str
    name: str = ""
    image: str = ""
    text: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["EmbeddingMatch"]:
        """Parse one raw match entry, returning None if it is not a mapping
        or its slug is not a string"""
        if not isinstance(payload, dict) or not isinstance(payload.get("slug"), str):
            return None

        def _text(key: str) -> str:
            value = payload.get(key)
            return value if isinstance(value, str) else ""

        return cls(slug=_text("slug"), name=_text("name"), image=_text("image"), text=_text("text"))

    def to_dict(self) -> Dict[str, Any]:
        return {"slug": self.slug, "name": self.name, "image": self.image, "text": self.text}


@dataclass(frozen=True)
class HealthReport:
    """Outcome of a health check. Failures are values, never exceptions."""
    healthy: bool
    model: Optional[str] = None
    device: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.healthy:
            return {"healthy": False, "error": self.error}
        return {"healthy": True, "model": self.model, "device": self.device}


@dataclass(frozen=True)
class GeneratedImage:
    """A generated image fully written to a local temp file.

    The caller owns local_file_path and must delete it.
    """
    local_file_path: Path
    file_name: str
    content_type: str = "image/png"


class EmbeddingServicePort(ABC):
    """Abstract interface for the embedding/vector-similarity service.

    Implementations must:
    - Apply a wall-clock deadline per call (indexing longer than search)
    - Raise EmbeddingTimeoutError when the deadline passes
    - Raise EmbeddingServiceError on non-2xx, surfacing the upstream error body
    """

    @abstractmethod
    async def check_health(self) -> HealthReport:
        """Report service health. Never raises."""
        pass

    @abstractmethod
    async def index_batch(self, items: Sequence[CatalogItem], catalog_id: str) -> None:
        """Send one batch of products in a single call. Caller controls batching.

        Raises:
            EmbeddingServiceError: Upstream rejected the batch
            EmbeddingTimeoutError: Deadline exceeded
        """
        pass

    @abstractmethod
    async def search_by_image(
        self,
        image_bytes: bytes,
        mime_type: Optional[str],
        file_name: Optional[str],
        catalog_id: str,
    ) -> list[EmbeddingMatch]:
        """Search the index with one image.

        Returns matches in service relevance order. Malformed entries are
        dropped, and a match whose slug is missing carries slug "".

        Raises:
            EmbeddingTimeoutError: Deadline exceeded
            EmbeddingServiceError: Non-2xx response
        """
        pass

    @abstractmethod
    async def remove_index(self, catalog_id: str) -> Dict[str, Any]:
        """Delete every embedding stored for catalog_id.

        Raises:
            EmbeddingServiceError: Upstream rejected the deletion
        """
        pass

    @abstractmethod
    async def generate_image_from_prompt(self, prompt: str) -> GeneratedImage:
        """Stream a generated image into a temp file.

        The file is completely written before this returns; on failure no
        file is left behind. On success the caller owns deletion.
        """
        pass

    @asynccontextmanager
    async def generated_image(self, prompt: str) -> AsyncIterator[GeneratedImage]:
        """Scoped variant of generate_image_from_prompt.

        Usage:
            async with client.generated_image("red sneakers") as image:
                upload(image.local_file_path)
            # temp file is gone here, whatever happened inside the block
        """
        image = await self.generate_image_from_prompt(prompt)
        try:
            yield image
        finally:
            image.local_file_path.unlink(missing_ok=True)
