"""Embedding Service Client - HTTP implementation of EmbeddingServicePort.

Wraps the external AI service (health, batch embed, image search, index
deletion, prompt-to-image) with httpx.

Architecture: Hexagonal - Infrastructure adapter implementing domain port
"""

import asyncio
import logging
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Sequence

import httpx

from catalog.schemas import CatalogItem
from domain.embedding.ports import (
    EmbeddingServicePort,
    EmbeddingMatch,
    GeneratedImage,
    HealthReport,
)
from domain.errors import (
    EmbeddingError,
    EmbeddingServiceError,
    EmbeddingTimeoutError,
)
from observability.metrics import embedding_service_calls_total

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"


class EmbeddingServiceClient(EmbeddingServicePort):
    """httpx-based client for the embedding service.

    Configuration:
        base_url: Service root (AI_SERVICE_URL)
        api_key: Sent as X-API-KEY (AI_SERVICE_KEY)
        search_timeout: Deadline in seconds for search/health/delete calls
        indexing_timeout: Deadline in seconds for embeddings_store and generation

    Example Usage:
        client = EmbeddingServiceClient.from_settings(settings)
        matches = await client.search_by_image(data, "image/jpeg", "shoe.jpg", "app-1")
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: Optional[str] = None,
        search_timeout: float = 30.0,
        indexing_timeout: float = 180.0,
        temp_dir: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Embedding service base URL
            api_key: Optional API key
            search_timeout: Deadline for short calls
            indexing_timeout: Deadline for batch indexing and image generation
            temp_dir: Directory for generated images (default: system temp dir)
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        headers = {"X-API-KEY": api_key} if api_key else {}
        self.base_url = base_url
        self.search_timeout = search_timeout
        self.indexing_timeout = indexing_timeout
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=search_timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> "EmbeddingServiceClient":
        return cls(
            base_url=settings.AI_SERVICE_URL,
            api_key=settings.AI_SERVICE_KEY,
            search_timeout=settings.AI_SEARCH_TIMEOUT_SECONDS,
            indexing_timeout=settings.AI_INDEXING_TIMEOUT_SECONDS,
            temp_dir=settings.GENERATED_IMAGE_DIR,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def check_health(self) -> HealthReport:
        """GET /health. Any failure is reported as an unhealthy value."""
        logger.info("Checking AI service health...")
        try:
            response = await self._request("health", "GET", "/health", self.search_timeout)
            data = response.json()
        except (EmbeddingError, ValueError) as e:
            logger.error(f"AI service health check failed: {e}")
            return HealthReport(healthy=False, error=str(e))

        if not isinstance(data, dict):
            data = {}
        model = data.get("model")
        device = data.get("device")
        logger.info(f"AI service healthy: model={model}, device={device}")
        return HealthReport(
            healthy=response.status_code == 200,
            model=model,
            device=device,
        )

    async def index_batch(self, items: Sequence[CatalogItem], catalog_id: str) -> None:
        """POST /embeddings_store with one batch of products"""
        await self._request(
            "index_batch",
            "POST",
            "/embeddings_store",
            self.indexing_timeout,
            json={
                "products": [item.to_service_payload() for item in items],
                "application_id": catalog_id,
            },
        )

    async def search_by_image(
        self,
        image_bytes: bytes,
        mime_type: Optional[str],
        file_name: Optional[str],
        catalog_id: str,
    ) -> list[EmbeddingMatch]:
        """POST /search/image as multipart (image + company_id)"""
        content_type = mime_type or "application/octet-stream"
        if not file_name:
            subtype = content_type.split("/")[1] if "/" in content_type else "bin"
            file_name = f"search-image.{subtype or 'bin'}"

        try:
            response = await self._request(
                "search_by_image",
                "POST",
                "/search/image",
                self.search_timeout,
                files={"image": (file_name, image_bytes, content_type)},
                data={"company_id": catalog_id},
            )
        except EmbeddingTimeoutError:
            logger.error("AI service timeout during image search", extra={"catalog_id": catalog_id})
            raise EmbeddingTimeoutError("AI service timeout")
        except EmbeddingServiceError as e:
            logger.error(
                f"AI service error during image search: {e}",
                extra={"catalog_id": catalog_id},
            )
            raise EmbeddingServiceError(
                f"AI service error: {e.upstream_message or e}",
                status_code=e.status_code,
                upstream_message=e.upstream_message,
            ) from e

        return self._parse_matches(response)

    async def remove_index(self, catalog_id: str) -> Dict[str, Any]:
        """POST /delete_embeddings for one catalog"""
        logger.info(f"Removing index for catalog={catalog_id}")
        try:
            response = await self._request(
                "remove_index",
                "POST",
                "/delete_embeddings",
                self.search_timeout,
                json={"application_id": catalog_id},
            )
        except EmbeddingError as e:
            upstream = getattr(e, "upstream_message", None) or str(e)
            logger.error(f"Index removal failed: {upstream}", extra={"catalog_id": catalog_id})
            raise EmbeddingServiceError(
                f"Index removal failed: {upstream}",
                status_code=getattr(e, "status_code", None),
                upstream_message=upstream,
            ) from e

        logger.info("Index removal successful", extra={"catalog_id": catalog_id})
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"result": data}

    async def generate_image_from_prompt(self, prompt: str) -> GeneratedImage:
        """POST /generate_prompts_to_image, streaming the body to a temp file.

        The file is closed and complete before this returns. Any failure while
        streaming removes the partial file before the error propagates.
        """
        operation = "generate_image"
        file_path: Optional[Path] = None
        try:
            async with self.client.stream(
                "POST",
                "/generate_prompts_to_image",
                json={"prompt": prompt},
                timeout=self.indexing_timeout,
            ) as response:
                if response.is_error:
                    await response.aread()
                    self._raise_for_status(response)

                content_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
                file_name = f"generated_image_{uuid.uuid4()}.{_extension_for(content_type)}"
                file_path = self.temp_dir / file_name

                # Disk I/O runs in the default executor to keep the loop free
                loop = asyncio.get_running_loop()
                fh = await loop.run_in_executor(None, open, file_path, "wb")
                try:
                    async for chunk in response.aiter_bytes():
                        await loop.run_in_executor(None, fh.write, chunk)
                    await loop.run_in_executor(None, _flush_to_disk, fh)
                finally:
                    fh.close()

        except httpx.TimeoutException as e:
            _discard(file_path)
            embedding_service_calls_total.labels(operation=operation, status="timeout").inc()
            logger.error(f"Generate prompts to image timed out: {e}")
            raise EmbeddingTimeoutError("Generate prompts to image failed: AI service timeout") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            _discard(file_path)
            embedding_service_calls_total.labels(operation=operation, status="error").inc()
            logger.error(f"Generate prompts to image failed: {e}")
            raise EmbeddingServiceError(f"Generate prompts to image failed: {e}") from e
        except EmbeddingServiceError as e:
            _discard(file_path)
            embedding_service_calls_total.labels(operation=operation, status="error").inc()
            logger.error(f"Generate prompts to image failed: {e.upstream_message}")
            raise EmbeddingServiceError(
                f"Generate prompts to image failed: {e.upstream_message}",
                status_code=e.status_code,
                upstream_message=e.upstream_message,
            ) from e
        except BaseException:
            _discard(file_path)
            raise

        embedding_service_calls_total.labels(operation=operation, status="success").inc()
        logger.info(f"Generated image written to {file_path}")
        return GeneratedImage(
            local_file_path=file_path,
            file_name=file_path.name,
            content_type=content_type,
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        timeout: float,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request, translating httpx failures into domain errors."""
        try:
            response = await self.client.request(method, path, timeout=timeout, **kwargs)
        except httpx.TimeoutException as e:
            embedding_service_calls_total.labels(operation=operation, status="timeout").inc()
            raise EmbeddingTimeoutError(f"AI service {operation} timed out after {timeout}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            embedding_service_calls_total.labels(operation=operation, status="error").inc()
            raise EmbeddingServiceError(
                f"AI service {operation} request failed: {e}",
                upstream_message=str(e) or type(e).__name__,
            ) from e

        if response.is_error:
            embedding_service_calls_total.labels(operation=operation, status="error").inc()
            self._raise_for_status(response)

        embedding_service_calls_total.labels(operation=operation, status="success").inc()
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        message = _upstream_error_message(response)
        raise EmbeddingServiceError(
            f"AI service returned {response.status_code}: {message}",
            status_code=response.status_code,
            upstream_message=message,
        )

    @staticmethod
    def _parse_matches(response: httpx.Response) -> list[EmbeddingMatch]:
        try:
            data = response.json()
        except ValueError:
            logger.warning("AI service returned a non-JSON search body, treating as no matches")
            return []

        if isinstance(data, dict):
            data = data.get("matches", [])
        if not isinstance(data, list):
            return []

        matches = []
        for entry in data:
            match = EmbeddingMatch.from_payload(entry)
            if match is None:
                logger.warning(f"Skipping malformed match entry: {entry!r}")
                continue
            matches.append(match)
        return matches


def _upstream_error_message(response: httpx.Response) -> str:
    """Prefer {"error"}, then {"detail"}, then raw text, then the reason phrase."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if body.get(key):
                return str(body[key])

    text = response.text.strip() if response.text else ""
    return text or response.reason_phrase or f"HTTP {response.status_code}"


def _extension_for(content_type: str) -> str:
    """image/jpeg → jpeg, image/svg+xml → svg; anything that is not an image → png"""
    if not content_type.startswith("image/"):
        return "png"
    subtype = content_type.split("/", 1)[1].split("+")[0]
    return subtype or "png"


def _discard(file_path: Optional[Path]) -> None:
    if file_path is not None:
        file_path.unlink(missing_ok=True)


def _flush_to_disk(fh: BinaryIO) -> None:
    fh.flush()
    os.fsync(fh.fileno())
