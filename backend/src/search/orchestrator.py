"""Search orchestrator - one image search request end to end.

The embedding-service search and the catalog read run concurrently and are
joined before merging. If either branch fails the other is cancelled and
the request fails with the original error.
"""

import asyncio
import json
import logging
import time
from typing import Awaitable, Optional, Tuple, TypeVar

from catalog.reader import CatalogReader
from domain.analytics.ports import AnalyticsEventType, AnalyticsLogPort
from domain.embedding.ports import EmbeddingServicePort
from domain.errors import EmbeddingTimeoutError, InvalidArgumentError, VisualSearchError
from observability.metrics import image_search_duration_seconds, image_searches_total
from search.merge import build_catalog_lookup, merge_matches
from search.schemas import SearchResponse

logger = logging.getLogger(__name__)

A = TypeVar("A")
B = TypeVar("B")


async def join_both(first: Awaitable[A], second: Awaitable[B]) -> Tuple[A, B]:
    """Run two awaitables concurrently and return both results.

    If either raises, the other is cancelled and awaited before the error
    propagates, so nothing keeps running after the request has failed.
    """
    tasks = [asyncio.ensure_future(first), asyncio.ensure_future(second)]
    try:
        a, b = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return a, b


class SearchOrchestrator:
    """Matches an uploaded image against the catalog index.

    Example:
        orchestrator = SearchOrchestrator(client, reader, analytics)
        response = await orchestrator.search_by_image(data, "image/jpeg", "shoe.jpg", "app-1")
    """

    def __init__(
        self,
        embedding_client: EmbeddingServicePort,
        catalog_reader: CatalogReader,
        analytics: AnalyticsLogPort,
    ):
        self.embedding_client = embedding_client
        self.catalog_reader = catalog_reader
        self.analytics = analytics

    async def search_by_image(
        self,
        image_bytes: bytes,
        mime_type: Optional[str],
        file_name: Optional[str],
        catalog_id: str,
    ) -> SearchResponse:
        """Search the catalog with one image.

        Args:
            image_bytes: Raw uploaded image
            mime_type: Uploaded content type
            file_name: Original file name
            catalog_id: Tenant key

        Returns:
            SearchResponse with results in relevance order, unique by slug.
            No visual match is a successful, empty response.

        Raises:
            InvalidArgumentError: Empty image or catalog id
            EmbeddingTimeoutError: Embedding service exceeded its deadline
            EmbeddingServiceError: Embedding service returned an error
            StoreUnavailableError: Catalog store unreachable
        """
        if not image_bytes:
            raise InvalidArgumentError("No image uploaded")
        if not catalog_id:
            raise InvalidArgumentError("catalog id is required for image search")

        logger.info(
            "Received image search request",
            extra={"catalog_id": catalog_id, "image_name": file_name},
        )
        start = time.monotonic()
        try:
            matches, items = await join_both(
                self.embedding_client.search_by_image(image_bytes, mime_type, file_name, catalog_id),
                self.catalog_reader.fetch_all(catalog_id),
            )
        except EmbeddingTimeoutError:
            image_searches_total.labels(status="timeout").inc()
            raise
        except VisualSearchError:
            image_searches_total.labels(status="error").inc()
            raise
        finally:
            image_search_duration_seconds.observe(time.monotonic() - start)

        if not matches:
            logger.info("No matches found by AI service", extra={"catalog_id": catalog_id})
            image_searches_total.labels(status="no_match").inc()
            await self.analytics.log_event(
                catalog_id=catalog_id,
                event_type=AnalyticsEventType.IMAGE_NOT_FOUND.value,
                query=json.dumps({"file_name": file_name}),
            )
            return SearchResponse(results=[], metadata={"matches": 0, "results": 0})

        results = merge_matches(matches, build_catalog_lookup(items))

        await self.analytics.log_event(
            catalog_id=catalog_id,
            event_type=AnalyticsEventType.IMAGE_SEARCH.value,
            query=json.dumps(matches[0].to_dict()),
        )

        image_searches_total.labels(status="success").inc()
        logger.info(
            f"Returning {len(results)} unique image search results",
            extra={"catalog_id": catalog_id},
        )
        return SearchResponse(
            results=results,
            metadata={"matches": len(matches), "results": len(results)},
        )
