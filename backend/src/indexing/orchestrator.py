"""Indexing orchestrator - pushes a full catalog into the embedding service.

A run reads the catalog, marks the catalog in-progress, then sends fixed-size
chunks to the embedding service one after another. The first rejected chunk
ends the run as failed and nothing after it is sent. Chunks accepted before
the failure stay in the upstream index; there is no rollback.

The run executes as an asyncio.Task owned by this orchestrator. The task
body records the outcome in the status tracker itself, so every run ends in
exactly one of completed/failed and its error is logged exactly once.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, TypeVar

from catalog.reader import CatalogReader
from catalog.schemas import CatalogItem
from domain.embedding.ports import EmbeddingServicePort
from domain.errors import (
    EmbeddingError,
    IndexingChunkError,
    InvalidArgumentError,
    NoProductsToIndexError,
    ProductNotFoundError,
)
from indexing.status_store import IndexingStatus, RunStatusTracker, status_tracker
from observability.metrics import (
    indexing_chunks_total,
    indexing_run_duration_seconds,
    indexing_runs_total,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive chunks of `size`; the last may be smaller.

    Example:
        >>> chunked([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    if size < 1:
        raise InvalidArgumentError("chunk size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


@dataclass
class IndexingReport:
    """Progress and outcome of one indexing run.

    Attributes:
        run_id: Unique id of the run (appears in log lines)
        catalog_id: Catalog being indexed
        total_products: Products read from the catalog
        total_chunks: Chunks the catalog was split into
        chunks_indexed: Chunks accepted by the embedding service so far
        failed_chunk: 1-based number of the rejected chunk, if any
        error: Upstream error message of the failure, if any
    """
    run_id: str
    catalog_id: str
    total_products: int
    total_chunks: int
    status: IndexingStatus = IndexingStatus.IN_PROGRESS
    chunks_indexed: int = 0
    failed_chunk: Optional[int] = None
    error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def progress(self) -> float:
        if not self.total_chunks:
            return 0.0
        return round(self.chunks_indexed / self.total_chunks, 4)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "catalog_id": self.catalog_id,
            "status": self.status.value,
            "total_products": self.total_products,
            "total_chunks": self.total_chunks,
            "chunks_indexed": self.chunks_indexed,
            "progress": self.progress,
            "failed_chunk": self.failed_chunk,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class IndexingOrchestrator:
    """Starts and supervises background indexing runs.

    One run per catalog at a time; runs for different catalogs proceed
    concurrently. Runs cannot be cancelled by callers, only by shutdown().

    Example:
        orchestrator = IndexingOrchestrator(reader, client)
        report = await orchestrator.trigger_indexing("app-1")  # returns at once
        ...
        status_tracker.get_status("app-1")  # poll
    """

    def __init__(
        self,
        catalog_reader: CatalogReader,
        embedding_client: EmbeddingServicePort,
        tracker: RunStatusTracker = status_tracker,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if chunk_size < 1:
            raise InvalidArgumentError("chunk size must be at least 1")
        self.catalog_reader = catalog_reader
        self.embedding_client = embedding_client
        self.tracker = tracker
        self.chunk_size = chunk_size
        self._tasks: Dict[str, asyncio.Task] = {}
        self._reports: Dict[str, IndexingReport] = {}

    def is_running(self, catalog_id: str) -> bool:
        task = self._tasks.get(catalog_id)
        return task is not None and not task.done()

    async def trigger_indexing(self, catalog_id: str) -> IndexingReport:
        """Validate and start a full-catalog indexing run in the background.

        Returns as soon as the catalog has been read and the run is marked
        in-progress; chunk dispatch continues in a background task.

        Raises:
            InvalidArgumentError: Empty catalog id, or a run is already in progress
            NoProductsToIndexError: Catalog is empty (status is not touched)
            StoreUnavailableError: Catalog store unreachable (status is not touched)
        """
        if not catalog_id:
            raise InvalidArgumentError("catalog id is required to start indexing")
        self._ensure_not_running(catalog_id)

        items = await self.catalog_reader.fetch_all(catalog_id)
        if not items:
            logger.warning("No products found to index", extra={"catalog_id": catalog_id})
            raise NoProductsToIndexError("No products found to index")

        # Re-check after the await: another trigger may have started meanwhile
        self._ensure_not_running(catalog_id)

        chunks = chunked(items, self.chunk_size)
        report = IndexingReport(
            run_id=str(uuid.uuid4()),
            catalog_id=catalog_id,
            total_products=len(items),
            total_chunks=len(chunks),
        )
        self.tracker.set_status(catalog_id, IndexingStatus.IN_PROGRESS)
        self._reports[catalog_id] = report

        task = asyncio.create_task(self._run(report, chunks), name=f"indexing-{catalog_id}")
        self._tasks[catalog_id] = task
        task.add_done_callback(lambda t: self._forget(catalog_id, t))

        logger.info(
            f"Indexing started in background: {len(items)} products in "
            f"{len(chunks)} chunks of up to {self.chunk_size}",
            extra={"catalog_id": catalog_id, "run_id": report.run_id},
        )
        return report

    async def wait(self, catalog_id: str) -> Optional[IndexingReport]:
        """Wait for the current run of catalog_id, if any, and return its report"""
        task = self._tasks.get(catalog_id)
        if task is not None:
            await asyncio.shield(task)
        return self._reports.get(catalog_id)

    def last_report(self, catalog_id: str) -> Optional[IndexingReport]:
        return self._reports.get(catalog_id)

    def get_status(self, catalog_id: str) -> Dict[str, Any]:
        """Status as seen by pollers: tracker state plus the latest run report"""
        run = self.tracker.get_status(catalog_id)
        report = self._reports.get(catalog_id)
        return {
            **run.to_dict(),
            "run": report.to_dict() if report else None,
        }

    async def index_single_product(self, slug: str, catalog_id: str) -> CatalogItem:
        """Send one product to the embedding service as a one-item batch.

        Does not touch the status tracker.

        Raises:
            InvalidArgumentError: Empty slug or catalog id
            ProductNotFoundError: No product with that slug
            EmbeddingError: Upstream rejected the product
        """
        if not slug or not catalog_id:
            raise InvalidArgumentError("slug and catalog id are required")

        item = await self.catalog_reader.fetch_by_slug(slug, catalog_id)
        if item is None:
            raise ProductNotFoundError(f"Product {slug} not found")

        logger.info(f"Indexing single product {slug}", extra={"catalog_id": catalog_id})
        try:
            await self.embedding_client.index_batch([item], catalog_id)
        except EmbeddingError as e:
            logger.error(f"Single product indexing failed: {e}", extra={"catalog_id": catalog_id})
            raise
        return item

    async def remove_index(self, catalog_id: str) -> Dict[str, Any]:
        """Delete the catalog's embeddings upstream"""
        if not catalog_id:
            raise InvalidArgumentError("catalog id is required to remove an index")
        result = await self.embedding_client.remove_index(catalog_id)
        logger.info("Index removed", extra={"catalog_id": catalog_id})
        return result

    async def shutdown(self) -> None:
        """Cancel running runs; each is recorded as failed"""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        # A task cancelled before its first step never enters _run's handlers
        for report in self._reports.values():
            if report.status == IndexingStatus.IN_PROGRESS:
                self._finish(report, IndexingStatus.FAILED, error="Indexing cancelled")

    async def _run(self, report: IndexingReport, chunks: List[List[CatalogItem]]) -> IndexingReport:
        start = time.monotonic()
        try:
            await self._dispatch(report, chunks)
        except asyncio.CancelledError:
            self._finish(report, IndexingStatus.FAILED, error="Indexing cancelled")
            logger.warning("Indexing cancelled", extra={"catalog_id": report.catalog_id, "run_id": report.run_id})
            raise
        except IndexingChunkError as e:
            report.failed_chunk = e.chunk_number
            self._finish(report, IndexingStatus.FAILED, error=str(e))
            logger.error(
                f"Indexing failed: {e}",
                extra={
                    "catalog_id": report.catalog_id,
                    "run_id": report.run_id,
                    "chunk_number": e.chunk_number,
                },
            )
        except Exception as e:
            self._finish(report, IndexingStatus.FAILED, error=str(e))
            logger.error(
                f"Indexing failed: {e}",
                extra={"catalog_id": report.catalog_id, "run_id": report.run_id},
                exc_info=True,
            )
        else:
            self._finish(report, IndexingStatus.COMPLETED)
            logger.info(
                "All product chunks indexed successfully",
                extra={"catalog_id": report.catalog_id, "run_id": report.run_id},
            )
        finally:
            indexing_run_duration_seconds.observe(time.monotonic() - start)
        return report

    async def _dispatch(self, report: IndexingReport, chunks: List[List[CatalogItem]]) -> None:
        """Send chunks strictly in order; stop at the first failure"""
        for chunk_number, chunk in enumerate(chunks, start=1):
            logger.info(
                f"Processing chunk {chunk_number}/{len(chunks)}...",
                extra={"catalog_id": report.catalog_id, "chunk_number": chunk_number},
            )
            try:
                await self.embedding_client.index_batch(chunk, report.catalog_id)
            except EmbeddingError as e:
                indexing_chunks_total.labels(status="error").inc()
                raise IndexingChunkError(chunk_number, e) from e

            indexing_chunks_total.labels(status="success").inc()
            report.chunks_indexed += 1
            logger.info(
                f"Successfully indexed chunk {chunk_number} with {len(chunk)} products",
                extra={"catalog_id": report.catalog_id, "chunk_number": chunk_number},
            )

    def _finish(self, report: IndexingReport, status: IndexingStatus, error: Optional[str] = None) -> None:
        report.status = status
        report.error = error
        report.finished_at = datetime.now(timezone.utc)
        self.tracker.set_status(report.catalog_id, status)
        indexing_runs_total.labels(status=status.value).inc()

    def _ensure_not_running(self, catalog_id: str) -> None:
        if self.is_running(catalog_id):
            raise InvalidArgumentError(f"Indexing already in progress for {catalog_id}")

    def _forget(self, catalog_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(catalog_id) is task:
            del self._tasks[catalog_id]
