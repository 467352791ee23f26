"""Unit tests for IndexingOrchestrator: chunking, ordering, and run outcomes"""

import asyncio
from typing import List, Optional

import pytest

from catalog.schemas import CatalogItem
from conftest import FakeEmbeddingService, make_item
from domain.errors import (
    EmbeddingServiceError,
    EmbeddingTimeoutError,
    InvalidArgumentError,
    NoProductsToIndexError,
    ProductNotFoundError,
    StoreUnavailableError,
)
from indexing.orchestrator import IndexingOrchestrator, chunked
from indexing.status_store import IndexingStatus, RunStatusTracker


class StubCatalogReader:
    """Catalog reader returning a fixed item list"""

    def __init__(self, items: List[CatalogItem], error: Optional[Exception] = None):
        self.items = items
        self.error = error

    async def fetch_all(self, catalog_id=None):
        if self.error is not None:
            raise self.error
        return list(self.items)

    async def fetch_by_slug(self, slug, catalog_id=None):
        return next((i for i in self.items if i.slug == slug), None)


class GatedEmbeddingService(FakeEmbeddingService):
    """Blocks every batch until the gate is opened"""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def index_batch(self, items, catalog_id):
        await self.gate.wait()
        await super().index_batch(items, catalog_id)


def products(n: int) -> List[CatalogItem]:
    return [make_item(f"p-{i:03d}") for i in range(n)]


def build(items, service=None, chunk_size=100, tracker=None):
    tracker = tracker or RunStatusTracker()
    service = service or FakeEmbeddingService()
    orchestrator = IndexingOrchestrator(
        StubCatalogReader(items),
        service,
        tracker=tracker,
        chunk_size=chunk_size,
    )
    return orchestrator, service, tracker


class TestChunked:
    def test_last_chunk_is_smaller(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_exact_multiple(self):
        assert chunked(list(range(4)), 2) == [[0, 1], [2, 3]]

    def test_empty(self):
        assert chunked([], 100) == []

    def test_invalid_size(self):
        with pytest.raises(InvalidArgumentError):
            chunked([1], 0)


class TestFullRun:
    """Successful and failed full-catalog runs"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count, expected_sizes", [
        (1, [1]),
        (100, [100]),
        (200, [100, 100]),
        (250, [100, 100, 50]),
    ])
    async def test_chunk_count_and_sizes(self, count, expected_sizes):
        orchestrator, service, tracker = build(products(count))

        await orchestrator.trigger_indexing("app-1")
        report = await orchestrator.wait("app-1")

        assert [len(b) for b in service.batches] == expected_sizes
        assert report.total_chunks == len(expected_sizes)
        assert report.chunks_indexed == len(expected_sizes)
        assert report.status == IndexingStatus.COMPLETED
        assert tracker.get_status("app-1").status == IndexingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_chunks_sent_in_catalog_order(self):
        items = products(250)
        orchestrator, service, _ = build(items)

        await orchestrator.trigger_indexing("app-1")
        await orchestrator.wait("app-1")

        sent = [slug for batch in service.batches for slug in batch]
        assert sent == [i.slug for i in items]
        assert service.batch_catalogs == ["app-1"] * 3

    @pytest.mark.asyncio
    async def test_custom_chunk_size(self):
        orchestrator, service, _ = build(products(7), chunk_size=3)

        await orchestrator.trigger_indexing("app-1")
        await orchestrator.wait("app-1")

        assert [len(b) for b in service.batches] == [3, 3, 1]

    @pytest.mark.asyncio
    async def test_failed_chunk_stops_the_run(self):
        service = FakeEmbeddingService()
        service.fail_on_batch = 2
        service.batch_error = EmbeddingServiceError(
            "AI service returned 500: vector store full",
            status_code=500,
            upstream_message="vector store full",
        )
        orchestrator, service, tracker = build(products(350), service=service)

        await orchestrator.trigger_indexing("app-1")
        report = await orchestrator.wait("app-1")

        assert len(service.batches) == 2
        assert report.status == IndexingStatus.FAILED
        assert report.failed_chunk == 2
        assert report.chunks_indexed == 1
        assert report.error == "Indexing failed on chunk 2: vector store full"
        assert tracker.get_status("app-1").status == IndexingStatus.FAILED

    @pytest.mark.asyncio
    async def test_first_chunk_failure_sends_nothing_else(self):
        service = FakeEmbeddingService()
        service.fail_on_batch = 1
        service.batch_error = EmbeddingTimeoutError("AI service index_batch timed out after 180s")
        orchestrator, service, tracker = build(products(300), service=service)

        await orchestrator.trigger_indexing("app-1")
        report = await orchestrator.wait("app-1")

        assert len(service.batches) == 1
        assert report.failed_chunk == 1
        assert tracker.get_status("app-1").status == IndexingStatus.FAILED

    @pytest.mark.asyncio
    async def test_unexpected_error_marks_run_failed(self):
        service = FakeEmbeddingService()
        service.fail_on_batch = 1
        service.batch_error = RuntimeError("serializer bug")
        orchestrator, _, tracker = build(products(5), service=service)

        await orchestrator.trigger_indexing("app-1")
        report = await orchestrator.wait("app-1")

        assert report.status == IndexingStatus.FAILED
        assert report.error == "serializer bug"
        assert tracker.get_status("app-1").status == IndexingStatus.FAILED

    @pytest.mark.asyncio
    async def test_report_fields(self):
        orchestrator, _, _ = build(products(150))

        started = await orchestrator.trigger_indexing("app-1")
        report = await orchestrator.wait("app-1")

        assert report is started
        assert report.catalog_id == "app-1"
        assert report.total_products == 150
        assert report.progress == 1.0
        assert report.finished_at >= report.started_at
        data = report.to_dict()
        assert data["status"] == "completed"
        assert data["run_id"] == report.run_id
        assert orchestrator.last_report("app-1") is report


class TestTrigger:
    """Validation and single-flight behaviour of trigger_indexing"""

    @pytest.mark.asyncio
    async def test_returns_while_run_is_in_progress(self):
        service = GatedEmbeddingService()
        orchestrator, _, tracker = build(products(3), service=service)

        await orchestrator.trigger_indexing("app-1")

        assert tracker.get_status("app-1").status == IndexingStatus.IN_PROGRESS
        assert orchestrator.is_running("app-1")
        assert orchestrator.get_status("app-1")["status"] == "in-progress"
        assert orchestrator.get_status("app-1")["run"]["total_products"] == 3

        service.gate.set()
        await orchestrator.wait("app-1")

        assert tracker.get_status("app-1").status == IndexingStatus.COMPLETED
        assert not orchestrator.is_running("app-1")

    @pytest.mark.asyncio
    async def test_second_trigger_while_running_is_rejected(self):
        service = GatedEmbeddingService()
        orchestrator, _, _ = build(products(3), service=service)

        await orchestrator.trigger_indexing("app-1")
        with pytest.raises(InvalidArgumentError, match="already in progress"):
            await orchestrator.trigger_indexing("app-1")

        service.gate.set()
        await orchestrator.wait("app-1")
        assert len(service.batches) == 1

    @pytest.mark.asyncio
    async def test_retrigger_after_completion(self):
        orchestrator, service, _ = build(products(3))

        await orchestrator.trigger_indexing("app-1")
        await orchestrator.wait("app-1")
        await orchestrator.trigger_indexing("app-1")
        await orchestrator.wait("app-1")

        assert len(service.batches) == 2

    @pytest.mark.asyncio
    async def test_catalogs_index_independently(self):
        service = GatedEmbeddingService()
        orchestrator, _, tracker = build(products(3), service=service)

        await orchestrator.trigger_indexing("app-1")
        await orchestrator.trigger_indexing("app-2")
        service.gate.set()
        await orchestrator.wait("app-1")
        await orchestrator.wait("app-2")

        assert tracker.get_status("app-1").status == IndexingStatus.COMPLETED
        assert tracker.get_status("app-2").status == IndexingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_empty_catalog_leaves_status_untouched(self):
        orchestrator, service, tracker = build([])

        with pytest.raises(NoProductsToIndexError):
            await orchestrator.trigger_indexing("app-1")

        assert tracker.get_status("app-1").status == IndexingStatus.IDLE
        assert service.batches == []
        assert orchestrator.last_report("app-1") is None

    @pytest.mark.asyncio
    async def test_store_failure_leaves_status_untouched(self):
        tracker = RunStatusTracker()
        tracker.set_status("app-1", IndexingStatus.COMPLETED)
        orchestrator = IndexingOrchestrator(
            StubCatalogReader([], error=StoreUnavailableError("Catalog store timed out")),
            FakeEmbeddingService(),
            tracker=tracker,
        )

        with pytest.raises(StoreUnavailableError):
            await orchestrator.trigger_indexing("app-1")

        assert tracker.get_status("app-1").status == IndexingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_empty_catalog_id_rejected(self):
        orchestrator, _, _ = build(products(1))
        with pytest.raises(InvalidArgumentError):
            await orchestrator.trigger_indexing("")

    def test_invalid_chunk_size_rejected(self):
        with pytest.raises(InvalidArgumentError):
            IndexingOrchestrator(StubCatalogReader([]), FakeEmbeddingService(), chunk_size=0)

    @pytest.mark.asyncio
    async def test_wait_without_run_returns_none(self):
        orchestrator, _, _ = build(products(1))
        assert await orchestrator.wait("app-1") is None

    @pytest.mark.asyncio
    async def test_get_status_of_unknown_catalog(self):
        orchestrator, _, _ = build(products(1))
        assert orchestrator.get_status("app-1") == {"status": "idle", "updated_at": None, "run": None}


class TestShutdown:
    @pytest.mark.asyncio
    async def test_cancelled_run_is_marked_failed(self):
        service = GatedEmbeddingService()
        orchestrator, _, tracker = build(products(3), service=service)

        await orchestrator.trigger_indexing("app-1")
        await orchestrator.shutdown()

        report = orchestrator.last_report("app-1")
        assert report.status == IndexingStatus.FAILED
        assert report.error == "Indexing cancelled"
        assert tracker.get_status("app-1").status == IndexingStatus.FAILED
        assert not orchestrator.is_running("app-1")

    @pytest.mark.asyncio
    async def test_shutdown_without_runs(self):
        orchestrator, _, _ = build(products(1))
        await orchestrator.shutdown()


class TestSingleProduct:
    """index_single_product and remove_index"""

    @pytest.mark.asyncio
    async def test_sends_one_item_batch(self):
        orchestrator, service, tracker = build(products(3))

        item = await orchestrator.index_single_product("p-001", "app-1")

        assert item.slug == "p-001"
        assert service.batches == [["p-001"]]
        assert tracker.get_status("app-1").status == IndexingStatus.IDLE

    @pytest.mark.asyncio
    async def test_unknown_slug(self):
        orchestrator, service, _ = build(products(3))

        with pytest.raises(ProductNotFoundError):
            await orchestrator.index_single_product("missing", "app-1")
        assert service.batches == []

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates(self):
        service = FakeEmbeddingService()
        service.fail_on_batch = 1
        service.batch_error = EmbeddingServiceError("rejected", status_code=400, upstream_message="rejected")
        orchestrator, _, _ = build(products(1), service=service)

        with pytest.raises(EmbeddingServiceError):
            await orchestrator.index_single_product("p-000", "app-1")

    @pytest.mark.asyncio
    async def test_remove_index(self):
        orchestrator, service, _ = build(products(1))

        result = await orchestrator.remove_index("app-1")

        assert service.removed == ["app-1"]
        assert result["application_id"] == "app-1"
