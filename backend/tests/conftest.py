"""Pytest fixtures for the visual search backend.

Provides reusable test fixtures for:
- SQLite-backed catalog store with transaction-free, per-test tables
- Catalog seeding helpers
- In-memory fakes for the embedding service and analytics log
- Run status tracker reset

Usage:
    @pytest.mark.asyncio
    async def test_fetch(catalog_reader, seed_products):
        seed_products("app-1", [{"slug": "a", "name": "A"}])
        items = await catalog_reader.fetch_all("app-1")
"""

import os
import sys
import tempfile
from pathlib import Path

# Set environment variables BEFORE any imports to ensure they take effect
_test_dir = tempfile.mkdtemp(prefix="snapsearch-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_test_dir}/test.db")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("AI_SERVICE_URL", "http://ai-service.test")
os.environ.setdefault("GENERATED_IMAGE_DIR", _test_dir)

import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Generator, List, Optional, Sequence

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from sqlalchemy.orm import Session

from catalog.reader import CatalogReader
from catalog.schemas import CatalogItem
from database import SessionLocal, engine
from domain.analytics.ports import AnalyticsLogPort
from domain.embedding.ports import EmbeddingMatch, EmbeddingServicePort, GeneratedImage, HealthReport
from indexing.status_store import status_tracker
from models.base import Base
from models.product import Product


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    Each test gets a clean database state.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def seed_products(db_session: Session):
    """Insert raw product rows; rows get increasing created_at in list order."""
    base_time = datetime(2026, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _seed(catalog_id: str, rows: List[Dict[str, Any]]) -> List[Product]:
        products = []
        for row in rows:
            counter["n"] += 1
            product = Product(
                catalog_id=catalog_id,
                created_at=base_time + timedelta(seconds=counter["n"]),
                **row,
            )
            db_session.add(product)
            products.append(product)
        db_session.commit()
        return products

    return _seed


@pytest.fixture(scope="function")
def catalog_reader(db_session: Session) -> CatalogReader:
    return CatalogReader(SessionLocal, query_timeout=5)


@pytest.fixture(autouse=True)
def reset_status_tracker():
    """The tracker is process-wide; every test starts from idle."""
    status_tracker.clear()
    yield
    status_tracker.clear()


def make_item(slug: str, name: Optional[str] = None, **fields) -> CatalogItem:
    return CatalogItem(slug=slug, name=name if name is not None else slug.title(), **fields)


class FakeEmbeddingService(EmbeddingServicePort):
    """In-memory embedding service.

    Records every indexed batch; fail_on_batch makes the n-th call (1-based)
    raise the configured error.
    """

    def __init__(self):
        self.batches: List[List[str]] = []
        self.batch_catalogs: List[str] = []
        self.fail_on_batch: Optional[int] = None
        self.batch_error: Optional[Exception] = None
        self.matches: List[EmbeddingMatch] = []
        self.search_error: Optional[Exception] = None
        self.search_calls: List[Dict[str, Any]] = []
        self.removed: List[str] = []
        self.health = HealthReport(healthy=True, model="clip-vit-b32", device="cpu")
        self.image_dir = Path(tempfile.mkdtemp(prefix="generated-", dir=_test_dir))
        self.generated: List[Path] = []
        self.generation_error: Optional[Exception] = None

    async def check_health(self) -> HealthReport:
        return self.health

    async def index_batch(self, items: Sequence[CatalogItem], catalog_id: str) -> None:
        call_number = len(self.batches) + 1
        if self.fail_on_batch == call_number:
            self.batches.append([i.slug for i in items])
            self.batch_catalogs.append(catalog_id)
            raise self.batch_error
        self.batches.append([i.slug for i in items])
        self.batch_catalogs.append(catalog_id)

    async def search_by_image(self, image_bytes, mime_type, file_name, catalog_id) -> List[EmbeddingMatch]:
        self.search_calls.append(
            {"size": len(image_bytes), "mime_type": mime_type, "file_name": file_name, "catalog_id": catalog_id}
        )
        if self.search_error is not None:
            raise self.search_error
        return list(self.matches)

    async def remove_index(self, catalog_id: str) -> Dict[str, Any]:
        self.removed.append(catalog_id)
        return {"deleted": True, "application_id": catalog_id}

    async def generate_image_from_prompt(self, prompt: str) -> GeneratedImage:
        if self.generation_error is not None:
            raise self.generation_error
        path = self.image_dir / f"generated_image_{len(self.generated) + 1}.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\nfake-image")
        self.generated.append(path)
        return GeneratedImage(local_file_path=path, file_name=path.name, content_type="image/png")


class RecordingAnalytics(AnalyticsLogPort):
    """Analytics log that keeps events in a list"""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    async def log_event(self, catalog_id, event_type, query=None, image_id=None):
        self.events.append(
            {"catalog_id": catalog_id, "type": event_type, "query": query, "image_id": image_id}
        )
        return str(len(self.events))


@pytest.fixture
def fake_embedding_service() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def analytics() -> RecordingAnalytics:
    return RecordingAnalytics()
