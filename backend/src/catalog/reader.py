"""Catalog reader - loads the product catalog and normalizes it to CatalogItem.

Used by the indexing orchestrator (full catalog push) and by the search
orchestrator (enrichment of embedding matches).
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session

from catalog.schemas import CatalogItem, MediaItem, PriceRange, SizeItem
from domain.errors import StoreUnavailableError
from models.product import Product

logger = logging.getLogger(__name__)

# Failures that mean "the store is unreachable", as opposed to a bug in a query
UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


class CatalogReader:
    """Reads catalog rows through a SQLAlchemy session factory.

    Queries run in the default executor so that a catalog read can overlap
    with the embedding service call on the event loop.

    Example:
        reader = CatalogReader(SessionLocal, query_timeout=30)
        items = await reader.fetch_all("app-1")
    """

    def __init__(self, session_factory: Callable[[], Session], query_timeout: float = 30.0):
        self.session_factory = session_factory
        self.query_timeout = query_timeout

    async def fetch_all(self, catalog_id: Optional[str] = None) -> List[CatalogItem]:
        """Read and normalize the whole catalog.

        All-or-nothing: either every row is returned or StoreUnavailableError
        is raised; partial results are never returned.

        Args:
            catalog_id: Restrict to one catalog; None reads every row

        Raises:
            StoreUnavailableError: Timeout or connection failure
        """
        logger.info("Fetching all products from catalog store", extra={"catalog_id": catalog_id})
        items = await self._run(self._fetch_all_sync, catalog_id)
        logger.info(
            f"Fetched {len(items)} products from catalog store",
            extra={"catalog_id": catalog_id},
        )
        return items

    async def fetch_by_slug(self, slug: str, catalog_id: Optional[str] = None) -> Optional[CatalogItem]:
        """Read one product by slug, or None if it does not exist"""
        return await self._run(self._fetch_by_slug_sync, slug, catalog_id)

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, fn, *args),
                timeout=self.query_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Catalog store query exceeded {self.query_timeout}s")
            raise StoreUnavailableError("Catalog store timed out") from e

    def _fetch_all_sync(self, catalog_id: Optional[str]) -> List[CatalogItem]:
        session = self.session_factory()
        try:
            query = session.query(Product)
            if catalog_id is not None:
                query = query.filter(Product.catalog_id == catalog_id)
            rows = query.order_by(Product.created_at, Product.slug).all()
            raw_rows = [row.to_dict() for row in rows]
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"Failed to fetch products from catalog store: {e}")
            raise StoreUnavailableError("Failed to fetch products from catalog store") from e
        finally:
            session.close()

        items = []
        for raw in raw_rows:
            item = normalize_product(raw)
            if item is None:
                logger.warning(f"Skipping catalog row without slug: id={raw.get('id')}")
                continue
            items.append(item)
        return items

    def _fetch_by_slug_sync(self, slug: str, catalog_id: Optional[str]) -> Optional[CatalogItem]:
        session = self.session_factory()
        try:
            query = session.query(Product).filter(Product.slug == slug)
            if catalog_id is not None:
                query = query.filter(Product.catalog_id == catalog_id)
            row = query.first()
            raw = row.to_dict() if row else None
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"Failed to fetch product {slug} from catalog store: {e}")
            raise StoreUnavailableError("Failed to fetch product from catalog store") from e
        finally:
            session.close()

        return normalize_product(raw) if raw else None


def normalize_product(raw: Mapping[str, Any]) -> Optional[CatalogItem]:
    """Map a raw catalog row to CatalogItem.

    Missing optional fields become empty strings or lists. Returns None when
    the row has no usable slug, since such a row cannot be indexed or matched.
    """
    slug = raw.get("slug")
    if not isinstance(slug, str) or not slug:
        return None

    brand = raw.get("brand")
    if isinstance(brand, Mapping):
        brand_name = _str(brand.get("name"))
    else:
        brand_name = _str(brand)

    return CatalogItem(
        slug=slug,
        name=_str(raw.get("name")),
        description=_str(raw.get("description")),
        short_description=_str(raw.get("short_description")),
        category_slug=_str(raw.get("category_slug")),
        brand_name=brand_name,
        media=[_media(m) for m in _list(raw.get("media")) if isinstance(m, Mapping)],
        sizes=[_size(s) for s in _list(raw.get("all_sizes")) if isinstance(s, Mapping)],
    )


def _str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _price(value: Any) -> PriceRange:
    if not isinstance(value, Mapping):
        return PriceRange()
    return PriceRange(min=_number(value.get("min")), max=_number(value.get("max")))


def _media(raw: Mapping[str, Any]) -> MediaItem:
    return MediaItem(url=_str(raw.get("url")), type=_str(raw.get("type")))


def _size(raw: Mapping[str, Any]) -> SizeItem:
    price: Dict[str, Any] = raw.get("price") if isinstance(raw.get("price"), Mapping) else {}
    return SizeItem(
        size=_str(raw.get("size")),
        marked_price=_price(price.get("marked")),
        effective_price=_price(price.get("effective")),
        sellable=bool(raw.get("sellable")),
    )
