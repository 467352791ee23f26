"""Global FastAPI dependencies for catalog scoping and service access.

This module provides:
- build_services / close_services: wire the core services once per process
- get_* service dependencies: read them from app.state
- get_catalog_id: resolve the tenant key of a request

The services hold process-wide state (the indexing supervisor owns its
background tasks), so they are created in the application lifespan and
shared by every request. Tests swap them via app.dependency_overrides.
"""

import json
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, Request, status

from catalog.reader import CatalogReader
from config import Settings
from database import SessionLocal
from domain.analytics.ports import AnalyticsLogPort
from domain.embedding.ports import EmbeddingServicePort
from generation.service import PromptImageService
from indexing.orchestrator import IndexingOrchestrator
from indexing.status_store import status_tracker
from infrastructure.ai.embedding_service_client import EmbeddingServiceClient
from infrastructure.repositories.analytics_event_repository import AnalyticsEventRepository
from infrastructure.storage.s3_asset_uploader import S3AssetUploader
from search.orchestrator import SearchOrchestrator


@dataclass
class Services:
    """Process-wide service graph"""
    embedding_client: EmbeddingServiceClient
    catalog_reader: CatalogReader
    analytics: AnalyticsLogPort
    indexing: IndexingOrchestrator
    search: SearchOrchestrator
    prompt_images: PromptImageService


def build_services(settings: Settings) -> Services:
    """Create the service graph from settings.

    Example:
        app.state.services = build_services(get_settings())
    """
    embedding_client = EmbeddingServiceClient.from_settings(settings)
    catalog_reader = CatalogReader(
        SessionLocal,
        query_timeout=settings.CATALOG_QUERY_TIMEOUT_SECONDS,
    )
    analytics = AnalyticsEventRepository(SessionLocal)

    return Services(
        embedding_client=embedding_client,
        catalog_reader=catalog_reader,
        analytics=analytics,
        indexing=IndexingOrchestrator(
            catalog_reader,
            embedding_client,
            tracker=status_tracker,
            chunk_size=settings.INDEXING_CHUNK_SIZE,
        ),
        search=SearchOrchestrator(embedding_client, catalog_reader, analytics),
        prompt_images=PromptImageService(
            embedding_client,
            S3AssetUploader.from_settings(settings),
            analytics,
        ),
    )


async def close_services(services: Services) -> None:
    """Cancel running indexing runs, then close the HTTP client"""
    await services.indexing.shutdown()
    await services.embedding_client.aclose()


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_embedding_client(services: Services = Depends(get_services)) -> EmbeddingServicePort:
    return services.embedding_client


def get_indexing_orchestrator(services: Services = Depends(get_services)) -> IndexingOrchestrator:
    return services.indexing


def get_search_orchestrator(services: Services = Depends(get_services)) -> SearchOrchestrator:
    return services.search


def get_prompt_image_service(services: Services = Depends(get_services)) -> PromptImageService:
    return services.prompt_images


def get_catalog_id(
    application_id: Optional[str] = Query(None),
    x_application_data: Optional[str] = Header(None),
) -> str:
    """Resolve the catalog id of the current request.

    The `application_id` query parameter wins; otherwise the `_id` field of
    the JSON carried in the `x-application-data` header is used.

    Raises:
        HTTPException 400: Neither source yields a non-empty id

    Example:
        @router.get("/index-status")
        def index_status(catalog_id: str = Depends(get_catalog_id)):
            ...
    """
    if application_id:
        return application_id

    if x_application_data:
        try:
            data = json.loads(x_application_data)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="x-application-data header is not valid JSON",
            )
        catalog_id = data.get("_id") if isinstance(data, dict) else None
        if isinstance(catalog_id, str) and catalog_id:
            return catalog_id

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Missing application id",
    )
