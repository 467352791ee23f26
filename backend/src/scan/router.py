"""Scan API endpoints - indexing, image search, and prompt images.

Handlers stay thin: they resolve the catalog id, call one core service,
and shape the JSON body. Domain errors propagate to the exception
handlers in main.py.
"""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from config import settings
from dependencies import (
    get_catalog_id,
    get_embedding_client,
    get_indexing_orchestrator,
    get_prompt_image_service,
    get_search_orchestrator,
)
from domain.embedding.ports import EmbeddingServicePort
from generation.service import PromptImageService
from indexing.orchestrator import IndexingOrchestrator
from search.orchestrator import SearchOrchestrator
from .schemas import PromptRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/platform/scan", tags=["scan"])


@router.get("/")
async def ping():
    """Liveness ping for the scan API"""
    return {"success": True, "message": "Scan API is working!"}


# ============================================================================
# Indexing
# ============================================================================

@router.post("/init-index")
async def init_index(
    catalog_id: str = Depends(get_catalog_id),
    indexing: IndexingOrchestrator = Depends(get_indexing_orchestrator),
):
    """
    Start a full-catalog indexing run in the background.

    Returns as soon as the run is marked in-progress; poll /index-status.

    Raises:
        400: Empty catalog or a run is already in progress
        503: Catalog store unreachable
    """
    report = await indexing.trigger_indexing(catalog_id)
    return {
        "success": True,
        "message": "Indexing started in background",
        "run": report.to_dict(),
    }


@router.get("/index-status")
async def index_status(
    catalog_id: str = Depends(get_catalog_id),
    indexing: IndexingOrchestrator = Depends(get_indexing_orchestrator),
):
    """
    Current indexing status of the catalog (idle if never indexed).

    Pollers read status.status and status.updatedAt; "run" carries the
    progress report of the latest run, or null.
    """
    state = indexing.get_status(catalog_id)
    return {
        "status": {"status": state["status"], "updatedAt": state["updated_at"]},
        "run": state["run"],
    }


@router.post("/index-product/{slug}")
async def index_product(
    slug: str,
    catalog_id: str = Depends(get_catalog_id),
    indexing: IndexingOrchestrator = Depends(get_indexing_orchestrator),
):
    """Index one product by slug without touching the run status"""
    item = await indexing.index_single_product(slug, catalog_id)
    return {"success": True, "message": f"Product {item.slug} indexed"}


@router.post("/remove-index")
async def remove_index(
    catalog_id: str = Depends(get_catalog_id),
    indexing: IndexingOrchestrator = Depends(get_indexing_orchestrator),
):
    """Delete every embedding of the catalog upstream"""
    result = await indexing.remove_index(catalog_id)
    return {
        "success": True,
        "message": f"Index removed for application {catalog_id}",
        "result": result,
    }


# ============================================================================
# Search
# ============================================================================

@router.post("/search-by-image")
async def search_by_image(
    image: UploadFile = File(...),
    catalog_id: str = Depends(get_catalog_id),
    search: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """
    Search the catalog with an uploaded image.

    Args:
        image: Multipart file field "image" (image/* only)

    Raises:
        400: Not an image, empty, or larger than MAX_UPLOAD_BYTES
        502/504: Embedding service error or timeout
    """
    if not (image.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image files are allowed!",
        )

    # Read one byte past the limit to detect oversized uploads
    data = await image.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Image exceeds {settings.MAX_UPLOAD_BYTES} bytes",
        )

    response = await search.search_by_image(data, image.content_type, image.filename, catalog_id)
    return response.to_response()


@router.get("/system-status")
async def system_status(
    embedding_client: EmbeddingServicePort = Depends(get_embedding_client),
):
    """Embedding service health as reported by its /health endpoint"""
    health = await embedding_client.check_health()
    return {"success": True, "aiService": health.to_dict()}


# ============================================================================
# Prompt images
# ============================================================================

@router.post("/generate-prompts-to-image")
async def generate_prompts_to_image(
    body: PromptRequest,
    catalog_id: str = Depends(get_catalog_id),
    service: PromptImageService = Depends(get_prompt_image_service),
):
    """Generate an image from a prompt and publish it to asset hosting"""
    result = await service.generate(body.prompt, catalog_id)
    return result.to_response()
