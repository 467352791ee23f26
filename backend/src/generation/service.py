"""Prompt image service - generate an image from a prompt and publish it.

The generated image lives in a temp file only for the duration of the
upload; the client's scoped context manager deletes it on every path.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict

from domain.analytics.ports import AnalyticsEventType, AnalyticsLogPort
from domain.assets.ports import AssetUploaderPort
from domain.embedding.ports import EmbeddingServicePort
from domain.errors import InvalidArgumentError
from observability.metrics import prompt_image_generations_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptImageResult:
    image_url: str
    file_id: str
    name: str
    path: str

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "imageUrl": self.image_url,
            "assetData": {"fileId": self.file_id, "name": self.name, "path": self.path},
        }


class PromptImageService:
    """Generates an image from a text prompt and uploads it to asset hosting"""

    def __init__(
        self,
        embedding_client: EmbeddingServicePort,
        uploader: AssetUploaderPort,
        analytics: AnalyticsLogPort,
    ):
        self.embedding_client = embedding_client
        self.uploader = uploader
        self.analytics = analytics

    async def generate(self, prompt: str, catalog_id: str) -> PromptImageResult:
        """Generate, upload, and record the outcome.

        Raises:
            InvalidArgumentError: Empty prompt or catalog id
            EmbeddingError: Generation failed upstream
            AssetUploadError: Upload failed
            OSError: Generated image could not be written locally

        Every failure is recorded as prompt_image_failed before it propagates.
        """
        if not prompt or not prompt.strip():
            raise InvalidArgumentError("Missing prompt in request body")
        if not catalog_id:
            raise InvalidArgumentError("catalog id is required for image generation")

        try:
            async with self.embedding_client.generated_image(prompt) as image:
                asset = await self.uploader.upload_file(
                    image.local_file_path,
                    image.file_name,
                    image.content_type,
                )
        except Exception as e:
            prompt_image_generations_total.labels(status="error").inc()
            logger.error(f"Error in prompt image generation: {e}", extra={"catalog_id": catalog_id})
            await self.analytics.log_event(
                catalog_id=catalog_id,
                event_type=AnalyticsEventType.PROMPT_IMAGE_FAILED.value,
                query=json.dumps({"prompt": prompt, "error": str(e)}),
            )
            raise

        await self.analytics.log_event(
            catalog_id=catalog_id,
            event_type=AnalyticsEventType.PROMPT_IMAGE_GENERATION.value,
            query=json.dumps({"prompt": prompt, "imageUrl": asset.url, "fileId": asset.file_id}),
            image_id=asset.file_id,
        )
        prompt_image_generations_total.labels(status="success").inc()
        logger.info(
            "Generated image uploaded to asset hosting",
            extra={"catalog_id": catalog_id, "image_url": asset.url},
        )
        return PromptImageResult(
            image_url=asset.url,
            file_id=asset.file_id,
            name=asset.name,
            path=asset.path,
        )
