"""Unit tests for PromptImageService (generate → upload → record)"""

import json
from pathlib import Path
from typing import List

import httpx
import pytest

from conftest import FakeEmbeddingService, RecordingAnalytics
from domain.assets.ports import AssetUploaderPort, UploadedAsset
from domain.errors import AssetUploadError, EmbeddingServiceError, InvalidArgumentError
from generation.service import PromptImageService
from infrastructure.ai.embedding_service_client import EmbeddingServiceClient


class FakeUploader(AssetUploaderPort):
    """Records what it was asked to upload; optionally fails"""

    def __init__(self, error: Exception = None):
        self.error = error
        self.uploads: List[dict] = []

    async def upload_file(self, local_path: Path, name: str, content_type: str) -> UploadedAsset:
        self.uploads.append({
            "path": local_path,
            "existed": local_path.exists(),
            "bytes": local_path.read_bytes() if local_path.exists() else b"",
            "name": name,
            "content_type": content_type,
        })
        if self.error is not None:
            raise self.error
        return UploadedAsset(
            file_id=f"generated-images/{name}",
            name=name,
            path="/generated-images/",
            url=f"https://assets.test/generated-images/{name}",
        )


def build(uploader=None):
    service = FakeEmbeddingService()
    uploader = uploader or FakeUploader()
    analytics = RecordingAnalytics()
    return PromptImageService(service, uploader, analytics), service, uploader, analytics


class TestGenerate:
    @pytest.mark.asyncio
    async def test_success_uploads_and_records(self):
        prompts, service, uploader, analytics = build()

        result = await prompts.generate("red sneakers", "app-1")

        upload = uploader.uploads[0]
        assert upload["existed"] is True
        assert upload["bytes"].startswith(b"\x89PNG")
        assert upload["content_type"] == "image/png"
        assert result.image_url == f"https://assets.test/generated-images/{upload['name']}"
        assert result.to_response() == {
            "success": True,
            "imageUrl": result.image_url,
            "assetData": {
                "fileId": f"generated-images/{upload['name']}",
                "name": upload["name"],
                "path": "/generated-images/",
            },
        }

        assert [e["type"] for e in analytics.events] == ["prompt_image_generation"]
        assert analytics.events[0]["image_id"] == result.file_id
        assert json.loads(analytics.events[0]["query"])["prompt"] == "red sneakers"

    @pytest.mark.asyncio
    async def test_temp_file_removed_after_success(self):
        prompts, service, _, _ = build()

        await prompts.generate("red sneakers", "app-1")

        assert len(service.generated) == 1
        assert not service.generated[0].exists()

    @pytest.mark.asyncio
    async def test_temp_file_removed_when_upload_fails(self):
        prompts, service, uploader, analytics = build(FakeUploader(error=AssetUploadError("Failed to upload asset: AccessDenied")))

        with pytest.raises(AssetUploadError):
            await prompts.generate("red sneakers", "app-1")

        assert uploader.uploads[0]["existed"] is True
        assert not service.generated[0].exists()
        assert [e["type"] for e in analytics.events] == ["prompt_image_failed"]
        assert "AccessDenied" in json.loads(analytics.events[0]["query"])["error"]

    @pytest.mark.asyncio
    async def test_generation_failure_records_and_reraises(self):
        prompts, service, uploader, analytics = build()
        service.generation_error = EmbeddingServiceError("Generate prompts to image failed: offline")

        with pytest.raises(EmbeddingServiceError):
            await prompts.generate("red sneakers", "app-1")

        assert uploader.uploads == []
        assert [e["type"] for e in analytics.events] == ["prompt_image_failed"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", ["", "   "])
    async def test_empty_prompt_rejected(self, prompt):
        prompts, service, _, analytics = build()

        with pytest.raises(InvalidArgumentError, match="Missing prompt"):
            await prompts.generate(prompt, "app-1")

        assert service.generated == []
        assert analytics.events == []

    @pytest.mark.asyncio
    async def test_local_write_failure_records_and_reraises(self, tmp_path):
        async def handler(request):
            return httpx.Response(200, content=b"\x89PNG\r\n", headers={"content-type": "image/png"})

        client = EmbeddingServiceClient(
            base_url="http://ai-service.test",
            temp_dir=str(tmp_path / "missing"),
            transport=httpx.MockTransport(handler),
        )
        uploader = FakeUploader()
        analytics = RecordingAnalytics()
        prompts = PromptImageService(client, uploader, analytics)

        with pytest.raises(FileNotFoundError):
            await prompts.generate("red sneakers", "app-1")
        await client.aclose()

        assert uploader.uploads == []
        assert [e["type"] for e in analytics.events] == ["prompt_image_failed"]
        assert json.loads(analytics.events[0]["query"])["prompt"] == "red sneakers"

    @pytest.mark.asyncio
    async def test_unexpected_upload_error_records_and_reraises(self):
        prompts, service, _, analytics = build(FakeUploader(error=RuntimeError("socket closed")))

        with pytest.raises(RuntimeError):
            await prompts.generate("red sneakers", "app-1")

        assert not service.generated[0].exists()
        assert [e["type"] for e in analytics.events] == ["prompt_image_failed"]
        assert json.loads(analytics.events[0]["query"])["error"] == "socket closed"
