"""Unit tests for S3AssetUploader using moto"""

import pytest
from moto import mock_aws
import boto3

from domain.errors import AssetUploadError
from infrastructure.storage.s3_asset_uploader import S3AssetUploader


TEST_BUCKET = "test-snapsearch-assets"
TEST_REGION = "us-east-1"
TEST_ACCESS_KEY = "test-access-key"
TEST_SECRET_KEY = "test-secret-key"


@pytest.fixture
def s3_client():
    """Mock S3 environment with the asset bucket created"""
    with mock_aws():
        client = boto3.client(
            "s3",
            region_name=TEST_REGION,
            aws_access_key_id=TEST_ACCESS_KEY,
            aws_secret_access_key=TEST_SECRET_KEY,
        )
        client.create_bucket(Bucket=TEST_BUCKET)
        yield client


def make_uploader(**kwargs) -> S3AssetUploader:
    return S3AssetUploader(
        endpoint_url=kwargs.pop("endpoint_url", None),
        access_key=TEST_ACCESS_KEY,
        secret_key=TEST_SECRET_KEY,
        bucket_name=kwargs.pop("bucket_name", TEST_BUCKET),
        region=TEST_REGION,
        **kwargs,
    )


class TestS3AssetUploaderInitialization:
    def test_default_public_url_for_aws(self):
        with mock_aws():
            uploader = make_uploader()
        assert uploader.public_base_url == f"https://{TEST_BUCKET}.s3.{TEST_REGION}.amazonaws.com"

    def test_default_public_url_for_custom_endpoint(self):
        with mock_aws():
            uploader = make_uploader(endpoint_url="http://minio:9000/")
        assert uploader.public_base_url == f"http://minio:9000/{TEST_BUCKET}"

    def test_explicit_public_url(self):
        with mock_aws():
            uploader = make_uploader(public_base_url="https://cdn.test/assets/")
        assert uploader.public_base_url == "https://cdn.test/assets"


class TestUploadFile:
    @pytest.mark.asyncio
    async def test_upload_stores_object_and_returns_public_url(self, s3_client, tmp_path):
        local = tmp_path / "generated_image_1.png"
        local.write_bytes(b"\x89PNG-data")
        uploader = make_uploader(public_base_url="https://cdn.test")

        asset = await uploader.upload_file(local, local.name, "image/png")

        assert asset.file_id == "generated-images/generated_image_1.png"
        assert asset.name == "generated_image_1.png"
        assert asset.path == "/generated-images/"
        assert asset.url == "https://cdn.test/generated-images/generated_image_1.png"

        obj = s3_client.get_object(Bucket=TEST_BUCKET, Key=asset.file_id)
        assert obj["Body"].read() == b"\x89PNG-data"
        assert obj["ContentType"] == "image/png"

    @pytest.mark.asyncio
    async def test_empty_prefix(self, s3_client, tmp_path):
        local = tmp_path / "a.png"
        local.write_bytes(b"data")
        uploader = make_uploader(prefix="")

        asset = await uploader.upload_file(local, "a.png", "image/png")

        assert asset.file_id == "a.png"
        assert asset.path == "/"

    @pytest.mark.asyncio
    async def test_missing_file_rejected(self, s3_client, tmp_path):
        uploader = make_uploader()

        with pytest.raises(AssetUploadError, match="missing or empty"):
            await uploader.upload_file(tmp_path / "nope.png", "nope.png", "image/png")

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, s3_client, tmp_path):
        local = tmp_path / "empty.png"
        local.write_bytes(b"")
        uploader = make_uploader()

        with pytest.raises(AssetUploadError):
            await uploader.upload_file(local, "empty.png", "image/png")

    @pytest.mark.asyncio
    async def test_missing_bucket_maps_to_upload_error(self, s3_client, tmp_path):
        local = tmp_path / "a.png"
        local.write_bytes(b"data")
        uploader = make_uploader(bucket_name="does-not-exist")

        with pytest.raises(AssetUploadError, match="NoSuchBucket"):
            await uploader.upload_file(local, "a.png", "image/png")
