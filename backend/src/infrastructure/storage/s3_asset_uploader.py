"""S3 Asset Uploader - Implementation of AssetUploaderPort using boto3.

Publishes generated images to an S3-compatible bucket (AWS S3, MinIO) and
returns their public URL.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from domain.assets.ports import AssetUploaderPort, UploadedAsset
from domain.errors import AssetUploadError

logger = logging.getLogger(__name__)


class S3AssetUploader(AssetUploaderPort):
    """S3-compatible asset uploader using boto3.

    Storage key format: {prefix}/{name}

    Example:
        uploader = S3AssetUploader.from_settings(settings)
        asset = await uploader.upload_file(Path("/tmp/img.png"), "img.png", "image/png")
        asset.url  # public URL
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        bucket_name: str,
        region: str = "us-east-1",
        prefix: str = "generated-images",
        public_base_url: Optional[str] = None,
    ):
        """Initialize S3 asset uploader.

        Args:
            endpoint_url: S3 endpoint URL (None for AWS S3, URL for MinIO)
            access_key: S3 access key ID
            secret_key: S3 secret access key
            bucket_name: S3 bucket name
            region: AWS region (default: 'us-east-1')
            prefix: Key prefix for uploaded assets
            public_base_url: URL prefix for public links (default derived from endpoint)

        Raises:
            AssetUploadError: If S3 client initialization fails
        """
        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
            )
        except NoCredentialsError as e:
            raise AssetUploadError(f"Invalid S3 credentials: {e}")
        except (BotoCoreError, ValueError) as e:
            raise AssetUploadError(f"Failed to initialize S3 client: {e}")

        self.bucket_name = bucket_name
        self.region = region
        self.prefix = prefix.strip("/")
        if public_base_url:
            self.public_base_url = public_base_url.rstrip("/")
        elif endpoint_url:
            self.public_base_url = f"{endpoint_url.rstrip('/')}/{bucket_name}"
        else:
            self.public_base_url = f"https://{bucket_name}.s3.{region}.amazonaws.com"

        logger.info(
            f"Initialized S3 asset uploader: bucket={bucket_name}, "
            f"endpoint={endpoint_url or 'AWS S3'}, region={region}"
        )

    @classmethod
    def from_settings(cls, settings) -> "S3AssetUploader":
        return cls(
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key=settings.S3_ACCESS_KEY_ID,
            secret_key=settings.S3_SECRET_ACCESS_KEY,
            bucket_name=settings.S3_BUCKET_NAME,
            region=settings.S3_REGION,
            prefix=settings.ASSET_PREFIX,
            public_base_url=settings.ASSET_PUBLIC_BASE_URL,
        )

    async def upload_file(self, local_path: Path, name: str, content_type: str) -> UploadedAsset:
        """Upload a local file to the asset bucket.

        Raises:
            AssetUploadError: If the file is missing/empty or the upload fails
        """
        local_path = Path(local_path)
        if not local_path.is_file() or local_path.stat().st_size == 0:
            raise AssetUploadError(f"Cannot upload missing or empty file: {local_path.name}")

        storage_key = f"{self.prefix}/{name}" if self.prefix else name
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._put, local_path, storage_key, content_type)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(
                f"S3 upload failed: storage_key={storage_key}, "
                f"error={error_code}, message={e}"
            )
            raise AssetUploadError(f"Failed to upload asset: {error_code}")
        except (BotoCoreError, OSError) as e:
            logger.error(f"Unexpected error during upload: {e}")
            raise AssetUploadError(f"Failed to upload asset: {e}")

        url = f"{self.public_base_url}/{storage_key}"
        logger.info(f"Uploaded asset: storage_key={storage_key}, content_type={content_type}")
        return UploadedAsset(
            file_id=storage_key,
            name=name,
            path=f"/{self.prefix}/" if self.prefix else "/",
            url=url,
        )

    def _put(self, local_path: Path, storage_key: str, content_type: str) -> None:
        with open(local_path, "rb") as fh:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=storage_key,
                Body=fh,
                ContentType=content_type,
            )
