"""Asset Uploader Port - Domain interface for hosting generated images.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class UploadedAsset:
    """A file published to asset hosting.

    Attributes:
        file_id: Storage key of the asset
        name: File name the asset was uploaded under
        path: Folder (key prefix) the asset lives in
        url: Public URL of the asset
    """
    file_id: str
    name: str
    path: str
    url: str


class AssetUploaderPort(ABC):
    """Port interface for publishing local files to asset hosting"""

    @abstractmethod
    async def upload_file(self, local_path: Path, name: str, content_type: str) -> UploadedAsset:
        """Upload one local file.

        Args:
            local_path: File to upload (must exist and be non-empty)
            name: File name to publish under
            content_type: MIME type of the file

        Returns:
            UploadedAsset with the public URL

        Raises:
            AssetUploadError: If the upload fails
        """
        pass
