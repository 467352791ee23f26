"""Asset hosting domain - uploader port"""

from .ports import AssetUploaderPort, UploadedAsset

__all__ = ["AssetUploaderPort", "UploadedAsset"]
