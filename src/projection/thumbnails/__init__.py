"""Thumbnail storage and asset:// references."""

from projection.thumbnails.manager import (
    MAX_FILE_SIZE,
    SUPPORTED_MIME_TYPES,
    ImageUpload,
    ThumbnailManager,
    validate_upload,
)
from projection.thumbnails.refs import (
    SUPPORTED_EXTENSIONS,
    FinalAssetRef,
    TempAssetRef,
    parse_asset_ref,
)

__all__ = [
    "MAX_FILE_SIZE",
    "SUPPORTED_EXTENSIONS",
    "SUPPORTED_MIME_TYPES",
    "FinalAssetRef",
    "ImageUpload",
    "TempAssetRef",
    "ThumbnailManager",
    "parse_asset_ref",
    "validate_upload",
]
