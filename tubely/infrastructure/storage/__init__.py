"""
Object storage integration for videos, plus local thumbnail assets.

Supports S3 and S3-compatible stores via boto3.
Includes mock mode for local development without credentials.
"""

from .assets import LocalAssetStore
from .client import (
    MockStorageClient,
    S3StorageClient,
    StorageConfig,
    create_storage_client,
)

__all__ = [
    "LocalAssetStore",
    "MockStorageClient",
    "S3StorageClient",
    "StorageConfig",
    "create_storage_client",
]
