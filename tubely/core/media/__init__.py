"""
Upload pipeline domain: models, error taxonomy and the UploadService.
"""

from .errors import (
    ConcurrentUpdateError,
    DataError,
    ExternalToolError,
    ForbiddenError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    PayloadTooLargeError,
    PersistenceError,
    StorageError,
    UnauthorizedError,
    UploadError,
)
from .models import (
    Orientation,
    SignedVideo,
    StoredReference,
    Video,
    VideoGeometry,
    build_storage_key,
    classify_orientation,
    parse_media_type,
)
from .uploads import UploadConfig, UploadService

__all__ = [
    "ConcurrentUpdateError",
    "DataError",
    "ExternalToolError",
    "ForbiddenError",
    "InternalError",
    "InvalidInputError",
    "NotFoundError",
    "Orientation",
    "PayloadTooLargeError",
    "PersistenceError",
    "SignedVideo",
    "StorageError",
    "StoredReference",
    "UnauthorizedError",
    "UploadConfig",
    "UploadError",
    "UploadService",
    "Video",
    "VideoGeometry",
    "build_storage_key",
    "classify_orientation",
    "parse_media_type",
]
