"""
Domain models for uploaded media.

These models have no dependencies on FastAPI, boto3 or Snowflake. The
upload pipeline and the repositories translate to and from them.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from .errors import InvalidInputError

VIDEO_MEDIA_TYPE = "video/mp4"
THUMBNAIL_MEDIA_TYPES = ("image/jpeg", "image/png")

# 32 random bytes, URL-safe base64 without padding
KEY_ENTROPY_BYTES = 32


class Orientation(Enum):
    """Aspect bucket used only as a storage key prefix."""
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


def classify_orientation(width: int, height: int) -> Orientation:
    """
    Classify stream geometry into an orientation bucket.

    Coarse heuristic: the ratio is rounded to the nearest integer once it
    is expressed in the target aspect's units, so 1000x563 still counts as
    16:9 while 4:3 and 1:1 fall through to OTHER.
    """
    if width <= 0 or height <= 0:
        raise ValueError("Width and height must be positive")

    if round(width * 9 / height) == 16:
        return Orientation.LANDSCAPE
    if round(width * 16 / height) == 9:
        return Orientation.PORTRAIT
    return Orientation.OTHER


@dataclass(frozen=True)
class VideoGeometry:
    """Width and height of the first stream reported by the media tool."""
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Stream dimensions must be positive")

    @property
    def orientation(self) -> Orientation:
        return classify_orientation(self.width, self.height)


@dataclass(frozen=True)
class StoredReference:
    """
    Location of an object in the object store.

    Kept as two fields rather than one delimited string so a key can
    contain any character the store accepts.
    """
    bucket: str
    key: str

    def __post_init__(self) -> None:
        if not self.bucket:
            raise ValueError("Stored reference bucket cannot be empty")
        if not self.key:
            raise ValueError("Stored reference key cannot be empty")


@dataclass
class Video:
    """
    A video record owned by a single user.

    video_ref is only ever set after the object it names was stored.
    version increments on every successful update and guards against
    two uploads to the same video overwriting each other silently.
    """
    user_id: UUID
    id: UUID = field(default_factory=uuid4)
    title: str = ""
    description: str = ""
    video_ref: Optional[StoredReference] = None
    thumbnail_url: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    version: int = 0

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.user_id == user_id

    @property
    def has_video(self) -> bool:
        return self.video_ref is not None


@dataclass
class SignedVideo:
    """
    A video as handed to clients, with a freshly presigned URL.

    Never persisted: the URL expires.
    """
    video: Video
    video_url: Optional[str] = None


# ---------------------------------------------------------------------------
# Media types and storage keys
# ---------------------------------------------------------------------------

def parse_media_type(content_type: Optional[str]) -> str:
    """
    Normalize a declared Content-Type to its bare media type.

    Parameters such as charset are dropped. Only the declared type is
    checked; the payload itself is never sniffed.
    """
    if not content_type:
        raise InvalidInputError("Missing Content-Type for uploaded file")

    media_type = content_type.split(";", 1)[0].strip().lower()
    main_type, _, subtype = media_type.partition("/")
    if not main_type or not subtype or "/" in subtype:
        raise InvalidInputError(f"Malformed Content-Type: {content_type}")

    return media_type


def extension_for(media_type: str) -> str:
    """File extension implied by a media type's subtype (image/png -> png)."""
    return media_type.rsplit("/", 1)[-1]


def generate_object_name(media_type: str) -> str:
    """Random, URL-safe object name with the media type's extension."""
    token = secrets.token_urlsafe(KEY_ENTROPY_BYTES)
    return f"{token}.{extension_for(media_type)}"


def build_storage_key(orientation: Orientation, media_type: str) -> str:
    """Storage key for a video: <orientation>/<random>.<subtype>."""
    return f"{orientation.value}/{generate_object_name(media_type)}"
