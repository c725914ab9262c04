"""
The upload-and-transcode pipeline.

UploadService drives every upload request:

    validate -> buffer to temp file -> inspect -> remux -> upload
             -> persist reference -> presign for the response

It's framework-agnostic: it takes a readable binary stream and a declared
content type, and talks to the media tool, the object store and the
video repository through the protocols below. Tests swap any of them
for in-memory doubles.

Two rules shape the code:
- A video's reference is written only after the object is stored, so a
  record never points at something that isn't there.
- Temp files belong to one request and are removed on every exit path.
"""

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass, replace
from typing import BinaryIO, Optional, Protocol
from uuid import UUID

from .errors import (
    ForbiddenError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    PayloadTooLargeError,
    PersistenceError,
    StorageError,
)
from .models import (
    THUMBNAIL_MEDIA_TYPES,
    VIDEO_MEDIA_TYPE,
    SignedVideo,
    StoredReference,
    Video,
    VideoGeometry,
    build_storage_key,
    generate_object_name,
    parse_media_type,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MB
TEMP_FILE_PREFIX = "tubely-upload-"


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class MediaTool(Protocol):
    """
    Interface for the external media tool.

    The pipeline doesn't know whether this is ffmpeg, a remote service or
    a test double returning canned geometry.
    """

    async def inspect(self, path: str) -> VideoGeometry:
        """Return the first stream's geometry."""
        ...

    async def remux_fast_start(self, path: str) -> str:
        """Write a fast-start copy of path and return the new path."""
        ...


class ObjectStorage(Protocol):
    """Interface for the object store holding processed videos."""

    @property
    def bucket_name(self) -> str:
        ...

    async def put_object(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: str,
    ) -> StoredReference:
        """Upload file contents under key and return where it lives."""
        ...

    async def get_presigned_url(
        self,
        ref: StoredReference,
        expiry_seconds: int = 60,
    ) -> str:
        """Generate temporary download URL."""
        ...

    async def delete_object(self, ref: StoredReference) -> None:
        """Remove a stored object."""
        ...


class VideoStore(Protocol):
    """Interface for video record persistence."""

    def create_video(self, video: Video) -> Video: ...
    def get_video(self, video_id: UUID) -> Optional[Video]: ...
    def list_videos_for_user(self, user_id: UUID) -> list[Video]: ...
    def update_video(self, video: Video) -> Video: ...
    def delete_video(self, video_id: UUID) -> bool: ...


class AssetStore(Protocol):
    """Interface for the local static-asset directory holding thumbnails."""

    def save(self, stream: BinaryIO, name: str, max_bytes: int) -> str: ...
    def delete(self, name: str) -> None: ...
    def name_from_url(self, url: str) -> Optional[str]: ...


# ---------------------------------------------------------------------------
# Upload Service
# ---------------------------------------------------------------------------

@dataclass
class UploadConfig:
    """Limits and locations for the pipeline, built once from Settings."""
    max_video_bytes: int
    max_thumbnail_bytes: int
    presign_expiry_seconds: int = 60
    temp_dir: Optional[str] = None  # None means the system default


def copy_stream(source: BinaryIO, destination: BinaryIO, max_bytes: int) -> int:
    """
    Copy source into destination in chunks, refusing more than max_bytes.

    Returns the number of bytes copied.
    """
    copied = 0
    while chunk := source.read(CHUNK_SIZE):
        copied += len(chunk)
        if copied > max_bytes:
            raise PayloadTooLargeError(
                f"Upload exceeds {max_bytes // (1024 * 1024)} MB"
            )
        destination.write(chunk)
    return copied


def _remove_file(path: Optional[str]) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        # Nothing else can be done for this request; surface it in the logs
        logger.error("Failed to remove temp file", extra={"path": path, "error": str(e)})


class UploadService:
    """
    The service that orchestrates uploads and record reads.

    Stateless beyond its collaborators: one instance can serve any number
    of concurrent requests. Uploads for different videos never share a
    file or a lock; uploads racing on the same video are settled by the
    repository's version check.
    """

    def __init__(
        self,
        videos: VideoStore,
        storage: ObjectStorage,
        media_tool: MediaTool,
        assets: AssetStore,
        config: UploadConfig,
    ) -> None:
        self._videos = videos
        self._storage = storage
        self._media_tool = media_tool
        self._assets = assets
        self._config = config

    # -----------------------------------------------------------------------
    # Uploads
    # -----------------------------------------------------------------------

    async def upload_video(
        self,
        user_id: UUID,
        video_id: UUID,
        stream: BinaryIO,
        content_type: Optional[str],
    ) -> SignedVideo:
        """
        Process an uploaded MP4 and attach it to the video.

        Ownership and content type are checked before a single byte of the
        payload is read. Any failure after that aborts the request; the
        reference is persisted only once the upload succeeded.
        """
        video = self.load_owned_video(user_id, video_id)

        media_type = parse_media_type(content_type)
        if media_type != VIDEO_MEDIA_TYPE:
            logger.warning(
                "Rejected video upload with unsupported type",
                extra={"video_id": str(video_id), "content_type": media_type}
            )
            raise InvalidInputError(f"Uploaded content must be of type '{VIDEO_MEDIA_TYPE}'")

        logger.info(
            "Video upload started",
            extra={"video_id": str(video_id), "user_id": str(user_id)}
        )

        temp_file = None
        processed_path = None
        try:
            try:
                temp_file = tempfile.NamedTemporaryFile(
                    mode="w+b",
                    prefix=TEMP_FILE_PREFIX,
                    suffix=".mp4",
                    dir=self._config.temp_dir,
                    delete=False,
                )
            except OSError as e:
                raise InternalError(f"Unable to create temp file: {e}") from e

            size_bytes = await self._buffer_upload(stream, temp_file, self._config.max_video_bytes)

            geometry = await self._media_tool.inspect(temp_file.name)
            orientation = geometry.orientation

            logger.info(
                "Video inspected",
                extra={
                    "video_id": str(video_id),
                    "size_bytes": size_bytes,
                    "resolution": f"{geometry.width}x{geometry.height}",
                    "orientation": orientation.value,
                }
            )

            try:
                temp_file.seek(0)
            except OSError as e:
                raise InternalError(f"Error seeking temp file: {e}") from e

            processed_path = await self._media_tool.remux_fast_start(temp_file.name)

            key = build_storage_key(orientation, media_type)
            try:
                with open(processed_path, "rb") as processed:
                    ref = await self._storage.put_object(processed, key, media_type)
            except OSError as e:
                raise InternalError(f"Unable to open processed video: {e}") from e

            try:
                updated = self._videos.update_video(replace(video, video_ref=ref))
            except PersistenceError:
                # The object stays in the bucket with nothing pointing at it
                logger.error(
                    "Uploaded video object orphaned by failed record update",
                    extra={"video_id": str(video_id), "bucket": ref.bucket, "key": ref.key}
                )
                raise

            logger.info(
                "Video upload complete",
                extra={"video_id": str(video_id), "bucket": ref.bucket, "key": ref.key}
            )

            return await self.to_signed_video(updated)

        finally:
            if temp_file is not None:
                temp_file.close()
                _remove_file(temp_file.name)
            _remove_file(processed_path)

    async def upload_thumbnail(
        self,
        user_id: UUID,
        video_id: UUID,
        stream: BinaryIO,
        content_type: Optional[str],
    ) -> SignedVideo:
        """
        Store a JPEG or PNG thumbnail as a static asset and link it.

        The asset gets a fresh random name, so replacing a thumbnail also
        changes its URL. The replaced file is removed once the record
        points at the new one.
        """
        video = self.load_owned_video(user_id, video_id)

        media_type = parse_media_type(content_type)
        if media_type not in THUMBNAIL_MEDIA_TYPES:
            raise InvalidInputError("Thumbnail must be a JPEG or PNG image")

        name = generate_object_name(media_type)
        url = await asyncio.to_thread(
            self._assets.save, stream, name, self._config.max_thumbnail_bytes
        )

        previous_url = video.thumbnail_url
        try:
            updated = self._videos.update_video(replace(video, thumbnail_url=url))
        except PersistenceError:
            self._assets.delete(name)
            raise

        if previous_url:
            previous_name = self._assets.name_from_url(previous_url)
            if previous_name:
                self._assets.delete(previous_name)

        logger.info(
            "Thumbnail uploaded",
            extra={"video_id": str(video_id), "thumbnail_url": url}
        )

        return await self.to_signed_video(updated)

    # -----------------------------------------------------------------------
    # Records
    # -----------------------------------------------------------------------

    async def to_signed_video(self, video: Video) -> SignedVideo:
        """
        Attach a freshly presigned URL for the stored video, if any.

        Called on every path that hands a video to a client. The URL is
        short-lived and never written back.
        """
        if video.video_ref is None:
            return SignedVideo(video=video, video_url=None)

        url = await self._storage.get_presigned_url(
            video.video_ref,
            expiry_seconds=self._config.presign_expiry_seconds,
        )
        return SignedVideo(video=video, video_url=url)

    def create_video(self, user_id: UUID, title: str, description: str = "") -> Video:
        if not title.strip():
            raise InvalidInputError("Title cannot be empty")

        video = Video(user_id=user_id, title=title.strip(), description=description)
        return self._videos.create_video(video)

    async def get_video(self, user_id: UUID, video_id: UUID) -> SignedVideo:
        video = self.load_owned_video(user_id, video_id)
        return await self.to_signed_video(video)

    async def list_videos(self, user_id: UUID) -> list[SignedVideo]:
        videos = self._videos.list_videos_for_user(user_id)
        return [await self.to_signed_video(video) for video in videos]

    async def delete_video(self, user_id: UUID, video_id: UUID) -> None:
        """
        Delete a video record, then its stored object and thumbnail.

        The record goes first: an object without a record is harmless,
        a record pointing at a deleted object is not.
        """
        video = self.load_owned_video(user_id, video_id)

        if not self._videos.delete_video(video_id):
            raise NotFoundError(f"Video {video_id} not found")

        if video.video_ref is not None:
            try:
                await self._storage.delete_object(video.video_ref)
            except StorageError:
                logger.error(
                    "Video object left orphaned after record delete",
                    extra={
                        "video_id": str(video_id),
                        "bucket": video.video_ref.bucket,
                        "key": video.video_ref.key,
                    }
                )

        if video.thumbnail_url:
            name = self._assets.name_from_url(video.thumbnail_url)
            if name:
                self._assets.delete(name)

        logger.info("Deleted video", extra={"video_id": str(video_id)})

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def load_owned_video(self, user_id: UUID, video_id: UUID) -> Video:
        video = self._videos.get_video(video_id)
        if video is None:
            raise NotFoundError(f"Video {video_id} not found")

        if not video.is_owned_by(user_id):
            logger.warning(
                "Video access by non-owner",
                extra={"video_id": str(video_id), "user_id": str(user_id)}
            )
            raise ForbiddenError("Video does not belong to user")

        return video

    async def _buffer_upload(
        self,
        stream: BinaryIO,
        temp_file: BinaryIO,
        max_bytes: int,
    ) -> int:
        """Copy the inbound stream to the temp file and flush it to disk."""
        def _copy() -> int:
            copied = copy_stream(stream, temp_file, max_bytes)
            temp_file.flush()
            return copied

        try:
            return await asyncio.to_thread(_copy)
        except OSError as e:
            raise InternalError(f"Unable to copy upload to temp file: {e}") from e
