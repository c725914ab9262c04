"""
Video API endpoints.

Handles the upload workflow:
1. Client creates a draft video (POST "")
2. Client uploads the MP4 (POST /{video_id}/video)
3. Optionally uploads a thumbnail (POST /{video_id}/thumbnail)
4. Reads return a freshly presigned video URL every time

Upload endpoints take the raw Request and parse the multipart body
themselves, so authentication, ownership and the Content-Length ceiling
are all checked before the body is read. The same ceiling is counted
against the bytes actually received, which covers chunked bodies.
"""

import logging
from datetime import datetime
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel, Field
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from ...core.media.errors import InvalidInputError, PayloadTooLargeError
from ...core.media.models import SignedVideo
from ..dependencies import CurrentUser, SettingsDep, UploadServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()

VIDEO_FIELD = "video"
THUMBNAIL_FIELD = "thumbnail"

# Room for boundaries and part headers on top of the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateVideoRequest(BaseModel):
    """Request to create a draft video."""
    title: str = Field(min_length=1, max_length=500, description="Video title")
    description: str = Field(default="", max_length=5000, description="Video description")


class VideoResponse(BaseModel):
    """A video as returned to clients."""
    id: UUID = Field(description="Video identifier")
    user_id: UUID = Field(description="Owner of the video")
    title: str
    description: str
    video_url: Optional[str] = Field(
        default=None,
        description="Presigned download URL, short-lived. Null until a video is uploaded."
    )
    thumbnail_url: Optional[str] = Field(default=None, description="Public thumbnail URL")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_signed(cls, signed: SignedVideo) -> "VideoResponse":
        video = signed.video
        return cls(
            id=video.id,
            user_id=video.user_id,
            title=video.title,
            description=video.description,
            video_url=signed.video_url,
            thumbnail_url=video.thumbnail_url,
            created_at=video.created_at,
            updated_at=video.updated_at,
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft video",
)
async def create_video(
    body: CreateVideoRequest,
    user_id: CurrentUser,
    service: UploadServiceDep,
) -> VideoResponse:
    video = service.create_video(user_id, body.title, body.description)

    logger.info(
        "Created video",
        extra={"video_id": str(video.id), "user_id": str(user_id)}
    )

    return VideoResponse.from_signed(SignedVideo(video=video))


@router.get(
    "",
    response_model=list[VideoResponse],
    summary="List the caller's videos",
)
async def list_videos(
    user_id: CurrentUser,
    service: UploadServiceDep,
) -> list[VideoResponse]:
    videos = await service.list_videos(user_id)
    return [VideoResponse.from_signed(v) for v in videos]


@router.get(
    "/{video_id}",
    response_model=VideoResponse,
    summary="Get a video with a fresh download URL",
)
async def get_video(
    video_id: UUID,
    user_id: CurrentUser,
    service: UploadServiceDep,
) -> VideoResponse:
    signed = await service.get_video(user_id, video_id)
    return VideoResponse.from_signed(signed)


@router.delete(
    "/{video_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete a video and its stored files",
)
async def delete_video(
    video_id: UUID,
    user_id: CurrentUser,
    service: UploadServiceDep,
) -> Response:
    await service.delete_video(user_id, video_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{video_id}/video",
    response_model=VideoResponse,
    summary="Upload the video file",
    description=(
        "Multipart upload with the MP4 in the `video` field. The file is "
        "remuxed for fast start and stored under an orientation prefix."
    ),
)
async def upload_video(
    video_id: UUID,
    request: Request,
    user_id: CurrentUser,
    service: UploadServiceDep,
    settings: SettingsDep,
) -> VideoResponse:
    _reject_oversized(request, settings.max_video_upload_bytes, settings.max_video_upload_mb)
    service.load_owned_video(user_id, video_id)

    form = await read_multipart_form(
        request, settings.max_video_upload_bytes, settings.max_video_upload_mb
    )
    try:
        upload = _get_upload(form, VIDEO_FIELD)
        signed = await service.upload_video(
            user_id,
            video_id,
            upload.file,
            upload.content_type,
        )
    finally:
        await form.close()

    return VideoResponse.from_signed(signed)


@router.post(
    "/{video_id}/thumbnail",
    response_model=VideoResponse,
    summary="Upload a thumbnail image",
    description="Multipart upload with a JPEG or PNG in the `thumbnail` field.",
)
async def upload_thumbnail(
    video_id: UUID,
    request: Request,
    user_id: CurrentUser,
    service: UploadServiceDep,
    settings: SettingsDep,
) -> VideoResponse:
    _reject_oversized(
        request, settings.max_thumbnail_upload_bytes, settings.max_thumbnail_upload_mb
    )
    service.load_owned_video(user_id, video_id)

    form = await read_multipart_form(
        request, settings.max_thumbnail_upload_bytes, settings.max_thumbnail_upload_mb
    )
    try:
        upload = _get_upload(form, THUMBNAIL_FIELD)
        signed = await service.upload_thumbnail(
            user_id,
            video_id,
            upload.file,
            upload.content_type,
        )
    finally:
        await form.close()

    return VideoResponse.from_signed(signed)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _reject_oversized(request: Request, max_bytes: int, max_mb: int) -> None:
    """413 when the declared body size is over the ceiling."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_bytes:
        logger.warning(
            "Rejected oversized upload",
            extra={"path": request.url.path, "content_length": int(content_length)}
        )
        raise PayloadTooLargeError(f"Upload exceeds {max_mb} MB")


async def _limited_body(
    request: Request, max_bytes: int, max_mb: int
) -> AsyncGenerator[bytes, None]:
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_bytes + MULTIPART_OVERHEAD_BYTES:
            logger.warning(
                "Rejected oversized upload while receiving",
                extra={"path": request.url.path, "received_bytes": received}
            )
            raise PayloadTooLargeError(f"Upload exceeds {max_mb} MB")
        yield chunk


async def read_multipart_form(request: Request, max_bytes: int, max_mb: int) -> FormData:
    """
    Parse a multipart body, stopping as soon as it grows past the ceiling.

    request.form() would spool the whole body before anything could check
    its size, so the parser is fed a counted stream instead. The caller
    closes the returned form.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data"):
        raise InvalidInputError("Expected a multipart/form-data body")

    parser = MultiPartParser(
        request.headers,
        _limited_body(request, max_bytes, max_mb),
        max_files=1,
    )
    try:
        return await parser.parse()
    except MultiPartException as e:
        raise InvalidInputError(f"Malformed multipart body: {e.message}") from e


def _get_upload(form, field_name: str) -> UploadFile:
    upload = form.get(field_name)
    if not isinstance(upload, UploadFile):
        raise InvalidInputError(f"Multipart field '{field_name}' with a file is required")
    return upload
