"""
Error taxonomy for the upload pipeline.

Every failure is terminal for the request that hit it. Each error carries
the HTTP status the API layer answers with, so route handlers never have
to translate exceptions one by one.
"""


class UploadError(Exception):
    """Base class for all pipeline failures."""
    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class InvalidInputError(UploadError):
    """Malformed ID, unsupported content type or malformed multipart body."""
    status_code = 400
    public_message = "Invalid input"


class PayloadTooLargeError(InvalidInputError):
    """Upload exceeded the configured size ceiling."""
    status_code = 413
    public_message = "Upload too large"


class UnauthorizedError(UploadError):
    """Missing or invalid bearer token."""
    status_code = 401
    public_message = "Unauthorized"


class ForbiddenError(UploadError):
    """Authenticated user does not own the video."""
    status_code = 403
    public_message = "Forbidden"


class NotFoundError(UploadError):
    """Unknown video id."""
    status_code = 404
    public_message = "Video not found"


class ExternalToolError(UploadError):
    """ffprobe/ffmpeg failed, timed out or produced unparseable output."""
    public_message = "Media processing failed"


class DataError(UploadError):
    """The media tool ran but the file has no usable video stream."""
    public_message = "Media file has no usable streams"


class StorageError(UploadError):
    """Object store upload, delete or presign failure."""
    public_message = "Object storage failure"


class PersistenceError(UploadError):
    """Video record could not be read or written."""
    public_message = "Could not save video record"


class ConcurrentUpdateError(PersistenceError):
    """The record changed between read and write."""
    status_code = 409
    public_message = "Video was modified concurrently, retry the upload"


class InternalError(UploadError):
    """Local failure: temp file create, copy or seek, or missing server configuration."""
    public_message = "Internal server error"
