"""
Object storage client for processed videos.

Supports AWS S3 and any S3-compatible store (R2, MinIO) through boto3,
with a mock mode for local development.

Two operations matter to the pipeline:
- put_object: stream a local file into the bucket under a key
- get_presigned_url: turn a stored reference into a time-limited GET URL

Presigned URLs are derived on every read and never stored, because
they expire. Mock mode keeps objects in memory so the API can be
exercised without provisioning a bucket.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional

from ...core.media.errors import StorageError
from ...core.media.models import StoredReference
from ...core.media.uploads import ObjectStorage

logger = logging.getLogger(__name__)

DEFAULT_PRESIGN_EXPIRY_SECONDS = 60


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    Built once from Settings at startup and handed to the client, so
    nothing in this module reads process-wide state.
    """
    bucket_name: str
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    endpoint_url: Optional[str] = None  # None means AWS S3


class S3StorageClient(ObjectStorage):
    """
    S3 object storage client.

    boto3 is synchronous, so every call is pushed onto a worker thread
    to keep the event loop free while a large upload streams out.
    """

    def __init__(self, config: StorageConfig, s3_client=None) -> None:
        """
        Initialize S3 client with boto3.

        Args:
            config: Bucket and credentials
            s3_client: Pre-built boto3 client (tests pass a stubbed one)
        """
        self._config = config

        if s3_client is None:
            import boto3
            from botocore.config import Config

            boto_config = Config(signature_version='s3v4')

            s3_client = boto3.client(
                's3',
                endpoint_url=config.endpoint_url,
                aws_access_key_id=config.access_key_id or None,
                aws_secret_access_key=config.secret_access_key or None,
                region_name=config.region,
                config=boto_config,
            )

        self._s3_client = s3_client

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    async def put_object(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: str,
    ) -> StoredReference:
        """
        Stream a file object to the bucket.

        botocore reads the body from the file handle, so the object is
        never held in memory as a whole. S3 only makes a key visible
        once the PUT completes, so a failed upload leaves nothing behind.
        """
        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket_name,
                Key=key,
                Body=fileobj,
                ContentType=content_type,
            )
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"bucket": self._config.bucket_name, "key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}") from e

        logger.info(
            "Uploaded object",
            extra={
                "bucket": self._config.bucket_name,
                "key": key,
                "content_type": content_type,
            }
        )

        return StoredReference(bucket=self._config.bucket_name, key=key)

    async def get_presigned_url(
        self,
        ref: StoredReference,
        expiry_seconds: int = DEFAULT_PRESIGN_EXPIRY_SECONDS,
    ) -> str:
        """
        Generate a temporary download URL.

        Signing happens locally with the client's credentials; nothing in
        the bucket changes. The bucket comes from the reference, not the
        config, so objects written under an older bucket still resolve.
        """
        try:
            return await asyncio.to_thread(
                self._s3_client.generate_presigned_url,
                'get_object',
                Params={
                    'Bucket': ref.bucket,
                    'Key': ref.key,
                },
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket": ref.bucket, "key": ref.key, "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}") from e

    async def delete_object(self, ref: StoredReference) -> None:
        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=ref.bucket,
                Key=ref.key,
            )
        except Exception as e:
            logger.error(
                "Failed to delete object",
                extra={"bucket": ref.bucket, "key": ref.key, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}") from e

        logger.info("Deleted object", extra={"bucket": ref.bucket, "key": ref.key})


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient(ObjectStorage):
    """
    In-memory storage for local development.

    Objects are kept in a dict keyed by (bucket, key) and "presigned"
    URLs are mock URIs. Presigning an object that was never stored
    fails, like a real lookup would on first use.
    """

    def __init__(self, bucket_name: str = "tubely-mock") -> None:
        self._bucket_name = bucket_name
        # {(bucket, key): (content_type, bytes)}
        self.objects: dict[tuple[str, str], tuple[str, bytes]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    async def put_object(
        self,
        fileobj: BinaryIO,
        key: str,
        content_type: str,
    ) -> StoredReference:
        """Store object in memory."""
        data = fileobj.read()
        self.objects[(self._bucket_name, key)] = (content_type, data)

        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(data)}
        )

        return StoredReference(bucket=self._bucket_name, key=key)

    async def get_presigned_url(
        self,
        ref: StoredReference,
        expiry_seconds: int = DEFAULT_PRESIGN_EXPIRY_SECONDS,
    ) -> str:
        if (ref.bucket, ref.key) not in self.objects:
            raise StorageError(f"Object not found: {ref.bucket}/{ref.key}")

        return f"mock://{ref.bucket}/{ref.key}?expires={expiry_seconds}"

    async def delete_object(self, ref: StoredReference) -> None:
        self.objects.pop((ref.bucket, ref.key), None)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStorage:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        ObjectStorage implementation (S3 or Mock)
    """
    if mock_mode:
        if config is not None:
            return MockStorageClient(bucket_name=config.bucket_name)
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
