"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be mocked for testing
- Configuration is centralized
- Resource lifecycle (connections, clients) is managed properly

This is also the only place that reads Settings: everything below it
receives explicit config objects.
"""

import logging
from typing import Annotated, Generator
from uuid import UUID

from fastapi import Depends, Request

from ..config.settings import Settings, get_settings
from ..core.media.uploads import MediaTool, ObjectStorage, UploadConfig, UploadService
from ..infrastructure.auth.tokens import get_bearer_token, validate_jwt
from ..infrastructure.media.tool import create_media_tool
from ..infrastructure.snowflake.client import create_snowflake_connection
from ..infrastructure.snowflake.repositories.videos import SnowflakeConfig, VideoRepository
from ..infrastructure.storage.assets import LocalAssetStore
from ..infrastructure.storage.client import StorageConfig, create_storage_client

logger = logging.getLogger(__name__)

# Global mock instances (shared across requests for testing)
_mock_storage_client = None
_mock_snowflake_connection = None


def reset_mock_state() -> None:
    """Drop the shared mock connection and storage. Used between tests."""
    global _mock_storage_client, _mock_snowflake_connection
    _mock_storage_client = None
    _mock_snowflake_connection = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def get_current_user_id(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> UUID:
    """
    Resolve the caller from the `Authorization: Bearer <jwt>` header.

    Raises UnauthorizedError (401) if the header is missing or the token
    doesn't validate. This runs before any request body is read.
    """
    token = get_bearer_token(request.headers)
    return validate_jwt(token, settings.jwt_secret, algorithm=settings.jwt_algorithm)


# ---------------------------------------------------------------------------
# Infrastructure Dependencies
# ---------------------------------------------------------------------------

def get_video_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[VideoRepository, None, None]:
    """
    Provide VideoRepository with database connection.

    This is a generator function (yields instead of returns) because
    we need to manage the connection lifecycle:
    1. Create connection
    2. Create repository
    3. Yield repository (FastAPI injects it)
    4. Close connection (cleanup after request)

    In mock mode, we reuse the same connection across requests
    so that data persists during the testing session.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            from ..infrastructure.snowflake.client import MockSnowflakeConnection
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection for session")

        yield VideoRepository(_mock_snowflake_connection)
    else:
        config = SnowflakeConfig(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password or None,
            private_key_path=settings.snowflake_private_key_path,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            warehouse=settings.snowflake_warehouse,
            role=settings.snowflake_role,
        )

        with create_snowflake_connection(config=config) as conn:
            logger.debug("Created VideoRepository with Snowflake connection")
            yield VideoRepository(conn)


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStorage:
    """
    Provide the object storage client for processed videos.

    In mock mode, we reuse the same client across requests
    so that uploaded objects persist during the testing session.
    """
    global _mock_storage_client

    config = StorageConfig(
        bucket_name=settings.s3_bucket,
        region=settings.s3_region,
        access_key_id=settings.s3_access_key_id or None,
        secret_access_key=settings.s3_secret_access_key or None,
        endpoint_url=settings.s3_endpoint_url,
    )

    if settings.s3_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(config=config, mock_mode=True)
            logger.info("Created shared mock storage client for session")
        return _mock_storage_client

    return create_storage_client(config=config)


def get_media_tool(
    settings: Annotated[Settings, Depends(get_settings)],
) -> MediaTool:
    return create_media_tool(
        mock_mode=settings.media_tool_mock_mode,
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
        timeout_seconds=settings.media_tool_timeout_seconds,
    )


def get_asset_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> LocalAssetStore:
    return LocalAssetStore(root=settings.assets_root, base_url=settings.assets_base_url)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_upload_service(
    settings: Annotated[Settings, Depends(get_settings)],
    repository: Annotated[VideoRepository, Depends(get_video_repository)],
    storage: Annotated[ObjectStorage, Depends(get_storage_client)],
    media_tool: Annotated[MediaTool, Depends(get_media_tool)],
    assets: Annotated[LocalAssetStore, Depends(get_asset_store)],
) -> UploadService:
    """
    Provide UploadService wired to this request's collaborators.

    The service is stateless, so a new instance per request costs nothing.
    """
    config = UploadConfig(
        max_video_bytes=settings.max_video_upload_bytes,
        max_thumbnail_bytes=settings.max_thumbnail_upload_bytes,
        presign_expiry_seconds=settings.presign_expiry_seconds,
        temp_dir=settings.temp_dir,
    )
    return UploadService(
        videos=repository,
        storage=storage,
        media_tool=media_tool,
        assets=assets,
        config=config,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
CurrentUser = Annotated[UUID, Depends(get_current_user_id)]
VideoRepositoryDep = Annotated[VideoRepository, Depends(get_video_repository)]
AssetStoreDep = Annotated[LocalAssetStore, Depends(get_asset_store)]
UploadServiceDep = Annotated[UploadService, Depends(get_upload_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
