"""
Shared fixtures.

Unit tests run the real UploadService against in-memory collaborators:
the mock Snowflake connection behind the real VideoRepository, the mock
object store, the mock media tool and a LocalAssetStore in tmp_path.
Prefer real objects over mocks where practical.
"""

from pathlib import Path
from uuid import uuid4

import pytest

from tubely.core.media.models import Video
from tubely.core.media.uploads import UploadConfig, UploadService
from tubely.infrastructure.media.tool import MockMediaTool
from tubely.infrastructure.snowflake.client import MockSnowflakeConnection
from tubely.infrastructure.snowflake.repositories.videos import VideoRepository
from tubely.infrastructure.storage.assets import LocalAssetStore
from tubely.infrastructure.storage.client import MockStorageClient

ASSETS_BASE_URL = "http://localhost:8091"


@pytest.fixture
def repository() -> VideoRepository:
    return VideoRepository(MockSnowflakeConnection())


@pytest.fixture
def storage() -> MockStorageClient:
    return MockStorageClient(bucket_name="tubely-test")


@pytest.fixture
def media_tool() -> MockMediaTool:
    return MockMediaTool(width=1920, height=1080)


@pytest.fixture
def assets(tmp_path: Path) -> LocalAssetStore:
    return LocalAssetStore(root=tmp_path / "assets", base_url=ASSETS_BASE_URL)


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    """Dedicated temp dir, so tests can assert nothing is left behind."""
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def upload_config(upload_dir: Path) -> UploadConfig:
    return UploadConfig(
        max_video_bytes=1024 * 1024,
        max_thumbnail_bytes=64 * 1024,
        presign_expiry_seconds=60,
        temp_dir=str(upload_dir),
    )


@pytest.fixture
def service(repository, storage, media_tool, assets, upload_config) -> UploadService:
    return UploadService(
        videos=repository,
        storage=storage,
        media_tool=media_tool,
        assets=assets,
        config=upload_config,
    )


@pytest.fixture
def owner_id():
    return uuid4()


@pytest.fixture
def draft_video(repository: VideoRepository, owner_id) -> Video:
    return repository.create_video(
        Video(user_id=owner_id, title="Boot.dev intro", description="First upload")
    )
