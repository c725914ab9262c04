"""
Fixtures for exercising the HTTP API end to end.

The app runs with every external dependency in mock mode: in-memory
Snowflake, in-memory object storage and the copy-only media tool.
Settings come from environment variables, as they do in production.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tubely.api import dependencies
from tubely.config.settings import get_settings
from tubely.infrastructure.auth.tokens import create_access_token

JWT_SECRET = "api-test-secret"


@pytest.fixture
def api_env(monkeypatch, tmp_path):
    """Environment for a fully mocked app. Tests may add to it before `client`."""
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()
    env = {
        "JWT_SECRET": JWT_SECRET,
        "SNOWFLAKE_MOCK_MODE": "true",
        "S3_MOCK_MODE": "true",
        "S3_BUCKET": "tubely-api-test",
        "MEDIA_TOOL_MOCK_MODE": "true",
        "ASSETS_ROOT": str(tmp_path / "assets"),
        "ASSETS_BASE_URL": "http://testserver",
        "TEMP_DIR": str(upload_dir),
    }
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


@pytest.fixture
def client(api_env):
    get_settings.cache_clear()
    dependencies.reset_mock_state()

    from tubely.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client

    dependencies.reset_mock_state()
    get_settings.cache_clear()


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id, JWT_SECRET)}"}


@pytest.fixture
def other_user_headers():
    return {"Authorization": f"Bearer {create_access_token(uuid4(), JWT_SECRET)}"}


@pytest.fixture
def video_id(client, auth_headers) -> str:
    response = client.post(
        "/api/v1/videos",
        json={"title": "Boots", "description": "A video about boots"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()["id"]
