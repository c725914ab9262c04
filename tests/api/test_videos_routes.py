"""
End-to-end tests for the video endpoints.

Requests go through the real app: routing, auth, multipart parsing,
UploadService and the error handlers. Only the external systems are
mocked (see conftest.py).
"""

from pathlib import Path
from uuid import uuid4

import pytest
from starlette.requests import Request

from tubely.api.routes.videos import MULTIPART_OVERHEAD_BYTES, read_multipart_form
from tubely.config.settings import get_settings
from tubely.core.media.errors import PayloadTooLargeError
from tubely.infrastructure.auth.tokens import create_access_token
from tubely.infrastructure.storage.assets import LocalAssetStore

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 2048
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 128

BOUNDARY = b"tubely-test-boundary"
MULTIPART_HEAD = (
    b"--" + BOUNDARY + b"\r\n"
    b'Content-Disposition: form-data; name="video"; filename="clip.mp4"\r\n'
    b"Content-Type: video/mp4\r\n\r\n"
)


def upload_video(client, video_id, headers, content=VIDEO_BYTES, content_type="video/mp4"):
    return client.post(
        f"/api/v1/videos/{video_id}/video",
        files={"video": ("clip.mp4", content, content_type)},
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class TestAuthentication:

    def test_missing_token_is_401(self, client):
        response = client.get("/api/v1/videos")

        assert response.status_code == 401
        assert response.json() == {"detail": "Missing Authorization header"}

    def test_invalid_token_is_401(self, client):
        response = client.get("/api/v1/videos", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_upload_without_token_is_401(self, client, video_id):
        response = upload_video(client, video_id, headers={})

        assert response.status_code == 401

    def test_unset_secret_refuses_tokens(self, client, api_env):
        api_env.setenv("JWT_SECRET", "")
        get_settings.cache_clear()
        forged = create_access_token(uuid4(), "guessed-secret")

        response = client.get("/api/v1/videos", headers={"Authorization": f"Bearer {forged}"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}


# ---------------------------------------------------------------------------
# Video Records
# ---------------------------------------------------------------------------

class TestVideoRecords:

    def test_create_returns_draft(self, client, auth_headers, user_id):
        response = client.post(
            "/api/v1/videos",
            json={"title": "Boots", "description": "About boots"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Boots"
        assert body["user_id"] == str(user_id)
        assert body["video_url"] is None
        assert body["thumbnail_url"] is None

    def test_create_requires_title(self, client, auth_headers):
        response = client.post("/api/v1/videos", json={"title": ""}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["detail"].startswith("title:")

    def test_get_own_video(self, client, auth_headers, video_id):
        response = client.get(f"/api/v1/videos/{video_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == video_id

    def test_get_other_users_video_is_403(self, client, other_user_headers, video_id):
        response = client.get(f"/api/v1/videos/{video_id}", headers=other_user_headers)

        assert response.status_code == 403
        assert "detail" in response.json()

    def test_unknown_video_is_404(self, client, auth_headers):
        response = client.get(
            "/api/v1/videos/00000000-0000-0000-0000-000000000000", headers=auth_headers
        )

        assert response.status_code == 404

    def test_malformed_video_id_is_400(self, client, auth_headers):
        response = client.get("/api/v1/videos/not-a-uuid", headers=auth_headers)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert isinstance(detail, str)
        assert detail.startswith("video_id:")

    def test_list_only_returns_callers_videos(self, client, auth_headers, other_user_headers, video_id):
        client.post("/api/v1/videos", json={"title": "Theirs"}, headers=other_user_headers)

        response = client.get("/api/v1/videos", headers=auth_headers)

        assert response.status_code == 200
        assert [v["id"] for v in response.json()] == [video_id]

    def test_delete_removes_video(self, client, auth_headers, video_id):
        upload_video(client, video_id, auth_headers)

        response = client.delete(f"/api/v1/videos/{video_id}", headers=auth_headers)

        assert response.status_code == 204
        assert client.get(f"/api/v1/videos/{video_id}", headers=auth_headers).status_code == 404

    def test_delete_by_other_user_is_403(self, client, other_user_headers, video_id):
        response = client.delete(f"/api/v1/videos/{video_id}", headers=other_user_headers)

        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Video Upload
# ---------------------------------------------------------------------------

class TestVideoUpload:

    def test_upload_returns_presigned_url_under_orientation_prefix(
        self, client, auth_headers, video_id
    ):
        response = upload_video(client, video_id, auth_headers)

        assert response.status_code == 200
        url = response.json()["video_url"]
        assert url.startswith("mock://tubely-api-test/landscape/")
        assert url.endswith(".mp4?expires=60")

    def test_reads_resolve_to_the_uploaded_object(self, client, auth_headers, video_id):
        uploaded = upload_video(client, video_id, auth_headers).json()["video_url"]

        first = client.get(f"/api/v1/videos/{video_id}", headers=auth_headers).json()["video_url"]
        second = client.get(f"/api/v1/videos/{video_id}", headers=auth_headers).json()["video_url"]

        assert first == second == uploaded

    def test_wrong_content_type_is_400(self, client, auth_headers, video_id):
        response = upload_video(client, video_id, auth_headers, content_type="video/avi")

        assert response.status_code == 400
        assert "video/mp4" in response.json()["detail"]
        assert client.get(f"/api/v1/videos/{video_id}", headers=auth_headers).json()["video_url"] is None

    def test_missing_file_field_is_400(self, client, auth_headers, video_id):
        response = client.post(
            f"/api/v1/videos/{video_id}/video",
            files={"file": ("clip.mp4", VIDEO_BYTES, "video/mp4")},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_upload_by_other_user_is_403(self, client, other_user_headers, video_id):
        response = upload_video(client, video_id, other_user_headers)

        assert response.status_code == 403

    def test_upload_to_unknown_video_is_404(self, client, auth_headers):
        response = upload_video(client, "00000000-0000-0000-0000-000000000000", auth_headers)

        assert response.status_code == 404

    def test_declared_length_over_limit_is_413(self, client, api_env, auth_headers, video_id):
        api_env.setenv("MAX_VIDEO_UPLOAD_MB", "1")
        get_settings.cache_clear()

        response = upload_video(
            client, video_id, auth_headers, content=b"\x00" * (1024 * 1024 + 1)
        )

        assert response.status_code == 413

    def test_chunked_body_over_limit_is_413(self, client, api_env, auth_headers, video_id):
        api_env.setenv("MAX_VIDEO_UPLOAD_MB", "1")
        get_settings.cache_clear()

        def chunks():
            yield MULTIPART_HEAD
            for _ in range(4):
                yield b"\x00" * (512 * 1024)
            yield b"\r\n--" + BOUNDARY + b"--\r\n"

        response = client.post(
            f"/api/v1/videos/{video_id}/video",
            content=chunks(),
            headers={
                **auth_headers,
                "Content-Type": "multipart/form-data; boundary=" + BOUNDARY.decode(),
            },
        )

        assert response.status_code == 413
        assert response.json() == {"detail": "Upload exceeds 1 MB"}
        assert client.get(f"/api/v1/videos/{video_id}", headers=auth_headers).json()["video_url"] is None

    def test_non_multipart_body_is_400(self, client, auth_headers, video_id):
        response = client.post(
            f"/api/v1/videos/{video_id}/video",
            content=VIDEO_BYTES,
            headers={**auth_headers, "Content-Type": "video/mp4"},
        )

        assert response.status_code == 400

    def test_no_temp_files_left_after_upload(self, client, auth_headers, video_id):
        upload_video(client, video_id, auth_headers)
        upload_video(client, video_id, auth_headers, content_type="video/avi")

        upload_dir = Path(get_settings().temp_dir)
        assert list(upload_dir.iterdir()) == []


# ---------------------------------------------------------------------------
# Thumbnail Upload
# ---------------------------------------------------------------------------

class TestThumbnailUpload:

    def test_thumbnail_is_served_from_assets(self, client, auth_headers, video_id):
        response = client.post(
            f"/api/v1/videos/{video_id}/thumbnail",
            files={"thumbnail": ("thumb.png", PNG_BYTES, "image/png")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        thumbnail_url = response.json()["thumbnail_url"]
        assert thumbnail_url.startswith("http://testserver/assets/")
        assert thumbnail_url.endswith(".png")

        served = client.get(thumbnail_url)
        assert served.status_code == 200
        assert served.content == PNG_BYTES

    def test_gif_thumbnail_is_400(self, client, auth_headers, video_id):
        response = client.post(
            f"/api/v1/videos/{video_id}/thumbnail",
            files={"thumbnail": ("thumb.gif", b"GIF89a", "image/gif")},
            headers=auth_headers,
        )

        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:

    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["details"]["mock_mode"]["s3"] is True

    def test_readiness_in_mock_mode(self, client, monkeypatch):
        monkeypatch.setattr(LocalAssetStore, "free_bytes", lambda self: 10 * 1024 ** 3)

        response = client.get("/health/ready")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert {c["name"] for c in body["checks"]} == {"configuration", "database", "media_tool", "assets"}

    def test_readiness_reports_missing_configuration(self, client, api_env, monkeypatch):
        monkeypatch.setattr(LocalAssetStore, "free_bytes", lambda self: 10 * 1024 ** 3)
        api_env.setenv("JWT_SECRET", "")
        get_settings.cache_clear()

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"


# ---------------------------------------------------------------------------
# Multipart Body Limit
# ---------------------------------------------------------------------------

def streaming_request(chunk_size: int):
    """A multipart Request whose body never ends, plus a count of chunks handed out."""
    sent = {"chunks": 0}

    async def receive():
        sent["chunks"] += 1
        body = MULTIPART_HEAD if sent["chunks"] == 1 else b"\x00" * chunk_size
        return {"type": "http.request", "body": body, "more_body": True}

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/v1/videos/x/video",
        "query_string": b"",
        "headers": [
            (b"content-type", b"multipart/form-data; boundary=" + BOUNDARY),
            (b"transfer-encoding", b"chunked"),
        ],
    }
    return Request(scope, receive), sent


class TestReadMultipartForm:

    @pytest.mark.asyncio
    async def test_stops_reading_once_over_the_limit(self):
        chunk_size = 64 * 1024
        max_bytes = 256 * 1024
        request, sent = streaming_request(chunk_size)

        with pytest.raises(PayloadTooLargeError):
            await read_multipart_form(request, max_bytes, 1)

        # head chunk plus just enough data chunks to cross the limit
        limit = max_bytes + MULTIPART_OVERHEAD_BYTES
        assert sent["chunks"] <= limit // chunk_size + 2

    @pytest.mark.asyncio
    async def test_body_within_limit_is_parsed(self):
        body = MULTIPART_HEAD + VIDEO_BYTES + b"\r\n--" + BOUNDARY + b"--\r\n"
        delivered = []

        async def receive():
            if delivered:
                return {"type": "http.request", "body": b"", "more_body": False}
            delivered.append(body)
            return {"type": "http.request", "body": body, "more_body": False}

        request = Request({
            "type": "http",
            "method": "POST",
            "path": "/",
            "query_string": b"",
            "headers": [(b"content-type", b"multipart/form-data; boundary=" + BOUNDARY)],
        }, receive)

        form = await read_multipart_form(request, 1024 * 1024, 1)
        try:
            upload = form["video"]
            assert upload.content_type == "video/mp4"
            assert await upload.read() == VIDEO_BYTES
        finally:
            await form.close()
