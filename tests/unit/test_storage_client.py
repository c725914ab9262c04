"""
Tests for the object storage clients and the local asset store.

S3StorageClient runs against a real boto3 client with botocore's
Stubber in front of it, so request parameters are validated against
the S3 service model without any network traffic.
"""

import io

import boto3
import pytest
from botocore.config import Config
from botocore.stub import ANY, Stubber

from tubely.core.media.errors import PayloadTooLargeError, StorageError
from tubely.core.media.models import StoredReference
from tubely.infrastructure.storage.assets import LocalAssetStore
from tubely.infrastructure.storage.client import (
    MockStorageClient,
    S3StorageClient,
    StorageConfig,
    create_storage_client,
)

BUCKET = "tubely-test"
KEY = "landscape/abc123.mp4"


@pytest.fixture
def s3():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        config=Config(signature_version="s3v4"),
    )


@pytest.fixture
def client(s3) -> S3StorageClient:
    return S3StorageClient(StorageConfig(bucket_name=BUCKET), s3_client=s3)


# ---------------------------------------------------------------------------
# S3 Client Tests
# ---------------------------------------------------------------------------

class TestS3StorageClient:

    @pytest.mark.asyncio
    async def test_put_object_streams_file_to_configured_bucket(self, client, s3):
        body = io.BytesIO(b"mp4 bytes")

        with Stubber(s3) as stubber:
            stubber.add_response(
                "put_object",
                {},
                {"Bucket": BUCKET, "Key": KEY, "Body": body, "ContentType": "video/mp4"},
            )
            ref = await client.put_object(body, KEY, "video/mp4")
            stubber.assert_no_pending_responses()

        assert ref == StoredReference(bucket=BUCKET, key=KEY)

    @pytest.mark.asyncio
    async def test_put_object_failure_is_storage_error(self, client, s3):
        with Stubber(s3) as stubber:
            stubber.add_client_error(
                "put_object",
                service_error_code="AccessDenied",
                http_status_code=403,
                expected_params={"Bucket": BUCKET, "Key": KEY, "Body": ANY, "ContentType": "video/mp4"},
            )
            with pytest.raises(StorageError, match="AccessDenied"):
                await client.put_object(io.BytesIO(b"x"), KEY, "video/mp4")

    @pytest.mark.asyncio
    async def test_presigned_url_targets_stored_reference(self, client):
        url = await client.get_presigned_url(
            StoredReference(bucket="older-bucket", key=KEY),
            expiry_seconds=60,
        )

        assert "older-bucket" in url
        assert KEY in url
        assert "X-Amz-Expires=60" in url
        assert "X-Amz-Signature=" in url

    @pytest.mark.asyncio
    async def test_presigning_same_reference_twice_targets_same_object(self, client):
        ref = StoredReference(bucket=BUCKET, key=KEY)

        first = await client.get_presigned_url(ref)
        second = await client.get_presigned_url(ref)

        assert first.split("?")[0] == second.split("?")[0]

    @pytest.mark.asyncio
    async def test_delete_object(self, client, s3):
        with Stubber(s3) as stubber:
            stubber.add_response("delete_object", {}, {"Bucket": BUCKET, "Key": KEY})
            await client.delete_object(StoredReference(bucket=BUCKET, key=KEY))
            stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_delete_failure_is_storage_error(self, client, s3):
        with Stubber(s3) as stubber:
            stubber.add_client_error("delete_object", service_error_code="NoSuchBucket", http_status_code=404)
            with pytest.raises(StorageError):
                await client.delete_object(StoredReference(bucket=BUCKET, key=KEY))


# ---------------------------------------------------------------------------
# Mock Client Tests
# ---------------------------------------------------------------------------

class TestMockStorageClient:

    @pytest.mark.asyncio
    async def test_round_trip(self):
        storage = MockStorageClient(bucket_name=BUCKET)

        ref = await storage.put_object(io.BytesIO(b"data"), KEY, "video/mp4")
        url = await storage.get_presigned_url(ref, expiry_seconds=30)

        assert storage.objects[(BUCKET, KEY)] == ("video/mp4", b"data")
        assert url == f"mock://{BUCKET}/{KEY}?expires=30"

    @pytest.mark.asyncio
    async def test_presigning_missing_object_fails(self):
        storage = MockStorageClient()

        with pytest.raises(StorageError, match="not found"):
            await storage.get_presigned_url(StoredReference(bucket="tubely-mock", key=KEY))

    def test_factory_mock_mode_uses_configured_bucket(self):
        storage = create_storage_client(StorageConfig(bucket_name=BUCKET), mock_mode=True)

        assert isinstance(storage, MockStorageClient)
        assert storage.bucket_name == BUCKET

    def test_factory_requires_config_outside_mock_mode(self):
        with pytest.raises(ValueError, match="config is required"):
            create_storage_client()


# ---------------------------------------------------------------------------
# Local Asset Store Tests
# ---------------------------------------------------------------------------

class TestLocalAssetStore:

    def test_save_returns_public_url(self, tmp_path):
        store = LocalAssetStore(root=tmp_path / "assets", base_url="http://localhost:8091/")

        url = store.save(io.BytesIO(b"png"), "abc.png", max_bytes=1024)

        assert url == "http://localhost:8091/assets/abc.png"
        assert (tmp_path / "assets" / "abc.png").read_bytes() == b"png"

    def test_name_from_url_only_accepts_own_urls(self, tmp_path):
        store = LocalAssetStore(root=tmp_path, base_url="http://localhost:8091")

        assert store.name_from_url("http://localhost:8091/assets/abc.png") == "abc.png"
        assert store.name_from_url("https://cdn.example.com/assets/abc.png") is None
        assert store.name_from_url("http://localhost:8091/assets/../secret") is None

    def test_oversized_asset_is_not_kept(self, tmp_path):
        store = LocalAssetStore(root=tmp_path, base_url="http://localhost:8091")

        with pytest.raises(PayloadTooLargeError):
            store.save(io.BytesIO(b"x" * 11), "big.png", max_bytes=10)

        assert not (tmp_path / "big.png").exists()

    def test_delete_missing_asset_is_a_no_op(self, tmp_path):
        store = LocalAssetStore(root=tmp_path, base_url="http://localhost:8091")
        store.delete("never-written.png")
