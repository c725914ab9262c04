"""Tests for Settings validation helpers."""

from tubely.config.settings import Settings


def make_settings(**overrides) -> Settings:
    # _env_file=None keeps a developer's .env out of the test
    return Settings(_env_file=None, **overrides)


class TestValidateRequiredFields:

    def test_mock_modes_only_need_jwt_secret(self):
        settings = make_settings(
            jwt_secret="s",
            snowflake_mock_mode=True,
            s3_mock_mode=True,
        )

        assert settings.validate_required_fields() == []

    def test_missing_jwt_secret_is_reported(self):
        settings = make_settings(jwt_secret="", snowflake_mock_mode=True, s3_mock_mode=True)

        assert settings.validate_required_fields() == ["JWT_SECRET"]

    def test_real_snowflake_needs_credentials(self):
        settings = make_settings(
            jwt_secret="s",
            snowflake_mock_mode=False,
            snowflake_account="",
            snowflake_user="",
            snowflake_password="",
            snowflake_private_key_path=None,
            s3_mock_mode=True,
        )

        missing = settings.validate_required_fields()

        assert "SNOWFLAKE_ACCOUNT" in missing
        assert "SNOWFLAKE_USER" in missing
        assert "SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH" in missing

    def test_key_file_satisfies_snowflake_auth(self):
        settings = make_settings(
            jwt_secret="s",
            snowflake_mock_mode=False,
            snowflake_account="acct",
            snowflake_user="svc",
            snowflake_password="",
            snowflake_private_key_path="/keys/rsa_key.p8",
            s3_mock_mode=True,
        )

        assert settings.validate_required_fields() == []


class TestDerivedValues:

    def test_cors_origins_are_split_and_trimmed(self):
        settings = make_settings(cors_origins="http://a.test, http://b.test ,")
        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_wildcard_cors(self):
        assert make_settings(cors_origins="*").cors_origins_list == ["*"]

    def test_upload_limits_in_bytes(self):
        settings = make_settings(max_video_upload_mb=2, max_thumbnail_upload_mb=1)

        assert settings.max_video_upload_bytes == 2 * 1024 * 1024
        assert settings.max_thumbnail_upload_bytes == 1024 * 1024

    def test_defaults_match_documented_limits(self):
        settings = make_settings()

        assert settings.max_video_upload_mb == 1024
        assert settings.max_thumbnail_upload_mb == 10
        assert settings.presign_expiry_seconds == 60
