"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without S3, Snowflake or FFmpeg.
Components never read these settings directly; dependencies.py turns
them into explicit config objects at the edge.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Tubely API"
    api_version: str = "v1"

    # Authentication
    jwt_secret: str = Field(
        default="",
        description="Secret used to verify bearer tokens. Required."
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )

    # S3 Storage Configuration
    s3_bucket: str = Field(
        default="tubely-videos",
        description="Bucket that receives processed videos"
    )
    s3_region: str = Field(
        default="us-east-1",
        description="Bucket region"
    )
    s3_access_key_id: str = Field(
        default="",
        description="Access key ID. Empty means use the default AWS credential chain."
    )
    s3_secret_access_key: str = Field(
        default="",
        description="Secret access key"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint for S3-compatible stores (R2, MinIO). None means AWS S3."
    )
    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real bucket. Enables local dev without object storage."
    )
    presign_expiry_seconds: int = Field(
        default=60,
        gt=0,
        description="Lifetime of presigned video URLs handed to clients"
    )

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_database: str = Field(
        default="TUBELY",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="MEDIA",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real Snowflake connection. Enables local dev without DB."
    )

    # Media Tool
    ffmpeg_path: str = Field(
        default="ffmpeg",
        description="ffmpeg binary used for fast-start remuxing"
    )
    ffprobe_path: str = Field(
        default="ffprobe",
        description="ffprobe binary used for stream inspection"
    )
    media_tool_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Upper bound for a single ffprobe/ffmpeg run. Timeouts fail the upload."
    )
    media_tool_mock_mode: bool = Field(
        default=False,
        description="Skip FFmpeg: report 1920x1080 and copy instead of remuxing."
    )

    # Local Files
    temp_dir: Optional[str] = Field(
        default=None,
        description="Directory for upload temp files. None means the system temp dir."
    )
    assets_root: Path = Field(
        default=Path("assets"),
        description="Directory holding thumbnail files, served under /assets"
    )
    assets_base_url: str = Field(
        default="http://localhost:8091",
        description="Public origin that serves /assets"
    )

    # Upload Limits
    max_video_upload_mb: int = Field(
        default=1024,
        gt=0,
        description="Maximum video upload size in MB."
    )
    max_thumbnail_upload_mb: int = Field(
        default=10,
        gt=0,
        description="Maximum thumbnail upload size in MB."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:8091",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_video_upload_bytes(self) -> int:
        return self.max_video_upload_mb * 1024 * 1024

    @property
    def max_thumbnail_upload_bytes(self) -> int:
        return self.max_thumbnail_upload_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.jwt_secret:
            missing.append("JWT_SECRET")

        # Snowflake only required if not in mock mode
        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not self.snowflake_password and not self.snowflake_private_key_path:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        # The bucket is needed even with the default credential chain
        if not self.s3_mock_mode and not self.s3_bucket:
            missing.append("S3_BUCKET")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
