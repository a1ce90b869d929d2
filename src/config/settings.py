"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without external services.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.media.pipeline import PipelineConfig, UrlMode


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Video Upload API"
    api_version: str = "v1"

    # Authentication
    jwt_secret: str = Field(
        default="",
        description="HMAC secret used to sign and verify bearer tokens."
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm."
    )
    access_token_expire_minutes: int = Field(
        default=60,
        description="Lifetime of tokens minted by scripts/issue_token.py."
    )

    # S3 Storage Configuration
    s3_bucket: str = Field(
        default="video-uploads",
        description="Bucket that processed videos are uploaded to"
    )
    s3_region: str = Field(
        default="us-east-1",
        description="Bucket region. Also used to build static object URLs."
    )
    s3_access_key_id: str = Field(
        default="",
        description="S3 access key ID"
    )
    s3_secret_access_key: str = Field(
        default="",
        description="S3 secret access key"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible storage (MinIO, R2). Leave unset for AWS."
    )
    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real S3. Enables local dev without object storage."
    )

    # Video URL resolution
    video_url_mode: Literal["signed", "static", "cdn"] = Field(
        default="signed",
        description=(
            "How uploaded videos are referenced. 'signed' stores bucket,key and "
            "presigns on every read; 'static' stores the public S3 URL; 'cdn' "
            "stores a URL on cdn_distribution_host."
        )
    )
    cdn_distribution_host: str = Field(
        default="",
        description="CDN host in front of the bucket, e.g. d111111abcdef8.cloudfront.net"
    )
    presign_expiry_seconds: int = Field(
        default=5,
        description="Presigned URL lifetime. Short on purpose: URLs are re-resolved on every read."
    )

    # Media tools
    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg binary")
    ffprobe_path: str = Field(default="ffprobe", description="ffprobe binary")
    media_mock_mode: bool = Field(
        default=False,
        description="Use a mock processor instead of ffmpeg. Enables local dev without FFmpeg installed."
    )

    # Upload limits
    upload_temp_dir: Optional[str] = Field(
        default=None,
        description="Directory for staged and processed temp files. System temp dir if unset."
    )
    max_video_upload_mb: int = Field(
        default=1024,
        description="Maximum video upload size in MB."
    )
    max_thumbnail_upload_mb: int = Field(
        default=10,
        description="Maximum thumbnail upload size in MB."
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
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="Base64-encoded private key (for deployment, alternative to file path)"
    )
    snowflake_database: str = Field(
        default="MEDIA",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="PUBLIC",
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

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
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

    def pipeline_config(self) -> PipelineConfig:
        """
        Snapshot the settings the upload pipeline needs.

        The pipeline never reads Settings directly, so it can be built
        with any configuration in tests.
        """
        return PipelineConfig(
            bucket=self.s3_bucket,
            region=self.s3_region,
            url_mode=UrlMode(self.video_url_mode),
            cdn_distribution_host=self.cdn_distribution_host,
            presign_expiry_seconds=self.presign_expiry_seconds,
            max_video_bytes=self.max_video_upload_mb * 1024 * 1024,
            max_thumbnail_bytes=self.max_thumbnail_upload_mb * 1024 * 1024,
            temp_dir=self.upload_temp_dir,
        )

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

        if not self.s3_bucket:
            missing.append("S3_BUCKET")

        if self.video_url_mode == "cdn" and not self.cdn_distribution_host:
            missing.append("CDN_DISTRIBUTION_HOST")

        # Snowflake only required if not in mock mode
        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            # Need either password or private key
            if not (
                self.snowflake_password
                or self.snowflake_private_key_path
                or self.snowflake_private_key_base64
            ):
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        # S3 credentials only required if not in mock mode
        if not self.s3_mock_mode:
            if not self.s3_access_key_id:
                missing.append("S3_ACCESS_KEY_ID")
            if not self.s3_secret_access_key:
                missing.append("S3_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
