"""
Object storage client for processed videos.

Talks to AWS S3 (or any S3-compatible endpoint) through boto3, with a mock
mode for local development.

Two ways to hand a stored object back to a player:
- a permanent URL, for public-read buckets or a CDN in front of the bucket
- a short-lived presigned URL, for private buckets

Which one is used is a deployment choice made in the pipeline config. This
client only knows how to upload and how to presign.

Mock mode stores objects in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from ...core.media.errors import SigningError, StoreUploadError

logger = logging.getLogger(__name__)


@dataclass
class StorageConfig:
    """
    Configuration for S3/S3-compatible storage.

    endpoint_url is only set for S3-compatible services (MinIO, R2);
    plain AWS derives the endpoint from the region.
    """
    access_key_id: str
    secret_access_key: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def upload_file(
        self,
        path: str,
        bucket: str,
        key: str,
        content_type: str,
    ) -> None:
        """Upload a local file's bytes under bucket/key."""
        ...

    async def get_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int,
    ) -> str:
        """Generate temporary download URL."""
        ...


class S3StorageClient:
    """
    S3 object storage client.

    Uses boto3, which is synchronous, so every call runs through
    asyncio.to_thread to keep the event loop free during large uploads.
    No retries beyond botocore's own defaults; failures surface as
    StoreUploadError / SigningError.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize S3 client with boto3.

        We import boto3 here (not at module level) because:
        - Mock mode doesn't need it
        - Explicit about when the dependency is required
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config

        # v4 signatures everywhere; virtual-hosted URLs on AWS so presigned
        # URLs look like https://<bucket>.s3.<region>.amazonaws.com/<key>
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path' if config.endpoint_url else 'virtual'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 storage client",
            extra={
                "region": config.region,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    async def upload_file(
        self,
        path: str,
        bucket: str,
        key: str,
        content_type: str,
    ) -> None:
        """
        Stream a local file to S3.

        The body is the open file handle, so boto3 reads it in chunks
        instead of loading the whole video into memory.
        """
        try:
            await asyncio.to_thread(self._put_file, path, bucket, key, content_type)
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StoreUploadError(f"Upload failed: {e}") from e

        logger.info(
            "Uploaded object",
            extra={"bucket": bucket, "key": key, "content_type": content_type}
        )

    def _put_file(self, path: str, bucket: str, key: str, content_type: str) -> None:
        with open(path, "rb") as body:
            self._s3_client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )

    async def get_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int,
    ) -> str:
        """
        Generate a presigned GET URL.

        Signing is local (no network call), but a missing or broken
        credential chain still fails here. That failure is surfaced as
        SigningError, never replaced with an unsigned URL.
        """
        try:
            return await asyncio.to_thread(
                self._s3_client.generate_presigned_url,
                'get_object',
                Params={'Bucket': bucket, 'Key': key},
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise SigningError(f"Presigned URL generation failed: {e}") from e


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    This mock enables testing the full API flow without provisioning
    real object storage. Objects are stored in a dictionary and "URLs"
    are mock URIs whose path is still bucket/key.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(self) -> None:
        # {(bucket, key): (body, content_type)}
        self._objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    async def upload_file(
        self,
        path: str,
        bucket: str,
        key: str,
        content_type: str,
    ) -> None:
        """Store file bytes in memory."""
        try:
            with open(path, "rb") as f:
                body = f.read()
        except OSError as e:
            raise StoreUploadError(f"Mock upload failed: {e}") from e

        self._objects[(bucket, key)] = (body, content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": len(body)}
        )

    async def get_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int,
    ) -> str:
        """Return a mock URL for the object."""
        return f"mock://storage/{bucket}/{key}?expires={expiry_seconds}"

    # Helper methods for testing
    def _get_object(self, bucket: str, key: str) -> Optional[tuple[bytes, str]]:
        """Get stored body and content type (for test assertions)."""
        return self._objects.get((bucket, key))

    def _keys(self) -> list[str]:
        """All stored keys (for test assertions)."""
        return [key for (_, key) in self._objects]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
