"""
Object storage integration for processed videos.

Supports AWS S3 and S3-compatible services via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockStorageClient,
    S3StorageClient,
    StorageClient,
    StorageConfig,
    create_storage_client,
)

__all__ = [
    "MockStorageClient",
    "S3StorageClient",
    "StorageClient",
    "StorageConfig",
    "create_storage_client",
]
