"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden for testing
- Configuration is centralized
- Resource lifecycle (connections, clients) is managed properly

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Generator, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, get_settings
from ..core.media.pipeline import VideoUploadPipeline
from ..infrastructure.snowflake.client import MockSnowflakeConnection, create_snowflake_connection
from ..infrastructure.snowflake.repositories.videos import SnowflakeConfig, VideoRepository
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client
from ..infrastructure.video.processor import VideoProcessor, create_video_processor
from .auth import InvalidTokenError, decode_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Global mock instances (shared across requests for testing)
_mock_storage_client = None
_mock_snowflake_connection = None
_video_processor = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_bearer_token(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> UUID:
    """
    Validate the bearer token and return the caller's user id.

    Raises 401 if the token is missing, expired or doesn't verify.
    """
    if not credentials:
        logger.warning("Request missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't find JWT",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return decode_token(
            credentials.credentials,
            settings.jwt_secret,
            settings.jwt_algorithm,
        )
    except InvalidTokenError as e:
        logger.warning("Invalid bearer token", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't validate JWT",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_video_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[VideoRepository, None, None]:
    """
    Provide VideoRepository with database connection.

    This is a generator function because we need to manage the
    connection lifecycle: open, yield the repository, close after
    the request.

    In mock mode, we reuse the same connection across requests
    so that data persists during the testing session.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection for session")

        yield VideoRepository(_mock_snowflake_connection)
    else:
        config = SnowflakeConfig(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password or None,
            private_key_path=settings.snowflake_private_key_path,
            private_key_base64=settings.snowflake_private_key_base64,
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
) -> StorageClient:
    """
    Provide storage client for video uploads and presigning.

    In mock mode, we reuse the same client across requests
    so that uploaded objects persist during the testing session.
    """
    global _mock_storage_client

    if settings.s3_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client for session")
        return _mock_storage_client

    config = StorageConfig(
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        region=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
    )
    return create_storage_client(config=config)


def get_video_processor(
    settings: Annotated[Settings, Depends(get_settings)],
) -> VideoProcessor:
    """
    Provide the ffmpeg-backed processor.

    Created once per process: the constructor checks that ffmpeg runs.
    """
    global _video_processor

    if _video_processor is None:
        _video_processor = create_video_processor(
            mock_mode=settings.media_mock_mode,
            ffmpeg_path=settings.ffmpeg_path,
            ffprobe_path=settings.ffprobe_path,
        )
    return _video_processor


def get_upload_pipeline(
    settings: Annotated[Settings, Depends(get_settings)],
    repository: Annotated[VideoRepository, Depends(get_video_repository)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
    processor: Annotated[VideoProcessor, Depends(get_video_processor)],
) -> VideoUploadPipeline:
    """Assemble the upload pipeline for this request."""
    return VideoUploadPipeline(
        config=settings.pipeline_config(),
        videos=repository,
        storage=storage,
        inspector=processor,
        remuxer=processor,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[UUID, Depends(verify_bearer_token)]
VideoRepositoryDep = Annotated[VideoRepository, Depends(get_video_repository)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
UploadPipelineDep = Annotated[VideoUploadPipeline, Depends(get_upload_pipeline)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
