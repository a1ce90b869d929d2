"""
Video upload pipeline.

Drives one upload from the request body to a stored, playable object:

1. Check the caller owns the video record
2. Validate the upload field and its declared content type
3. Stage the bytes in a temp file
4. Probe the aspect ratio with ffprobe
5. Remux for fast start with ffmpeg
6. Derive a storage key from the orientation
7. Upload to object storage
8. Persist the new reference on the record
9. Resolve a playable URL for the response

Every temp file is removed when the request ends, whatever step failed.
Each removal is registered on an ExitStack as soon as its file exists, so
there is no per-branch cleanup to forget.

The pipeline knows nothing about FastAPI, boto3 or ffmpeg. Its collaborators
come in through the protocols below and its settings through PipelineConfig.
"""

import asyncio
import base64
import dataclasses
import logging
import os
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Protocol
from uuid import UUID

from .errors import (
    ForbiddenError,
    PayloadTooLargeError,
    PersistenceError,
    ProbeError,
    ProcessingError,
    RemuxError,
    StagingError,
    StoreUploadError,
)
from .keys import derive_storage_key
from .models import Orientation, StorageLocation, StreamMetadata, Video
from .uploads import UploadedFile, accept_upload

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024  # 1 MB


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class MediaInspector(Protocol):
    """Reads stream metadata from a local media file."""

    async def inspect(self, path: str) -> StreamMetadata:
        ...


class Remuxer(Protocol):
    """Rewrites a container for fast start, returning the new file's path."""

    async def remux(self, path: str) -> str:
        ...


class ObjectStore(Protocol):
    """Durable object storage."""

    async def upload_file(
        self,
        path: str,
        bucket: str,
        key: str,
        content_type: str,
    ) -> None:
        ...

    async def get_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int,
    ) -> str:
        ...


class VideoStore(Protocol):
    """Video metadata records."""

    def get_video(self, video_id: UUID) -> Video:
        ...

    def update_video(self, video: Video) -> None:
        ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class UrlMode(Enum):
    """How a stored object is referenced from its video record."""
    SIGNED = "signed"  # store "bucket,key", presign on every read
    STATIC = "static"  # store the public S3 URL
    CDN = "cdn"        # store a URL on the CDN distribution host


@dataclass(frozen=True)
class PipelineConfig:
    """
    Everything the pipeline needs from deployment configuration.

    Frozen and passed in explicitly so tests can run both URL modes
    side by side without touching environment variables.
    """
    bucket: str
    region: str
    url_mode: UrlMode = UrlMode.SIGNED
    cdn_distribution_host: str = ""
    presign_expiry_seconds: int = 5
    max_video_bytes: int = 1 << 30
    max_thumbnail_bytes: int = 10 << 20
    temp_dir: Optional[str] = None
    accepted_video_types: frozenset[str] = frozenset({"video/mp4"})
    accepted_thumbnail_types: frozenset[str] = frozenset({"image/jpeg", "image/png"})

    def __post_init__(self) -> None:
        if not self.bucket:
            raise ValueError("bucket is required")
        if self.presign_expiry_seconds <= 0:
            raise ValueError("presign_expiry_seconds must be positive")
        if self.url_mode is UrlMode.CDN and not self.cdn_distribution_host:
            raise ValueError("cdn_distribution_host is required in cdn mode")

    def reference_for(self, key: str) -> str:
        """The value persisted in Video.video_url for a freshly stored key."""
        if self.url_mode is UrlMode.SIGNED:
            return str(StorageLocation(bucket=self.bucket, key=key))
        if self.url_mode is UrlMode.CDN:
            return f"https://{self.cdn_distribution_host}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class VideoUploadPipeline:
    """
    Orchestrates video and thumbnail uploads for one request at a time.

    Holds no per-request state, so a single instance can serve concurrent
    requests.
    """

    def __init__(
        self,
        config: PipelineConfig,
        videos: VideoStore,
        storage: ObjectStore,
        inspector: MediaInspector,
        remuxer: Remuxer,
    ) -> None:
        self._config = config
        self._videos = videos
        self._storage = storage
        self._inspector = inspector
        self._remuxer = remuxer

    async def upload_video(
        self,
        user_id: UUID,
        video_id: UUID,
        upload: Optional[UploadedFile],
    ) -> Video:
        """
        Process an uploaded video and attach it to the record.

        Returns the updated record, with video_url resolved for playback.
        """
        video = await self._load_owned_video(user_id, video_id)
        media_type = accept_upload(
            upload,
            self._config.accepted_video_types,
            self._config.max_video_bytes,
        )

        logger.info(
            "Uploading video",
            extra={
                "video_id": str(video_id),
                "user_id": str(user_id),
                "upload_filename": upload.filename,
            }
        )

        with ExitStack() as cleanup:
            staged = self._create_staged_file(cleanup)
            await self._stage(upload.stream, staged)
            staged.seek(0)

            orientation = await self._probe(staged.name)
            processed_path = await self._remux(staged.name)
            cleanup.callback(_remove_file, processed_path)

            key = derive_storage_key(orientation)
            await self._upload(processed_path, key, media_type)

            video.video_url = self._config.reference_for(key)
            await self._persist(video)

            logger.info(
                "Video uploaded",
                extra={
                    "video_id": str(video_id),
                    "key": key,
                    "orientation": orientation.value,
                }
            )

            return await self.resolve_video(video)

    async def upload_thumbnail(
        self,
        user_id: UUID,
        video_id: UUID,
        upload: Optional[UploadedFile],
    ) -> Video:
        """
        Store a thumbnail inline on the record as a data: URL.

        No staging or processing, the image is small and kept as-is.
        """
        video = await self._load_owned_video(user_id, video_id)
        media_type = accept_upload(
            upload,
            self._config.accepted_thumbnail_types,
            self._config.max_thumbnail_bytes,
        )

        try:
            data = await asyncio.to_thread(
                _read_bounded, upload.stream, self._config.max_thumbnail_bytes
            )
        except PayloadTooLargeError:
            raise
        except Exception as e:
            logger.error(
                "Failed to read thumbnail",
                extra={"video_id": str(video_id), "error": str(e)}
            )
            raise StagingError(f"Thumbnail read failed: {e}") from e

        encoded = base64.b64encode(data).decode("ascii")
        video.thumbnail_url = f"data:{media_type};base64,{encoded}"
        await self._persist(video)

        logger.info(
            "Thumbnail uploaded",
            extra={"video_id": str(video_id), "size_bytes": len(data)}
        )

        return await self.resolve_video(video)

    async def resolve_video(self, video: Video) -> Video:
        """
        Return a copy of the record with a playable video_url.

        A stored bucket+key pair becomes a fresh presigned URL. Anything
        else (a static or CDN URL, or no video yet) is returned unchanged.
        The stored record is never modified.
        """
        return await resolve_video_url(
            video, self._storage, self._config.presign_expiry_seconds
        )

    # -----------------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------------

    async def _load_owned_video(self, user_id: UUID, video_id: UUID) -> Video:
        video = await asyncio.to_thread(self._videos.get_video, video_id)
        if not video.is_owned_by(user_id):
            logger.warning(
                "Upload rejected, caller does not own video",
                extra={"video_id": str(video_id), "user_id": str(user_id)}
            )
            raise ForbiddenError(f"User {user_id} does not own video {video_id}")
        return video

    def _create_staged_file(self, cleanup: ExitStack):
        try:
            staged = tempfile.NamedTemporaryFile(
                prefix="upload-",
                suffix=".mp4",
                dir=self._config.temp_dir,
                delete=False,
            )
        except OSError as e:
            logger.error("Failed to create temp file", extra={"error": str(e)})
            raise StagingError(f"Temp file creation failed: {e}") from e

        # close before remove: ExitStack unwinds in reverse order
        cleanup.callback(_remove_file, staged.name)
        cleanup.enter_context(staged)
        return staged

    async def _stage(self, source: BinaryIO, staged) -> None:
        try:
            copied = await asyncio.to_thread(
                _copy_bounded, source, staged, self._config.max_video_bytes
            )
            staged.flush()
        except PayloadTooLargeError:
            raise
        except Exception as e:
            logger.error(
                "Failed to stage upload",
                extra={"path": staged.name, "error": str(e)}
            )
            raise StagingError(f"Staging copy failed: {e}") from e

        logger.debug(
            "Staged upload",
            extra={"path": staged.name, "size_bytes": copied}
        )

    async def _probe(self, path: str) -> Orientation:
        try:
            metadata = await self._inspector.inspect(path)
        except ProbeError as e:
            logger.error("Probe failed", extra={"path": path, "error": str(e)})
            raise ProcessingError(f"Probe failed: {e}") from e
        return metadata.orientation

    async def _remux(self, path: str) -> str:
        try:
            return await self._remuxer.remux(path)
        except RemuxError as e:
            logger.error("Remux failed", extra={"path": path, "error": str(e)})
            raise ProcessingError(f"Remux failed: {e}") from e

    async def _upload(self, path: str, key: str, content_type: str) -> None:
        try:
            await self._storage.upload_file(
                path, self._config.bucket, key, content_type
            )
        except StoreUploadError as e:
            logger.error(
                "Object upload failed",
                extra={"key": key, "error": str(e)}
            )
            raise

    async def _persist(self, video: Video) -> None:
        video.touch()
        try:
            await asyncio.to_thread(self._videos.update_video, video)
        except Exception as e:
            # the object (if any) stays in storage; there is no compensating delete
            logger.error(
                "Failed to persist video record",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise PersistenceError(f"Record update failed: {e}") from e


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------

async def resolve_video_url(
    video: Video,
    storage: ObjectStore,
    expiry_seconds: int,
) -> Video:
    """Presign a stored bucket+key pair; leave full URLs and None alone."""
    location = video.storage_location
    if location is None:
        return video

    url = await storage.get_presigned_url(location.bucket, location.key, expiry_seconds)
    return dataclasses.replace(video, video_url=url)


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

def _copy_bounded(source: BinaryIO, target: BinaryIO, max_bytes: int) -> int:
    """Chunked copy that stops with PayloadTooLargeError past max_bytes."""
    copied = 0
    while chunk := source.read(COPY_CHUNK_SIZE):
        copied += len(chunk)
        if copied > max_bytes:
            raise PayloadTooLargeError(
                f"File too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
            )
        target.write(chunk)
    return copied


def _read_bounded(source: BinaryIO, max_bytes: int) -> bytes:
    data = source.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise PayloadTooLargeError(
            f"File too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
        )
    return data


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(
            "Failed to remove temp file",
            extra={"path": path, "error": str(e)}
        )
