"""
Video API endpoints.

Handles the upload workflow:
1. Client creates a draft video record (POST /videos)
2. Client uploads the video file (POST /video_upload/{video_id})
   -> staged, probed, remuxed for fast start, stored, persisted
3. Client optionally uploads a thumbnail (POST /thumbnail_upload/{video_id})
4. Client reads the record back (GET /videos/{video_id}) with a freshly
   resolved playback URL

Errors from the pipeline are MediaPipelineError subclasses; the app-level
exception handler turns them into {"detail": ...} responses, so these
handlers don't translate them.

The Snowflake connector blocks, so repository calls go through
asyncio.to_thread like the pipeline's do.
"""

import asyncio
import logging
from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, File, UploadFile, status
from pydantic import BaseModel, Field

from ...core.media.models import Video
from ...core.media.pipeline import resolve_video_url
from ...core.media.uploads import UploadedFile
from ..dependencies import (
    AuthenticatedUser,
    SettingsDep,
    StorageClientDep,
    UploadPipelineDep,
    VideoRepositoryDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateVideoRequest(BaseModel):
    """Request to create a draft video record."""
    title: str = Field(min_length=1, max_length=200, description="Video title")
    description: str = Field(default="", max_length=5000, description="Video description")


class VideoResponse(BaseModel):
    """A video record as returned to clients."""
    id: UUID = Field(description="Video identifier")
    user_id: UUID = Field(description="Owning user")
    title: str
    description: str
    created_at: datetime
    updated_at: datetime
    video_url: Optional[str] = Field(None, description="Playable URL, presigned when the bucket is private")
    thumbnail_url: Optional[str] = Field(None, description="Inline data: URL")

    @classmethod
    def from_video(cls, video: Video) -> "VideoResponse":
        return cls(
            id=video.id,
            user_id=video.user_id,
            title=video.title,
            description=video.description,
            created_at=video.created_at,
            updated_at=video.updated_at,
            video_url=video.video_url,
            thumbnail_url=video.thumbnail_url,
        )


def _to_uploaded_file(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    if upload is None:
        return None
    return UploadedFile(
        stream=upload.file,
        content_type=upload.content_type,
        filename=upload.filename or "",
        size=upload.size,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/videos",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a video record",
    description="Create a draft video owned by the caller, ready for uploads",
)
async def create_video(
    request: CreateVideoRequest,
    user_id: AuthenticatedUser,
    repository: VideoRepositoryDep,
) -> VideoResponse:
    video = Video(
        user_id=user_id,
        title=request.title,
        description=request.description,
    )
    await asyncio.to_thread(repository.create_video, video)
    return VideoResponse.from_video(video)


@router.get(
    "/videos",
    response_model=list[VideoResponse],
    summary="List my videos",
)
async def list_videos(
    user_id: AuthenticatedUser,
    repository: VideoRepositoryDep,
    storage: StorageClientDep,
    settings: SettingsDep,
) -> list[VideoResponse]:
    """The caller's videos, newest first, each with a fresh playback URL."""
    expiry = settings.presign_expiry_seconds
    videos = await asyncio.to_thread(repository.list_videos, user_id)
    return [
        VideoResponse.from_video(await resolve_video_url(video, storage, expiry))
        for video in videos
    ]


@router.get(
    "/videos/{video_id}",
    response_model=VideoResponse,
    summary="Get a video",
)
async def get_video(
    video_id: UUID,
    user_id: AuthenticatedUser,
    repository: VideoRepositoryDep,
    storage: StorageClientDep,
    settings: SettingsDep,
) -> VideoResponse:
    """
    Read a video record.

    A stored bucket+key reference is re-signed on every read, so the
    returned URL is always fresh (and short-lived).
    """
    video = await asyncio.to_thread(repository.get_video, video_id)
    resolved = await resolve_video_url(video, storage, settings.presign_expiry_seconds)
    return VideoResponse.from_video(resolved)


@router.post(
    "/video_upload/{video_id}",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a video file",
    description="Upload an MP4 for fast-start processing and storage",
)
async def upload_video(
    video_id: UUID,
    user_id: AuthenticatedUser,
    pipeline: UploadPipelineDep,
    video: Annotated[Optional[UploadFile], File(description="MP4 video")] = None,
) -> VideoResponse:
    """
    Upload a video for a record the caller owns.

    Processing is synchronous: the response arrives once the file is
    remuxed, stored and the record updated.
    """
    updated = await pipeline.upload_video(user_id, video_id, _to_uploaded_file(video))
    return VideoResponse.from_video(updated)


@router.post(
    "/thumbnail_upload/{video_id}",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a thumbnail image",
)
async def upload_thumbnail(
    video_id: UUID,
    user_id: AuthenticatedUser,
    pipeline: UploadPipelineDep,
    thumbnail: Annotated[Optional[UploadFile], File(description="JPEG or PNG image")] = None,
) -> VideoResponse:
    updated = await pipeline.upload_thumbnail(user_id, video_id, _to_uploaded_file(thumbnail))
    return VideoResponse.from_video(updated)
