"""
Domain models for uploaded videos.

Like the rest of `core`, these have no dependencies on FastAPI, boto3 or
Snowflake. The repository and storage adapters translate to and from them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Orientation(Enum):
    """
    Orientation of a video, derived from its display aspect ratio.

    Only used to pick the storage key namespace, never persisted on its own.
    """
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"

    @classmethod
    def from_aspect_ratio(cls, ratio: Optional[str]) -> "Orientation":
        """
        Classify a raw ffprobe display_aspect_ratio string.

        Exact string match only: "16:9" and "9:16" are recognized, and
        equivalent ratios in other notations ("1.78", "32:18") are OTHER.
        Stored keys already depend on this behavior.
        """
        if ratio == "16:9":
            return cls.LANDSCAPE
        if ratio == "9:16":
            return cls.PORTRAIT
        return cls.OTHER


@dataclass(frozen=True)
class StreamInfo:
    """One stream from ffprobe output."""
    codec_type: str
    display_aspect_ratio: Optional[str] = None


@dataclass(frozen=True)
class StreamMetadata:
    """Container-level stream listing for a media file."""
    streams: tuple[StreamInfo, ...] = ()

    @property
    def first_video_stream(self) -> Optional[StreamInfo]:
        for stream in self.streams:
            if stream.codec_type == "video":
                return stream
        return None

    @property
    def orientation(self) -> Orientation:
        """Orientation of the first video stream, OTHER if there is none."""
        stream = self.first_video_stream
        if stream is None:
            return Orientation.OTHER
        return Orientation.from_aspect_ratio(stream.display_aspect_ratio)


@dataclass(frozen=True)
class StorageLocation:
    """
    A bucket+key pair as persisted in a record's video_url.

    The stored form is "<bucket>,<key>". Records written in the static or
    CDN URL modes hold a full URL instead, which `parse` rejects.
    """
    bucket: str
    key: str

    def __post_init__(self) -> None:
        if not self.bucket or not self.key:
            raise ValueError("Storage location needs both bucket and key")
        if "," in self.bucket:
            raise ValueError("Bucket name cannot contain a comma")

    def __str__(self) -> str:
        return f"{self.bucket},{self.key}"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["StorageLocation"]:
        """Parse a stored reference, or return None if it is a plain URL."""
        if not value or "://" in value or value.startswith("data:"):
            return None
        bucket, sep, key = value.partition(",")
        if not sep or not bucket or not key:
            return None
        return cls(bucket=bucket, key=key)


@dataclass
class Video:
    """
    A video metadata record.

    video_url holds either a "<bucket>,<key>" pair (signed URL mode) or a
    fully-qualified URL. thumbnail_url holds an inline data: URL.
    Only the owning user may change either.
    """
    user_id: UUID
    title: str = ""
    description: str = ""
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.user_id == user_id

    def touch(self) -> None:
        self.updated_at = _utcnow()

    @property
    def storage_location(self) -> Optional[StorageLocation]:
        return StorageLocation.parse(self.video_url)
