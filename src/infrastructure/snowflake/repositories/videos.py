"""
Snowflake repository for video metadata records.

The repository:
1. Translates between the Video domain model and table rows
2. Encapsulates all SQL queries
3. Provides a clean interface for the pipeline and routes

The application code never writes SQL directly. It asks the repository
for what it needs in domain terms.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol
from uuid import UUID

from src.core.media.errors import NotFoundError
from src.core.media.models import Video


logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "MEDIA"
    schema: str = "PUBLIC"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class VideoNotFoundError(NotFoundError):
    """Raised when a requested video doesn't exist."""
    pass


_VIDEO_COLUMNS = """
    video_id,
    user_id,
    title,
    description,
    created_at,
    updated_at,
    video_url,
    thumbnail_url
"""


class VideoRepository:
    """
    Repository for video record persistence.

    - create_video: Insert a new record
    - get_video: Load a record by ID
    - list_videos: A user's records, newest first
    - update_video: Write back title, description and media references
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def create_video(self, video: Video) -> None:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO videos ({_VIDEO_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """, self._to_row(video))

            self._conn.commit()

            logger.info(
                "Created video record",
                extra={"video_id": str(video.id), "user_id": str(video.user_id)}
            )

        except Exception as e:
            logger.error(
                "Failed to create video",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    def get_video(self, video_id: UUID) -> Video:
        """Load a video record, raising VideoNotFoundError if absent."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_VIDEO_COLUMNS}
                FROM videos
                WHERE video_id = %s
            """, (str(video_id),))

            row = cursor.fetchone()
            if not row:
                raise VideoNotFoundError(f"Video {video_id} not found")

            return self._from_row(row)

        finally:
            cursor.close()

    def list_videos(self, user_id: UUID, limit: int = 50) -> list[Video]:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_VIDEO_COLUMNS}
                FROM videos
                WHERE user_id = %s
                ORDER BY created_at DESC
                LIMIT %s
            """, (str(user_id), limit))

            return [self._from_row(row) for row in cursor.fetchall()]

        finally:
            cursor.close()

    def update_video(self, video: Video) -> None:
        """
        Write back a record's mutable fields.

        Raises VideoNotFoundError if no row matched, e.g. the record was
        deleted while an upload was in flight.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                UPDATE videos SET
                    title = %s,
                    description = %s,
                    updated_at = %s,
                    video_url = %s,
                    thumbnail_url = %s
                WHERE video_id = %s
            """, (
                video.title,
                video.description,
                video.updated_at,
                video.video_url,
                video.thumbnail_url,
                str(video.id),
            ))

            if cursor.rowcount == 0:
                raise VideoNotFoundError(f"Video {video.id} not found")

            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to update video",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _to_row(self, video: Video) -> tuple:
        return (
            str(video.id),
            str(video.user_id),
            video.title,
            video.description,
            video.created_at,
            video.updated_at,
            video.video_url,
            video.thumbnail_url,
        )

    def _from_row(self, row: tuple) -> Video:
        (
            video_id, user_id, title, description,
            created_at, updated_at, video_url, thumbnail_url,
        ) = row

        return Video(
            id=UUID(str(video_id)),
            user_id=UUID(str(user_id)),
            title=title or "",
            description=description or "",
            created_at=_as_utc(created_at),
            updated_at=_as_utc(updated_at),
            video_url=video_url,
            thumbnail_url=thumbnail_url,
        )


def _as_utc(value) -> datetime:
    # TIMESTAMP_NTZ columns come back naive
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
