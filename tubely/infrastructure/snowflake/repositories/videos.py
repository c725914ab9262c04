"""
Snowflake repository for video records.

This module implements the repository pattern for video data access.
The repository:
1. Translates between the Video domain model and table rows
2. Encapsulates all SQL queries
3. Guards updates with an optimistic version check

The stored video reference is two columns, VIDEO_BUCKET and VIDEO_KEY.
Both are NULL for a video that has not been uploaded yet.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol
from uuid import UUID

from ....core.media.errors import ConcurrentUpdateError, PersistenceError
from ....core.media.models import StoredReference, Video

logger = logging.getLogger(__name__)


VIDEOS_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS videos (
        video_id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(36) NOT NULL,
        title VARCHAR NOT NULL,
        description VARCHAR,
        video_bucket VARCHAR,
        video_key VARCHAR,
        thumbnail_url VARCHAR,
        created_at TIMESTAMP_NTZ NOT NULL,
        updated_at TIMESTAMP_NTZ NOT NULL,
        version INTEGER NOT NULL DEFAULT 0
    )
"""

_VIDEO_COLUMNS = """
    video_id,
    user_id,
    title,
    description,
    video_bucket,
    video_key,
    thumbnail_url,
    created_at,
    updated_at,
    version
"""


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
    database: str = "TUBELY"
    schema: str = "MEDIA"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class VideoRepository:
    """
    Repository for video record persistence.

    Each method corresponds to a use case the application needs:
    - create_video: Persist a new draft video
    - get_video: Load a video by ID (None if absent)
    - list_videos_for_user: A user's videos, newest first
    - update_video: Write back a modified video, if nobody else did first
    - delete_video: Remove a video record
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def create_video(self, video: Video) -> Video:
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO videos (
                    video_id, user_id, title, description,
                    video_bucket, video_key, thumbnail_url,
                    created_at, updated_at, version
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """, self._to_row(video))
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to create video",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise PersistenceError(f"Could not create video: {e}") from e
        finally:
            cursor.close()

        logger.info("Created video", extra={"video_id": str(video.id), "user_id": str(video.user_id)})
        return video

    def get_video(self, video_id: UUID) -> Optional[Video]:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_VIDEO_COLUMNS}
                FROM videos
                WHERE video_id = %s
            """, (str(video_id),))

            row = cursor.fetchone()

        except Exception as e:
            logger.error(
                "Failed to load video",
                extra={"video_id": str(video_id), "error": str(e)}
            )
            raise PersistenceError(f"Could not load video: {e}") from e
        finally:
            cursor.close()

        if not row:
            return None
        return self._from_row(row)

    def list_videos_for_user(self, user_id: UUID) -> list[Video]:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_VIDEO_COLUMNS}
                FROM videos
                WHERE user_id = %s
                ORDER BY created_at DESC
            """, (str(user_id),))

            rows = cursor.fetchall()

        except Exception as e:
            logger.error(
                "Failed to list videos",
                extra={"user_id": str(user_id), "error": str(e)}
            )
            raise PersistenceError(f"Could not list videos: {e}") from e
        finally:
            cursor.close()

        return [self._from_row(row) for row in rows]

    def update_video(self, video: Video) -> Video:
        """
        Write back a modified video.

        The UPDATE only matches the version that was read. If another
        request updated the row in between, no row matches and
        ConcurrentUpdateError is raised instead of overwriting it.

        Returns the video with its new version and updated_at.
        """
        updated_at = datetime.utcnow()
        ref = video.video_ref
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                UPDATE videos SET
                    title = %s,
                    description = %s,
                    video_bucket = %s,
                    video_key = %s,
                    thumbnail_url = %s,
                    updated_at = %s,
                    version = version + 1
                WHERE video_id = %s AND version = %s
            """, (
                video.title,
                video.description,
                ref.bucket if ref else None,
                ref.key if ref else None,
                video.thumbnail_url,
                updated_at,
                str(video.id),
                video.version,
            ))
            updated = cursor.rowcount
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to update video",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise PersistenceError(f"Could not update video: {e}") from e
        finally:
            cursor.close()

        if updated != 1:
            logger.warning(
                "Video changed since it was read",
                extra={"video_id": str(video.id), "expected_version": video.version}
            )
            raise ConcurrentUpdateError(
                f"Video {video.id} was modified or deleted concurrently"
            )

        video.updated_at = updated_at
        video.version += 1
        return video

    def delete_video(self, video_id: UUID) -> bool:
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM videos
                WHERE video_id = %s
            """, (str(video_id),))
            deleted = cursor.rowcount
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to delete video",
                extra={"video_id": str(video_id), "error": str(e)}
            )
            raise PersistenceError(f"Could not delete video: {e}") from e
        finally:
            cursor.close()

        return deleted > 0

    def ping(self) -> None:
        """Cheap round trip for readiness checks."""
        cursor = self._conn.cursor()
        try:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    @staticmethod
    def _to_row(video: Video) -> tuple:
        ref = video.video_ref
        return (
            str(video.id),
            str(video.user_id),
            video.title,
            video.description,
            ref.bucket if ref else None,
            ref.key if ref else None,
            video.thumbnail_url,
            video.created_at,
            video.updated_at,
            video.version,
        )

    @staticmethod
    def _from_row(row) -> Video:
        (
            video_id, user_id, title, description,
            video_bucket, video_key, thumbnail_url,
            created_at, updated_at, version,
        ) = row

        # Both columns or neither: a half-written reference is no reference
        video_ref = None
        if video_bucket and video_key:
            video_ref = StoredReference(bucket=video_bucket, key=video_key)

        return Video(
            id=UUID(str(video_id)),
            user_id=UUID(str(user_id)),
            title=title or "",
            description=description or "",
            video_ref=video_ref,
            thumbnail_url=thumbnail_url,
            created_at=created_at,
            updated_at=updated_at,
            version=int(version or 0),
        )
