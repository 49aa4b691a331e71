"""Clip library implementation using Redis for storage."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError

from models.video_record import VideoRecord


logger = logging.getLogger(__name__)

FOLDERS = ("all", "fav", "trash")
ORIENTATIONS = ("all", "portrait", "landscape")
CONTENT_FILTERS = ("all", "human", "scenery")
SUBTITLE_FILTERS = ("all", "with", "without")


class VideoLibraryError(Exception):
    """Base exception for clip library operations."""
    pass


@dataclass
class LibraryFilter:
    """Folder, search and tag filters applied when listing clips."""

    folder: str = "all"
    search: str = ""
    orientation: str = "all"
    content: str = "all"
    subtitle: str = "all"

    def __post_init__(self):
        for name, allowed in (("folder", FOLDERS), ("orientation", ORIENTATIONS),
                              ("content", CONTENT_FILTERS), ("subtitle", SUBTITLE_FILTERS)):
            if getattr(self, name) not in allowed:
                raise ValueError(f"{name} must be one of {', '.join(allowed)}")

    def matches(self, record: VideoRecord) -> bool:
        """Check whether a clip belongs in the filtered view."""
        # Deleted clips live only in the trash
        if record.is_deleted != (self.folder == "trash"):
            return False
        if self.folder == "fav" and not record.is_favorite:
            return False

        if self.search and self.search.lower() not in record.title.lower():
            return False

        if self.orientation != "all" and record.orientation != self.orientation:
            return False
        if self.content != "all" and record.has_human != (self.content == "human"):
            return False
        if self.subtitle != "all" and record.has_subtitles != (self.subtitle == "with"):
            return False

        return True


class VideoLibrary:
    """Redis-based store of analysed clips."""

    def __init__(self, redis_url: str = "redis://localhost:6379/0",
                 redis_client: Optional[redis.Redis] = None):
        """
        Initialize the library with a Redis connection.

        Args:
            redis_url: Redis connection URL
            redis_client: Existing client to use instead of connecting
        """
        self.video_key_prefix = "video:"
        self.index_key = "videos"

        if redis_client is not None:
            self.redis_client = redis_client
        else:
            self._connect(redis_url)

    def _connect(self, redis_url: str) -> None:
        """Establish Redis connection with error handling."""
        try:
            self.redis_client = redis.from_url(redis_url, decode_responses=True)
            self.redis_client.ping()
            logger.info("Successfully connected to Redis")
        except RedisConnectionError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise VideoLibraryError(f"Redis connection failed: {e}")

    def _serialize_record(self, record: VideoRecord) -> str:
        """Serialize VideoRecord to JSON string."""
        return json.dumps({
            "video_id": record.video_id,
            "title": record.title,
            "duration": record.duration,
            "orientation": record.orientation,
            "has_human": record.has_human,
            "has_subtitles": record.has_subtitles,
            "width": record.width,
            "height": record.height,
            "created_at": record.created_at.isoformat(),
            "thumbnail": record.thumbnail,
            "storage_path": record.storage_path,
            "is_favorite": record.is_favorite,
            "is_deleted": record.is_deleted
        })

    def _deserialize_record(self, data: str) -> VideoRecord:
        """Deserialize JSON string to VideoRecord."""
        try:
            record = json.loads(data)
            return VideoRecord(
                video_id=record["video_id"],
                title=record["title"],
                duration=record["duration"],
                orientation=record["orientation"],
                has_human=record["has_human"],
                has_subtitles=record["has_subtitles"],
                width=record["width"],
                height=record["height"],
                created_at=datetime.fromisoformat(record["created_at"]),
                thumbnail=record.get("thumbnail", ""),
                storage_path=record.get("storage_path"),
                is_favorite=record.get("is_favorite", False),
                is_deleted=record.get("is_deleted", False)
            )
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.error(f"Failed to deserialize clip data: {e}")
            raise VideoLibraryError(f"Invalid clip data format: {e}")

    def save_video(self, record: VideoRecord) -> VideoRecord:
        """
        Store a clip record.

        Args:
            record: VideoRecord to store

        Returns:
            The stored record

        Raises:
            VideoLibraryError: If the write fails
        """
        try:
            pipe = self.redis_client.pipeline()
            pipe.set(f"{self.video_key_prefix}{record.video_id}", self._serialize_record(record))
            pipe.sadd(self.index_key, record.video_id)
            pipe.execute()

            logger.info(f"Clip {record.video_id} ({record.title}) saved to library")
            return record

        except RedisError as e:
            logger.error(f"Failed to save clip {record.video_id}: {e}")
            raise VideoLibraryError(f"Failed to save clip: {e}")

    def get_video(self, video_id: str) -> Optional[VideoRecord]:
        """
        Retrieve a clip by ID.

        Returns:
            VideoRecord or None if the clip is not in the library
        """
        try:
            data = self.redis_client.get(f"{self.video_key_prefix}{video_id}")
        except RedisError as e:
            logger.error(f"Failed to get clip {video_id}: {e}")
            raise VideoLibraryError(f"Failed to retrieve clip: {e}")

        if not data:
            return None
        return self._deserialize_record(data)

    def list_videos(self, filters: Optional[LibraryFilter] = None) -> List[VideoRecord]:
        """
        List clips matching the filters, newest first.

        Args:
            filters: Folder/search/tag filters; everything outside the trash when None
        """
        filters = filters or LibraryFilter()
        try:
            video_ids = self.redis_client.smembers(self.index_key)
        except RedisError as e:
            logger.error(f"Failed to list clips: {e}")
            raise VideoLibraryError(f"Failed to list clips: {e}")

        records = []
        for video_id in video_ids:
            record = self.get_video(video_id)
            if record is None:
                logger.warning(f"Clip {video_id} is indexed but has no data")
                continue
            if filters.matches(record):
                records.append(record)

        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    def find_by_title(self, title: str) -> Optional[VideoRecord]:
        """Return the clip stored under this exact title, trash included."""
        for folder in ("all", "trash"):
            for record in self.list_videos(LibraryFilter(folder=folder)):
                if record.title == title:
                    return record
        return None

    def update_video(self, video_id: str, is_favorite: Optional[bool] = None,
                     is_deleted: Optional[bool] = None) -> Optional[VideoRecord]:
        """
        Update the favorite and trash flags of a clip.

        Returns:
            The updated record, or None if the clip is not in the library
        """
        record = self.get_video(video_id)
        if record is None:
            logger.warning(f"Clip not found for update: {video_id}")
            return None

        if is_favorite is not None:
            record.mark_favorite(is_favorite)
        if is_deleted is True:
            record.move_to_trash()
        elif is_deleted is False:
            record.restore()

        return self.save_video(record)

    def delete_video(self, video_id: str) -> Optional[VideoRecord]:
        """
        Remove a clip record permanently.

        Returns:
            The removed record, or None if it was not in the library
        """
        record = self.get_video(video_id)
        if record is None:
            return None

        try:
            pipe = self.redis_client.pipeline()
            pipe.delete(f"{self.video_key_prefix}{video_id}")
            pipe.srem(self.index_key, video_id)
            pipe.execute()
        except RedisError as e:
            logger.error(f"Failed to delete clip {video_id}: {e}")
            raise VideoLibraryError(f"Failed to delete clip: {e}")

        logger.info(f"Clip {video_id} deleted from library")
        return record

    def get_library_stats(self) -> Dict[str, Any]:
        """Count clips per folder and tag."""
        records = self.list_videos(LibraryFilter()) + self.list_videos(LibraryFilter(folder="trash"))
        active = [r for r in records if not r.is_deleted]
        return {
            "total": len(active),
            "favorites": sum(1 for r in active if r.is_favorite),
            "trash": len(records) - len(active),
            "portrait": sum(1 for r in active if r.orientation == "portrait"),
            "with_human": sum(1 for r in active if r.has_human),
            "with_subtitles": sum(1 for r in active if r.has_subtitles)
        }

    def health_check(self) -> bool:
        """
        Check if Redis connection is healthy.

        Returns:
            bool: True if Redis is accessible
        """
        try:
            self.redis_client.ping()
            return True
        except RedisError:
            return False


def get_video_library() -> VideoLibrary:
    """Build a VideoLibrary connected to the configured Redis."""
    import config
    return VideoLibrary(redis_url=config.REDIS_URL)
