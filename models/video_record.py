"""VideoRecord data model for clips stored in the library."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import uuid

from .analysis_result import VideoAnalysisResult


@dataclass
class VideoRecord:
    """Data model for an analysed clip kept in the library."""
    
    video_id: str
    title: str
    duration: str
    orientation: str
    has_human: bool
    has_subtitles: bool
    width: int
    height: int
    created_at: datetime
    thumbnail: str = ""
    storage_path: Optional[str] = None
    is_favorite: bool = False
    is_deleted: bool = False
    
    @classmethod
    def create_from_analysis(cls, title: str, result: VideoAnalysisResult,
                             storage_path: Optional[str] = None) -> 'VideoRecord':
        """Create a new record with generated ID and current timestamp."""
        return cls(
            video_id=str(uuid.uuid4()),
            title=title,
            duration=result.duration,
            orientation=result.orientation,
            has_human=result.has_human,
            has_subtitles=result.has_subtitles,
            width=result.width,
            height=result.height,
            created_at=datetime.now(),
            thumbnail=result.thumbnail,
            storage_path=storage_path
        )
    
    def mark_favorite(self, favorite: bool = True) -> None:
        """Add the clip to or remove it from favorites."""
        self.is_favorite = favorite
    
    def move_to_trash(self) -> None:
        """Soft-delete the clip."""
        self.is_deleted = True
    
    def restore(self) -> None:
        """Bring the clip back from the trash."""
        self.is_deleted = False
    
    @property
    def upload_date(self) -> str:
        """Get the upload day as YYYY-MM-DD."""
        return self.created_at.date().isoformat()
