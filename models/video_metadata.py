"""VideoMetadata data model for storing information derived from a video file."""

from dataclasses import dataclass
from enum import Enum


class Orientation(str, Enum):
    """Display orientation of a clip."""
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


def orientation_for(width: int, height: int) -> Orientation:
    """Classify pixel dimensions. Square frames count as landscape."""
    return Orientation.PORTRAIT if width < height else Orientation.LANDSCAPE


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as MM:SS."""
    seconds = max(0.0, seconds)
    minutes = int(seconds // 60)
    remainder = int(seconds % 60)
    return f"{minutes:02d}:{remainder:02d}"


@dataclass(frozen=True)
class VideoMetadata:
    """Data model for video file metadata."""
    
    duration: float  # Duration in seconds
    width: int
    height: int
    thumbnail: bytes = b""  # JPEG bytes of the first sampled frame
    
    @property
    def orientation(self) -> Orientation:
        """Orientation derived from the pixel dimensions."""
        return orientation_for(self.width, self.height)
    
    @property
    def formatted_duration(self) -> str:
        """Get duration as MM:SS."""
        return format_duration(self.duration)
