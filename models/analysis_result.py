"""VideoAnalysisResult data model returned by the analysis pipeline."""

import base64
from dataclasses import dataclass
from typing import Any, Dict

from .video_metadata import VideoMetadata

JPEG_DATA_URI_PREFIX = "data:image/jpeg;base64,"


def jpeg_data_uri(image: bytes) -> str:
    """Wrap JPEG bytes in a data URI, or return '' for no image."""
    if not image:
        return ""
    return JPEG_DATA_URI_PREFIX + base64.b64encode(image).decode("ascii")


@dataclass(frozen=True)
class VideoAnalysisResult:
    """Clip-level classification plus the metadata shown in the library."""
    
    has_human: bool
    has_subtitles: bool
    orientation: str
    duration: str  # MM:SS
    width: int
    height: int
    thumbnail: str  # data URI, empty when unavailable
    
    @classmethod
    def from_metadata(cls, metadata: VideoMetadata, has_human: bool,
                      has_subtitles: bool) -> 'VideoAnalysisResult':
        """Assemble a result from sampled metadata and the aggregated verdict."""
        return cls(
            has_human=has_human,
            has_subtitles=has_subtitles,
            orientation=metadata.orientation.value,
            duration=metadata.formatted_duration,
            width=metadata.width,
            height=metadata.height,
            thumbnail=jpeg_data_uri(metadata.thumbnail)
        )
    
    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the field names the library front end expects."""
        return {
            "hasHuman": self.has_human,
            "hasSubtitles": self.has_subtitles,
            "orientation": self.orientation,
            "duration": self.duration,
            "width": self.width,
            "height": self.height,
            "thumbnailBase64": self.thumbnail
        }
