"""Data models for sampled frames and their per-frame classification."""

from dataclasses import dataclass
from typing import Optional

# Description text carried by a failed frame, kept for wire compatibility
FRAME_ERROR_MARKER = "Error"


@dataclass(frozen=True)
class SampledFrame:
    """A still captured from a video at one sample point."""
    
    index: int
    timestamp: float  # Seconds from the start of the clip
    image: bytes  # JPEG at native decoded resolution


@dataclass(frozen=True)
class FrameAnalysis:
    """Classification of a single frame by the vision model."""
    
    frame_index: int
    has_clear_face: bool = False
    face_confidence: float = 0.0
    face_description: str = ""
    has_subtitle: bool = False
    subtitle_confidence: float = 0.0
    subtitle_text: str = ""
    error: Optional[str] = None
    
    @classmethod
    def failure(cls, frame_index: int, reason: str = "") -> 'FrameAnalysis':
        """Create the placeholder result for a frame whose analysis failed."""
        return cls(
            frame_index=frame_index,
            face_description=FRAME_ERROR_MARKER,
            error=reason or FRAME_ERROR_MARKER
        )
    
    @property
    def is_failure(self) -> bool:
        """Check if this result stands in for a failed analysis."""
        return self.error is not None
    
    def face_vote(self, min_confidence: float) -> bool:
        """Check if this frame counts as showing a clear face."""
        return self.has_clear_face and self.face_confidence >= min_confidence
    
    def subtitle_vote(self, min_confidence: float) -> bool:
        """Check if this frame counts as showing overlaid text."""
        return self.has_subtitle and self.subtitle_confidence >= min_confidence
