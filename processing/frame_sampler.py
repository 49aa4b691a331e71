"""
Frame sampling for clip analysis.

Opens a video with OpenCV, derives its duration and decoded dimensions and
captures a fixed number of evenly spaced stills plus a small thumbnail from
the first sample point.
"""

import cv2
import numpy as np
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

from models.frame_analysis import SampledFrame
from models.video_metadata import VideoMetadata
from processing.image_normalizer import encode_jpeg, fit_within

logger = logging.getLogger(__name__)


class VideoLoadError(Exception):
    """Raised when a video file cannot be opened or decoded."""
    pass


@dataclass
class FrameSamplerConfig:
    """Configuration parameters for frame sampling."""

    sample_count: int = 6  # Stills captured per clip
    jpeg_quality: int = 85  # Quality of the captured stills
    thumbnail_max_edge: int = 360  # Longest edge of the preview thumbnail
    thumbnail_quality: int = 60

    def __post_init__(self):
        if self.sample_count < 1:
            raise ValueError("sample_count must be at least 1")
        for name in ("jpeg_quality", "thumbnail_quality"):
            if not (1 <= getattr(self, name) <= 100):
                raise ValueError(f"{name} must be between 1 and 100")
        if self.thumbnail_max_edge < 1:
            raise ValueError("thumbnail_max_edge must be at least 1")


@dataclass
class SamplingResult:
    """Frames and metadata produced by one sampling pass."""

    frames: List[SampledFrame]
    metadata: VideoMetadata


def sample_timestamps(duration: float, count: int) -> List[float]:
    """Evenly spaced sample points covering [0, duration)."""
    return [i * duration / count for i in range(count)]


@contextmanager
def open_video(video_path: Path) -> Iterator[cv2.VideoCapture]:
    """Open a capture handle that is released on every exit path."""
    cap = cv2.VideoCapture(str(video_path))
    try:
        if not cap.isOpened():
            raise VideoLoadError(f"Could not open video file: {video_path}")
        yield cap
    finally:
        cap.release()


class FrameSampler:
    """Extracts evenly spaced stills and a thumbnail from a clip."""

    def __init__(self, config: Optional[FrameSamplerConfig] = None):
        """Initialize frame sampler with configuration.

        Args:
            config: Sampling configuration. Uses defaults if None.
        """
        self.config = config or FrameSamplerConfig()

    def sample(self, video_path: Union[str, Path]) -> SamplingResult:
        """Capture the configured number of frames from a video file.

        Args:
            video_path: Path to the video file

        Returns:
            SamplingResult with frames in timestamp order and the clip metadata

        Raises:
            VideoLoadError: If the file is missing, unreadable or has no duration
        """
        video_path = Path(video_path)
        if not video_path.exists():
            raise VideoLoadError(f"Video file not found: {video_path}")

        with open_video(video_path) as cap:
            fps = cap.get(cv2.CAP_PROP_FPS)
            frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
            width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

            duration = frame_count / fps if fps > 0 and frame_count > 0 else 0.0
            if duration <= 0:
                raise VideoLoadError(f"Video has no decodable duration: {video_path}")

            frames: List[SampledFrame] = []
            thumbnail = b""

            for index, timestamp in enumerate(sample_timestamps(duration, self.config.sample_count)):
                image = self._capture_frame(cap, timestamp, fps, frame_count)

                if index == 0:
                    # Decoded size wins over container properties
                    height, width = image.shape[:2]
                    thumbnail = self._make_thumbnail(image)

                frames.append(SampledFrame(
                    index=index,
                    timestamp=timestamp,
                    image=encode_jpeg(image, self.config.jpeg_quality)
                ))

        metadata = VideoMetadata(
            duration=duration,
            width=width,
            height=height,
            thumbnail=thumbnail
        )

        logger.info(
            f"Sampled {len(frames)} frames from {video_path.name}: "
            f"{width}x{height}, {duration:.1f}s, {metadata.orientation.value}"
        )
        return SamplingResult(frames=frames, metadata=metadata)

    def _capture_frame(self, cap: cv2.VideoCapture, timestamp: float,
                       fps: float, frame_count: int) -> np.ndarray:
        """Seek to a timestamp and decode the frame shown there.

        The read blocks until the seek has completed, so the returned frame
        always belongs to the requested position.
        """
        frame_number = min(int(round(timestamp * fps)), frame_count - 1)
        cap.set(cv2.CAP_PROP_POS_FRAMES, frame_number)

        ret, image = cap.read()
        if not ret or image is None or image.size == 0:
            raise VideoLoadError(f"Could not decode frame at {timestamp:.2f}s")
        return image

    def _make_thumbnail(self, image: np.ndarray) -> bytes:
        """Downscale a frame into the small preview JPEG."""
        height, width = image.shape[:2]
        target = fit_within(width, height, self.config.thumbnail_max_edge)
        if target != (width, height):
            image = cv2.resize(image, target, interpolation=cv2.INTER_AREA)
        return encode_jpeg(image, self.config.thumbnail_quality)
