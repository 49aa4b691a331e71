"""
Clip analysis pipeline.

This module provides the VideoAnalyzer class that coordinates frame sampling,
image normalization, concurrent per-frame classification and aggregation into
a single VideoAnalysisResult per clip.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Union

from models.analysis_result import VideoAnalysisResult
from models.frame_analysis import FrameAnalysis, SampledFrame
from processing.aggregator import AggregationPolicy, aggregate
from processing.frame_classifier import FrameClassifierClient
from processing.frame_sampler import FrameSampler, FrameSamplerConfig
from processing.image_normalizer import ImageNormalizationError, normalize_image

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]


@dataclass
class VideoAnalyzerConfig:
    """Configuration parameters for the analysis pipeline."""

    # Frame sampling
    sampler_config: Optional[FrameSamplerConfig] = None

    # Normalization before transmission
    max_image_size: int = 1024  # Longest edge sent to the classifier
    jpeg_quality: int = 85

    # Upper bound on in-flight classification requests per clip
    max_concurrent_requests: int = 6

    # Voting thresholds
    policy: AggregationPolicy = field(default_factory=AggregationPolicy)

    def __post_init__(self):
        """Set default sampler config if none provided."""
        if self.sampler_config is None:
            self.sampler_config = FrameSamplerConfig()
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        if self.max_image_size < 1:
            raise ValueError("max_image_size must be at least 1")


class VideoAnalyzer:
    """
    Runs the clip analysis pipeline.

    Sampling happens once per clip in a worker thread; every sampled frame is
    then normalized and classified concurrently, and the joined results are
    voted into the clip flags. Each call owns its frames and capture handle,
    so concurrent calls on one analyzer are independent.
    """

    def __init__(self, config: Optional[VideoAnalyzerConfig] = None,
                 classifier: Optional[FrameClassifierClient] = None):
        """
        Initialize the analyzer.

        Args:
            config: Pipeline configuration
            classifier: Client used for per-frame classification
        """
        self.config = config or VideoAnalyzerConfig()
        self.sampler = FrameSampler(self.config.sampler_config)
        self.classifier = classifier or FrameClassifierClient()

    async def analyze(self, video_path: Union[str, Path],
                      progress_callback: Optional[ProgressCallback] = None) -> VideoAnalysisResult:
        """
        Analyze a clip and return its classification and metadata.

        Args:
            video_path: Path to the video file
            progress_callback: Optional callback for progress updates (progress, message)

        Returns:
            VideoAnalysisResult for the clip

        Raises:
            VideoLoadError: If the video cannot be opened or decoded
            AllFramesFailedError: If no frame could be classified
        """
        video_path = Path(video_path)
        self._report(progress_callback, 0.0, "Extracting video frames...")

        sampling = await asyncio.to_thread(self.sampler.sample, video_path)
        frames = sampling.frames
        self._report(progress_callback, 0.3, f"Extracted {len(frames)} frames, starting AI analysis")

        semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)
        analyses: List[FrameAnalysis] = await asyncio.gather(
            *(self._analyze_frame(frame, semaphore) for frame in frames)
        )

        verdict = aggregate(analyses, self.config.policy)
        result = VideoAnalysisResult.from_metadata(
            sampling.metadata,
            has_human=verdict.has_human,
            has_subtitles=verdict.has_subtitles
        )

        summary = (
            f"{'human' if result.has_human else 'no human'}, "
            f"{'subtitles' if result.has_subtitles else 'no subtitles'}"
        )
        self._report(progress_callback, 1.0, f"Analysis complete: {summary}")
        logger.info(
            f"Analyzed {video_path.name}: {summary} "
            f"(face votes {verdict.face_frames}, subtitle votes {verdict.subtitle_frames}, "
            f"failed {verdict.failed_frames}/{verdict.total_frames})"
        )
        return result

    async def _analyze_frame(self, frame: SampledFrame, semaphore: asyncio.Semaphore) -> FrameAnalysis:
        """Normalize and classify one frame under the concurrency limit."""
        async with semaphore:
            try:
                image = await asyncio.to_thread(
                    normalize_image, frame.image, self.config.max_image_size, self.config.jpeg_quality
                )
            except ImageNormalizationError as e:
                logger.warning(f"Frame {frame.index} could not be normalized: {e}")
                return FrameAnalysis.failure(frame.index, str(e))

            return await self.classifier.classify(image, frame.index)

    @staticmethod
    def _report(progress_callback: Optional[ProgressCallback], progress: float, message: str) -> None:
        if progress_callback:
            progress_callback(progress, message)

    async def close(self) -> None:
        """Release the classifier's HTTP session."""
        await self.classifier.close()

    async def __aenter__(self) -> 'VideoAnalyzer':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
