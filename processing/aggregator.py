"""Confidence-threshold voting over per-frame classifications."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from models.frame_analysis import FrameAnalysis

logger = logging.getLogger(__name__)


class AllFramesFailedError(Exception):
    """Raised when no frame of a clip could be analysed."""

    def __init__(self, total_frames: int, last_error: Optional[str] = None):
        self.total_frames = total_frames
        self.last_error = last_error
        message = (
            f"AI analysis failed for all {total_frames} frames. "
            "Check that QWEN_API_KEY is set for the analysis proxy, that the proxy "
            "can reach the upstream model endpoint, and that /api/analyze-frame is reachable."
        )
        if last_error:
            message += f" Last error: {last_error}"
        super().__init__(message)


@dataclass(frozen=True)
class AggregationPolicy:
    """Thresholds deciding the clip-level flags."""

    face_confidence_min: float = 0.7
    face_min_frames: int = 2
    subtitle_confidence_min: float = 0.7
    subtitle_min_frames: int = 2

    def __post_init__(self):
        for name in ("face_confidence_min", "subtitle_confidence_min"):
            if not (0.0 <= getattr(self, name) <= 1.0):
                raise ValueError(f"{name} must be between 0.0 and 1.0")
        for name in ("face_min_frames", "subtitle_min_frames"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")


@dataclass(frozen=True)
class AggregationResult:
    """Clip-level verdict plus the vote counts behind it."""

    has_human: bool
    has_subtitles: bool
    face_frames: int
    subtitle_frames: int
    failed_frames: int
    total_frames: int


def aggregate(analyses: Iterable[FrameAnalysis],
              policy: Optional[AggregationPolicy] = None) -> AggregationResult:
    """
    Combine per-frame results into the clip classification.

    A frame votes for a face when it reports a clear face with at least the
    policy confidence; the clip has a human when the votes reach the policy
    floor. Subtitles follow the same rule. Failed frames never vote.

    Args:
        analyses: Results for every sampled frame, in any order
        policy: Thresholds to apply; documented defaults when None

    Returns:
        AggregationResult with both flags and the counts

    Raises:
        AllFramesFailedError: If every frame is a failure placeholder
    """
    policy = policy or AggregationPolicy()
    analyses = list(analyses)

    failures = [a for a in analyses if a.is_failure]
    if len(failures) == len(analyses):
        last_error = failures[-1].error if failures else None
        raise AllFramesFailedError(len(analyses), last_error)

    if failures:
        logger.warning(f"{len(failures)} of {len(analyses)} frames failed analysis; continuing with the rest")

    face_frames = sum(1 for a in analyses if a.face_vote(policy.face_confidence_min))
    subtitle_frames = sum(1 for a in analyses if a.subtitle_vote(policy.subtitle_confidence_min))

    return AggregationResult(
        has_human=face_frames >= policy.face_min_frames,
        has_subtitles=subtitle_frames >= policy.subtitle_min_frames,
        face_frames=face_frames,
        subtitle_frames=subtitle_frames,
        failed_frames=len(failures),
        total_frames=len(analyses)
    )
