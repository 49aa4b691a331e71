"""Data models for the Clip Library Analyzer service."""

from .video_metadata import VideoMetadata, Orientation, orientation_for, format_duration
from .frame_analysis import SampledFrame, FrameAnalysis, FRAME_ERROR_MARKER
from .analysis_result import VideoAnalysisResult
from .video_record import VideoRecord
from .validation import validate_filename, validate_file_size, ValidationError

__all__ = [
    'VideoMetadata',
    'Orientation',
    'orientation_for',
    'format_duration',
    'SampledFrame',
    'FrameAnalysis',
    'FRAME_ERROR_MARKER',
    'VideoAnalysisResult',
    'VideoRecord',
    'validate_filename',
    'validate_file_size',
    'ValidationError'
]
