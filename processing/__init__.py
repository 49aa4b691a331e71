# Clip analysis pipeline: sampling, normalization, classification, voting

from .frame_sampler import FrameSampler, FrameSamplerConfig, VideoLoadError
from .image_normalizer import normalize_image, ImageNormalizationError
from .frame_classifier import FrameClassifierClient
from .aggregator import aggregate, AggregationPolicy, AllFramesFailedError
from .video_analyzer import VideoAnalyzer, VideoAnalyzerConfig

__all__ = [
    'FrameSampler',
    'FrameSamplerConfig',
    'VideoLoadError',
    'normalize_image',
    'ImageNormalizationError',
    'FrameClassifierClient',
    'aggregate',
    'AggregationPolicy',
    'AllFramesFailedError',
    'VideoAnalyzer',
    'VideoAnalyzerConfig'
]
