"""
Pytest configuration and shared fixtures for the Clip Library Analyzer test suite.
"""

import os

os.environ["ENVIRONMENT"] = "testing"

import pytest
import tempfile
import shutil
import cv2
import numpy as np
from pathlib import Path
from typing import Dict, List

from models.frame_analysis import FrameAnalysis
from storage.file_manager import FileManager
from storage.video_library import VideoLibrary


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


def write_test_video(output_path: Path, width: int = 320, height: int = 240,
                     num_frames: int = 30, fps: float = 10.0) -> Path:
    """Write a synthetic clip with noisy, moving content."""
    fourcc = cv2.VideoWriter_fourcc(*'mp4v')
    writer = cv2.VideoWriter(str(output_path), fourcc, fps, (width, height))
    rng = np.random.default_rng(0)

    for i in range(num_frames):
        frame = rng.integers(0, 60, (height, width, 3), dtype=np.uint8)
        x_pos = (i * 7) % max(1, width - 40)
        cv2.rectangle(frame, (x_pos, height // 4), (x_pos + 40, height // 4 + 50), (200, 180, 160), -1)
        cv2.putText(frame, str(i), (5, height - 10), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1)
        writer.write(frame)

    writer.release()
    return output_path


def make_jpeg(width: int, height: int, quality: int = 90) -> bytes:
    """Encode a gradient test image of the given size as JPEG."""
    x = np.linspace(0, 255, width, dtype=np.uint8)
    y = np.linspace(0, 255, height, dtype=np.uint8)
    image = np.dstack([
        np.tile(x, (height, 1)),
        np.tile(y[:, None], (1, width)),
        np.full((height, width), 128, dtype=np.uint8)
    ])
    ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    assert ok
    return buffer.tobytes()


@pytest.fixture
def video_factory(temp_dir):
    """Build synthetic clips on demand."""
    def _factory(name: str = "clip.mp4", **kwargs) -> Path:
        return write_test_video(temp_dir / name, **kwargs)
    return _factory


@pytest.fixture
def landscape_video(video_factory):
    """3 second 320x240 clip."""
    return video_factory("landscape.mp4", width=320, height=240)


@pytest.fixture
def portrait_video(video_factory):
    """3 second 240x320 clip."""
    return video_factory("portrait.mp4", width=240, height=320)


@pytest.fixture
def long_video(video_factory):
    """30 second clip at 2 fps."""
    return video_factory("long.mp4", width=160, height=120, num_frames=60, fps=2.0)


@pytest.fixture
def corrupted_video_file(temp_dir):
    """Create a corrupted video file for error testing."""
    video_path = temp_dir / "corrupted_video.mp4"
    with open(video_path, 'wb') as f:
        f.write(b"This is not a valid video file content" * 64)
    return video_path


@pytest.fixture
def jpeg_factory():
    """Build JPEG stills of arbitrary size."""
    return make_jpeg


class FakePipeline:
    """Buffers commands and applies them to a FakeRedis on execute."""

    def __init__(self, client: 'FakeRedis'):
        self.client = client
        self.commands = []

    def __getattr__(self, name):
        def _queue(*args):
            self.commands.append((name, args))
            return self
        return _queue

    def execute(self):
        results = [getattr(self.client, name)(*args) for name, args in self.commands]
        self.commands = []
        return results


class FakeRedis:
    """In-memory stand-in for the subset of redis.Redis the library uses."""

    def __init__(self):
        self.values: Dict[str, str] = {}
        self.sets: Dict[str, set] = {}
        self.available = True

    def _check(self):
        import redis
        if not self.available:
            raise redis.exceptions.ConnectionError("Redis is down")

    def ping(self):
        self._check()
        return True

    def get(self, key):
        self._check()
        return self.values.get(key)

    def set(self, key, value):
        self._check()
        self.values[key] = value
        return True

    def delete(self, *keys):
        self._check()
        return sum(1 for key in keys if self.values.pop(key, None) is not None)

    def sadd(self, key, *members):
        self._check()
        target = self.sets.setdefault(key, set())
        before = len(target)
        target.update(members)
        return len(target) - before

    def srem(self, key, *members):
        self._check()
        target = self.sets.get(key, set())
        removed = len(target & set(members))
        target.difference_update(members)
        return removed

    def smembers(self, key):
        self._check()
        return set(self.sets.get(key, set()))

    def pipeline(self):
        return FakePipeline(self)


@pytest.fixture
def fake_redis():
    """Provide an in-memory Redis double."""
    return FakeRedis()


@pytest.fixture
def video_library(fake_redis):
    """Provide a VideoLibrary backed by the in-memory Redis double."""
    return VideoLibrary(redis_client=fake_redis)


@pytest.fixture
def file_manager(temp_dir):
    """Provide a FileManager rooted in the test's temporary directory."""
    return FileManager(
        base_storage_path=str(temp_dir / "clips"),
        temp_dir=str(temp_dir / "temp")
    )


def frame_result(index: int, face: bool = False, face_confidence: float = 0.0,
                 subtitle: bool = False, subtitle_confidence: float = 0.0) -> FrameAnalysis:
    """Build a successful frame classification."""
    return FrameAnalysis(
        frame_index=index,
        has_clear_face=face,
        face_confidence=face_confidence,
        face_description="person" if face else "",
        has_subtitle=subtitle,
        subtitle_confidence=subtitle_confidence,
        subtitle_text="caption" if subtitle else ""
    )


class FakeClassifier:
    """Classifier double that answers from a per-index table."""

    def __init__(self, results: Dict[int, FrameAnalysis] = None, default: FrameAnalysis = None):
        self.results = results or {}
        self.default = default
        self.calls: List[int] = []
        self.images: List[bytes] = []
        self.closed = False

    async def classify(self, image, index):
        self.calls.append(index)
        self.images.append(image)
        if index in self.results:
            return self.results[index]
        if self.default is not None:
            return self.default
        return frame_result(index)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_classifier():
    """Classifier double returning empty verdicts."""
    return FakeClassifier()


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for complete workflows")
    config.addinivalue_line("markers", "requires_opencv: Tests that require OpenCV functionality")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test names and paths."""
    for item in items:
        if "test_api" in item.nodeid or "test_video_analyzer" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)

        if any(term in item.name.lower() for term in ["video", "frame", "sample", "normaliz"]):
            item.add_marker(pytest.mark.requires_opencv)
