"""
Pytest configuration and shared fixtures for DepthCam tests.
"""

import sys
import threading
import time
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from depthcam.camera.frame_cell import SnapshotCell
from depthcam.capture.audio_recorder import AudioRecorder
from depthcam.capture.orchestrator import CaptureOrchestrator
from depthcam.sensor.frames import FrameBuffer, PixelLayout
from depthcam.sensor.source import MockAudioSource, MockFrameSource
from depthcam.state import DeviceState


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds or the timeout expires."""

    def _wait(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait


@pytest.fixture
def audio_source():
    """Non-realtime synthetic microphone."""
    return MockAudioSource(realtime=False)


@pytest.fixture
def mock_source(audio_source):
    """Small mock sensor; frames are pushed by the tests."""
    return MockFrameSource(
        color_resolution=(64, 48),
        depth_resolution=(32, 24),
        framerate=30,
        audio_source=audio_source,
    )


@pytest.fixture
def state():
    """Device state with default thresholds (night 36, day 44)."""
    return DeviceState()


@pytest.fixture
def frame_cell():
    return SnapshotCell()


@pytest.fixture
def rgb_frame():
    """A rendered 64x48 RGB frame."""
    pixels = np.full((48, 64, 3), 100, dtype=np.uint8)
    return FrameBuffer(pixels=pixels, layout=PixelLayout.RGB)


@pytest.fixture
def capture_dir(tmp_path):
    path = tmp_path / "captures"
    path.mkdir()
    return path


@pytest.fixture
def recorder(audio_source, capture_dir):
    return AudioRecorder(audio_source=audio_source, output_dir=capture_dir)


@pytest.fixture
def orchestrator(frame_cell, state, recorder, capture_dir):
    orch = CaptureOrchestrator(
        frame_cell=frame_cell,
        state=state,
        recorder=recorder,
        output_dir=capture_dir,
        snapshot_cooldown_seconds=8.0,
        audio_cooldown_seconds=10.0,
        audio_seconds=1,
    )
    yield orch
    recorder.wait(timeout=5.0)


@pytest.fixture
def stop_event():
    event = threading.Event()
    yield event
    event.set()
