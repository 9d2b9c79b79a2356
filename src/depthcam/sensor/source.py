"""
Frame Source - sensor collaborator interface

The rest of the system only talks to the sensor through FrameSource:
pull-style next-frame calls per stream, color stream reconfiguration,
skeleton-to-image coordinate mapping, tilt motor access and the audio
source. MockFrameSource feeds synthetic frames through bounded queues so
the pipeline runs and is testable without hardware.
"""

import io
import logging
import math
import queue
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime

import numpy as np

from depthcam.sensor.frames import (
    DepthFrame,
    FrameBuffer,
    Joint,
    JointType,
    PixelLayout,
    Skeleton,
    SkeletonFrame,
    TrackingState,
)
from depthcam.state import RenderMode

logger = logging.getLogger(__name__)

# PCM format of the microphone array
AUDIO_SAMPLE_RATE = 16000
AUDIO_CHANNELS = 1
AUDIO_SAMPLE_WIDTH = 2  # bytes (16-bit)


class AudioSource(ABC):
    """Microphone capture: start() returns a readable PCM byte stream."""

    @abstractmethod
    def start(self) -> io.RawIOBase:
        """Start capture and return the PCM stream (mono, 16-bit LE, 16 kHz)."""

    @abstractmethod
    def stop(self) -> None:
        """Stop capture."""


class FrameSource(ABC):
    """Sensor collaborator: frame delivery, stream control, tilt, audio."""

    @abstractmethod
    def start(self) -> None:
        """Start all sensor streams."""

    @abstractmethod
    def stop(self) -> None:
        """Stop all sensor streams."""

    @abstractmethod
    def next_color_frame(self, timeout: float = 0.5) -> FrameBuffer | None:
        """Next color or infrared frame, or None on timeout."""

    @abstractmethod
    def next_depth_frame(self, timeout: float = 0.5) -> DepthFrame | None:
        """Next depth frame, or None on timeout."""

    @abstractmethod
    def next_skeleton_frame(self, timeout: float = 0.5) -> SkeletonFrame | None:
        """Next skeleton frame, or None on timeout."""

    @property
    @abstractmethod
    def color_mode(self) -> RenderMode:
        """Format the color stream is currently delivering."""

    @abstractmethod
    def set_color_mode(self, mode: RenderMode) -> None:
        """Disable the color stream and re-enable it in the given format."""

    @abstractmethod
    def map_skeleton_point(
        self, position: tuple[float, float, float], mode: RenderMode
    ) -> tuple[float, float]:
        """Project a skeleton-space point to image coordinates for a stream format."""

    @property
    @abstractmethod
    def tilt_range(self) -> tuple[int, int]:
        """(min, max) elevation angle in degrees."""

    @property
    @abstractmethod
    def elevation_angle(self) -> int:
        """Current elevation angle in degrees."""

    @abstractmethod
    def set_elevation_angle(self, angle: int) -> None:
        """Move the tilt motor."""

    @property
    @abstractmethod
    def audio_source(self) -> AudioSource:
        """Microphone array."""


class _ToneStream(io.RawIOBase):
    """Endless (or length-limited) 440 Hz sine PCM stream."""

    def __init__(self, total_bytes: int | None = None, realtime: bool = False):
        self._total = total_bytes
        self._realtime = realtime
        self._produced = 0
        self._sample_index = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        size = len(buffer)
        if self._total is not None:
            size = min(size, self._total - self._produced)
        size -= size % AUDIO_SAMPLE_WIDTH
        if size <= 0:
            return 0

        count = size // AUDIO_SAMPLE_WIDTH
        t = (np.arange(count) + self._sample_index) / AUDIO_SAMPLE_RATE
        samples = (np.sin(2 * math.pi * 440.0 * t) * 8000).astype("<i2")
        buffer[:size] = samples.tobytes()
        self._sample_index += count
        self._produced += size

        if self._realtime:
            time.sleep(count / AUDIO_SAMPLE_RATE)
        return size


class MockAudioSource(AudioSource):
    """Synthetic microphone for development/testing without hardware."""

    def __init__(self, total_bytes: int | None = None, realtime: bool = False):
        self.total_bytes = total_bytes
        self.realtime = realtime
        self.started = False
        self.start_count = 0

    def start(self) -> io.RawIOBase:
        self.started = True
        self.start_count += 1
        logger.debug("[MOCK] Audio source started")
        return _ToneStream(self.total_bytes, self.realtime)

    def stop(self) -> None:
        self.started = False
        logger.debug("[MOCK] Audio source stopped")


def _put_latest(q: queue.Queue, item) -> None:
    """Enqueue, dropping the oldest item when the queue is full."""
    while True:
        try:
            q.put_nowait(item)
            return
        except queue.Full:
            try:
                q.get_nowait()
            except queue.Empty:
                pass


class MockFrameSource(FrameSource):
    """
    Synthetic sensor for development/testing without hardware.

    Frames are delivered through bounded queues. Tests push frames with the
    push_* methods; with synthetic=True a background thread generates a
    scene at the configured framerate.
    """

    def __init__(
        self,
        color_resolution: tuple[int, int] = (640, 480),
        depth_resolution: tuple[int, int] = (320, 240),
        framerate: int = 30,
        tilt_range: tuple[int, int] = (-27, 27),
        synthetic: bool = False,
        queue_size: int = 2,
        audio_source: AudioSource | None = None,
    ):
        self.color_resolution = color_resolution
        self.depth_resolution = depth_resolution
        self.framerate = framerate
        self.synthetic = synthetic
        self.scene_brightness = 128  # synthetic color frame level (0-255)

        self._color_q: queue.Queue = queue.Queue(maxsize=queue_size)
        self._depth_q: queue.Queue = queue.Queue(maxsize=queue_size)
        self._skeleton_q: queue.Queue = queue.Queue(maxsize=queue_size)

        self._mode = RenderMode.COLOR
        self._tilt_range = tilt_range
        self._elevation = 0
        self._audio = audio_source or MockAudioSource(realtime=True)
        self.mode_switches: list[RenderMode] = []
        self.fail_mode_switch = False
        self.fail_tilt = False

        self._running = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._frame_number = 0

        logger.info(
            f"[MOCK] Frame source initialized: color={color_resolution}, "
            f"depth={depth_resolution}, fps={framerate}"
        )

    # ==================== Lifecycle ====================

    def start(self) -> None:
        self._running = True
        if self.synthetic and self._thread is None:
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._generate_loop, name="MockSensorThread", daemon=True
            )
            self._thread.start()
        logger.info("[MOCK] Sensor started")

    def stop(self) -> None:
        self._running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        logger.info("[MOCK] Sensor stopped")

    # ==================== Frame delivery ====================

    def push_color(self, frame: FrameBuffer) -> None:
        _put_latest(self._color_q, frame)

    def push_depth(self, frame: DepthFrame) -> None:
        _put_latest(self._depth_q, frame)

    def push_skeletons(self, frame: SkeletonFrame) -> None:
        _put_latest(self._skeleton_q, frame)

    def next_color_frame(self, timeout: float = 0.5) -> FrameBuffer | None:
        try:
            return self._color_q.get(timeout=timeout)
        except queue.Empty:
            return None

    def next_depth_frame(self, timeout: float = 0.5) -> DepthFrame | None:
        try:
            return self._depth_q.get(timeout=timeout)
        except queue.Empty:
            return None

    def next_skeleton_frame(self, timeout: float = 0.5) -> SkeletonFrame | None:
        try:
            return self._skeleton_q.get(timeout=timeout)
        except queue.Empty:
            return None

    # ==================== Stream control ====================

    @property
    def color_mode(self) -> RenderMode:
        return self._mode

    def set_color_mode(self, mode: RenderMode) -> None:
        if self.fail_mode_switch:
            raise RuntimeError("color stream reconfiguration failed")
        self._mode = mode
        self.mode_switches.append(mode)
        # Frames queued in the old format are stale after a switch
        while True:
            try:
                self._color_q.get_nowait()
            except queue.Empty:
                break
        logger.info(f"[MOCK] Color stream enabled as {mode.label}")

    def map_skeleton_point(
        self, position: tuple[float, float, float], mode: RenderMode
    ) -> tuple[float, float]:
        """Pinhole projection onto the color/IR image."""
        x, y, z = position
        w, h = self.color_resolution
        z = max(z, 0.1)
        focal = 531.0 * w / 640.0
        return (w / 2 + focal * x / z, h / 2 - focal * y / z)

    # ==================== Tilt ====================

    @property
    def tilt_range(self) -> tuple[int, int]:
        return self._tilt_range

    @property
    def elevation_angle(self) -> int:
        return self._elevation

    def set_elevation_angle(self, angle: int) -> None:
        if self.fail_tilt:
            raise RuntimeError("tilt motor not responding")
        self._elevation = int(angle)
        logger.info(f"[MOCK] Elevation -> {self._elevation}")

    # ==================== Audio ====================

    @property
    def audio_source(self) -> AudioSource:
        return self._audio

    # ==================== Synthetic scene ====================

    def make_color_frame(self, brightness: int | None = None) -> FrameBuffer:
        """Uniform BGRA frame at the given brightness."""
        level = self.scene_brightness if brightness is None else brightness
        w, h = self.color_resolution
        pixels = np.full((h, w, 4), level, dtype=np.uint8)
        pixels[..., 3] = 255
        return FrameBuffer(pixels=pixels, layout=PixelLayout.BGRA)

    def make_ir_frame(self) -> FrameBuffer:
        w, h = self.color_resolution
        rng = np.random.default_rng(self._frame_number)
        pixels = rng.integers(200, 1500, size=(h, w), dtype=np.uint16)
        return FrameBuffer(pixels=pixels.astype("<u2"), layout=PixelLayout.IR16)

    def make_depth_frame(self, with_intruder: bool = False) -> DepthFrame:
        w, h = self.depth_resolution
        depth_mm = np.full((h, w), 2500, dtype=np.uint16)
        if with_intruder:
            depth_mm[h // 4 : 3 * h // 4, w // 3 : 2 * w // 3] = 1200
        return DepthFrame(samples=(depth_mm << 3).astype(np.uint16))

    def make_skeleton_frame(self) -> SkeletonFrame:
        sway = 0.1 * math.sin(self._frame_number / 15.0)
        layout = {
            JointType.HEAD: (0.0, 0.6),
            JointType.SHOULDER_CENTER: (0.0, 0.4),
            JointType.SHOULDER_LEFT: (-0.2, 0.35),
            JointType.SHOULDER_RIGHT: (0.2, 0.35),
            JointType.ELBOW_LEFT: (-0.3, 0.1),
            JointType.ELBOW_RIGHT: (0.3, 0.1),
            JointType.WRIST_LEFT: (-0.35, -0.1),
            JointType.WRIST_RIGHT: (0.35, -0.1),
            JointType.HAND_LEFT: (-0.37, -0.18),
            JointType.HAND_RIGHT: (0.37, -0.18),
            JointType.SPINE: (0.0, 0.1),
            JointType.HIP_CENTER: (0.0, -0.05),
            JointType.HIP_LEFT: (-0.1, -0.1),
            JointType.HIP_RIGHT: (0.1, -0.1),
            JointType.KNEE_LEFT: (-0.12, -0.5),
            JointType.KNEE_RIGHT: (0.12, -0.5),
            JointType.ANKLE_LEFT: (-0.13, -0.9),
            JointType.ANKLE_RIGHT: (0.13, -0.9),
            JointType.FOOT_LEFT: (-0.15, -0.95),
            JointType.FOOT_RIGHT: (0.15, -0.95),
        }
        joints = {
            jt: Joint(position=(x + sway, y, 2.5)) for jt, (x, y) in layout.items()
        }
        return SkeletonFrame(skeletons=(Skeleton(TrackingState.TRACKED, joints),))

    def _generate_loop(self) -> None:
        interval = 1.0 / self.framerate
        logger.info("[MOCK] Synthetic frame generator started")
        while not self._stop_event.is_set():
            start = time.perf_counter()
            self._frame_number += 1
            if self._mode is RenderMode.INFRARED:
                self.push_color(self.make_ir_frame())
            else:
                self.push_color(self.make_color_frame())
            intruder = (self._frame_number // (self.framerate * 5)) % 4 == 3
            self.push_depth(self.make_depth_frame(with_intruder=intruder))
            if self._frame_number % 2 == 0:
                self.push_skeletons(self.make_skeleton_frame())
            sleep_time = interval - (time.perf_counter() - start)
            if sleep_time > 0:
                time.sleep(sleep_time)
        logger.info("[MOCK] Synthetic frame generator stopped")


def create_frame_source(backend: str | None = None) -> FrameSource:
    """Create the frame source named in the sensor config."""
    from depthcam.config import sensor_config

    backend = backend or sensor_config.backend
    if backend == "mock":
        return MockFrameSource(
            color_resolution=sensor_config.color_resolution,
            depth_resolution=sensor_config.depth_resolution,
            framerate=sensor_config.framerate,
            synthetic=True,
        )
    raise ValueError(f"Unknown sensor backend: {backend!r}")
