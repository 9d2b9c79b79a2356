"""
Depth Motion Detector

Keeps a per-pixel background depth model and flags frames in which enough
pixels deviate from it. Operates on raw sensor depth samples: the low
``player_index_bits`` bits carry player segmentation and are discarded.

Per frame:
1. depth = raw >> player_index_bits; valid where 0 < depth <= max_depth_mm
2. unseeded background pixels (0) take the current reading
3. changed = valid & |depth - background| > depth_diff_threshold_mm
4. background += alpha * (depth - background) on every valid pixel
5. a MotionEvent fires when changed.sum() > motion_pixels_threshold
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np

from depthcam.sensor.frames import DepthFrame

logger = logging.getLogger(__name__)


@dataclass
class MotionEvent:
    """Emitted when a depth frame exceeds the changed-pixel threshold."""

    timestamp: float  # time.monotonic()
    score: int  # changed pixel count


class BackgroundDepthModel:
    """Per-pixel expected depth in millimeters (0 = not seeded yet)."""

    def __init__(self, alpha: float = 0.01):
        self.alpha = alpha
        self.values: np.ndarray | None = None

    def ensure_shape(self, shape: tuple[int, ...]) -> np.ndarray:
        if self.values is None or self.values.shape != shape:
            if self.values is not None:
                logger.info(f"Depth resolution changed to {shape}, resetting background")
            self.values = np.zeros(shape, dtype=np.float64)
        return self.values

    def seed(self, depth: np.ndarray, valid: np.ndarray) -> None:
        bg = self.ensure_shape(depth.shape)
        unseeded = valid & (bg == 0)
        bg[unseeded] = depth[unseeded]

    def update(self, depth: np.ndarray, valid: np.ndarray) -> None:
        bg = self.ensure_shape(depth.shape)
        bg[valid] += self.alpha * (depth[valid] - bg[valid])

    def reset(self) -> None:
        self.values = None


class MotionDetector:
    """
    Binary motion signal from depth frames.

    Firing updates ``last_motion`` unconditionally; side effects
    (snapshot, audio) are gated by the capture orchestrator's own
    cooldowns, not here.
    """

    def __init__(
        self,
        depth_diff_threshold_mm: int = 80,
        motion_pixels_threshold: int = 1200,
        background_alpha: float = 0.01,
        max_depth_mm: int = 4000,
        player_index_bits: int = 3,
    ):
        self.depth_diff_threshold_mm = depth_diff_threshold_mm
        self.motion_pixels_threshold = motion_pixels_threshold
        self.max_depth_mm = max_depth_mm
        self.player_index_bits = player_index_bits
        self.background = BackgroundDepthModel(alpha=background_alpha)

        self._lock = threading.Lock()
        self._last_motion: float | None = None
        self._last_score = 0
        self._frames_processed = 0
        self._events_fired = 0
        self._on_motion_callbacks: list[Callable[[MotionEvent], None]] = []

        logger.info(
            f"MotionDetector initialized: diff={depth_diff_threshold_mm}mm, "
            f"pixels>{motion_pixels_threshold}, alpha={background_alpha}, "
            f"max_depth={max_depth_mm}mm"
        )

    @property
    def last_motion(self) -> float | None:
        """Monotonic time of the most recent motion event."""
        return self._last_motion

    @property
    def last_score(self) -> int:
        return self._last_score

    def motion_recent(self, seconds: float = 3.0, now: float | None = None) -> bool:
        """True if motion fired within the last ``seconds``."""
        last = self._last_motion
        if last is None:
            return False
        now = time.monotonic() if now is None else now
        return now - last <= seconds

    def depth_mm(self, samples: np.ndarray) -> np.ndarray:
        """Strip player index bits from raw samples."""
        return (samples.astype(np.uint16) >> self.player_index_bits).astype(np.float64)

    def changed_mask(self, depth: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Evaluate a depth frame against the background (seeding first).

        Returns:
            (changed, valid) boolean masks
        """
        valid = (depth > 0) & (depth <= self.max_depth_mm)
        self.background.seed(depth, valid)
        diff = np.abs(depth - self.background.values)
        changed = valid & (diff > self.depth_diff_threshold_mm)
        return changed, valid

    def process(self, frame: DepthFrame | np.ndarray, now: float | None = None) -> MotionEvent | None:
        """
        Process one depth frame.

        Args:
            frame: DepthFrame or raw (H, W) uint16 samples
            now: Monotonic timestamp (defaults to time.monotonic())

        Returns:
            MotionEvent if motion fired, else None
        """
        samples = frame.samples if isinstance(frame, DepthFrame) else frame
        now = time.monotonic() if now is None else now

        with self._lock:
            depth = self.depth_mm(samples)
            changed, valid = self.changed_mask(depth)
            score = int(changed.sum())
            self.background.update(depth, valid)

            self._frames_processed += 1
            self._last_score = score
            if score <= self.motion_pixels_threshold:
                return None

            self._last_motion = now
            self._events_fired += 1
            event = MotionEvent(timestamp=now, score=score)

        logger.debug(f"Motion: {score} pixels changed")

        # Invoke callbacks OUTSIDE the lock
        for callback in self._on_motion_callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    f"Motion callback {getattr(callback, '__name__', callback)} error: {e}",
                    exc_info=True,
                )
        return event

    def on_motion(self, callback: Callable[[MotionEvent], None]) -> None:
        """Register callback for motion events."""
        self._on_motion_callbacks.append(callback)

    def reset(self) -> None:
        with self._lock:
            self.background.reset()
            self._last_motion = None
            self._last_score = 0

    def get_status(self) -> dict:
        """Get detector status."""
        return {
            "frames_processed": self._frames_processed,
            "events_fired": self._events_fired,
            "last_score": self._last_score,
            "seconds_since_motion": (
                None if self._last_motion is None else time.monotonic() - self._last_motion
            ),
            "depth_diff_threshold_mm": self.depth_diff_threshold_mm,
            "motion_pixels_threshold": self.motion_pixels_threshold,
        }


def create_motion_detector() -> MotionDetector:
    """Create motion detector from config."""
    from depthcam.config import motion_config

    return MotionDetector(
        depth_diff_threshold_mm=motion_config.depth_diff_threshold_mm,
        motion_pixels_threshold=motion_config.motion_pixels_threshold,
        background_alpha=motion_config.background_alpha,
        max_depth_mm=motion_config.max_depth_mm,
        player_index_bits=motion_config.player_index_bits,
    )
