"""
Device State - process-wide live-view configuration

Holds the render mode and every user-tunable setting read by the image
pipeline. Writers go through the validated setters below; readers use the
plain properties and tolerate a briefly stale single field.
"""

import logging
import threading
from enum import Enum

logger = logging.getLogger(__name__)

JPEG_QUALITY_MIN = 10
JPEG_QUALITY_MAX = 100
LUMA_MIN = 0.0
LUMA_MAX = 100.0
# Minimum gap kept between the night and day thresholds
THRESHOLD_GAP = 1.0


class RenderMode(Enum):
    """Active color stream format."""

    COLOR = "rgb"
    INFRARED = "ir"

    @property
    def label(self) -> str:
        return "IR" if self is RenderMode.INFRARED else "RGB"


class TintMode(Enum):
    """Infrared colorization."""

    GRAY = "gray"
    GREEN = "green"


def _clamp(value, low, high):
    return max(low, min(high, value))


class DeviceState:
    """
    Mutable device configuration shared by all components.

    Each field is independently consistent. The threshold pair is updated
    under a lock so the day threshold always stays above the night one.
    """

    def __init__(
        self,
        mode: RenderMode = RenderMode.COLOR,
        auto_night: bool = True,
        night_threshold: float = 36.0,
        day_threshold: float = 44.0,
        tint: TintMode = TintMode.GRAY,
        smooth: bool = True,
        jpeg_quality: int = 60,
        show_skeleton: bool = True,
    ):
        self._lock = threading.Lock()
        self._mode = mode
        self._auto_night = auto_night
        self._tint = tint
        self._smooth = smooth
        self._show_skeleton = show_skeleton
        self._jpeg_quality = _clamp(int(jpeg_quality), JPEG_QUALITY_MIN, JPEG_QUALITY_MAX)
        self._night_threshold = LUMA_MIN
        self._day_threshold = LUMA_MAX
        self.set_thresholds(night=night_threshold, day=day_threshold)
        self._tilt_angle = 0

    # ==================== Readers ====================

    @property
    def mode(self) -> RenderMode:
        return self._mode

    @property
    def auto_night(self) -> bool:
        return self._auto_night

    @property
    def night_threshold(self) -> float:
        return self._night_threshold

    @property
    def day_threshold(self) -> float:
        return self._day_threshold

    @property
    def tint(self) -> TintMode:
        return self._tint

    @property
    def green_tint(self) -> bool:
        return self._tint is TintMode.GREEN

    @property
    def smooth(self) -> bool:
        return self._smooth

    @property
    def jpeg_quality(self) -> int:
        return self._jpeg_quality

    @property
    def show_skeleton(self) -> bool:
        return self._show_skeleton

    @property
    def tilt_angle(self) -> int:
        return self._tilt_angle

    # ==================== Validated writers ====================

    def set_mode(self, mode: RenderMode) -> None:
        """Record the active render mode (called after a successful stream switch)."""
        if mode is not self._mode:
            logger.info(f"Render mode: {self._mode.label} -> {mode.label}")
        self._mode = mode

    def set_auto_night(self, enabled: bool) -> None:
        self._auto_night = bool(enabled)
        logger.info(f"AutoNight: {'ON' if self._auto_night else 'OFF'}")

    def toggle_auto_night(self) -> None:
        self.set_auto_night(not self._auto_night)

    def set_tint(self, tint: TintMode) -> None:
        self._tint = tint
        logger.info(f"Tint: {tint.value}")

    def toggle_tint(self) -> None:
        self.set_tint(TintMode.GRAY if self.green_tint else TintMode.GREEN)

    def set_smooth(self, enabled: bool) -> None:
        self._smooth = bool(enabled)
        logger.info(f"Smooth: {'ON' if self._smooth else 'OFF'}")

    def toggle_smooth(self) -> None:
        self.set_smooth(not self._smooth)

    def set_show_skeleton(self, enabled: bool) -> None:
        self._show_skeleton = bool(enabled)

    def toggle_show_skeleton(self) -> None:
        self.set_show_skeleton(not self._show_skeleton)

    def set_jpeg_quality(self, quality: int) -> int:
        """Clamp and store JPEG quality. Returns the stored value."""
        self._jpeg_quality = _clamp(int(quality), JPEG_QUALITY_MIN, JPEG_QUALITY_MAX)
        logger.info(f"JPEG quality: {self._jpeg_quality}")
        return self._jpeg_quality

    def set_thresholds(self, night: float | None = None, day: float | None = None) -> None:
        """
        Update one or both luma thresholds.

        Both values are clamped to [0, 100] and the pair is re-validated on
        every write: the day threshold is kept at least THRESHOLD_GAP above
        night, pushing night down when day cannot move up.
        """
        with self._lock:
            new_night = self._night_threshold if night is None else float(night)
            new_day = self._day_threshold if day is None else float(day)
            new_night = _clamp(new_night, LUMA_MIN, LUMA_MAX)
            new_day = _clamp(new_day, LUMA_MIN, LUMA_MAX)

            if new_day < new_night + THRESHOLD_GAP:
                new_day = min(LUMA_MAX, new_night + THRESHOLD_GAP)
                new_night = min(new_night, new_day - THRESHOLD_GAP)

            self._night_threshold = new_night
            self._day_threshold = new_day

    def set_tilt_angle(self, angle: int) -> None:
        self._tilt_angle = int(angle)

    def get_status(self) -> dict:
        """Status fields of the control surface."""
        return {
            "mode": self._mode.label,
            "autoNight": self._auto_night,
            "tint": self.green_tint,
            "smooth": self._smooth,
            "jpeg": self._jpeg_quality,
            "night": int(self._night_threshold),
            "day": int(self._day_threshold),
            "skeleton": self._show_skeleton,
            "tilt": self._tilt_angle,
        }


def create_default_state() -> DeviceState:
    """Create device state from render config."""
    from depthcam.config import render_config

    return DeviceState(
        auto_night=render_config.auto_night,
        night_threshold=render_config.night_threshold,
        day_threshold=render_config.day_threshold,
        tint=TintMode.GREEN if render_config.green_tint else TintMode.GRAY,
        smooth=render_config.smooth,
        jpeg_quality=render_config.jpeg_quality,
        show_skeleton=render_config.show_skeleton,
    )
