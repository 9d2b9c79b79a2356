"""
Tilt Motor Controller

Rate-limited, range-clamped elevation control for the sensor's tilt motor.

Safety Features:
- Target angle clamped to the device's reported min/max range
- Cooldown between applied commands (default 0.8 s) to spare the motor
- Commands inside the cooldown are rejected and logged, never raised
"""

import logging
import threading
import time

from depthcam.cooldown import RateLimiter
from depthcam.sensor.source import FrameSource
from depthcam.state import DeviceState

logger = logging.getLogger(__name__)


class TiltController:
    """Resolves relative/absolute tilt commands and drives the motor."""

    def __init__(
        self,
        source: FrameSource,
        state: DeviceState | None = None,
        step_degrees: int = 2,
        cooldown_seconds: float = 0.8,
    ):
        """
        Initialize the tilt controller.

        Args:
            source: Sensor exposing tilt range and elevation angle
            state: Device state updated with the applied angle
            step_degrees: Degrees moved per "up"/"down" command
            cooldown_seconds: Minimum interval between applied commands
        """
        self.source = source
        self.state = state
        self.step_degrees = step_degrees
        self.cooldown = RateLimiter(cooldown_seconds, name="tilt")
        self._lock = threading.Lock()
        self._applied = 0
        self._rejected = 0

        logger.info(
            f"TiltController initialized (step={step_degrees}deg, cooldown={cooldown_seconds}s)"
        )

    @property
    def angle(self) -> int:
        """Current elevation angle reported by the device (0 if unreadable)."""
        try:
            return self.source.elevation_angle
        except Exception as e:
            logger.debug(f"Elevation read failed: {e}")
            return 0

    def resolve_target(
        self,
        current: int,
        relative: str | int | None = None,
        absolute: str | int | None = None,
    ) -> int:
        """
        Target angle for a command, before clamping.

        An absolute target wins over a relative one. Malformed values leave
        the angle where it is.
        """
        if absolute is not None:
            try:
                return int(absolute)
            except (TypeError, ValueError):
                return current

        if relative is None:
            return current
        if isinstance(relative, int):
            return current + relative

        token = str(relative).strip().lower()
        if token == "up":
            return current + self.step_degrees
        if token == "down":
            return current - self.step_degrees
        try:
            return current + int(token)
        except ValueError:
            return current

    def apply(
        self,
        relative: str | int | None = None,
        absolute: str | int | None = None,
        now: float | None = None,
    ) -> int | None:
        """
        Apply a tilt command.

        Returns:
            The applied angle, or None if rejected (cooldown, no change, error)
        """
        now = time.monotonic() if now is None else now

        with self._lock:
            if not self.cooldown.ready(now):
                self._rejected += 1
                logger.info(
                    f"Tilt rejected: cooldown ({self.cooldown.remaining(now):.2f}s left)"
                )
                return None

            try:
                low, high = self.source.tilt_range
                current = self.source.elevation_angle
                target = max(low, min(high, self.resolve_target(current, relative, absolute)))

                if target == current:
                    logger.debug(f"Tilt unchanged at {current}")
                    return None

                self.source.set_elevation_angle(target)
                self.cooldown.mark(now)
            except Exception as e:
                logger.error(f"Tilt set error: {e}")
                return None

            self._applied += 1

        if self.state is not None:
            self.state.set_tilt_angle(target)
        logger.info(f"Tilt {current} -> {target}")
        return target

    def get_status(self) -> dict:
        """Get tilt status."""
        try:
            tilt_range = self.source.tilt_range
        except Exception:
            tilt_range = None
        return {
            "angle": self.angle,
            "range": tilt_range,
            "step_degrees": self.step_degrees,
            "cooldown_remaining": self.cooldown.remaining(),
            "applied": self._applied,
            "rejected": self._rejected,
        }


def create_tilt_controller(source: FrameSource, state: DeviceState | None = None) -> TiltController:
    """Create tilt controller from config."""
    from depthcam.config import tilt_config

    return TiltController(
        source=source,
        state=state,
        step_degrees=tilt_config.step_degrees,
        cooldown_seconds=tilt_config.cooldown_seconds,
    )
