"""
Control-surface command parsing.

Applies the recognized query parameters of ``/api/set`` to the device in a
fixed order: mode, toggles, tuning, snapshot/record, tilt. Malformed or
out-of-vocabulary values are ignored and leave the setting unchanged.
"""

import logging
from typing import Mapping

from depthcam.state import RenderMode, TintMode

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "on", "yes"}
FALSE_VALUES = {"0", "false", "off", "no"}


def parse_flag(value: str, current: bool) -> bool | None:
    """'toggle' flips, true/false words set, anything else is None (ignored)."""
    token = value.strip().lower()
    if token == "toggle":
        return not current
    if token in TRUE_VALUES:
        return True
    if token in FALSE_VALUES:
        return False
    return None


def parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        number = float(value.strip())
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def apply_commands(
    params: Mapping[str, str],
    state,
    camera=None,
    capture=None,
    tilt=None,
) -> list[str]:
    """
    Apply control parameters.

    Args:
        params: Query parameters (empty values count as absent)
        state: DeviceState
        camera: CameraService (mode switches)
        capture: CaptureOrchestrator (snap, record)
        tilt: TiltController (tilt, tiltAbs)

    Returns:
        Names of the parameters that were applied
    """

    def get(key: str) -> str | None:
        value = params.get(key)
        return value if value else None

    applied: list[str] = []

    # MODE
    mode = get("mode")
    if mode is not None:
        target = {"ir": RenderMode.INFRARED, "rgb": RenderMode.COLOR}.get(mode.strip().lower())
        if target is None:
            logger.debug(f"Ignoring mode={mode!r}")
        elif camera is not None:
            camera.request_mode(target)
            applied.append("mode")
        else:
            state.set_auto_night(False)
            state.set_mode(target)
            applied.append("mode")

    # TOGGLES
    value = get("auto")
    if value is not None:
        flag = parse_flag(value, state.auto_night)
        if flag is not None:
            state.set_auto_night(flag)
            applied.append("auto")

    value = get("tint")
    if value is not None:
        token = value.strip().lower()
        if token == "toggle":
            state.toggle_tint()
            applied.append("tint")
        elif token in ("green", "gray", "grey"):
            state.set_tint(TintMode.GREEN if token == "green" else TintMode.GRAY)
            applied.append("tint")

    value = get("smooth")
    if value is not None:
        flag = parse_flag(value, state.smooth)
        if flag is not None:
            state.set_smooth(flag)
            applied.append("smooth")

    value = get("skeleton")
    if value is not None:
        flag = parse_flag(value, state.show_skeleton)
        if flag is not None:
            state.set_show_skeleton(flag)
            applied.append("skeleton")

    # TUNING
    quality = parse_int(get("jpeg"))
    if quality is not None:
        state.set_jpeg_quality(quality)
        applied.append("jpeg")

    night = parse_float(get("night"))
    day = parse_float(get("day"))
    if night is not None or day is not None:
        state.set_thresholds(night=night, day=day)
        if night is not None:
            applied.append("night")
        if day is not None:
            applied.append("day")

    # SNAP / AUDIO
    snap = get("snap")
    if snap is not None and snap.strip() not in FALSE_VALUES and capture is not None:
        capture.save_snapshot(manual=True)
        applied.append("snap")

    seconds = parse_int(get("record"))
    if seconds is not None and capture is not None:
        capture.start_recording(seconds)
        applied.append("record")

    # TILT
    tilt_rel = get("tilt")
    tilt_abs = get("tiltAbs")
    if (tilt_rel is not None or tilt_abs is not None) and tilt is not None:
        tilt.apply(relative=tilt_rel, absolute=tilt_abs)
        applied.append("tiltAbs" if tilt_abs is not None else "tilt")

    if applied:
        logger.info(f"Commands applied: {', '.join(applied)}")
    return applied
