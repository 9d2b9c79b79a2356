"""
Frame Ingest & Mode State Machine

Receives color-stream frames, decides between COLOR and INFRARED rendering
from sampled brightness, performs stream switches and publishes the
composed frame to the latest-frame cell.

Transitions (auto-night enabled):
    COLOR    -> INFRARED  when luma < night threshold
    INFRARED -> COLOR     when luma > day threshold (day > night)

While INFRARED the sensor delivers no color frames, so a day probe
periodically re-enables the color stream for a single brightness sample
and goes back to infrared unless it is bright enough.

A frame that triggers a switch, or arrives while one is in progress, is
dropped.
"""

import logging
import threading
import time
from typing import Callable

from depthcam.camera.frame_annotator import annotate_frame, status_label
from depthcam.camera.frame_cell import SnapshotCell
from depthcam.camera.image_ops import average_luma, bgra_to_rgb, ir_to_rgb
from depthcam.sensor.frames import FrameBuffer, PixelLayout, SkeletonFrame
from depthcam.sensor.source import FrameSource
from depthcam.state import DeviceState, RenderMode

logger = logging.getLogger(__name__)


class FrameIngest:
    """Turns raw color/IR frames into published live-view frames."""

    def __init__(
        self,
        source: FrameSource,
        state: DeviceState,
        frame_cell: SnapshotCell[FrameBuffer],
        skeleton_cell: SnapshotCell[SkeletonFrame] | None = None,
        motion_recent: Callable[[], bool] | None = None,
        luma_step: int = 8,
        ir_step: int = 8,
        blur_passes: int = 1,
        day_probe_seconds: float = 60.0,
    ):
        self.source = source
        self.state = state
        self.frame_cell = frame_cell
        self.skeleton_cell = skeleton_cell
        self.motion_recent = motion_recent
        self.luma_step = luma_step
        self.ir_step = ir_step
        self.blur_passes = blur_passes
        self.day_probe_seconds = day_probe_seconds

        self._switch_lock = threading.Lock()
        self._switching = False
        self._probing = False
        self._ir_since: float | None = None

        self.last_luma: float | None = None
        self.frames_published = 0
        self.frames_dropped = 0
        self.mode_switches = 0

    # ==================== Mode decisions ====================

    def decide_mode(self, luma: float) -> RenderMode | None:
        """Target mode for a luma sample, or None to stay."""
        if not self.state.auto_night:
            return None

        mode = self.state.mode
        if mode is RenderMode.COLOR and luma < self.state.night_threshold:
            return RenderMode.INFRARED
        if mode is RenderMode.INFRARED and luma > self.state.day_threshold:
            return RenderMode.COLOR
        return None

    def switch_mode(self, mode: RenderMode, manual: bool = False) -> bool:
        """
        Reconfigure the color stream to the target format.

        A manual switch disables auto-night so the override sticks.
        Failures are logged and leave the state at the last good mode.

        Returns:
            True if the stream is now in the target mode
        """
        if manual:
            self.state.set_auto_night(False)
            self._probing = False

        with self._switch_lock:
            self._switching = True
            try:
                self.source.set_color_mode(mode)
                self.state.set_mode(mode)
                self.mode_switches += 1
                self._ir_since = time.monotonic() if mode is RenderMode.INFRARED else None
                logger.info(f"{'Manual' if manual else 'Auto'} switch to {mode.label} mode")
                return True
            except Exception as e:
                logger.error(f"Switch to {mode.label} failed: {e}")
                return False
            finally:
                self._switching = False

    def _day_probe_due(self) -> bool:
        if self.day_probe_seconds <= 0 or not self.state.auto_night:
            return False
        if self._ir_since is None:
            self._ir_since = time.monotonic()
            return False
        return time.monotonic() - self._ir_since >= self.day_probe_seconds

    # ==================== Frame processing ====================

    def process_frame(self, frame: FrameBuffer) -> FrameBuffer | None:
        """
        Handle one color-stream frame.

        Returns:
            The published frame, or None if the frame was dropped
        """
        if self._switching:
            self.frames_dropped += 1
            return None

        if frame.layout is PixelLayout.IR16:
            if self.state.mode is RenderMode.INFRARED and self._day_probe_due():
                logger.debug("Day probe: sampling color stream")
                if self.switch_mode(RenderMode.COLOR):
                    self._probing = True
                    self.frames_dropped += 1
                    return None
            rendered = self._render_infrared(frame)
        elif frame.layout is PixelLayout.BGRA:
            luma = average_luma(frame.pixels, self.luma_step)
            self.last_luma = luma

            if self._probing:
                self._probing = False
                if luma <= self.state.day_threshold or not self.state.auto_night:
                    if self.state.auto_night:
                        self.switch_mode(RenderMode.INFRARED)
                        self.frames_dropped += 1
                        return None
                else:
                    logger.info(f"Day probe: luma {luma:.1f} above day threshold, staying in color")

            target = self.decide_mode(luma)
            if target is not None:
                logger.info(f"Luma {luma:.1f} -> switching to {target.label}")
                self.switch_mode(target)
                self.frames_dropped += 1
                return None
            rendered = self._render_color(frame)
        else:
            logger.warning(f"Unexpected frame layout: {frame.layout}")
            self.frames_dropped += 1
            return None

        self.frame_cell.publish(rendered)
        self.frames_published += 1
        return rendered

    def _render_color(self, frame: FrameBuffer) -> FrameBuffer:
        rgb = bgra_to_rgb(frame.pixels)
        return self._compose(rgb, frame, infrared=False)

    def _render_infrared(self, frame: FrameBuffer) -> FrameBuffer:
        rgb = ir_to_rgb(
            frame.pixels,
            green_tint=self.state.green_tint,
            smooth=self.state.smooth,
            step=self.ir_step,
            blur_passes=self.blur_passes,
        )
        return self._compose(rgb, frame, infrared=True)

    def _compose(self, rgb, frame: FrameBuffer, infrared: bool) -> FrameBuffer:
        motion = bool(self.motion_recent()) if self.motion_recent else False
        label = status_label(infrared=infrared, motion_recent=motion)

        skeletons = None
        mapper = None
        if self.state.show_skeleton and self.skeleton_cell is not None:
            skeleton_frame = self.skeleton_cell.snapshot()
            if skeleton_frame is not None:
                skeletons = skeleton_frame.tracked
                mode = RenderMode.INFRARED if infrared else RenderMode.COLOR
                mapper = lambda p: self.source.map_skeleton_point(p, mode)  # noqa: E731

        composed = annotate_frame(rgb, label, skeletons, mapper)
        return FrameBuffer(pixels=composed, layout=PixelLayout.RGB, timestamp=frame.timestamp)

    def get_status(self) -> dict:
        return {
            "mode": self.state.mode.label,
            "last_luma": self.last_luma,
            "frames_published": self.frames_published,
            "frames_dropped": self.frames_dropped,
            "mode_switches": self.mode_switches,
        }
