"""
Camera Service - sensor ingestion threads

Runs one ingestion thread per sensor stream:
- color:    FrameIngest (mode state machine, transform, overlay, publish)
- depth:    depth callbacks (motion detector)
- skeleton: last-known skeleton cell

Each thread pulls from the FrameSource with a short timeout so it can
observe the shared stop event. Per-frame exceptions are logged and the
loop continues.
"""

import logging
import threading
from typing import Callable

from depthcam.camera.frame_annotator import placeholder_frame
from depthcam.camera.frame_cell import SnapshotCell
from depthcam.camera.ingest import FrameIngest
from depthcam.sensor.frames import DepthFrame, FrameBuffer, PixelLayout, SkeletonFrame
from depthcam.sensor.source import FrameSource
from depthcam.state import DeviceState, RenderMode

logger = logging.getLogger(__name__)

POLL_TIMEOUT = 0.5


class CameraService:
    """
    Owns the sensor streams and the shared latest-frame/skeleton cells.

    The frame cell is the single source for streaming and snapshots;
    consumers read it with ``frame_cell.snapshot()``.
    """

    def __init__(
        self,
        source: FrameSource,
        state: DeviceState,
        stop_event: threading.Event | None = None,
        motion_recent: Callable[[], bool] | None = None,
        luma_step: int = 8,
        ir_step: int = 8,
        blur_passes: int = 1,
        day_probe_seconds: float = 60.0,
    ):
        self.source = source
        self.state = state
        self.frame_cell: SnapshotCell[FrameBuffer] = SnapshotCell()
        self.skeleton_cell: SnapshotCell[SkeletonFrame] = SnapshotCell()
        self.ingest = FrameIngest(
            source=source,
            state=state,
            frame_cell=self.frame_cell,
            skeleton_cell=self.skeleton_cell,
            motion_recent=motion_recent,
            luma_step=luma_step,
            ir_step=ir_step,
            blur_passes=blur_passes,
            day_probe_seconds=day_probe_seconds,
        )

        self._stop_event = stop_event or threading.Event()
        self._threads: list[threading.Thread] = []
        self._started = False
        self._depth_callbacks: list[Callable[[DepthFrame], None]] = []
        self._frame_callbacks: list[Callable[[FrameBuffer], None]] = []

        self.depth_frame_count = 0
        self.skeleton_frame_count = 0

        logger.info("CameraService initialized")

    # ==================== Lifecycle ====================

    def start(self) -> None:
        """Start the sensor and the ingestion threads."""
        if self._started:
            logger.warning("Camera already started")
            return

        self.source.start()
        # Keep the sensor format in line with the configured start mode
        if self.source.color_mode is not self.state.mode:
            self.ingest.switch_mode(self.state.mode)

        self._started = True
        for name, target in (
            ("ColorIngestThread", self._color_loop),
            ("DepthIngestThread", self._depth_loop),
            ("SkeletonIngestThread", self._skeleton_loop),
        ):
            thread = threading.Thread(target=target, name=name, daemon=True)
            thread.start()
            self._threads.append(thread)

        logger.info("Camera started with ingestion threads")

    def stop(self) -> None:
        """Stop ingestion threads and the sensor."""
        if not self._started:
            return

        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=2.0)
        self._threads.clear()

        try:
            self.source.stop()
        except Exception as e:
            logger.error(f"Error stopping sensor: {e}")

        self._started = False
        logger.info("Camera stopped")

    def cleanup(self) -> None:
        """Clean up camera resources."""
        self.stop()
        self.frame_cell.clear()
        self.skeleton_cell.clear()
        logger.info("Camera resources cleaned up")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()

    @property
    def running(self) -> bool:
        return self._started and not self._stop_event.is_set()

    # ==================== Ingestion loops ====================

    def _color_loop(self) -> None:
        logger.info("Color ingestion loop started")
        while not self._stop_event.is_set():
            try:
                frame = self.source.next_color_frame(timeout=POLL_TIMEOUT)
                if frame is None:
                    continue
                rendered = self.ingest.process_frame(frame)
            except Exception as e:
                logger.error(f"Color frame error: {e}")
                continue

            if rendered is not None:
                for callback in self._frame_callbacks:
                    try:
                        callback(rendered)
                    except Exception as e:
                        logger.error(f"Frame callback error: {e}")
        logger.info("Color ingestion loop stopped")

    def _depth_loop(self) -> None:
        logger.info("Depth ingestion loop started")
        while not self._stop_event.is_set():
            try:
                frame = self.source.next_depth_frame(timeout=POLL_TIMEOUT)
            except Exception as e:
                logger.error(f"Depth frame error: {e}")
                continue
            if frame is None:
                continue

            self.depth_frame_count += 1
            for callback in self._depth_callbacks:
                try:
                    callback(frame)
                except Exception as e:
                    logger.error(f"Depth callback error: {e}")
        logger.info("Depth ingestion loop stopped")

    def _skeleton_loop(self) -> None:
        logger.info("Skeleton ingestion loop started")
        while not self._stop_event.is_set():
            try:
                frame = self.source.next_skeleton_frame(timeout=POLL_TIMEOUT)
            except Exception as e:
                logger.error(f"Skeleton frame error: {e}")
                continue
            if frame is None:
                continue
            self.skeleton_cell.publish(frame)
            self.skeleton_frame_count += 1
        logger.info("Skeleton ingestion loop stopped")

    # ==================== Callbacks & commands ====================

    def on_depth(self, callback: Callable[[DepthFrame], None]) -> None:
        """Register callback for new depth frames."""
        self._depth_callbacks.append(callback)
        logger.debug(f"Depth callback registered, total: {len(self._depth_callbacks)}")

    def on_frame(self, callback: Callable[[FrameBuffer], None]) -> None:
        """Register callback for newly published live-view frames."""
        self._frame_callbacks.append(callback)

    def request_mode(self, mode: RenderMode) -> bool:
        """Explicit mode command; disables auto-night."""
        return self.ingest.switch_mode(mode, manual=True)

    def publish_placeholder(self) -> None:
        """Publish a 'waiting' frame so viewers get an image before the sensor does."""
        w, h = getattr(self.source, "color_resolution", (640, 480))
        self.frame_cell.publish(
            FrameBuffer(pixels=placeholder_frame(w, h), layout=PixelLayout.RGB)
        )
        logger.info("Placeholder frame published")

    def get_status(self) -> dict:
        """Get camera service status."""
        return {
            "started": self._started,
            "color_mode": self.source.color_mode.label,
            "frame_version": self.frame_cell.version,
            "frame_age_seconds": self.frame_cell.age_seconds,
            "depth_frames": self.depth_frame_count,
            "skeleton_frames": self.skeleton_frame_count,
            **{f"ingest_{k}": v for k, v in self.ingest.get_status().items()},
        }
