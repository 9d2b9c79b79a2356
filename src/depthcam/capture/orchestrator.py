"""
Capture Orchestrator

Turns motion events and user commands into snapshot and audio captures.

Motion side effects are gated independently:
- snapshot: snapshot cooldown (default 8 s), started by a written file
- audio:    audio cooldown (default 10 s) AND no recording active

A manual snapshot bypasses the cooldown but stamps it, so a motion event
right after does not duplicate the capture.
"""

import logging
from pathlib import Path

from depthcam.camera.encoding import save_jpeg
from depthcam.camera.frame_cell import SnapshotCell
from depthcam.capture.audio_recorder import AudioRecorder
from depthcam.capture.files import timestamp_filename
from depthcam.cooldown import RateLimiter
from depthcam.motion.detector import MotionEvent
from depthcam.sensor.frames import FrameBuffer
from depthcam.state import DeviceState

logger = logging.getLogger(__name__)


class CaptureOrchestrator:
    """Snapshot/audio side effects with cooldowns and single-flight audio."""

    def __init__(
        self,
        frame_cell: SnapshotCell[FrameBuffer],
        state: DeviceState,
        recorder: AudioRecorder,
        output_dir: str | Path,
        snapshot_cooldown_seconds: float = 8.0,
        audio_cooldown_seconds: float = 10.0,
        audio_seconds: int = 6,
    ):
        self.frame_cell = frame_cell
        self.state = state
        self.recorder = recorder
        self.output_dir = Path(output_dir)
        self.audio_seconds = audio_seconds

        self.snapshot_cooldown = RateLimiter(snapshot_cooldown_seconds, name="snapshot")
        self.audio_cooldown = RateLimiter(audio_cooldown_seconds, name="audio")

        self._last_capture: Path | None = None
        self._snapshots_saved = 0

        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(
            f"CaptureOrchestrator initialized: output={self.output_dir}, "
            f"snapshot_cooldown={snapshot_cooldown_seconds}s, "
            f"audio_cooldown={audio_cooldown_seconds}s"
        )

    @property
    def last_capture(self) -> Path | None:
        return self._last_capture

    @property
    def last_audio(self) -> Path | None:
        return self.recorder.last_audio_path

    def save_snapshot(self, manual: bool = False, now: float | None = None) -> Path | None:
        """
        Write the current live frame to a timestamp-named JPEG.

        The frame cell lock is only held to take the reference; encoding
        and disk I/O happen outside it.

        Returns:
            Path of the written file, or None (no frame yet / write failed)
        """
        frame = self.frame_cell.snapshot()
        if frame is None:
            logger.debug("Snapshot skipped: no frame available yet")
            return None

        if manual:
            self.snapshot_cooldown.mark(now)

        path = self.output_dir / timestamp_filename("jpg")
        try:
            save_jpeg(frame, path, quality=self.state.jpeg_quality)
        except Exception as e:
            logger.error(f"Failed to save snapshot: {e}")
            return None

        self._last_capture = path
        self._snapshots_saved += 1
        logger.info(f"Snapshot saved: {path.name}{' (manual)' if manual else ''}")
        return path

    def start_recording(self, seconds: int | None = None) -> bool:
        """Start an audio recording unless one is already active."""
        return self.recorder.start(self.audio_seconds if seconds is None else seconds)

    def handle_motion(self, event: MotionEvent, now: float | None = None) -> None:
        """Motion callback: cooldown-gated snapshot and audio capture."""
        now = event.timestamp if now is None else now

        # Cooldown starts only once a file is written
        if self.snapshot_cooldown.ready(now):
            if self.save_snapshot(now=now) is not None:
                self.snapshot_cooldown.mark(now)
        else:
            logger.debug(
                f"Snapshot cooldown: {self.snapshot_cooldown.remaining(now):.1f}s left"
            )

        if not self.recorder.is_recording and self.audio_cooldown.try_fire(now):
            self.start_recording(self.audio_seconds)

    def get_status(self) -> dict:
        return {
            "lastCapture": str(self._last_capture) if self._last_capture else "",
            "lastAudio": str(self.last_audio) if self.last_audio else "",
            "recording": self.recorder.is_recording,
            "snapshots_saved": self._snapshots_saved,
        }


def create_capture_orchestrator(
    frame_cell: SnapshotCell[FrameBuffer],
    state: DeviceState,
    recorder: AudioRecorder,
) -> CaptureOrchestrator:
    """Create capture orchestrator from config."""
    from depthcam.config import capture_config, motion_config

    return CaptureOrchestrator(
        frame_cell=frame_cell,
        state=state,
        recorder=recorder,
        output_dir=capture_config.output_dir,
        snapshot_cooldown_seconds=motion_config.snapshot_cooldown_seconds,
        audio_cooldown_seconds=motion_config.audio_cooldown_seconds,
        audio_seconds=motion_config.audio_seconds,
    )
