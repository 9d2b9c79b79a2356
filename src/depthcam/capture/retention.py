"""
Count-based retention for snapshot and audio files.

A background thread enforces the limits on a fixed interval,
independent of frame timing, and stops with the shared stop event.
"""

import logging
import threading
from pathlib import Path

from depthcam.capture.files import AUDIO_PATTERN, SNAPSHOT_PATTERN, list_capture_files

logger = logging.getLogger(__name__)


def enforce_retention(directory: str | Path, pattern: str, max_count: int) -> int:
    """
    Keep the newest ``max_count`` files matching pattern, delete the rest.

    A failed delete is logged and the pass continues with the next file.

    Returns:
        Number of files deleted
    """
    files = list_capture_files(directory, pattern)
    if len(files) <= max_count:
        return 0

    deleted = 0
    for file in files[max_count:]:
        try:
            file.unlink()
            deleted += 1
        except Exception as e:
            logger.error(f"Failed to delete {file}: {e}")

    if deleted > 0:
        logger.info(f"Retention: deleted {deleted} {pattern} file(s) in {directory}")
    return deleted


class RetentionManager:
    """Periodic cleanup of the capture directory."""

    def __init__(
        self,
        output_dir: str | Path,
        max_snapshot_files: int = 100,
        max_audio_files: int = 100,
        interval_seconds: float = 600.0,
        stop_event: threading.Event | None = None,
    ):
        self.output_dir = Path(output_dir)
        self.max_snapshot_files = max_snapshot_files
        self.max_audio_files = max_audio_files
        self.interval_seconds = interval_seconds
        self._stop_event = stop_event or threading.Event()
        self._thread: threading.Thread | None = None
        self._passes = 0
        self._total_deleted = 0

    def run_once(self) -> int:
        """Run one cleanup pass over snapshots and recordings."""
        deleted = enforce_retention(self.output_dir, SNAPSHOT_PATTERN, self.max_snapshot_files)
        deleted += enforce_retention(self.output_dir, AUDIO_PATTERN, self.max_audio_files)
        self._passes += 1
        self._total_deleted += deleted
        return deleted

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._loop, name="RetentionThread", daemon=True
        )
        self._thread.start()
        logger.info(
            f"Retention started: every {self.interval_seconds:.0f}s, "
            f"max {self.max_snapshot_files} snapshots / {self.max_audio_files} recordings"
        )

    def _loop(self) -> None:
        # First pass at startup, then on every interval
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Retention pass failed: {e}")
            if self._stop_event.wait(self.interval_seconds):
                break
        logger.info("Retention stopped")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

    def get_status(self) -> dict:
        return {
            "running": self._thread is not None and self._thread.is_alive(),
            "passes": self._passes,
            "deleted": self._total_deleted,
            "interval_seconds": self.interval_seconds,
        }
