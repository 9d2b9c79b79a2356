"""
Audio Recorder

Records the sensor microphone (mono, 16-bit, 16 kHz PCM) to WAV files on a
worker thread. At most one recording is active at a time: a request made
while one is running is a no-op.

The WAV header is written before the first sample with a zero size and
patched by the wave module once the stream is closed. Duration is counted
in bytes read (seconds * rate * width); short reads keep the loop going,
end-of-stream stops it early.
"""

import logging
import threading
import wave
from pathlib import Path
from typing import Callable

from depthcam.capture.files import timestamp_filename
from depthcam.sensor.source import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE,
    AUDIO_SAMPLE_WIDTH,
    AudioSource,
)

logger = logging.getLogger(__name__)

MIN_SECONDS = 1
MAX_SECONDS = 30


def clamp_seconds(seconds: int) -> int:
    return max(MIN_SECONDS, min(MAX_SECONDS, int(seconds)))


class AudioRecorder:
    """Single-flight microphone recorder."""

    def __init__(
        self,
        audio_source: AudioSource,
        output_dir: str | Path,
        chunk_bytes: int = 4096,
    ):
        self.audio_source = audio_source
        self.output_dir = Path(output_dir)
        self.chunk_bytes = chunk_bytes

        self._lock = threading.Lock()
        self._recording = False
        self._idle = threading.Event()
        self._idle.set()
        self._thread: threading.Thread | None = None
        self._last_audio_path: Path | None = None
        self._current_path: Path | None = None
        self._on_complete_callbacks: list[Callable[[Path, bool], None]] = []

        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"AudioRecorder initialized: output={self.output_dir}")

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def last_audio_path(self) -> Path | None:
        return self._last_audio_path

    def start(self, seconds: int) -> bool:
        """
        Start a recording on a worker thread.

        Args:
            seconds: Requested duration (clamped to 1-30)

        Returns:
            True if a recording was started, False if one is already active
        """
        with self._lock:
            if self._recording:
                logger.debug("Recording already in progress, ignoring request")
                return False
            self._recording = True
            self._idle.clear()

        seconds = clamp_seconds(seconds)
        path = self.output_dir / timestamp_filename("wav")
        self._current_path = path
        try:
            self._thread = threading.Thread(
                target=self._run,
                args=(path, seconds),
                name="AudioRecordThread",
                daemon=True,
            )
            self._thread.start()
        except Exception as e:
            logger.error(f"Failed to start recording thread: {e}")
            self._finish()
            return False

        logger.info(f"Audio recording started: {path.name} ({seconds}s)")
        return True

    def _run(self, path: Path, seconds: int) -> None:
        success = False
        try:
            written = self.record_to_file(path, seconds)
            self._last_audio_path = path
            success = True
            logger.info(f"Audio recording complete: {path.name} ({written} bytes)")
        except Exception as e:
            logger.error(f"Audio recording failed: {e}", exc_info=True)
        finally:
            self._finish()
            for callback in self._on_complete_callbacks:
                try:
                    callback(path, success)
                except Exception as e:
                    logger.error(f"Recording complete callback error: {e}")

    def _finish(self) -> None:
        with self._lock:
            self._recording = False
            self._current_path = None
        self._idle.set()

    def record_to_file(self, path: Path, seconds: int) -> int:
        """
        Blocking capture of ``seconds`` of audio into a WAV file.

        Returns:
            Number of PCM bytes written
        """
        target = clamp_seconds(seconds) * AUDIO_SAMPLE_RATE * AUDIO_SAMPLE_WIDTH
        written = 0

        stream = self.audio_source.start()
        try:
            with wave.open(str(path), "wb") as wav:
                wav.setnchannels(AUDIO_CHANNELS)
                wav.setsampwidth(AUDIO_SAMPLE_WIDTH)
                wav.setframerate(AUDIO_SAMPLE_RATE)
                wav.setnframes(0)

                while written < target:
                    data = stream.read(min(self.chunk_bytes, target - written))
                    if not data:
                        logger.warning(
                            f"Audio stream ended early: {written}/{target} bytes"
                        )
                        break
                    wav.writeframesraw(data)
                    written += len(data)
        finally:
            try:
                self.audio_source.stop()
            except Exception as e:
                logger.error(f"Error stopping audio source: {e}")
        return written

    def wait(self, timeout: float | None = None) -> bool:
        """Block until no recording is active. Returns False on timeout."""
        return self._idle.wait(timeout)

    def on_complete(self, callback: Callable[[Path, bool], None]) -> None:
        """Register callback for finished recordings (path, success)."""
        self._on_complete_callbacks.append(callback)

    def get_status(self) -> dict:
        return {
            "recording": self._recording,
            "current": self._current_path.name if self._current_path else None,
            "last_audio": str(self._last_audio_path) if self._last_audio_path else None,
        }
