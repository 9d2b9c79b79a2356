"""
Tests for snapshot/audio capture: orchestrator cooldowns and the WAV recorder.
"""

import io
import shutil
import struct
import threading
import wave

import pytest

from depthcam.capture.audio_recorder import AudioRecorder, clamp_seconds
from depthcam.capture.files import list_capture_files, timestamp_filename
from depthcam.motion.detector import MotionEvent
from depthcam.sensor.source import AudioSource, MockAudioSource


class BlockingStream(io.RawIOBase):
    """PCM stream that stalls until released."""

    def __init__(self, release: threading.Event):
        self.release = release

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        self.release.wait(5.0)
        buffer[: len(buffer)] = bytes(len(buffer))
        return len(buffer)


class BlockingAudioSource(AudioSource):
    def __init__(self):
        self.release = threading.Event()
        self.start_count = 0
        self.stopped = 0

    def start(self):
        self.start_count += 1
        return BlockingStream(self.release)

    def stop(self):
        self.stopped += 1


class FailingAudioSource(AudioSource):
    def start(self):
        raise RuntimeError("microphone unavailable")

    def stop(self):
        pass


def jpg_files(directory):
    return sorted(directory.glob("*.jpg"))


def wav_files(directory):
    return sorted(directory.glob("*.wav"))


class TestFileNames:
    """Tests for timestamp naming and listing."""

    def test_timestamp_format(self):
        from datetime import datetime

        name = timestamp_filename("jpg", datetime(2024, 1, 31, 23, 59, 59, 123456))
        assert name == "20240131_235959_123.jpg"

    def test_missing_directory_lists_nothing(self, tmp_path):
        assert list_capture_files(tmp_path / "missing", "*.jpg") == []


class TestSnapshots:
    """Tests for snapshot writing and its cooldown."""

    def test_no_frame_returns_none(self, orchestrator, capture_dir):
        assert orchestrator.save_snapshot(manual=True) is None
        assert jpg_files(capture_dir) == []

    def test_snapshot_written(self, orchestrator, frame_cell, rgb_frame, capture_dir):
        frame_cell.publish(rgb_frame)
        path = orchestrator.save_snapshot(manual=True)

        assert path is not None
        assert path.exists()
        assert path.read_bytes()[:2] == b"\xff\xd8"
        assert orchestrator.last_capture == path
        assert jpg_files(capture_dir) == [path]

    def test_motion_snapshot_respects_cooldown(self, orchestrator, frame_cell, rgb_frame, capture_dir):
        """Test last snapshot at t=0: motion at 9 s captures, motion at 11 s does not."""
        frame_cell.publish(rgb_frame)
        orchestrator.snapshot_cooldown.mark(0.0)

        orchestrator.handle_motion(MotionEvent(timestamp=9.0, score=1500))
        assert len(jpg_files(capture_dir)) == 1

        orchestrator.handle_motion(MotionEvent(timestamp=11.0, score=1500))
        assert len(jpg_files(capture_dir)) == 1

    def test_manual_snapshot_stamps_cooldown(self, orchestrator, frame_cell, rgb_frame, capture_dir):
        frame_cell.publish(rgb_frame)
        orchestrator.save_snapshot(manual=True, now=100.0)
        orchestrator.handle_motion(MotionEvent(timestamp=101.0, score=1500))

        assert len(jpg_files(capture_dir)) == 1
        assert orchestrator.snapshot_cooldown.last_fired == 100.0

    def test_manual_snapshot_bypasses_cooldown(self, orchestrator, frame_cell, rgb_frame):
        frame_cell.publish(rgb_frame)
        orchestrator.snapshot_cooldown.mark(100.0)
        assert orchestrator.save_snapshot(manual=True, now=101.0) is not None

    def test_motion_before_first_frame_keeps_cooldown_open(
        self, orchestrator, frame_cell, rgb_frame, capture_dir
    ):
        """Test a motion event with no frame yet does not delay the next snapshot."""
        orchestrator.handle_motion(MotionEvent(timestamp=100.0, score=1500))
        assert orchestrator.snapshot_cooldown.last_fired is None

        frame_cell.publish(rgb_frame)
        orchestrator.handle_motion(MotionEvent(timestamp=101.0, score=1500))

        assert len(jpg_files(capture_dir)) == 1
        assert orchestrator.snapshot_cooldown.last_fired == 101.0

    def test_failed_motion_snapshot_keeps_cooldown_open(
        self, orchestrator, frame_cell, rgb_frame, capture_dir, monkeypatch
    ):
        frame_cell.publish(rgb_frame)

        def failing_save(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("depthcam.capture.orchestrator.save_jpeg", failing_save)
        orchestrator.handle_motion(MotionEvent(timestamp=100.0, score=1500))
        assert orchestrator.snapshot_cooldown.last_fired is None

        monkeypatch.undo()
        orchestrator.handle_motion(MotionEvent(timestamp=101.0, score=1500))
        assert len(jpg_files(capture_dir)) == 1

    def test_write_failure_returns_none(self, orchestrator, frame_cell, rgb_frame, capture_dir):
        frame_cell.publish(rgb_frame)
        shutil.rmtree(capture_dir)

        assert orchestrator.save_snapshot(manual=True) is None
        assert orchestrator.last_capture is None

    def test_status_fields(self, orchestrator, frame_cell, rgb_frame):
        assert orchestrator.get_status()["lastCapture"] == ""
        frame_cell.publish(rgb_frame)
        path = orchestrator.save_snapshot(manual=True)
        status = orchestrator.get_status()
        assert status["lastCapture"] == str(path)
        assert status["snapshots_saved"] == 1


class TestMotionAudio:
    """Tests for motion-triggered audio gating."""

    def test_motion_starts_recording(self, orchestrator, recorder, audio_source, capture_dir):
        orchestrator.handle_motion(MotionEvent(timestamp=50.0, score=1500))
        assert recorder.wait(5.0)

        assert audio_source.start_count == 1
        assert len(wav_files(capture_dir)) == 1
        assert orchestrator.last_audio == wav_files(capture_dir)[0]

    def test_audio_cooldown(self, orchestrator, recorder, audio_source):
        orchestrator.handle_motion(MotionEvent(timestamp=50.0, score=1500))
        recorder.wait(5.0)
        orchestrator.handle_motion(MotionEvent(timestamp=55.0, score=1500))
        recorder.wait(5.0)
        assert audio_source.start_count == 1

        orchestrator.handle_motion(MotionEvent(timestamp=61.0, score=1500))
        recorder.wait(5.0)
        assert audio_source.start_count == 2

    def test_active_recording_blocks_motion_audio(self, frame_cell, state, capture_dir):
        from depthcam.capture.orchestrator import CaptureOrchestrator

        source = BlockingAudioSource()
        recorder = AudioRecorder(source, capture_dir)
        orch = CaptureOrchestrator(frame_cell, state, recorder, capture_dir, audio_seconds=1)

        assert orch.start_recording(1) is True
        orch.handle_motion(MotionEvent(timestamp=1000.0, score=1500))
        # Cooldown untouched while skipped
        assert orch.audio_cooldown.last_fired is None

        source.release.set()
        assert recorder.wait(5.0)
        assert source.start_count == 1

    def test_manual_record_ignores_audio_cooldown(self, orchestrator, recorder, audio_source):
        orchestrator.audio_cooldown.mark(1000.0)
        assert orchestrator.start_recording(1) is True
        assert recorder.wait(5.0)
        assert audio_source.start_count == 1


class TestAudioRecorder:
    """Tests for WAV output and single-flight recording."""

    def test_clamp_seconds(self):
        assert clamp_seconds(0) == 1
        assert clamp_seconds(-4) == 1
        assert clamp_seconds(12) == 12
        assert clamp_seconds(90) == 30

    def test_one_second_wav(self, recorder, capture_dir):
        """Test 1 s yields 32000 PCM bytes and a consistent header."""
        path = capture_dir / "clip.wav"
        written = recorder.record_to_file(path, 1)

        assert written == 32000
        with wave.open(str(path), "rb") as wav:
            assert wav.getnchannels() == 1
            assert wav.getsampwidth() == 2
            assert wav.getframerate() == 16000
            assert wav.getnframes() == 16000

        raw = path.read_bytes()
        assert raw[:4] == b"RIFF"
        assert raw[8:12] == b"WAVE"
        assert struct.unpack("<I", raw[40:44])[0] == 32000
        assert struct.unpack("<I", raw[4:8])[0] == len(raw) - 8

    def test_stream_end_stops_early(self, capture_dir):
        source = MockAudioSource(total_bytes=10000)
        recorder = AudioRecorder(source, capture_dir)
        path = capture_dir / "short.wav"

        assert recorder.record_to_file(path, 2) == 10000
        with wave.open(str(path), "rb") as wav:
            assert wav.getnframes() == 5000

    def test_source_stopped_after_recording(self, recorder, audio_source, capture_dir):
        recorder.record_to_file(capture_dir / "a.wav", 1)
        assert audio_source.started is False

    def test_start_runs_in_background(self, recorder, capture_dir):
        assert recorder.start(1) is True
        assert recorder.wait(5.0)
        assert recorder.is_recording is False
        assert recorder.last_audio_path is not None
        assert recorder.last_audio_path.parent == capture_dir

    def test_single_flight(self, capture_dir):
        """Test concurrent start requests produce exactly one recording."""
        source = BlockingAudioSource()
        recorder = AudioRecorder(source, capture_dir)
        barrier = threading.Barrier(8)
        results = []
        lock = threading.Lock()

        def request():
            barrier.wait()
            started = recorder.start(1)
            with lock:
                results.append(started)

        threads = [threading.Thread(target=request) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert recorder.is_recording is True
        assert recorder.start(1) is False

        source.release.set()
        assert recorder.wait(5.0)
        assert source.start_count == 1
        assert source.stopped == 1

    def test_failure_clears_flag(self, capture_dir):
        recorder = AudioRecorder(FailingAudioSource(), capture_dir)
        outcomes = []
        recorder.on_complete(lambda path, ok: outcomes.append(ok))

        assert recorder.start(1) is True
        assert recorder.wait(5.0)
        assert recorder.is_recording is False
        assert recorder.last_audio_path is None
        assert outcomes == [False]
        # A new request is accepted after the failure
        assert recorder.start(1) is True
        recorder.wait(5.0)
