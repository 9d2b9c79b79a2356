"""
Capture module for DepthCam.

Provides:
- CaptureOrchestrator: Motion/command-triggered snapshots and recordings
- AudioRecorder: Single-flight microphone recording to WAV
- RetentionManager: Periodic count-based cleanup of capture files
"""

from .audio_recorder import AudioRecorder
from .files import list_capture_files, timestamp_filename
from .orchestrator import CaptureOrchestrator, create_capture_orchestrator
from .retention import RetentionManager, enforce_retention

__all__ = [
    "AudioRecorder",
    "CaptureOrchestrator",
    "RetentionManager",
    "create_capture_orchestrator",
    "enforce_retention",
    "list_capture_files",
    "timestamp_filename",
]
