"""
Sensor interface for DepthCam.

Provides:
- FrameSource: Sensor collaborator interface (frames, stream control, tilt, audio)
- MockFrameSource / MockAudioSource: Synthetic sensor for running without hardware
- Frame data structures (FrameBuffer, DepthFrame, SkeletonFrame)
"""

from .frames import (
    BONES,
    DepthFrame,
    FrameBuffer,
    Joint,
    JointType,
    PixelLayout,
    Skeleton,
    SkeletonFrame,
    TrackingState,
)
from .source import AudioSource, FrameSource, MockAudioSource, MockFrameSource, create_frame_source

__all__ = [
    "BONES",
    "DepthFrame",
    "FrameBuffer",
    "Joint",
    "JointType",
    "PixelLayout",
    "Skeleton",
    "SkeletonFrame",
    "TrackingState",
    "AudioSource",
    "FrameSource",
    "MockAudioSource",
    "MockFrameSource",
    "create_frame_source",
]
