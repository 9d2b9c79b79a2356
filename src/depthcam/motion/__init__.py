"""
Motion detection module for DepthCam.

Provides:
- MotionDetector: Background-subtraction motion signal from depth frames
- BackgroundDepthModel: Per-pixel exponential moving average of depth
- MotionEvent: Motion signal (timestamp, changed pixel count)
"""

from .detector import BackgroundDepthModel, MotionDetector, MotionEvent, create_motion_detector

__all__ = ["BackgroundDepthModel", "MotionDetector", "MotionEvent", "create_motion_detector"]
