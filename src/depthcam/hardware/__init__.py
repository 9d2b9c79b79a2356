"""
Hardware control for DepthCam.

Provides:
- TiltController: Rate-limited, range-clamped sensor tilt motor control
"""

from .tilt import TiltController, create_tilt_controller

__all__ = ["TiltController", "create_tilt_controller"]
