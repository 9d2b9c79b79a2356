"""
API module for DepthCam.

Provides:
- FastAPI server: live MJPEG stream, single-frame JPEG, captures
- Control surface: JSON status and query-string commands
"""

from .commands import apply_commands
from .server import create_app, set_components, start_server
from .streaming import mjpeg_frames

__all__ = ["apply_commands", "create_app", "mjpeg_frames", "set_components", "start_server"]
