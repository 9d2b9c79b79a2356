"""
Camera module for DepthCam.

Provides:
- CameraService: Sensor ingestion threads and shared frame/skeleton cells
- FrameIngest: Day/night mode state machine and frame composition
- SnapshotCell: Single-slot latest-value exchange between threads
- Image operations, overlay annotation and JPEG encoding
"""

from .camera_service import CameraService
from .encoding import encode_jpeg, save_jpeg
from .frame_annotator import annotate_frame, placeholder_frame, status_label
from .frame_cell import SnapshotCell
from .ingest import FrameIngest

__all__ = [
    "CameraService",
    "FrameIngest",
    "SnapshotCell",
    "annotate_frame",
    "encode_jpeg",
    "placeholder_frame",
    "save_jpeg",
    "status_label",
]
