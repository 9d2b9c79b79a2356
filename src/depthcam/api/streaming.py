"""
MJPEG fan-out.

Every client gets its own generator: take the current frame reference,
encode it at the current quality, emit one multipart part, wait the frame
interval, repeat. No shared queue or broadcast buffer exists, so a slow
client only slows itself down.
"""

import logging
import threading
from typing import Callable, Iterator

from depthcam.camera.encoding import encode_jpeg
from depthcam.camera.frame_cell import SnapshotCell
from depthcam.sensor.frames import FrameBuffer

logger = logging.getLogger(__name__)


def multipart_part(jpeg: bytes, boundary: str = "frame") -> bytes:
    """One multipart/x-mixed-replace part carrying a JPEG."""
    header = (
        f"--{boundary}\r\n"
        f"Content-Type: image/jpeg\r\n"
        f"Content-Length: {len(jpeg)}\r\n\r\n"
    ).encode("ascii")
    return header + jpeg + b"\r\n"


def mjpeg_frames(
    frame_cell: SnapshotCell[FrameBuffer],
    quality: Callable[[], int],
    stop_event: threading.Event,
    interval: float = 0.05,
    boundary: str = "frame",
) -> Iterator[bytes]:
    """
    Endless multipart stream of the latest frame.

    Ends when the server stop event is set, or when the consumer closes the
    generator (client disconnect).
    """
    sent = 0
    try:
        while not stop_event.is_set():
            frame = frame_cell.snapshot()
            if frame is not None:
                yield multipart_part(encode_jpeg(frame, quality()), boundary)
                sent += 1
            if stop_event.wait(interval):
                break
    finally:
        logger.debug(f"MJPEG client finished after {sent} frames")
