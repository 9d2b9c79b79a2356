"""
JPEG encoding of rendered frames.
"""

import logging
from io import BytesIO
from pathlib import Path

import numpy as np
from PIL import Image

from depthcam.sensor.frames import FrameBuffer

logger = logging.getLogger(__name__)


def encode_jpeg(frame: FrameBuffer | np.ndarray, quality: int = 60) -> bytes:
    """Encode an RGB frame as JPEG bytes (quality clamped to 1-100)."""
    pixels = frame.pixels if isinstance(frame, FrameBuffer) else frame
    quality = max(1, min(100, int(quality)))
    img = Image.fromarray(pixels)
    buf = BytesIO()
    img.save(buf, "JPEG", quality=quality)
    return buf.getvalue()


def save_jpeg(frame: FrameBuffer | np.ndarray, path: Path, quality: int = 60) -> Path:
    """Encode and write a JPEG file."""
    data = encode_jpeg(frame, quality)
    path.write_bytes(data)
    return path
