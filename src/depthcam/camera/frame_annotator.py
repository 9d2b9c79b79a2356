"""
Frame Annotation Utility

Draws the status label bar and tracked skeletons on live-view frames.
Uses PIL ImageDraw.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from depthcam.sensor.frames import BONES, JointType, Skeleton, TrackingState

logger = logging.getLogger(__name__)

# Cached font instance
_cached_font: "ImageFont.FreeTypeFont | ImageFont.ImageFont | None" = None

LABEL_TEXT_COLOR = (124, 252, 0)  # LawnGreen
LABEL_BACKGROUND = (0, 0, 0)
BONE_COLOR = (0, 255, 0)  # Lime
BONE_INFERRED_COLOR = (0, 140, 0)
JOINT_COLOR = (0, 191, 255)  # DeepSkyBlue
BONE_WIDTH_TRACKED = 3
BONE_WIDTH_INFERRED = 1
JOINT_RADIUS = 3
LABEL_PADDING = (5, 3)

PointMapper = Callable[[tuple[float, float, float]], tuple[float, float]]


def _get_font(size: int = 14) -> "ImageFont.FreeTypeFont | ImageFont.ImageFont":
    """Get font for label rendering, with caching and fallback."""
    global _cached_font
    if _cached_font is not None:
        return _cached_font

    try:
        _cached_font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", size
        )
    except (OSError, IOError):
        logger.debug("DejaVuSans not found, using PIL default font")
        _cached_font = ImageFont.load_default()

    return _cached_font


def status_label(
    infrared: bool,
    motion_recent: bool,
    now: datetime | None = None,
) -> str:
    """Label bar text: mode (or MOTION) plus local timestamp."""
    now = now or datetime.now()
    if motion_recent:
        label = "MOTION"
    elif infrared:
        label = "Night (IR)"
    else:
        label = "Day"
    return f"{label}  {now:%Y-%m-%d %H:%M:%S}"


def draw_label_bar(draw: ImageDraw.ImageDraw, text: str) -> tuple[int, int, int, int]:
    """Draw text on a solid rectangle sized to fit it. Returns the rectangle."""
    font = _get_font()
    pad_x, pad_y = LABEL_PADDING
    left, top, right, bottom = draw.textbbox((pad_x, pad_y), text, font=font)
    rect = (0, 0, right + pad_x, bottom + pad_y)
    draw.rectangle(rect, fill=LABEL_BACKGROUND)
    draw.text((pad_x, pad_y), text, fill=LABEL_TEXT_COLOR, font=font)
    return rect


def _draw_bone(
    draw: ImageDraw.ImageDraw,
    skeleton: Skeleton,
    a: JointType,
    b: JointType,
    mapper: PointMapper,
) -> bool:
    j1, j2 = skeleton.joint(a), skeleton.joint(b)
    if j1 is None or j2 is None:
        return False
    if j1.state is TrackingState.NOT_TRACKED or j2.state is TrackingState.NOT_TRACKED:
        return False

    p1, p2 = mapper(j1.position), mapper(j2.position)
    both_tracked = j1.state is TrackingState.TRACKED and j2.state is TrackingState.TRACKED
    if both_tracked:
        draw.line([p1, p2], fill=BONE_COLOR, width=BONE_WIDTH_TRACKED)
    else:
        draw.line([p1, p2], fill=BONE_INFERRED_COLOR, width=BONE_WIDTH_INFERRED)
    return True


def draw_skeletons(
    draw: ImageDraw.ImageDraw,
    skeletons: Iterable[Skeleton],
    mapper: PointMapper,
) -> int:
    """
    Draw the bone graph and joint markers for every tracked skeleton.

    Returns:
        Number of bones drawn
    """
    bones_drawn = 0
    for skeleton in skeletons:
        if skeleton is None or skeleton.tracking_state is TrackingState.NOT_TRACKED:
            continue

        for a, b in BONES:
            if _draw_bone(draw, skeleton, a, b, mapper):
                bones_drawn += 1

        for joint in skeleton.joints.values():
            if joint.state is TrackingState.NOT_TRACKED:
                continue
            x, y = mapper(joint.position)
            draw.ellipse(
                [x - JOINT_RADIUS, y - JOINT_RADIUS, x + JOINT_RADIUS, y + JOINT_RADIUS],
                fill=JOINT_COLOR,
            )
    return bones_drawn


def annotate_frame(
    frame: np.ndarray,
    label: str,
    skeletons: Iterable[Skeleton] | None = None,
    mapper: PointMapper | None = None,
) -> np.ndarray:
    """
    Compose the overlay on an RGB frame.

    Args:
        frame: RGB numpy array (H, W, 3)
        label: Text for the label bar
        skeletons: Skeletons to draw (skipped when None)
        mapper: Skeleton-space to image-space projection

    Returns:
        Annotated frame as a new numpy array
    """
    img = Image.fromarray(frame)
    draw = ImageDraw.Draw(img)

    draw_label_bar(draw, label)
    if skeletons and mapper is not None:
        draw_skeletons(draw, skeletons, mapper)

    return np.array(img)


def placeholder_frame(
    width: int = 640,
    height: int = 480,
    text: str = "Waiting for sensor frame...",
) -> np.ndarray:
    """Black frame with a waiting message."""
    img = Image.new("RGB", (width, height), (0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.text((10, 10), text, fill=(255, 255, 255), font=_get_font())
    return np.array(img)
