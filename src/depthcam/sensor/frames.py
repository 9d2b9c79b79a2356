"""
Frame data structures delivered by the sensor and produced by the pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto

import numpy as np


class PixelLayout(Enum):
    """Pixel format of a FrameBuffer."""

    BGRA = "bgra"  # color stream, 4 bytes per pixel
    IR16 = "ir16"  # infrared stream, 16-bit little-endian intensity
    RGB = "rgb"  # rendered output, 3 bytes per pixel


@dataclass(frozen=True)
class FrameBuffer:
    """
    Fixed-size pixel buffer plus capture timestamp.

    The array is made read-only on construction so a published frame can be
    shared between threads by reference.
    """

    pixels: np.ndarray
    layout: PixelLayout
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.pixels.setflags(write=False)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]


@dataclass(frozen=True)
class DepthFrame:
    """Raw depth samples (depth in high bits, player index in low bits)."""

    samples: np.ndarray  # (H, W) uint16
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def width(self) -> int:
        return self.samples.shape[1]

    @property
    def height(self) -> int:
        return self.samples.shape[0]


class JointType(Enum):
    """Tracked body joints."""

    HIP_CENTER = auto()
    SPINE = auto()
    SHOULDER_CENTER = auto()
    HEAD = auto()
    SHOULDER_LEFT = auto()
    ELBOW_LEFT = auto()
    WRIST_LEFT = auto()
    HAND_LEFT = auto()
    SHOULDER_RIGHT = auto()
    ELBOW_RIGHT = auto()
    WRIST_RIGHT = auto()
    HAND_RIGHT = auto()
    HIP_LEFT = auto()
    KNEE_LEFT = auto()
    ANKLE_LEFT = auto()
    FOOT_LEFT = auto()
    HIP_RIGHT = auto()
    KNEE_RIGHT = auto()
    ANKLE_RIGHT = auto()
    FOOT_RIGHT = auto()


class TrackingState(Enum):
    """Tracking confidence of a joint or skeleton."""

    NOT_TRACKED = 0
    INFERRED = 1  # joint position guessed; skeleton: position only
    TRACKED = 2


# Fixed anatomical bone graph drawn by the overlay
BONES: tuple[tuple[JointType, JointType], ...] = (
    (JointType.HEAD, JointType.SHOULDER_CENTER),
    (JointType.SHOULDER_CENTER, JointType.SHOULDER_LEFT),
    (JointType.SHOULDER_CENTER, JointType.SHOULDER_RIGHT),
    (JointType.SHOULDER_LEFT, JointType.ELBOW_LEFT),
    (JointType.ELBOW_LEFT, JointType.WRIST_LEFT),
    (JointType.WRIST_LEFT, JointType.HAND_LEFT),
    (JointType.SHOULDER_RIGHT, JointType.ELBOW_RIGHT),
    (JointType.ELBOW_RIGHT, JointType.WRIST_RIGHT),
    (JointType.WRIST_RIGHT, JointType.HAND_RIGHT),
    (JointType.SHOULDER_CENTER, JointType.SPINE),
    (JointType.SPINE, JointType.HIP_CENTER),
    (JointType.HIP_CENTER, JointType.HIP_LEFT),
    (JointType.HIP_LEFT, JointType.KNEE_LEFT),
    (JointType.KNEE_LEFT, JointType.ANKLE_LEFT),
    (JointType.ANKLE_LEFT, JointType.FOOT_LEFT),
    (JointType.HIP_CENTER, JointType.HIP_RIGHT),
    (JointType.HIP_RIGHT, JointType.KNEE_RIGHT),
    (JointType.KNEE_RIGHT, JointType.ANKLE_RIGHT),
    (JointType.ANKLE_RIGHT, JointType.FOOT_RIGHT),
)


@dataclass(frozen=True)
class Joint:
    """A joint position in sensor space (meters)."""

    position: tuple[float, float, float]
    state: TrackingState = TrackingState.TRACKED


@dataclass(frozen=True)
class Skeleton:
    """One tracked body."""

    tracking_state: TrackingState
    joints: dict[JointType, Joint] = field(default_factory=dict)

    def joint(self, joint_type: JointType) -> Joint | None:
        return self.joints.get(joint_type)


@dataclass(frozen=True)
class SkeletonFrame:
    """All skeleton slots reported by the sensor for one frame."""

    skeletons: tuple[Skeleton, ...]
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def tracked(self) -> list[Skeleton]:
        return [s for s in self.skeletons if s.tracking_state is not TrackingState.NOT_TRACKED]
