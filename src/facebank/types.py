"""facebank data types.

Head-pose buckets, detector output, descriptors and gallery records.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class AngleClass(str, Enum):
    """Discretized head-pose bucket."""

    FRONTAL = "frontal"
    LEFT_PROFILE = "left_profile"
    RIGHT_PROFILE = "right_profile"
    UP_ANGLE = "up_angle"
    DOWN_ANGLE = "down_angle"
    MIXED_ANGLE = "mixed_angle"

    @classmethod
    def from_string(cls, value: str) -> AngleClass:
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(a.value for a in cls)
            raise ValueError(f"Unknown angle class '{value}'. Valid: {valid}")


# Enrollment order. Completion means every one of these was captured.
CANONICAL_ANGLES: tuple[AngleClass, ...] = (
    AngleClass.FRONTAL,
    AngleClass.LEFT_PROFILE,
    AngleClass.RIGHT_PROFILE,
    AngleClass.UP_ANGLE,
    AngleClass.DOWN_ANGLE,
)


@dataclass(frozen=True)
class FaceAngle:
    """Head pose in degrees.

    - yaw: left(-) / right(+) head turn
    - pitch: down(-) / up(+) head tilt
    - roll: in-plane rotation
    """

    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0

    @property
    def angle_class(self) -> AngleClass:
        if abs(self.yaw) < 15 and abs(self.pitch) < 15:
            return AngleClass.FRONTAL
        if self.yaw > 15:
            return AngleClass.RIGHT_PROFILE
        if self.yaw < -15:
            return AngleClass.LEFT_PROFILE
        if self.pitch > 15:
            return AngleClass.UP_ANGLE
        if self.pitch < -15:
            return AngleClass.DOWN_ANGLE
        return AngleClass.MIXED_ANGLE

    @property
    def is_valid(self) -> bool:
        """Pose is usable for enrollment or recognition."""
        return abs(self.yaw) < 60 and abs(self.pitch) < 45


@dataclass(frozen=True)
class BoundingBox:
    """Face bounding box (left, top, right, bottom) in pixels."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2

    @property
    def center_y(self) -> float:
        return (self.top + self.bottom) / 2

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> BoundingBox:
        return cls(left=x, top=y, right=x + w, bottom=y + h)


# Landmark slots in detector order. Geometric features index into this order.
LANDMARK_NAMES: tuple[str, ...] = (
    "left_eye",
    "right_eye",
    "nose_base",
    "mouth_left",
    "mouth_right",
    "mouth_bottom",
    "left_cheek",
    "right_cheek",
)


@dataclass(frozen=True)
class Landmarks:
    """Ordered facial landmark points with their bounding box.

    Attributes:
        points: Up to 8 (x, y) points in LANDMARK_NAMES order. A detector
            that misses a landmark simply emits fewer points.
        bbox: Face bounding box the points belong to.
        confidence: Landmark confidence [0, 1].
    """

    points: tuple[tuple[float, float], ...]
    bbox: BoundingBox
    confidence: float = 0.8

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "points", tuple((float(x), float(y)) for x, y in self.points)
        )

    def __len__(self) -> int:
        return len(self.points)


@dataclass
class DetectedFace:
    """One face as delivered by the external detector.

    Attributes:
        bbox: Face bounding box in frame pixels.
        landmarks: Ordered landmark points.
        angle: Head pose estimate.
        confidence: Detection confidence [0, 1].
        image: Cropped face, RGB (H, W, 3) uint8.
    """

    bbox: BoundingBox
    landmarks: Landmarks
    angle: FaceAngle
    confidence: float
    image: np.ndarray


class DescriptorKind(str, Enum):
    """Descriptor variant. Dimensionality is the discriminant."""

    LEGACY = "legacy"
    EMBEDDING = "embedding"

    @property
    def size(self) -> int:
        return _KIND_SIZES[self]

    @classmethod
    def for_size(cls, size: int) -> DescriptorKind:
        for kind, kind_size in _KIND_SIZES.items():
            if kind_size == size:
                return kind
        raise ValueError(
            f"Unsupported descriptor length {size}; "
            f"expected one of {sorted(_KIND_SIZES.values())}"
        )


LBP_SIZE = 256
HOG_SIZE = 144
GEOMETRIC_SIZE = 20
LEGACY_SIZE = LBP_SIZE + HOG_SIZE + GEOMETRIC_SIZE  # 420
EMBEDDING_SIZE = 512

_KIND_SIZES = {
    DescriptorKind.LEGACY: LEGACY_SIZE,
    DescriptorKind.EMBEDDING: EMBEDDING_SIZE,
}


@dataclass(frozen=True, eq=False)
class Descriptor:
    """Fixed-length face descriptor tagged with its variant.

    The values array is a read-only float32 copy, so a descriptor can be
    shared between the gallery and the matcher without aliasing.
    """

    values: np.ndarray
    kind: DescriptorKind

    def __post_init__(self) -> None:
        arr = np.array(self.values, dtype=np.float32).reshape(-1)
        if arr.shape[0] != self.kind.size:
            raise ValueError(
                f"{self.kind.value} descriptor needs {self.kind.size} values, got {arr.shape[0]}"
            )
        arr.setflags(write=False)
        object.__setattr__(self, "values", arr)

    @classmethod
    def from_values(cls, values) -> Descriptor:
        """Build a descriptor, inferring the kind from its length."""
        arr = np.asarray(values, dtype=np.float32).reshape(-1)
        return cls(values=arr, kind=DescriptorKind.for_size(arr.shape[0]))

    @classmethod
    def legacy(cls, values) -> Descriptor:
        return cls(values=values, kind=DescriptorKind.LEGACY)

    @classmethod
    def embedding(cls, values) -> Descriptor:
        return cls(values=values, kind=DescriptorKind.EMBEDDING)

    def __len__(self) -> int:
        return int(self.values.shape[0])

    @property
    def label(self) -> str:
        if self.kind is DescriptorKind.EMBEDDING:
            return f"Embedding ({len(self)}D)"
        return f"Legacy LBP+HOG+Geometric ({len(self)}D)"


@dataclass(frozen=True)
class GalleryRecord:
    """One enrolled descriptor captured at a given angle."""

    identity_id: str
    angle_class: AngleClass
    descriptor: Descriptor
    captured_at: float = field(default_factory=time.time)
    confidence: float = 0.8


@dataclass
class Identity:
    """An enrolled person and the angles captured so far."""

    identity_id: str
    display_name: str
    captured_angles: set[AngleClass] = field(default_factory=set)
    created_at: float = field(default_factory=time.time)

    @property
    def is_complete(self) -> bool:
        return all(angle in self.captured_angles for angle in CANONICAL_ANGLES)


@dataclass(frozen=True)
class RecognitionResult:
    """Accepted match for one recognition call."""

    identity_id: str
    display_name: str
    confidence: float  # clamped to [0, 1]
    matched_angle: AngleClass
    timestamp: float


__all__ = [
    "AngleClass",
    "CANONICAL_ANGLES",
    "FaceAngle",
    "BoundingBox",
    "LANDMARK_NAMES",
    "Landmarks",
    "DetectedFace",
    "DescriptorKind",
    "Descriptor",
    "LBP_SIZE",
    "HOG_SIZE",
    "GEOMETRIC_SIZE",
    "LEGACY_SIZE",
    "EMBEDDING_SIZE",
    "GalleryRecord",
    "Identity",
    "RecognitionResult",
]
