from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Tuple

import cv2
import numpy as np


Point2f = Tuple[float, float]

NUM_HAND_LANDMARKS = 21


class FingerKey(str, Enum):
    THUMB = "thumb"
    INDEX = "index"
    MIDDLE = "middle"
    RING = "ring"
    PINKY = "pinky"


@dataclass(frozen=True)
class FingerLandmarkIndices:
    """Landmark roles for one finger: `mid` is only used for orientation."""

    tip: int
    base: int
    mid: int


# MediaPipe Hands numbering. Base is the PIP joint, mid the DIP joint.
FINGER_LANDMARKS: Dict[FingerKey, FingerLandmarkIndices] = {
    FingerKey.THUMB: FingerLandmarkIndices(tip=4, base=2, mid=3),
    FingerKey.INDEX: FingerLandmarkIndices(tip=8, base=6, mid=7),
    FingerKey.MIDDLE: FingerLandmarkIndices(tip=12, base=10, mid=11),
    FingerKey.RING: FingerLandmarkIndices(tip=16, base=14, mid=15),
    FingerKey.PINKY: FingerLandmarkIndices(tip=20, base=18, mid=19),
}


@dataclass(frozen=True)
class HandLandmark:
    """A single normalized hand landmark (image-fraction coordinates)."""

    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None  # None / 0.0 = not reported by the detector

    def to_px(self, width: int, height: int) -> Point2f:
        return (self.x * width, self.y * height)


@dataclass(frozen=True)
class HandLandmarkSet:
    """The 21 landmarks of one detected hand. Missing landmarks are `None`."""

    landmarks: Tuple[Optional[HandLandmark], ...]
    handedness_label: Optional[str] = None  # "Left" / "Right"
    handedness_score: Optional[float] = None

    def __post_init__(self) -> None:
        if len(self.landmarks) != NUM_HAND_LANDMARKS:
            raise ValueError(
                f"HandLandmarkSet needs exactly {NUM_HAND_LANDMARKS} entries, got {len(self.landmarks)}"
            )

    @classmethod
    def from_points(
        cls,
        points: Iterable[Optional[Sequence[float]]],
        handedness_label: Optional[str] = None,
        handedness_score: Optional[float] = None,
    ) -> "HandLandmarkSet":
        """Build from `(x, y[, z[, visibility]])` tuples; `None` marks a missing point."""
        lms = []
        for p in points:
            lms.append(None if p is None else HandLandmark(*p))
        return cls(tuple(lms), handedness_label, handedness_score)

    def __getitem__(self, idx: int) -> Optional[HandLandmark]:
        return self.landmarks[idx]

    def __len__(self) -> int:
        return len(self.landmarks)


@dataclass(frozen=True)
class NailGeometry:
    """Pixel-space nail placement for one finger in one image."""

    center: Point2f
    rotation: float  # radians, angle of the mid->tip vector
    length: float
    width: float
    quality: float = 1.0


@dataclass
class ExtractedNailDesign:
    """A cleaned nail design, stored in its de-rotated local frame."""

    finger: FingerKey
    image: np.ndarray  # BGRA, uint8
    rotation: float
    scale: float
    width: float  # nail width in source pixels
    height: float  # nail length in source pixels
    quality: float
    origin: Point2f = (0.0, 0.0)
    coverage: float = 0.0  # fraction of design pixels in the buffer

    @property
    def buffer_size(self) -> Tuple[int, int]:
        h, w = self.image.shape[:2]
        return (w, h)


@dataclass
class CompositeResult:
    """Final rendered image plus the fingers that actually received a design."""

    image: np.ndarray  # BGR, uint8
    applied_fingers: Tuple[FingerKey, ...] = field(default_factory=tuple)

    @property
    def applied_count(self) -> int:
        return len(self.applied_fingers)

    def encode_png(self) -> bytes:
        ok, buf = cv2.imencode(".png", self.image)
        if not ok:
            raise RuntimeError("Could not encode result image as PNG")
        return buf.tobytes()
