from __future__ import annotations

from typing import Iterable, List, Tuple

import cv2
import numpy as np

from .types import FingerKey, HandLandmarkSet, NailGeometry


HAND_CONNECTIONS: List[Tuple[int, int]] = [
    # thumb
    (0, 1),
    (1, 2),
    (2, 3),
    (3, 4),
    # index
    (0, 5),
    (5, 6),
    (6, 7),
    (7, 8),
    # middle
    (5, 9),
    (9, 10),
    (10, 11),
    (11, 12),
    # ring
    (9, 13),
    (13, 14),
    (14, 15),
    (15, 16),
    # pinky
    (13, 17),
    (17, 18),
    (18, 19),
    (19, 20),
    # palm base
    (0, 17),
]


def _px(hand: HandLandmarkSet, idx: int, w: int, h: int):
    lm = hand[idx]
    if lm is None:
        return None
    return (int(round(lm.x * w)), int(round(lm.y * h)))


def draw_landmarks(frame, hand: HandLandmarkSet):
    h, w = frame.shape[:2]
    for a, b in HAND_CONNECTIONS:
        p0 = _px(hand, a, w, h)
        p1 = _px(hand, b, w, h)
        if p0 is not None and p1 is not None:
            cv2.line(frame, p0, p1, (0, 255, 255), 2, cv2.LINE_AA)
    for idx in range(len(hand)):
        p = _px(hand, idx, w, h)
        if p is not None:
            cv2.circle(frame, p, 3, (40, 255, 120), -1, lineType=cv2.LINE_AA)
    return frame


def nail_box_points(geometry: NailGeometry) -> np.ndarray:
    """Corners of the rotated nail rectangle (length along the nail axis)."""
    rect = (geometry.center, (geometry.length, geometry.width), float(np.degrees(geometry.rotation)))
    return cv2.boxPoints(rect)


def draw_nail_geometry(frame, geometries: Iterable[Tuple[FingerKey, NailGeometry]], color=(255, 0, 255)):
    for finger, geom in geometries:
        pts = nail_box_points(geom).astype(np.int32)
        cv2.polylines(frame, [pts], True, color, 2, cv2.LINE_AA)
        cx, cy = int(round(geom.center[0])), int(round(geom.center[1]))
        cv2.circle(frame, (cx, cy), 4, (0, 0, 255), -1)
        draw_text(frame, f"{finger.value} {geom.quality:.2f}", (cx + 6, cy - 6))
    return frame


def draw_text(frame, text: str, org: Tuple[int, int], color=(255, 255, 255), scale=0.5, thickness=1):
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, (0, 0, 0), thickness + 2, cv2.LINE_AA)
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness, cv2.LINE_AA)
    return frame
