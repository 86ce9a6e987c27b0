from __future__ import annotations

import math
from typing import Iterable, Optional, Tuple

import numpy as np


# Direction of the nail axis (mid -> tip) inside a design buffer: straight up.
LOCAL_AXIS_ANGLE = -math.pi / 2


def clamp_int(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))


def bbox_from_points(points: Iterable[Tuple[float, float]]) -> Tuple[float, float, float, float]:
    xs = []
    ys = []
    for x, y in points:
        xs.append(x)
        ys.append(y)
    if not xs:
        return (0, 0, 0, 0)
    return (min(xs), min(ys), max(xs), max(ys))


def similarity_matrix(
    src_anchor: Tuple[float, float],
    dst_anchor: Tuple[float, float],
    angle: float,
    scale: float = 1.0,
) -> np.ndarray:
    """
    2x3 affine matrix mapping `src_anchor` onto `dst_anchor`, rotating by `angle`
    radians (image coordinates, y down) and scaling uniformly around it.
    """
    c = math.cos(angle) * scale
    s = math.sin(angle) * scale
    sx, sy = src_anchor
    dx, dy = dst_anchor
    return np.array(
        [
            [c, -s, dx - c * sx + s * sy],
            [s, c, dy - s * sx - c * sy],
        ],
        dtype=np.float64,
    )


def transform_points(m: np.ndarray, points: Iterable[Tuple[float, float]]) -> np.ndarray:
    pts = np.asarray(list(points), dtype=np.float64).reshape(-1, 2)
    return pts @ m[:, :2].T + m[:, 2]


def clamped_window(
    corners: np.ndarray, width: int, height: int
) -> Optional[Tuple[int, int, int, int]]:
    """
    Integer pixel window (x0, y0, x1, y1), exclusive end, covering `corners`
    and clipped to a `width` x `height` image. None if nothing is left.
    """
    x_min, y_min, x_max, y_max = bbox_from_points(corners)
    x0 = clamp_int(int(math.floor(x_min)), 0, width)
    y0 = clamp_int(int(math.floor(y_min)), 0, height)
    x1 = clamp_int(int(math.ceil(x_max)) + 1, 0, width)
    y1 = clamp_int(int(math.ceil(y_max)) + 1, 0, height)
    if x1 - x0 <= 0 or y1 - y0 <= 0:
        return None
    return (x0, y0, x1, y1)
