from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from .config import RegionConfig
from .types import NailGeometry
from .utils import LOCAL_AXIS_ANGLE, clamped_window, similarity_matrix, transform_points


_DEFAULT_CONFIG = RegionConfig()


def region_size(geometry: NailGeometry, config: RegionConfig = _DEFAULT_CONFIG) -> Tuple[int, int]:
    """(width, height) of the extraction buffer; larger than the nail to keep context."""
    w = int(max(geometry.width * config.context_factor, config.min_width_px))
    h = int(max(geometry.length * config.context_factor, config.min_height_px))
    return (w, h)


def local_to_source_matrix(geometry: NailGeometry, size: Tuple[int, int]) -> np.ndarray:
    """Maps buffer pixel coordinates to source pixel coordinates."""
    w, h = size
    return similarity_matrix(
        src_anchor=(w / 2, h / 2),
        dst_anchor=geometry.center,
        angle=geometry.rotation - LOCAL_AXIS_ANGLE,
    )


def extract_region(
    source_bgr: np.ndarray,
    geometry: NailGeometry,
    config: RegionConfig = _DEFAULT_CONFIG,
) -> np.ndarray:
    """
    Cut the nail area out of `source_bgr` into a de-rotated BGRA buffer.

    The buffer's center sits on `geometry.center` and its vertical axis follows
    the nail (tip up). Only pixels inside the source are read; anything the
    buffer covers outside the source stays transparent. If the covered window
    does not intersect the source at all, the buffer is returned blank.
    """
    w, h = region_size(geometry, config)
    out = np.zeros((h, w, 4), dtype=np.uint8)

    src_h, src_w = source_bgr.shape[:2]
    m = local_to_source_matrix(geometry, (w, h))
    corners = transform_points(m, [(0, 0), (w, 0), (w, h), (0, h)])
    window = clamped_window(corners, src_w, src_h)
    if window is None:
        return out

    x0, y0, x1, y1 = window
    crop = source_bgr[y0:y1, x0:x1]
    if crop.ndim == 2:
        crop = cv2.cvtColor(crop, cv2.COLOR_GRAY2BGR)
    crop_bgra = cv2.cvtColor(crop[:, :, :3], cv2.COLOR_BGR2BGRA)

    # Same mapping, expressed relative to the crop origin.
    m_crop = m.copy()
    m_crop[0, 2] -= x0
    m_crop[1, 2] -= y0

    return cv2.warpAffine(
        crop_bgra,
        m_crop,
        (w, h),
        flags=cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )
