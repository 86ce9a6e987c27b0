from __future__ import annotations

import logging
from typing import List, Mapping, Optional

import cv2
import numpy as np

from .config import CompositeConfig, GeometryConfig
from .geometry import finger_geometry
from .types import (
    FINGER_LANDMARKS,
    CompositeResult,
    ExtractedNailDesign,
    FingerKey,
    HandLandmarkSet,
    NailGeometry,
)
from .utils import LOCAL_AXIS_ANGLE, clamped_window, similarity_matrix, transform_points


logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = CompositeConfig()


def design_to_target_matrix(geometry: NailGeometry, design: ExtractedNailDesign) -> np.ndarray:
    """
    Maps design buffer pixels onto the target image.

    Order: draw centered on the local origin, scale so the stored nail length
    matches the target nail length, rotate to the target orientation, then
    translate to the target nail center.
    """
    w, h = design.buffer_size
    scale = geometry.length / design.height
    return similarity_matrix(
        src_anchor=(w / 2, h / 2),
        dst_anchor=geometry.center,
        angle=geometry.rotation - LOCAL_AXIS_ANGLE,
        scale=scale,
    )


def multiply_blend(base_bgr: np.ndarray, overlay_bgra: np.ndarray, opacity: float) -> np.ndarray:
    """`base * overlay / 255` laid over `base` with the overlay's alpha times `opacity`."""
    base = base_bgr.astype(np.float32)
    over = overlay_bgra[:, :, :3].astype(np.float32)
    alpha = overlay_bgra[:, :, 3:4].astype(np.float32) / 255.0 * opacity
    multiplied = base * over / 255.0
    out = base * (1.0 - alpha) + multiplied * alpha
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


def apply_design(
    result_bgr: np.ndarray,
    geometry: NailGeometry,
    design: ExtractedNailDesign,
    config: CompositeConfig = _DEFAULT_CONFIG,
) -> bool:
    """
    Draw `design` onto `result_bgr` (in place) at the target nail placement.

    Only pixels inside the transformed design footprint are touched; returns
    False if that footprint lies entirely outside the image.
    """
    if design.height <= 0:
        return False

    rh, rw = result_bgr.shape[:2]
    dw, dh = design.buffer_size
    m = design_to_target_matrix(geometry, design)
    corners = transform_points(m, [(0, 0), (dw, 0), (dw, dh), (0, dh)])
    window = clamped_window(corners, rw, rh)
    if window is None:
        return False

    x0, y0, x1, y1 = window
    m_roi = m.copy()
    m_roi[0, 2] -= x0
    m_roi[1, 2] -= y0

    overlay = cv2.warpAffine(
        design.image,
        m_roi,
        (x1 - x0, y1 - y0),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )
    roi = result_bgr[y0:y1, x0:x1]
    result_bgr[y0:y1, x0:x1] = multiply_blend(roi, overlay, config.opacity)
    return True


def composite_designs(
    target_bgr: np.ndarray,
    hand: HandLandmarkSet,
    designs: Mapping[FingerKey, ExtractedNailDesign],
    geometry_config: Optional[GeometryConfig] = None,
    config: CompositeConfig = _DEFAULT_CONFIG,
) -> CompositeResult:
    """
    Re-project every stored design onto the matching finger of `hand`.

    Fingers without a stored design, or without a usable target geometry, are
    left untouched.
    """
    geometry_config = geometry_config or GeometryConfig(min_quality=0.0)
    result = target_bgr.copy()
    h, w = result.shape[:2]
    applied: List[FingerKey] = []

    for finger in FINGER_LANDMARKS:
        design = designs.get(finger)
        if design is None:
            continue
        geom = finger_geometry(hand, finger, w, h, geometry_config)
        if geom is None:
            continue
        if apply_design(result, geom, design, config):
            applied.append(finger)

    logger.info("Applied %d nail design(s)", len(applied))
    return CompositeResult(image=result, applied_fingers=tuple(applied))
