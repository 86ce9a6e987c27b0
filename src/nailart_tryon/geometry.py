from __future__ import annotations

import logging
import math
from typing import Optional

from .config import GeometryConfig
from .types import FINGER_LANDMARKS, FingerKey, HandLandmark, HandLandmarkSet, NailGeometry


logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = GeometryConfig()


def _visibility(lm: HandLandmark) -> float:
    # MediaPipe Hands leaves visibility at 0.0; treat that like "not reported".
    return lm.visibility or 1.0


def landmark_quality(
    tip: HandLandmark,
    base: HandLandmark,
    mid: HandLandmark,
    length_px: float,
    config: GeometryConfig = _DEFAULT_CONFIG,
) -> float:
    """Visibility of the three landmarks times a size factor, capped at 1."""
    size_factor = min(length_px / config.size_reference_px, 1.0)
    return min(_visibility(tip) * _visibility(base) * _visibility(mid) * size_factor, 1.0)


def compute_nail_geometry(
    tip: Optional[HandLandmark],
    base: Optional[HandLandmark],
    mid: Optional[HandLandmark],
    image_width_px: int,
    image_height_px: int,
    config: GeometryConfig = _DEFAULT_CONFIG,
) -> Optional[NailGeometry]:
    """
    Convert a (tip, base, mid) landmark triple into a pixel-space nail placement.

    Orientation comes from the mid->tip segment, which follows the nail's own
    axis more closely than base->tip. The center is biased toward the tip.

    Returns None when a landmark is missing or the nail is too small or
    too uncertain to use.
    """
    if tip is None or base is None or mid is None:
        return None

    tx, ty = tip.to_px(image_width_px, image_height_px)
    bx, by = base.to_px(image_width_px, image_height_px)
    mx, my = mid.to_px(image_width_px, image_height_px)

    length = math.hypot(tx - bx, ty - by)
    width = length * config.width_ratio
    if length < config.min_length_px or width < config.min_width_px:
        return None

    quality = landmark_quality(tip, base, mid, length, config)
    if quality < config.min_quality:
        return None

    a = config.tip_bias
    center = (tx * a + bx * (1 - a), ty * a + by * (1 - a))
    rotation = math.atan2(ty - my, tx - mx)

    return NailGeometry(center=center, rotation=rotation, length=length, width=width, quality=quality)


def finger_geometry(
    hand: HandLandmarkSet,
    finger: FingerKey,
    image_width_px: int,
    image_height_px: int,
    config: GeometryConfig = _DEFAULT_CONFIG,
) -> Optional[NailGeometry]:
    idx = FINGER_LANDMARKS[finger]
    geom = compute_nail_geometry(
        hand[idx.tip], hand[idx.base], hand[idx.mid], image_width_px, image_height_px, config
    )
    if geom is None:
        logger.debug("No usable nail geometry for %s", finger.value)
    return geom
