"""
Handcrafted per-pixel skin/background classification.

Skin is the OR of four overlapping rules (RGB ratios, YCrCb, HSV, loose
range). Background is very dark, very bright, or neutral-and-bright. A pixel
that is neither is part of the nail design. Skin is checked first.

All rule functions accept numpy arrays (or scalars) of r, g, b and broadcast,
so `classify_pixel` and `classify_region` share one implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from .config import BackgroundThresholds, SkinThresholds


_DEFAULT_SKIN = SkinThresholds()
_DEFAULT_BACKGROUND = BackgroundThresholds()


class PixelClass(IntEnum):
    DESIGN = 0
    SKIN = 1
    BACKGROUND = 2


def _f64(*channels):
    return tuple(np.asarray(c, dtype=np.float64) for c in channels)


def _in_range(v, bounds):
    lo, hi = bounds
    return (v >= lo) & (v <= hi)


def skin_rgb_rule(r, g, b, t: SkinThresholds = _DEFAULT_SKIN):
    r, g, b = _f64(r, g, b)
    mx = np.maximum(np.maximum(r, g), b)
    mn = np.minimum(np.minimum(r, g), b)
    return (
        (r > t.rgb_r_gt)
        & (g > t.rgb_g_gt)
        & (b > t.rgb_b_gt)
        & (mx - mn > t.rgb_spread_gt)
        & (np.abs(r - g) > t.rgb_rg_diff_gt)
        & (r > g)
        & (r > b)
    )


def skin_ycrcb_rule(r, g, b, t: SkinThresholds = _DEFAULT_SKIN):
    r, g, b = _f64(r, g, b)
    y = 0.299 * r + 0.587 * g + 0.114 * b
    cr = 0.713 * (r - y) + 128
    cb = 0.564 * (b - y) + 128
    return (y > t.ycrcb_y_gt) & _in_range(cr, t.ycrcb_cr_range) & _in_range(cb, t.ycrcb_cb_range)


def rgb_to_hsv(r, g, b):
    """Standard RGB -> HSV: hue in degrees [0, 360), saturation and value in [0, 1]."""
    r, g, b = _f64(r, g, b)
    mx = np.maximum(np.maximum(r, g), b)
    mn = np.minimum(np.minimum(r, g), b)
    delta = mx - mn
    safe_delta = np.where(delta == 0, 1.0, delta)
    safe_max = np.where(mx == 0, 1.0, mx)

    h = np.where(
        mx == r,
        np.mod((g - b) / safe_delta, 6.0),
        np.where(mx == g, (b - r) / safe_delta + 2.0, (r - g) / safe_delta + 4.0),
    )
    h = np.where(delta == 0, 0.0, h * 60.0)
    s = np.where(mx == 0, 0.0, delta / safe_max)
    v = mx / 255.0
    return h, s, v


def skin_hsv_rule(r, g, b, t: SkinThresholds = _DEFAULT_SKIN):
    h, s, v = rgb_to_hsv(r, g, b)
    return _in_range(h, t.hsv_h_range) & _in_range(s, t.hsv_s_range) & (v >= t.hsv_v_min)


def skin_loose_rule(r, g, b, t: SkinThresholds = _DEFAULT_SKIN):
    r, g, b = _f64(r, g, b)
    return (r > t.loose_r_gt) & (g > t.loose_g_gt) & (b > t.loose_b_gt) & (r > b) & (g > b)


def skin_mask(r, g, b, t: SkinThresholds = _DEFAULT_SKIN):
    return (
        skin_rgb_rule(r, g, b, t)
        | skin_ycrcb_rule(r, g, b, t)
        | skin_hsv_rule(r, g, b, t)
        | skin_loose_rule(r, g, b, t)
    )


def background_mask(r, g, b, t: BackgroundThresholds = _DEFAULT_BACKGROUND):
    r, g, b = _f64(r, g, b)
    brightness = r + g + b
    variance = np.maximum(np.maximum(np.abs(r - g), np.abs(g - b)), np.abs(r - b))
    return (
        (brightness < t.dark_lt)
        | (brightness > t.bright_gt)
        | ((variance < t.neutral_variance_lt) & (brightness > t.neutral_bright_gt))
    )


def is_skin(r: int, g: int, b: int, t: SkinThresholds = _DEFAULT_SKIN) -> bool:
    return bool(skin_mask(r, g, b, t))


def is_background(r: int, g: int, b: int, t: BackgroundThresholds = _DEFAULT_BACKGROUND) -> bool:
    return bool(background_mask(r, g, b, t))


def classify_pixel(
    r: int,
    g: int,
    b: int,
    skin: SkinThresholds = _DEFAULT_SKIN,
    background: BackgroundThresholds = _DEFAULT_BACKGROUND,
) -> PixelClass:
    if is_skin(r, g, b, skin):
        return PixelClass.SKIN
    if is_background(r, g, b, background):
        return PixelClass.BACKGROUND
    return PixelClass.DESIGN


@dataclass(frozen=True)
class RegionClassification:
    """Per-pixel labels (PixelClass values) and the share of each class."""

    labels: np.ndarray  # uint8, shape (h, w)
    design_fraction: float
    skin_fraction: float
    background_fraction: float

    @property
    def design_mask(self) -> np.ndarray:
        return self.labels == PixelClass.DESIGN


def classify_region(
    image_bgra: np.ndarray,
    skin: SkinThresholds = _DEFAULT_SKIN,
    background: BackgroundThresholds = _DEFAULT_BACKGROUND,
) -> RegionClassification:
    """Classify every pixel of a BGR(A) buffer. Alpha is not consulted."""
    b = image_bgra[:, :, 0]
    g = image_bgra[:, :, 1]
    r = image_bgra[:, :, 2]

    is_skin_px = skin_mask(r, g, b, skin)
    is_bg_px = background_mask(r, g, b, background) & ~is_skin_px

    labels = np.full(image_bgra.shape[:2], PixelClass.DESIGN, dtype=np.uint8)
    labels[is_bg_px] = PixelClass.BACKGROUND
    labels[is_skin_px] = PixelClass.SKIN

    total = max(labels.size, 1)
    return RegionClassification(
        labels=labels,
        design_fraction=float(np.count_nonzero(labels == PixelClass.DESIGN)) / total,
        skin_fraction=float(np.count_nonzero(is_skin_px)) / total,
        background_fraction=float(np.count_nonzero(is_bg_px)) / total,
    )
