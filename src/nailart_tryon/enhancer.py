from __future__ import annotations

from typing import Tuple

import numpy as np

from .classifier import PixelClass
from .config import EnhanceConfig


_DEFAULT_CONFIG = EnhanceConfig()


def _boost_colors(bgr: np.ndarray, config: EnhanceConfig) -> np.ndarray:
    c = bgr.astype(np.float64) * config.brightness
    if config.contrast != 1.0:
        c = (c - 128.0) * config.contrast + 128.0
    return np.clip(np.rint(c), 0, 255).astype(np.uint8)


def _boost_alpha(alpha: np.ndarray, config: EnhanceConfig) -> np.ndarray:
    return np.clip(np.rint(alpha.astype(np.float64) * config.alpha_boost), 0, 255).astype(np.uint8)


def enhance_region(image_bgra: np.ndarray, labels: np.ndarray, config: EnhanceConfig = _DEFAULT_CONFIG) -> np.ndarray:
    """
    Make skin/background transparent and make design pixels more vivid.

    Mutates `image_bgra` in place and returns it.
    """
    design = labels == PixelClass.DESIGN
    image_bgra[~design, 3] = 0
    if np.any(design):
        image_bgra[design, :3] = _boost_colors(image_bgra[design, :3], config)
        image_bgra[design, 3] = _boost_alpha(image_bgra[design, 3], config)
    return image_bgra


def enhance_pixel(
    bgra: Tuple[int, int, int, int],
    cls: PixelClass,
    config: EnhanceConfig = _DEFAULT_CONFIG,
) -> Tuple[int, int, int, int]:
    px = np.array([[bgra]], dtype=np.uint8)
    labels = np.array([[cls]], dtype=np.uint8)
    out = enhance_region(px, labels, config)[0, 0]
    return (int(out[0]), int(out[1]), int(out[2]), int(out[3]))
