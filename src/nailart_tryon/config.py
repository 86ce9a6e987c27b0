"""
Tunable thresholds for every stage of the nail try-on pipeline.

All color thresholds are empirical. Inequalities are fixed by the classifier:
"min"/"max" bounds of a closed range are inclusive, everything named
`*_gt` / `*_lt` is strict.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class GeometryConfig:
    """Landmark -> nail geometry parameters for one pipeline phase."""

    tip_bias: float = 0.75  # center = tip * bias + base * (1 - bias)
    width_ratio: float = 0.75  # width = length * ratio
    min_length_px: float = 20.0
    min_width_px: float = 15.0
    min_quality: float = 0.3
    size_reference_px: float = 50.0  # size factor = min(length / ref, 1)

    def __post_init__(self):
        if not (0.0 <= self.tip_bias <= 1.0):
            raise ValueError("tip_bias must be in [0, 1]")
        if self.width_ratio <= 0:
            raise ValueError("width_ratio must be positive")
        if self.min_length_px < 0 or self.min_width_px < 0:
            raise ValueError("minimum sizes must be >= 0")
        if not (0.0 <= self.min_quality <= 1.0):
            raise ValueError("min_quality must be in [0, 1]")
        if self.size_reference_px <= 0:
            raise ValueError("size_reference_px must be positive")


@dataclass(frozen=True)
class RegionConfig:
    """Size of the extraction buffer relative to the nail."""

    context_factor: float = 1.5
    min_width_px: int = 60
    min_height_px: int = 80

    def __post_init__(self):
        if self.context_factor <= 0:
            raise ValueError("context_factor must be positive")
        if self.min_width_px <= 0 or self.min_height_px <= 0:
            raise ValueError("buffer floors must be positive")


@dataclass(frozen=True)
class SkinThresholds:
    """Four independent skin rules; a pixel matching any of them is skin."""

    # RGB ratio rule
    rgb_r_gt: int = 95
    rgb_g_gt: int = 40
    rgb_b_gt: int = 20
    rgb_spread_gt: int = 15
    rgb_rg_diff_gt: int = 15

    # YCrCb approximation
    ycrcb_y_gt: float = 80.0
    ycrcb_cr_range: Tuple[float, float] = (133.0, 173.0)
    ycrcb_cb_range: Tuple[float, float] = (77.0, 127.0)

    # HSV rule (hue in degrees, s and v in [0, 1])
    hsv_h_range: Tuple[float, float] = (0.0, 50.0)
    hsv_s_range: Tuple[float, float] = (0.23, 0.68)
    hsv_v_min: float = 0.35

    # Loose range rule, additionally requires r > b and g > b
    loose_r_gt: int = 120
    loose_g_gt: int = 80
    loose_b_gt: int = 50

    def __post_init__(self):
        for name in ("ycrcb_cr_range", "ycrcb_cb_range", "hsv_h_range", "hsv_s_range"):
            lo, hi = getattr(self, name)
            if lo > hi:
                raise ValueError(f"{name} must be (low, high)")


@dataclass(frozen=True)
class BackgroundThresholds:
    """Brightness is r + g + b; variance is the max pairwise channel difference."""

    dark_lt: int = 60
    bright_gt: int = 720
    neutral_variance_lt: int = 20
    neutral_bright_gt: int = 600

    def __post_init__(self):
        if self.dark_lt > self.bright_gt:
            raise ValueError("dark_lt must not exceed bright_gt")


@dataclass(frozen=True)
class EnhanceConfig:
    brightness: float = 1.1
    contrast: float = 1.0  # stretch around mid-gray; 1.0 leaves colors alone
    alpha_boost: float = 1.2

    def __post_init__(self):
        if self.brightness <= 0 or self.contrast <= 0:
            raise ValueError("brightness and contrast must be positive")
        if not (0.0 < self.alpha_boost <= 1.2):
            raise ValueError("alpha_boost must be in (0, 1.2]")


@dataclass(frozen=True)
class CompositeConfig:
    opacity: float = 0.85

    def __post_init__(self):
        if not (0.0 <= self.opacity <= 1.0):
            raise ValueError("opacity must be in [0, 1]")


@dataclass(frozen=True)
class DetectorConfig:
    """MediaPipe Hands options. Only the first hand is ever used."""

    static_image_mode: bool = True
    max_num_hands: int = 1
    model_complexity: int = 1
    min_detection_confidence: float = 0.8
    min_tracking_confidence: float = 0.8
    tasks_model_path: str = "models/hand_landmarker.task"

    def __post_init__(self):
        if self.max_num_hands < 1:
            raise ValueError("max_num_hands must be >= 1")
        if self.model_complexity not in (0, 1):
            raise ValueError("model_complexity must be 0 or 1")
        for name in ("min_detection_confidence", "min_tracking_confidence"):
            if not (0.0 <= getattr(self, name) <= 1.0):
                raise ValueError(f"{name} must be in [0, 1]")


@dataclass(frozen=True)
class InputConfig:
    max_file_bytes: int = 10 * 1024 * 1024
    min_width: int = 300
    min_height: int = 300

    def __post_init__(self):
        if self.max_file_bytes <= 0:
            raise ValueError("max_file_bytes must be positive")
        if self.min_width < 1 or self.min_height < 1:
            raise ValueError("minimum image size must be >= 1")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Aggregate configuration.

    Extraction and compositing keep separate geometry settings; compositing
    does not gate on landmark quality.
    """

    extraction_geometry: GeometryConfig = field(default_factory=GeometryConfig)
    composite_geometry: GeometryConfig = field(default_factory=lambda: GeometryConfig(min_quality=0.0))
    region: RegionConfig = field(default_factory=RegionConfig)
    skin: SkinThresholds = field(default_factory=SkinThresholds)
    background: BackgroundThresholds = field(default_factory=BackgroundThresholds)
    enhance: EnhanceConfig = field(default_factory=EnhanceConfig)
    composite: CompositeConfig = field(default_factory=CompositeConfig)
    min_design_coverage: float = 0.0
    detection_timeout_s: float = 10.0

    def __post_init__(self):
        if not (0.0 <= self.min_design_coverage <= 1.0):
            raise ValueError("min_design_coverage must be in [0, 1]")
        if not (self.detection_timeout_s > 0 and math.isfinite(self.detection_timeout_s)):
            raise ValueError("detection_timeout_s must be a positive number")
