from __future__ import annotations

import logging
from typing import Dict, Optional

import numpy as np

from .classifier import classify_region
from .config import PipelineConfig
from .enhancer import enhance_region
from .geometry import finger_geometry
from .region import extract_region
from .types import FINGER_LANDMARKS, ExtractedNailDesign, FingerKey, HandLandmarkSet


logger = logging.getLogger(__name__)


def extract_nail_design(
    source_bgr: np.ndarray,
    hand: HandLandmarkSet,
    finger: FingerKey,
    config: Optional[PipelineConfig] = None,
) -> Optional[ExtractedNailDesign]:
    """Extract one finger's cleaned nail design, or None if the finger is unusable."""
    config = config or PipelineConfig()
    h, w = source_bgr.shape[:2]

    geom = finger_geometry(hand, finger, w, h, config.extraction_geometry)
    if geom is None:
        return None

    buffer = extract_region(source_bgr, geom, config.region)
    classification = classify_region(buffer, config.skin, config.background)
    enhance_region(buffer, classification.labels, config.enhance)

    if classification.design_fraction < config.min_design_coverage:
        logger.debug(
            "Dropping %s: design coverage %.3f below %.3f",
            finger.value,
            classification.design_fraction,
            config.min_design_coverage,
        )
        return None

    return ExtractedNailDesign(
        finger=finger,
        image=buffer,
        rotation=geom.rotation,
        scale=geom.length / 100.0,
        width=geom.width,
        height=geom.length,
        quality=geom.quality,
        origin=geom.center,
        coverage=classification.design_fraction,
    )


def extract_designs(
    source_bgr: np.ndarray,
    hand: HandLandmarkSet,
    config: Optional[PipelineConfig] = None,
) -> Dict[FingerKey, ExtractedNailDesign]:
    """Extract every usable finger of `hand`; fingers that fail simply have no entry."""
    designs: Dict[FingerKey, ExtractedNailDesign] = {}
    for finger in FINGER_LANDMARKS:
        design = extract_nail_design(source_bgr, hand, finger, config)
        if design is not None:
            designs[finger] = design
    logger.info("Extracted %d nail design(s): %s", len(designs), ", ".join(f.value for f in designs))
    return designs
