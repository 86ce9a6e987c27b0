from .classifier import PixelClass, classify_pixel, classify_region
from .compositor import apply_design, composite_designs
from .config import PipelineConfig
from .detector import HandLandmarkDetector
from .extraction import extract_designs
from .geometry import compute_nail_geometry
from .pipeline import NailTryOnPipeline, Stage
from .region import extract_region
from .types import (
    CompositeResult,
    ExtractedNailDesign,
    FingerKey,
    HandLandmark,
    HandLandmarkSet,
    NailGeometry,
)

__all__ = [
    "HandLandmarkDetector",
    "NailTryOnPipeline",
    "Stage",
    "PipelineConfig",
    "PixelClass",
    "classify_pixel",
    "classify_region",
    "compute_nail_geometry",
    "extract_region",
    "extract_designs",
    "apply_design",
    "composite_designs",
    "CompositeResult",
    "ExtractedNailDesign",
    "FingerKey",
    "HandLandmark",
    "HandLandmarkSet",
    "NailGeometry",
]
