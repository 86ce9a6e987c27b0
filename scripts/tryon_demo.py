from __future__ import annotations

import argparse
import logging
import os
import sys

import cv2

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from nailart_tryon.config import CompositeConfig, DetectorConfig, PipelineConfig  # noqa: E402
from nailart_tryon.detector import HandLandmarkDetector  # noqa: E402
from nailart_tryon.drawing import draw_landmarks, draw_nail_geometry  # noqa: E402
from nailart_tryon.exceptions import NailTryOnError  # noqa: E402
from nailart_tryon.geometry import finger_geometry  # noqa: E402
from nailart_tryon.image_io import default_output_name, load_image_file, save_result  # noqa: E402
from nailart_tryon.pipeline import NailTryOnPipeline  # noqa: E402
from nailart_tryon.types import FINGER_LANDMARKS  # noqa: E402


def write_debug(path: str, frame, hands, config: PipelineConfig) -> None:
    out = frame.copy()
    if hands:
        h, w = out.shape[:2]
        draw_landmarks(out, hands[0])
        geoms = []
        for finger in FINGER_LANDMARKS:
            g = finger_geometry(hands[0], finger, w, h, config.extraction_geometry)
            if g is not None:
                geoms.append((finger, g))
        draw_nail_geometry(out, geoms)
    if not cv2.imwrite(path, out):
        raise RuntimeError(f"Could not write debug image: {path}")


def main() -> int:
    ap = argparse.ArgumentParser(description="Copy the nail designs from one photo onto the hand in another.")
    ap.add_argument("--design", required=True, help="Photo of painted nails to extract designs from")
    ap.add_argument("--hand", required=True, help="Photo of the hand to apply designs to")
    ap.add_argument("--out", default=None, help="Output PNG (default: nail-design-<ms>.png)")
    ap.add_argument("--opacity", type=float, default=0.85, help="Blend opacity of the applied designs")
    ap.add_argument("--confidence", type=float, default=0.8, help="Minimum hand detection confidence")
    ap.add_argument("--timeout", type=float, default=10.0, help="Detector timeout in seconds")
    ap.add_argument("--debug-dir", default=None, help="Also write landmark/nail overlays here")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = PipelineConfig(
        composite=CompositeConfig(opacity=args.opacity),
        detection_timeout_s=args.timeout,
    )
    detector_config = DetectorConfig(
        min_detection_confidence=args.confidence,
        min_tracking_confidence=args.confidence,
    )

    try:
        design_frame = load_image_file(args.design)
        hand_frame = load_image_file(args.hand)
    except NailTryOnError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    out_path = args.out or default_output_name()

    with HandLandmarkDetector(detector_config) as detector, NailTryOnPipeline(detector, config) as pipeline:
        if args.debug_dir:
            os.makedirs(args.debug_dir, exist_ok=True)
            write_debug(os.path.join(args.debug_dir, "design_landmarks.png"), design_frame, detector.detect(design_frame), config)
            write_debug(os.path.join(args.debug_dir, "hand_landmarks.png"), hand_frame, detector.detect(hand_frame), config)

        try:
            designs = pipeline.extract(design_frame)
            print(f"Successfully extracted {len(designs)} nail designs!")
            for finger, d in designs.items():
                print(f"  {finger.value}: quality={d.quality:.2f} coverage={d.coverage:.2f} size={d.buffer_size}")

            if args.debug_dir:
                for finger, d in designs.items():
                    cv2.imwrite(os.path.join(args.debug_dir, f"design_{finger.value}.png"), d.image)

            result = pipeline.apply(hand_frame)
            print(f"Successfully applied {result.applied_count} nail designs!")
        except NailTryOnError as e:
            print(f"error: {e}", file=sys.stderr)
            if pipeline.result is not None:
                save_result(pipeline.result, out_path)
                print(f"Saved unmodified image to {out_path}")
            return 1

        save_result(result, out_path)
        print(f"Saved {out_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
