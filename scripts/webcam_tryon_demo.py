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

from nailart_tryon.config import PipelineConfig  # noqa: E402
from nailart_tryon.detector import HandLandmarkDetector  # noqa: E402
from nailart_tryon.drawing import draw_text  # noqa: E402
from nailart_tryon.exceptions import NailTryOnError  # noqa: E402
from nailart_tryon.image_io import load_image_file, open_camera, share_result, snapshot  # noqa: E402
from nailart_tryon.pipeline import NailTryOnPipeline  # noqa: E402


WINDOW = "nailart - try-on"


def main() -> int:
    ap = argparse.ArgumentParser(description="Extract nail designs from a photo and try them on via webcam.")
    ap.add_argument("--design", required=True, help="Photo of painted nails to extract designs from")
    ap.add_argument("--camera", type=int, default=0, help="Camera index (default: 0)")
    ap.add_argument("--width", type=int, default=1280, help="Capture width (best effort)")
    ap.add_argument("--height", type=int, default=720, help="Capture height (best effort)")
    ap.add_argument(
        "--no-mirror",
        action="store_true",
        help="Preview without mirroring (default is mirrored/selfie preview)",
    )
    ap.add_argument("--out-dir", default=".", help="Where results are saved")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    mirrored = not args.no_mirror

    try:
        design_frame = load_image_file(args.design)
    except NailTryOnError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    with HandLandmarkDetector() as detector, NailTryOnPipeline(detector, PipelineConfig()) as pipeline:
        try:
            designs = pipeline.extract(design_frame)
        except NailTryOnError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        print(f"Successfully extracted {len(designs)} nail designs!")

        try:
            cap = open_camera(args.camera, args.width, args.height)
        except NailTryOnError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1

        try:
            while True:
                ok, preview = cap.read()
                if not ok:
                    break
                if mirrored:
                    preview = cv2.flip(preview, 1)
                draw_text(preview, "space: capture | q: quit", (12, 28), scale=0.8, thickness=2)
                cv2.imshow(WINDOW, preview)
                key = cv2.waitKey(1) & 0xFF
                if key in (ord("q"), 27):
                    return 0
                if key != ord(" "):
                    continue

                # The camera itself is never mirrored, only the preview.
                frame = snapshot(cap, mirrored=False)
                try:
                    result = pipeline.apply(frame)
                    print(f"Successfully applied {result.applied_count} nail designs!")
                except NailTryOnError as e:
                    print(f"error: {e}", file=sys.stderr)
                    result = pipeline.result
                if result is None:
                    continue

                cv2.imshow(WINDOW, result.image)
                print("s: save/share | any other key: retake")
                if (cv2.waitKey(0) & 0xFF) == ord("s"):
                    outcome = share_result(result, fallback_dir=args.out_dir)
                    print(f"Result {outcome}.")
        finally:
            cap.release()
            cv2.destroyAllWindows()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
