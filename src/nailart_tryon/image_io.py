from __future__ import annotations

import logging
import mimetypes
import os
import platform
import time
from typing import Callable, Optional

import cv2
import numpy as np

from .config import InputConfig
from .exceptions import InputError, ShareError
from .types import CompositeResult


logger = logging.getLogger(__name__)

_DEFAULT_INPUT = InputConfig()

ShareHandler = Callable[[bytes, str], None]


def decode_image(data: bytes, config: InputConfig = _DEFAULT_INPUT, name: str = "image") -> np.ndarray:
    """Decode encoded image bytes into a BGR array, enforcing size limits."""
    if len(data) > config.max_file_bytes:
        mb = config.max_file_bytes / (1024 * 1024)
        raise InputError(f"File size too large. Please select an image under {mb:g}MB.")

    frame = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        raise InputError(f"Failed to load {name}. Please try another file.")

    h, w = frame.shape[:2]
    if w < config.min_width or h < config.min_height:
        raise InputError(f"Image too small. Minimum size: {config.min_width}x{config.min_height}px")
    return frame


def load_image_file(path: str, config: InputConfig = _DEFAULT_INPUT) -> np.ndarray:
    """Read an image file from disk as BGR, raising InputError on any problem."""
    if not os.path.isfile(path):
        raise InputError(f"File not found: {path}")

    mime, _ = mimetypes.guess_type(path)
    if mime is None or not mime.startswith("image/"):
        raise InputError("Please select a valid image file.")

    if os.path.getsize(path) > config.max_file_bytes:
        mb = config.max_file_bytes / (1024 * 1024)
        raise InputError(f"File size too large. Please select an image under {mb:g}MB.")

    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise InputError(f"Failed to read file: {path}") from e

    return decode_image(data, config, name=os.path.basename(path))


def open_camera(camera_index: int = 0, width: int = 1280, height: int = 720):
    if platform.system() == "Darwin":
        cap = cv2.VideoCapture(camera_index, cv2.CAP_AVFOUNDATION)
    else:
        cap = cv2.VideoCapture(camera_index)
    if not cap.isOpened():
        raise InputError(
            f"Could not open camera index {camera_index}. "
            "On macOS: System Settings -> Privacy & Security -> Camera -> allow your terminal."
        )
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    return cap


def snapshot(cap, mirrored: bool = False) -> np.ndarray:
    """
    Grab one frame. `mirrored` says the stream is a selfie view; the frame is
    flipped back to true orientation before it is returned.
    """
    ok, frame = cap.read()
    if not ok or frame is None:
        raise InputError("Failed to capture a frame from the camera.")
    if mirrored:
        frame = cv2.flip(frame, 1)
    return frame


def capture_camera_frame(
    camera_index: int = 0,
    width: int = 1280,
    height: int = 720,
    mirrored: bool = False,
    warmup_frames: int = 5,
) -> np.ndarray:
    """Open the camera, let exposure settle for a few frames, and take one snapshot."""
    cap = open_camera(camera_index, width, height)
    try:
        for _ in range(warmup_frames):
            cap.read()
        return snapshot(cap, mirrored=mirrored)
    finally:
        cap.release()


def default_output_name() -> str:
    return f"nail-design-{int(time.time() * 1000)}.png"


def save_result(result: CompositeResult, path: str) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as f:
        f.write(result.encode_png())
    logger.info("Saved result to %s", path)
    return path


def _run_handler(handler: ShareHandler, png: bytes, name: str, action: str) -> None:
    try:
        handler(png, name)
    except ShareError:
        raise
    except Exception as e:
        raise ShareError(f"{action} failed: {e}") from e


def share_result(
    result: CompositeResult,
    fallback_dir: str = ".",
    share: Optional[ShareHandler] = None,
    copy: Optional[ShareHandler] = None,
) -> str:
    """
    Hand the PNG to a platform share handler, or to a clipboard handler when
    sharing is unsupported. If either handler fails, for any reason, the image
    is saved locally instead.

    Returns "shared", "copied" or "saved".
    """
    png = result.encode_png()
    name = "nail-design.png"
    try:
        if share is not None:
            _run_handler(share, png, name, "Share")
            return "shared"
        if copy is not None:
            _run_handler(copy, png, name, "Copy to clipboard")
            return "copied"
        raise ShareError("Sharing is not supported on this platform.")
    except ShareError as e:
        path = os.path.join(fallback_dir, default_output_name())
        logger.warning("Share/copy failed (%s); saving to %s instead", e, path)
        save_result(result, path)
        return "saved"
