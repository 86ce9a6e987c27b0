"""Shared fixtures: synthetic photos and landmark sets, plus a stand-in detector."""

import threading

import cv2
import numpy as np
import pytest

from nailart_tryon.types import FINGER_LANDMARKS, FingerKey, HandLandmarkSet


IMAGE_SIZE = 400

# Vertical fingers, tips up. Each finger: tip, mid (DIP), base (PIP) in normalized coords.
FINGER_COLUMNS = {
    FingerKey.THUMB: 0.15,
    FingerKey.INDEX: 0.3,
    FingerKey.MIDDLE: 0.5,
    FingerKey.RING: 0.7,
    FingerKey.PINKY: 0.85,
}
TIP_Y, MID_Y, BASE_Y = 0.2, 0.3, 0.4

# BGR; (r=120, g=40, b=200) is neither skin nor background.
DESIGN_BGR = (200, 40, 120)


def make_hand(columns=None, missing=()):
    """A HandLandmarkSet with one vertical finger per column; `missing` indices become None."""
    columns = FINGER_COLUMNS if columns is None else columns
    points = [(0.5, 0.9)] * 21
    for finger, x in columns.items():
        idx = FINGER_LANDMARKS[finger]
        points[idx.tip] = (x, TIP_Y)
        points[idx.mid] = (x, MID_Y)
        points[idx.base] = (x, BASE_Y)
    points = [None if i in missing else p for i, p in enumerate(points)]
    return HandLandmarkSet.from_points(points)


def nail_center_px(finger, size=IMAGE_SIZE):
    x = FINGER_COLUMNS[finger] * size
    y = (TIP_Y * 0.75 + BASE_Y * 0.25) * size
    return (x, y)


@pytest.fixture
def hand():
    return make_hand()


@pytest.fixture
def design_photo():
    """Bright neutral background with a purple disc on every nail."""
    img = np.full((IMAGE_SIZE, IMAGE_SIZE, 3), 240, dtype=np.uint8)
    for finger in FINGER_COLUMNS:
        cx, cy = nail_center_px(finger)
        cv2.circle(img, (int(cx), int(cy)), 15, DESIGN_BGR, -1)
    return img


@pytest.fixture
def target_photo():
    return np.full((IMAGE_SIZE, IMAGE_SIZE, 3), 128, dtype=np.uint8)


class FakeDetector:
    """Returns queued answers in order; an answer may be an exception to raise."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = 0

    def detect(self, frame_bgr):
        self.calls += 1
        answer = self.answers.pop(0) if self.answers else []
        if isinstance(answer, Exception):
            raise answer
        return answer


class BlockingDetector(FakeDetector):
    """Like FakeDetector, but each call waits until `release` is set."""

    def __init__(self, *answers):
        super().__init__(*answers)
        self.started = threading.Event()
        self.release = threading.Event()

    def detect(self, frame_bgr):
        self.started.set()
        self.release.wait(timeout=5)
        return super().detect(frame_bgr)
