from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import cv2

from .config import DetectorConfig
from .model_assets import ensure_hand_landmarker_task
from .types import HandLandmark, HandLandmarkSet


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _SolutionsBackend:
    mp: object
    hands: object


@dataclass(frozen=True)
class _TasksBackend:
    mp: object
    landmarker: object


def _try_create_solutions_backend(config: DetectorConfig) -> Optional[_SolutionsBackend]:
    import mediapipe as mp  # type: ignore

    if not hasattr(mp, "solutions"):
        return None
    hands = mp.solutions.hands.Hands(
        static_image_mode=config.static_image_mode,
        max_num_hands=config.max_num_hands,
        model_complexity=config.model_complexity,
        min_detection_confidence=config.min_detection_confidence,
        min_tracking_confidence=config.min_tracking_confidence,
    )
    return _SolutionsBackend(mp=mp, hands=hands)


def _try_create_tasks_backend(config: DetectorConfig) -> _TasksBackend:
    """
    Fallback for MediaPipe distributions that do not include `mp.solutions`.

    Uses the Tasks HandLandmarker in IMAGE mode, which needs a `.task` model on disk.
    """
    import mediapipe as mp  # type: ignore
    from mediapipe.tasks.python import BaseOptions  # type: ignore
    from mediapipe.tasks.python.vision import HandLandmarker, HandLandmarkerOptions, RunningMode  # type: ignore

    model_path = ensure_hand_landmarker_task(config.tasks_model_path)

    options = HandLandmarkerOptions(
        base_options=BaseOptions(model_asset_path=model_path),
        running_mode=RunningMode.IMAGE,
        num_hands=config.max_num_hands,
        min_hand_detection_confidence=config.min_detection_confidence,
        min_tracking_confidence=config.min_tracking_confidence,
    )
    return _TasksBackend(mp=mp, landmarker=HandLandmarker.create_from_options(options))


def _to_landmark_set(landmarks, label: Optional[str], score: Optional[float]) -> HandLandmarkSet:
    lms = []
    for lm in landmarks:
        visibility = getattr(lm, "visibility", None)
        lms.append(
            HandLandmark(
                x=float(lm.x),
                y=float(lm.y),
                z=float(getattr(lm, "z", 0.0) or 0.0),
                visibility=None if visibility is None else float(visibility),
            )
        )
    return HandLandmarkSet(tuple(lms), handedness_label=label, handedness_score=score)


class HandLandmarkDetector:
    """
    Hand landmark detector using MediaPipe Hands.

    Input frames are expected as **BGR** images (OpenCV default). Not safe to
    call from several threads at once; the pipeline serializes calls.
    """

    def __init__(self, config: Optional[DetectorConfig] = None) -> None:
        self.config = config or DetectorConfig()
        self._solutions: Optional[_SolutionsBackend] = _try_create_solutions_backend(self.config)
        self._tasks: Optional[_TasksBackend] = None

        if self._solutions is None:
            logger.warning("mediapipe has no `solutions` module; using the Tasks HandLandmarker")
            try:
                self._tasks = _try_create_tasks_backend(self.config)
            except FileNotFoundError as e:
                raise RuntimeError(
                    "MediaPipe does not provide `mp.solutions` in your environment, so the Tasks\n"
                    "HandLandmarker fallback is used, which needs a model file on disk:\n"
                    f"  {self.config.tasks_model_path}"
                ) from e
            except (ImportError, AttributeError) as e:
                raise RuntimeError(
                    "Could not initialize MediaPipe Hands: `mp.solutions` is missing and the Tasks\n"
                    "API could not be imported from the installed `mediapipe` package."
                ) from e

    def close(self) -> None:
        if self._solutions is not None:
            self._solutions.hands.close()
        if self._tasks is not None:
            self._tasks.landmarker.close()

    def __enter__(self) -> "HandLandmarkDetector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def detect(self, frame_bgr) -> List[HandLandmarkSet]:
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

        if self._solutions is not None:
            results = self._solutions.hands.process(frame_rgb)
            if not results.multi_hand_landmarks:
                return []

            handedness_list = results.multi_handedness or []
            hands: List[HandLandmarkSet] = []
            for i, hand_landmarks in enumerate(results.multi_hand_landmarks):
                label: Optional[str] = None
                score: Optional[float] = None
                if i < len(handedness_list) and handedness_list[i].classification:
                    c = handedness_list[i].classification[0]
                    label = getattr(c, "label", None)
                    score = float(getattr(c, "score", 0.0))
                hands.append(_to_landmark_set(hand_landmarks.landmark, label, score))
            return hands

        if self._tasks is None:
            return []

        mp = self._tasks.mp
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        result = self._tasks.landmarker.detect(mp_image)

        hand_landmarks_list = getattr(result, "hand_landmarks", None) or []
        handedness_list = getattr(result, "handedness", None) or []

        hands = []
        for i, landmarks in enumerate(hand_landmarks_list):
            label = None
            score = None
            if i < len(handedness_list) and handedness_list[i]:
                cat0 = handedness_list[i][0]
                label = getattr(cat0, "category_name", None) or getattr(cat0, "display_name", None)
                score = float(getattr(cat0, "score", 0.0))
            hands.append(_to_landmark_set(landmarks, label, score))
        return hands
