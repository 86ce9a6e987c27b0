"""
Stage machine that sequences detection -> extraction -> detection -> compositing.

Detector calls run on a single worker thread, one at a time. Every call is
tagged with a `DetectionTicket`; a result is only applied if its request is
still the pending one and the pipeline has not been reset since. Anything
else is stale and dropped.
"""

from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import numpy as np

from .compositor import composite_designs
from .config import PipelineConfig
from .exceptions import (
    CompositingError,
    DetectionError,
    DetectionTimeoutError,
    ExtractionError,
    NoHandDetectedError,
    PipelineStateError,
)
from .extraction import extract_designs
from .types import CompositeResult, ExtractedNailDesign, FingerKey, HandLandmarkSet


logger = logging.getLogger(__name__)


class Stage(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    EXTRACTION_DONE = "extraction_done"
    COMPOSITING = "compositing"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class DetectionTicket:
    token: int
    generation: int


@dataclass
class _PendingRequest:
    ticket: DetectionTicket
    future: Future
    image: np.ndarray
    stage: Stage


@dataclass(frozen=True)
class _SavedState:
    stage: Stage
    designs: Dict[FingerKey, ExtractedNailDesign]
    result: Optional[CompositeResult]
    last_error: Optional[Exception]


class NailTryOnPipeline:
    """
    Extract nail designs from one photo and apply them to a hand in another.

    `detector` is anything with `detect(frame_bgr) -> list[HandLandmarkSet]`,
    normally a `HandLandmarkDetector`. Only the first hand is used.
    """

    def __init__(self, detector, config: Optional[PipelineConfig] = None) -> None:
        self._detector = detector
        self.config = config or PipelineConfig()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hand-detector")
        # Re-entrant: a detection that is already done runs its callback inside _submit.
        self._lock = threading.RLock()
        self._tokens = itertools.count(1)
        self._generation = 0
        self._pending: Optional[_PendingRequest] = None

        self._stage = Stage.IDLE
        self._designs: Dict[FingerKey, ExtractedNailDesign] = {}
        self._result: Optional[CompositeResult] = None
        self._last_error: Optional[Exception] = None

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def designs(self) -> Dict[FingerKey, ExtractedNailDesign]:
        with self._lock:
            return dict(self._designs)

    @property
    def result(self) -> Optional[CompositeResult]:
        return self._result

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    @property
    def generation(self) -> int:
        return self._generation

    # ---- public operations -------------------------------------------------

    def request_extraction(self, source_bgr: np.ndarray) -> "Future[Dict[FingerKey, ExtractedNailDesign]]":
        with self._lock:
            can_retry = self._stage is Stage.ERROR and not self._designs
            if self._stage not in (Stage.IDLE, Stage.EXTRACTION_DONE) and not can_retry:
                raise PipelineStateError(f"Cannot extract designs while {self._stage.value}; reset first.")
            previous = self._save_state()
            self._designs = {}
            self._result = None
            self._last_error = None
            self._stage = Stage.EXTRACTING
            return self._submit(source_bgr, Stage.EXTRACTING, previous)

    def request_compositing(self, target_bgr: np.ndarray) -> "Future[CompositeResult]":
        with self._lock:
            if self._stage in (Stage.EXTRACTING, Stage.COMPOSITING):
                raise PipelineStateError(f"Cannot apply designs while {self._stage.value}.")
            if not self._designs:
                raise CompositingError("No nail designs available. Extract designs first.")
            previous = self._save_state()
            self._result = None
            self._last_error = None
            self._stage = Stage.COMPOSITING
            return self._submit(target_bgr, Stage.COMPOSITING, previous)

    def extract(self, source_bgr: np.ndarray) -> Dict[FingerKey, ExtractedNailDesign]:
        """Detect the hand in `source_bgr` and store one design per usable finger."""
        return self._wait(self.request_extraction(source_bgr))

    def apply(self, target_bgr: np.ndarray) -> CompositeResult:
        """
        Detect the hand in `target_bgr` and composite the stored designs onto it.

        If detection fails, `result` still holds the unmodified target image.
        """
        return self._wait(self.request_compositing(target_bgr))

    def reset(self) -> None:
        """Drop all session state. A detection still in flight will be ignored."""
        with self._lock:
            self._generation += 1
            if self._pending is not None:
                logger.info("Reset with detection %d pending; its result will be discarded", self._pending.ticket.token)
                self._pending.future.cancel()
                self._pending = None
            self._designs = {}
            self._result = None
            self._last_error = None
            self._stage = Stage.IDLE

    def close(self) -> None:
        """Wait for the detector worker to finish. Does not close the detector."""
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "NailTryOnPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---- internals ---------------------------------------------------------

    def _save_state(self) -> _SavedState:
        return _SavedState(self._stage, self._designs, self._result, self._last_error)

    def _restore_state(self, saved: _SavedState) -> None:
        self._stage = saved.stage
        self._designs = saved.designs
        self._result = saved.result
        self._last_error = saved.last_error

    def _submit(self, image: np.ndarray, stage: Stage, previous: _SavedState) -> Future:
        ticket = DetectionTicket(token=next(self._tokens), generation=self._generation)
        request = _PendingRequest(ticket=ticket, future=Future(), image=image, stage=stage)
        self._pending = request

        try:
            inner = self._executor.submit(self._detector.detect, image)
        except RuntimeError as e:
            # Executor shut down or broken; nothing was started.
            self._pending = None
            self._restore_state(previous)
            raise PipelineStateError("Detector worker is not running; the pipeline has been closed.") from e

        logger.debug("Detection %d submitted (%s)", ticket.token, stage.value)
        inner.add_done_callback(lambda f: self._on_detection(request, f))
        return request.future

    def _is_current(self, request: _PendingRequest) -> bool:
        return self._pending is request and request.ticket.generation == self._generation

    def _on_detection(self, request: _PendingRequest, inner: Future) -> None:
        with self._lock:
            if not self._is_current(request):
                logger.debug("Discarding stale detection result %d", request.ticket.token)
                return
            self._pending = None

            if request.future.cancelled():
                self._fail(request, PipelineStateError(f"{request.stage.value.capitalize()} was cancelled."))
                return

            finish: Callable[[np.ndarray, List[HandLandmarkSet]], object]
            if request.stage is Stage.EXTRACTING:
                finish = self._finish_extraction
            else:
                finish = self._finish_compositing

            try:
                hands = inner.result()
            except Exception as e:
                err = DetectionError(f"Hand detection failed: {e}")
                err.__cause__ = e
                self._fail(request, err)
                return

            try:
                value = finish(request.image, hands)
            except Exception as e:
                self._fail(request, e)
                return
            request.future.set_result(value)

    def _finish_extraction(self, image: np.ndarray, hands: List[HandLandmarkSet]):
        if not hands:
            raise NoHandDetectedError("No hand detected in the design image.")
        designs = extract_designs(image, hands[0], self.config)
        if not designs:
            raise ExtractionError("Could not extract any nail design. Try a sharper, closer photo.")
        self._designs = designs
        self._stage = Stage.EXTRACTION_DONE
        return dict(designs)

    def _finish_compositing(self, image: np.ndarray, hands: List[HandLandmarkSet]) -> CompositeResult:
        if not hands:
            raise NoHandDetectedError("No hand detected in your image.")
        result = composite_designs(
            image,
            hands[0],
            self._designs,
            self.config.composite_geometry,
            self.config.composite,
        )
        self._result = result
        if result.applied_count == 0:
            raise CompositingError("Could not apply any designs to your hand.")
        self._stage = Stage.DONE
        return result

    def _fail(self, request: _PendingRequest, error: Exception) -> None:
        if request.stage is Stage.COMPOSITING and self._result is None:
            # Still show the user their own photo.
            self._result = CompositeResult(image=request.image.copy())
        self._stage = Stage.ERROR
        self._last_error = error
        logger.warning("%s failed: %s", request.stage.value, error)
        if not request.future.cancelled():
            request.future.set_exception(error)

    def _future_result(self, future: Future, timeout: Optional[float] = None):
        try:
            return future.result(timeout=timeout)
        except CancelledError as e:
            raise PipelineStateError("Pipeline was reset before hand detection finished.") from e

    def _wait(self, future: Future):
        try:
            return self._future_result(future, self.config.detection_timeout_s)
        except FuturesTimeoutError:
            with self._lock:
                request = self._pending
                if request is not None and request.future is future:
                    self._pending = None
                    self._fail(
                        request,
                        DetectionTimeoutError(
                            f"Hand detection timed out after {self.config.detection_timeout_s:g}s."
                        ),
                    )
            return self._future_result(future)
