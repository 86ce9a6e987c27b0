"""Tests for the stage machine, detector correlation and cancellation."""

import threading

import numpy as np
import pytest

from nailart_tryon.config import PipelineConfig
from nailart_tryon.exceptions import (
    CompositingError,
    DetectionError,
    DetectionTimeoutError,
    ExtractionError,
    NoHandDetectedError,
    PipelineStateError,
)
from nailart_tryon.pipeline import NailTryOnPipeline, Stage
from nailart_tryon.types import FINGER_LANDMARKS, FingerKey

from conftest import BlockingDetector, FakeDetector, make_hand


@pytest.fixture
def pipeline_factory():
    created = []

    def make(detector, config=None):
        p = NailTryOnPipeline(detector, config)
        created.append(p)
        return p

    yield make
    for p in created:
        p.close()


def test_full_run(pipeline_factory, design_photo, target_photo, hand):
    detector = FakeDetector([hand], [hand])
    pipeline = pipeline_factory(detector)
    assert pipeline.stage is Stage.IDLE

    designs = pipeline.extract(design_photo)
    assert set(designs) == set(FingerKey)
    assert pipeline.stage is Stage.EXTRACTION_DONE

    result = pipeline.apply(target_photo)
    assert result.applied_count == 5
    assert pipeline.stage is Stage.DONE
    assert pipeline.result is result
    assert detector.calls == 2


def test_only_first_hand_is_used(pipeline_factory, design_photo):
    first = make_hand(missing={FINGER_LANDMARKS[FingerKey.PINKY].mid})
    second = make_hand()
    pipeline = pipeline_factory(FakeDetector([first, second]))

    designs = pipeline.extract(design_photo)

    assert FingerKey.PINKY not in designs


def test_no_hand_on_design_image(pipeline_factory, design_photo):
    pipeline = pipeline_factory(FakeDetector([]))

    with pytest.raises(NoHandDetectedError):
        pipeline.extract(design_photo)

    assert pipeline.stage is Stage.ERROR
    assert isinstance(pipeline.last_error, DetectionError)
    assert pipeline.designs == {}


def test_extraction_error_is_retryable(pipeline_factory, design_photo, hand):
    tiny = np.full((60, 60, 3), 240, dtype=np.uint8)
    pipeline = pipeline_factory(FakeDetector([hand], [hand]))

    with pytest.raises(ExtractionError):
        pipeline.extract(tiny)
    assert pipeline.stage is Stage.ERROR

    pipeline.extract(design_photo)
    assert pipeline.stage is Stage.EXTRACTION_DONE


def test_detector_failure_becomes_detection_error(pipeline_factory, design_photo):
    pipeline = pipeline_factory(FakeDetector(RuntimeError("model not loaded")))

    with pytest.raises(DetectionError) as excinfo:
        pipeline.extract(design_photo)

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert pipeline.stage is Stage.ERROR


def test_no_hand_on_target_keeps_original_image(pipeline_factory, design_photo, target_photo, hand):
    pipeline = pipeline_factory(FakeDetector([hand], []))
    pipeline.extract(design_photo)

    with pytest.raises(NoHandDetectedError):
        pipeline.apply(target_photo)

    assert pipeline.stage is Stage.ERROR
    assert pipeline.result is not None
    assert np.array_equal(pipeline.result.image, target_photo)
    assert pipeline.result.applied_count == 0
    # designs survive, so applying again is allowed
    assert len(pipeline.designs) == 5


def test_retry_apply_after_target_failure(pipeline_factory, design_photo, target_photo, hand):
    pipeline = pipeline_factory(FakeDetector([hand], [], [hand]))
    pipeline.extract(design_photo)
    with pytest.raises(NoHandDetectedError):
        pipeline.apply(target_photo)

    result = pipeline.apply(target_photo)

    assert result.applied_count == 5
    assert pipeline.stage is Stage.DONE


def test_apply_without_designs(pipeline_factory, target_photo):
    pipeline = pipeline_factory(FakeDetector())

    with pytest.raises(CompositingError):
        pipeline.apply(target_photo)
    assert pipeline.stage is Stage.IDLE


def test_no_matching_finger_on_target(pipeline_factory, design_photo, target_photo, hand):
    # The target hand is missing every finger's tip.
    tips = {idx.tip for idx in FINGER_LANDMARKS.values()}
    pipeline = pipeline_factory(FakeDetector([hand], [make_hand(missing=tips)]))
    pipeline.extract(design_photo)

    with pytest.raises(CompositingError):
        pipeline.apply(target_photo)

    assert pipeline.stage is Stage.ERROR
    assert np.array_equal(pipeline.result.image, target_photo)


def test_invalid_transitions(pipeline_factory, design_photo, target_photo, hand):
    pipeline = pipeline_factory(FakeDetector([hand], [hand]))
    pipeline.extract(design_photo)
    pipeline.apply(target_photo)
    assert pipeline.stage is Stage.DONE

    with pytest.raises(PipelineStateError):
        pipeline.extract(design_photo)

    pipeline.reset()
    assert pipeline.stage is Stage.IDLE
    assert pipeline.designs == {}
    assert pipeline.result is None


def test_cannot_start_while_detection_pending(pipeline_factory, design_photo, hand):
    detector = BlockingDetector([hand])
    pipeline = pipeline_factory(detector)

    future = pipeline.request_extraction(design_photo)
    assert detector.started.wait(timeout=5)
    assert pipeline.stage is Stage.EXTRACTING
    with pytest.raises(PipelineStateError):
        pipeline.request_extraction(design_photo)

    detector.release.set()
    assert set(future.result(timeout=5)) == set(FingerKey)


def test_timeout_abandons_the_request(pipeline_factory, design_photo, hand):
    detector = BlockingDetector([hand])
    pipeline = pipeline_factory(detector, PipelineConfig(detection_timeout_s=0.05))

    with pytest.raises(DetectionTimeoutError):
        pipeline.extract(design_photo)
    assert pipeline.stage is Stage.ERROR

    detector.release.set()
    pipeline.close()
    # The late answer is ignored.
    assert pipeline.stage is Stage.ERROR
    assert pipeline.designs == {}


def test_stale_result_after_reset_is_discarded(pipeline_factory, design_photo, hand):
    detector = BlockingDetector([hand])
    pipeline = pipeline_factory(detector)

    future = pipeline.request_extraction(design_photo)
    assert detector.started.wait(timeout=5)
    generation = pipeline.generation

    pipeline.reset()
    assert future.cancelled()
    assert pipeline.generation == generation + 1

    detector.release.set()
    pipeline.close()  # waits for the detector call and its completion handler

    assert detector.calls == 1
    assert pipeline.stage is Stage.IDLE
    assert pipeline.designs == {}
    assert pipeline.result is None
    assert pipeline.last_error is None


def test_stale_result_does_not_override_newer_request(pipeline_factory, design_photo, hand):
    # First call would yield a hand, second call yields none.
    detector = BlockingDetector([hand], [])
    pipeline = pipeline_factory(detector)

    stale = pipeline.request_extraction(design_photo)
    assert detector.started.wait(timeout=5)
    pipeline.reset()
    fresh = pipeline.request_extraction(design_photo)

    detector.release.set()
    with pytest.raises(NoHandDetectedError):
        fresh.result(timeout=5)

    assert stale.cancelled()
    assert pipeline.stage is Stage.ERROR
    assert pipeline.designs == {}


def test_designs_mapping_is_a_copy(pipeline_factory, design_photo, hand):
    pipeline = pipeline_factory(FakeDetector([hand]))
    pipeline.extract(design_photo)

    pipeline.designs.clear()

    assert len(pipeline.designs) == 5


def test_request_after_close_leaves_state_intact(pipeline_factory, design_photo, target_photo, hand):
    pipeline = pipeline_factory(FakeDetector([hand]))
    pipeline.extract(design_photo)
    pipeline.close()

    with pytest.raises(PipelineStateError):
        pipeline.apply(target_photo)

    assert pipeline.stage is Stage.EXTRACTION_DONE
    assert len(pipeline.designs) == 5
    assert pipeline.result is None
    # No dangling request: extraction is still allowed to be attempted.
    with pytest.raises(PipelineStateError, match="closed"):
        pipeline.extract(design_photo)
    assert pipeline.stage is Stage.EXTRACTION_DONE
    assert len(pipeline.designs) == 5


def test_extract_on_closed_pipeline_stays_idle(pipeline_factory, design_photo):
    pipeline = pipeline_factory(FakeDetector())
    pipeline.close()

    with pytest.raises(PipelineStateError):
        pipeline.request_extraction(design_photo)

    assert pipeline.stage is Stage.IDLE
    assert pipeline.last_error is None


def test_cancelled_request_does_not_store_designs(pipeline_factory, design_photo, hand):
    detector = BlockingDetector([hand])
    pipeline = pipeline_factory(detector)

    future = pipeline.request_extraction(design_photo)
    assert detector.started.wait(timeout=5)
    assert future.cancel()

    detector.release.set()
    pipeline.close()

    assert detector.calls == 1
    assert pipeline.stage is Stage.ERROR
    assert pipeline.designs == {}
    assert isinstance(pipeline.last_error, PipelineStateError)


def test_reset_while_waiting_raises_state_error(pipeline_factory, design_photo, hand):
    detector = BlockingDetector([hand])
    pipeline = pipeline_factory(detector)
    errors = []

    def run():
        try:
            pipeline.extract(design_photo)
        except Exception as e:
            errors.append(e)

    worker = threading.Thread(target=run)
    worker.start()
    assert detector.started.wait(timeout=5)

    pipeline.reset()
    worker.join(timeout=5)
    detector.release.set()

    assert not worker.is_alive()
    assert len(errors) == 1
    assert isinstance(errors[0], PipelineStateError)
    assert pipeline.stage is Stage.IDLE
