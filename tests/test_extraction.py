"""Tests for per-finger nail design extraction."""

import numpy as np
import pytest

from nailart_tryon.config import PipelineConfig
from nailart_tryon.extraction import extract_designs, extract_nail_design
from nailart_tryon.types import FINGER_LANDMARKS, FingerKey

from conftest import make_hand


def test_extracts_all_five_fingers(design_photo, hand):
    designs = extract_designs(design_photo, hand)

    assert set(designs) == set(FingerKey)
    for finger, design in designs.items():
        assert design.finger is finger
        assert design.image.shape == (120, 90, 4)
        assert design.height == pytest.approx(80.0)
        assert design.width == pytest.approx(60.0)
        assert design.scale == pytest.approx(0.8)
        assert design.quality == 1.0


def test_background_is_transparent_and_design_kept(design_photo, hand):
    design = extract_nail_design(design_photo, hand, FingerKey.MIDDLE)

    alpha = design.image[:, :, 3]
    # buffer center sits on the disc
    assert alpha[60, 45] == 255
    assert tuple(design.image[60, 45, :3]) == (220, 44, 132)
    # corners are plain background
    assert alpha[0, 0] == 0
    assert alpha[119, 89] == 0
    # roughly the disc area (r=15) out of 90x120
    assert 0.05 < design.coverage < 0.08


def test_missing_mid_excludes_the_finger(design_photo):
    hand = make_hand(missing={FINGER_LANDMARKS[FingerKey.INDEX].mid})

    designs = extract_designs(design_photo, hand)

    assert FingerKey.INDEX not in designs
    assert len(designs) == 4


def test_tiny_hand_extracts_nothing(design_photo):
    # On a 60px image the same landmarks give 12px nails, below the length floor.
    hand = make_hand()
    small = np.full((60, 60, 3), 240, dtype=np.uint8)

    assert extract_designs(small, hand) == {}
    assert extract_designs(design_photo, hand) != {}


def test_min_design_coverage_gate(hand):
    plain = np.full((400, 400, 3), 240, dtype=np.uint8)

    assert extract_nail_design(plain, hand, FingerKey.RING) is not None
    gated = PipelineConfig(min_design_coverage=0.01)
    assert extract_nail_design(plain, hand, FingerKey.RING, gated) is None


def test_origin_and_rotation_are_recorded(design_photo, hand):
    design = extract_nail_design(design_photo, hand, FingerKey.THUMB)

    assert design.origin == pytest.approx((60.0, 100.0))
    assert design.rotation == pytest.approx(-np.pi / 2)


def test_all_skin_region_is_fully_transparent(hand):
    skin = np.zeros((400, 400, 3), dtype=np.uint8)
    skin[:, :] = (140, 172, 224)  # BGR of (224, 172, 140)

    design = extract_nail_design(skin, hand, FingerKey.INDEX)

    assert design is not None
    assert design.coverage == 0.0
    assert not design.image[:, :, 3].any()
