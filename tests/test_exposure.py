"""
Exposure Calculator Tests
=========================

EV100 math, zone selection, relative correction and grey-card calibration.
"""

import math

import pytest

from nanometer.calibration import CalibrationState
from nanometer.exposure import (
    CameraExposure, MeteringMode,
    base_ev100, calibrate, effective_aperture, ev100, scene_ev100, zone_luma,
)
from nanometer.zone_sampler import sample_frame

from conftest import create_test_frame


def _exposure(duration=1 / 125, iso=400, aperture=8.0):
    return CameraExposure(duration_seconds=duration, iso=iso, aperture=aperture)


# ============================================================================
# BASE EV
# ============================================================================

def test_base_ev_reference_value():
    # log2(64 / (1/125)) - log2(4) = log2(8000) - 2
    assert base_ev100(_exposure()) == pytest.approx(math.log2(8000) - 2)
    assert round(base_ev100(_exposure()), 2) == 10.97


def test_base_ev_iso_100_sunny_16():
    assert base_ev100(_exposure(duration=1 / 100, iso=100, aperture=16)) == pytest.approx(math.log2(25600))


def test_base_ev_monotonic():
    apertures = [1.4, 2.8, 5.6, 11, 22]
    evs = [base_ev100(_exposure(aperture=a)) for a in apertures]
    assert evs == sorted(evs) and len(set(evs)) == len(evs)

    durations = [1 / 1000, 1 / 60, 1, 30]
    evs = [base_ev100(_exposure(duration=t)) for t in durations]
    assert all(a > b for a, b in zip(evs, evs[1:]))

    isos = [50, 100, 400, 3200]
    evs = [base_ev100(_exposure(iso=s)) for s in isos]
    assert all(a > b for a, b in zip(evs, evs[1:]))


@pytest.mark.parametrize("duration,iso", [
    (0.0, 100), (-1.0, 100), (float("nan"), 100), (float("inf"), 100),
    (1 / 60, 0.0), (1 / 60, -50), (1 / 60, float("nan")),
])
def test_base_ev_is_total(duration, iso):
    ev = base_ev100(_exposure(duration=duration, iso=iso))
    assert math.isfinite(ev)


def test_base_ev_clamps_to_floors():
    clamped = base_ev100(_exposure(duration=0.0, iso=0.0, aperture=2.0))
    assert clamped == pytest.approx(math.log2(4 / 1e-6) - math.log2(1 / 100))


def test_base_ev_falls_back_to_default_aperture():
    assert base_ev100(_exposure(aperture=0.0)) == base_ev100(_exposure(aperture=1.8))


# ============================================================================
# MANUAL EV / APERTURE
# ============================================================================

def test_ev100_triple():
    assert ev100(8, 1 / 125, 100) == pytest.approx(math.log2(8000))
    assert ev100(8, 1 / 125, 400) == pytest.approx(math.log2(8000) - 2)


@pytest.mark.parametrize("args", [(0, 1, 100), (8, 0, 100), (8, 1, 0), (8, float("nan"), 100)])
def test_ev100_unusable_input_is_zero(args):
    assert ev100(*args) == 0.0


def test_effective_aperture_precedence():
    assert effective_aperture(detected=1.78, override=2.2) == 2.2
    assert effective_aperture(detected=1.78, override=None) == 1.78
    assert effective_aperture(detected=None, override=None) == 1.8
    assert effective_aperture(detected=-1, override=0, default=4.0) == 4.0


# ============================================================================
# SCENE EV
# ============================================================================

def test_zone_luma_selection(bright_center_frame):
    sample = sample_frame(bright_center_frame, (0.5, 0.5))
    assert zone_luma(sample, MeteringMode.MATRIX) == sample.matrix_median
    assert zone_luma(sample, MeteringMode.CENTER_WEIGHTED) == sample.center_weighted
    assert zone_luma(sample, MeteringMode.SPOT) == sample.spot


def test_scene_ev_end_to_end(uniform_frame):
    sample = sample_frame(uniform_frame)
    base = base_ev100(_exposure())
    scene = scene_ev100(base, sample, MeteringMode.MATRIX, CalibrationState())
    assert scene == pytest.approx(base)
    assert round(scene, 2) == 10.97


def test_scene_ev_relative_shift(bright_center_frame):
    sample = sample_frame(bright_center_frame, (0.5, 0.5))
    base = 10.0
    spot = scene_ev100(base, sample, MeteringMode.SPOT, None)
    assert spot == pytest.approx(base + math.log2(sample.spot / sample.average))
    # Bright spot meters brighter than the frame average
    assert spot > base


def test_scene_ev_black_frame_is_finite():
    sample = sample_frame(create_test_frame(100, 100, 'uniform', 0))
    ev = scene_ev100(10.0, sample, MeteringMode.MATRIX, None)
    assert ev == pytest.approx(10.0)


def test_scene_ev_calibrated_is_absolute(uniform_frame):
    sample = sample_frame(uniform_frame)
    calibration = CalibrationState(constant=1024.0)
    a = scene_ev100(5.0, sample, MeteringMode.MATRIX, calibration)
    b = scene_ev100(12.0, sample, MeteringMode.MATRIX, calibration)
    assert a == b == pytest.approx(math.log2(sample.matrix_median * 1024.0))


# ============================================================================
# CALIBRATION
# ============================================================================

@pytest.mark.parametrize("mode", list(MeteringMode))
@pytest.mark.parametrize("scene", ['uniform', 'bright_center', 'gradient'])
def test_calibration_round_trip(mode, scene):
    frame = create_test_frame(640, 480, scene)
    sample = sample_frame(frame, (0.3, 0.6))
    base = base_ev100(_exposure(duration=1 / 60, iso=200, aperture=2.8))

    k = calibrate(sample, mode, base)
    calibration = CalibrationState(constant=k)

    assert scene_ev100(base, sample, mode, calibration) == pytest.approx(base, abs=1e-9)


def test_calibration_tracks_scene_changes():
    grey = sample_frame(create_test_frame(320, 240, 'uniform', 118))
    k = calibrate(grey, MeteringMode.MATRIX, 9.0)
    calibration = CalibrationState(constant=k)

    # One stop more luma reads one stop higher
    brighter = sample_frame(create_test_frame(320, 240, 'uniform', 236))
    assert scene_ev100(0.0, brighter, MeteringMode.MATRIX, calibration) == pytest.approx(10.0)
