"""
Exposure Calculator
===================

Photometric math behind the meter:

    EV100 = log2(N^2 / t) - log2(S / 100)

- base_ev100()   scene EV implied by the camera's own auto-exposure
- scene_ev100()  base EV shifted by the selected metering zone, or an
                 absolute reading when a grey-card constant is present
- calibrate()    one-point grey-card calibration constant

Uncalibrated readings are relative: the selected zone's deviation from the
frame average shifts the camera-derived EV by log2(zone / average). That is
an approximation, kept as-is; calibrated mode is the accuracy path.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from nanometer import config


class MeteringMode(Enum):
    """Which zone statistic feeds the EV calculation."""
    MATRIX = "matrix"
    CENTER_WEIGHTED = "center_weighted"
    SPOT = "spot"


@dataclass(frozen=True)
class CameraExposure:
    """Camera parameters for the current frame."""
    duration_seconds: float
    iso: float
    aperture: float  # Effective f-number (override > detected > default)


def _positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def effective_aperture(detected: Optional[float] = None,
                       override: Optional[float] = None,
                       default: float = config.DEFAULT_APERTURE) -> float:
    """Aperture used for metering: a user override wins, then the detected lens value."""
    if _positive(override):
        return float(override)
    if _positive(detected):
        return float(detected)
    return default


def ev100(aperture: float, shutter_seconds: float, iso: float) -> float:
    """EV100 of an explicit (aperture, shutter, ISO) triple. 0.0 for unusable input."""
    if not (_positive(aperture) and _positive(shutter_seconds) and _positive(iso)):
        return 0.0
    return math.log2((aperture * aperture) / shutter_seconds) - math.log2(iso / 100.0)


def base_ev100(exposure: CameraExposure) -> float:
    """
    Scene EV100 implied by the camera's current exposure.

    Duration and ISO are clamped (>= 1e-6 s, >= 1.0) so the result is
    always defined; non-finite inputs are treated as the floor.
    """
    t = exposure.duration_seconds
    s = exposure.iso
    if not (math.isfinite(t) and t > config.DURATION_FLOOR):
        t = config.DURATION_FLOOR
    if not (math.isfinite(s) and s > config.ISO_FLOOR):
        s = config.ISO_FLOOR
    n = effective_aperture(exposure.aperture)
    return math.log2((n * n) / t) - math.log2(s / 100.0)


def zone_luma(sample, mode: MeteringMode) -> float:
    """Select the statistic of `sample` that `mode` meters on."""
    if mode is MeteringMode.MATRIX:
        return sample.matrix_median
    if mode is MeteringMode.CENTER_WEIGHTED:
        return sample.center_weighted
    if mode is MeteringMode.SPOT:
        return sample.spot
    raise ValueError(f"Unknown metering mode: {mode!r}")


def scene_ev100(base_ev: float, sample, mode: MeteringMode, calibration=None) -> float:
    """
    EV100 of the metered zone.

    Args:
        base_ev: Output of base_ev100() for the same frame
        sample: MeteringSample of the frame
        mode: Metering mode selecting the zone luma
        calibration: CalibrationState (or None); a present constant K switches
            to the absolute mapping log2(L * K)

    Returns:
        Scene EV100
    """
    luma = max(zone_luma(sample, mode), config.LUMA_FLOOR)
    k = calibration.constant if calibration is not None else None
    if k is not None:
        return math.log2(luma * k)

    ref = max(sample.average, config.LUMA_FLOOR)
    return base_ev + math.log2(luma / ref)


def calibrate(sample, mode: MeteringMode, current_base_ev: float) -> float:
    """
    Grey-card constant K = 2^EV / L.

    With the camera pointed at an 18% grey card, this K makes the calibrated
    scene_ev100() reproduce `current_base_ev` exactly for the same frame.
    """
    luma = max(zone_luma(sample, mode), config.LUMA_FLOOR)
    return math.pow(2.0, current_base_ev) / luma
