"""
Exposure Equivalence Solver
===========================

Given a target EV100 and an ISO, every aperture N has an ideal shutter time

    t = N^2 / (2^EV * S / 100)

For each candidate aperture the closest available shutter speed is picked,
the real EV of that triple is recomputed, and triples more than one stop
off the target are dropped. An empty result is a normal answer ("no usable
standard combination"), never an error.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from nanometer import config
from nanometer.exposure import ev100
from nanometer.presets import APERTURES, SHUTTERS


@dataclass(frozen=True)
class ExposureSuggestion:
    """One (aperture, shutter, ISO) triple close to the target EV."""
    aperture: float
    shutter_seconds: float
    iso_label: str
    delta_ev: float       # actual EV - target EV
    shutter_label: str = ""

    @property
    def aperture_label(self) -> str:
        return f"ƒ{self.aperture:g}"


def iso_label(iso: float) -> str:
    """'ISO 400' for integral values, 'ISO 320.5' otherwise."""
    if float(iso).is_integer():
        return f"ISO {int(iso)}"
    return f"ISO {iso:g}"


def _nearest_shutter(ideal: float, shutters: Sequence[Tuple[str, float]]) -> Tuple[str, float]:
    """Closest shutter by absolute difference in seconds; first one wins ties."""
    best = shutters[0]
    best_diff = abs(best[1] - ideal)
    for option in shutters[1:]:
        diff = abs(option[1] - ideal)
        if diff < best_diff:
            best, best_diff = option, diff
    return best


def equivalent_exposures(target_ev100: float,
                         iso: float,
                         aperture_options: Iterable[float] = APERTURES,
                         shutter_options: Iterable[Tuple[str, float]] = SHUTTERS,
                         max_delta_ev: float = config.MAX_DELTA_EV) -> List[ExposureSuggestion]:
    """
    Equivalent exposures for `target_ev100` at `iso`.

    Args:
        target_ev100: Scene EV100 to reproduce
        iso: Sensitivity the suggestions are computed for
        aperture_options: Candidate f-numbers
        shutter_options: Available (label, seconds) shutter speeds
        max_delta_ev: Largest |actual - target| kept

    Returns:
        Suggestions sorted by aperture, then by |delta_ev|
    """
    apertures = [a for a in aperture_options if math.isfinite(a) and a > 0]
    shutters = [s for s in shutter_options if math.isfinite(s[1]) and s[1] > 0]
    if not apertures or not shutters:
        return []
    if not math.isfinite(target_ev100) or not math.isfinite(iso) or iso <= 0:
        return []

    label = iso_label(iso)
    try:
        scale = math.pow(2.0, target_ev100) * iso / 100.0
    except OverflowError:
        return []
    if scale <= 0 or not math.isfinite(scale):
        return []

    suggestions = []
    for aperture in apertures:
        ideal = (aperture * aperture) / scale
        shutter_label, seconds = _nearest_shutter(ideal, shutters)
        delta = ev100(aperture, seconds, iso) - target_ev100
        if abs(delta) > max_delta_ev:
            continue
        suggestions.append(ExposureSuggestion(
            aperture=aperture,
            shutter_seconds=seconds,
            iso_label=label,
            delta_ev=delta,
            shutter_label=shutter_label,
        ))

    suggestions.sort(key=lambda s: (s.aperture, abs(s.delta_ev)))
    return suggestions
