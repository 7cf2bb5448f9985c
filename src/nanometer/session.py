"""
Metering Session
================

Ties the sampler, the exposure math and the persisted settings together
for a live frame stream.

Frame intake:
    The capture pipeline calls submit_frame() on its own delivery thread.
    Sampling runs synchronously there. If a previous frame is still being
    sampled the new one is dropped on the spot, never queued.

Publishing:
    Each processed frame becomes an immutable MeterReading. It replaces the
    latest reading and is pushed to every subscriber, inline or through an
    injected executor. Delivery is fire-and-forget: a failing or vanished
    subscriber loses that reading and nothing else happens.

Shared state:
    Camera exposure, metering mode and spot point are written by one party
    each (capture pipeline / UI) and read per frame. Each is replaced with a
    single assignment, so the latest write wins.

Usage:
    session = MeterSession(store=JsonFileStore(path))
    session.subscribe(ui.show_reading)
    session.update_exposure(1 / 125, 400, aperture_hint=1.78)
    session.submit_frame(frame)
    session.suggestions(iso=400)
"""

import logging
import threading
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple, Union

from nanometer import config
from nanometer.calibration import ApertureOverride, CalibrationState
from nanometer.equivalence import ExposureSuggestion, equivalent_exposures
from nanometer.exposure import (
    CameraExposure, MeteringMode,
    base_ev100, calibrate, effective_aperture, scene_ev100,
)
from nanometer.log import log_reading
from nanometer.presets import APERTURES, SHUTTERS
from nanometer.zone_sampler import GridCells, MeteringSample, ZoneSampler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeterReading:
    """Snapshot published for one processed frame."""
    sample: MeteringSample
    exposure: CameraExposure
    base_ev100: float
    scene_ev100: float
    mode: MeteringMode
    spot_point: Tuple[float, float]
    calibrated: bool
    heatmap: Optional[GridCells]
    timestamp: float


Subscriber = Callable[[MeterReading], None]


class MeterSession:
    """Live metering over a stream of luminance frames."""

    def __init__(self,
                 sampler: Optional[ZoneSampler] = None,
                 calibration: Optional[CalibrationState] = None,
                 aperture_override: Optional[ApertureOverride] = None,
                 store=None,
                 executor: Optional[Executor] = None,
                 default_aperture: float = config.DEFAULT_APERTURE):
        self.sampler = sampler or ZoneSampler()
        self.calibration = calibration or CalibrationState(store=store)
        self.aperture_override = aperture_override or ApertureOverride(store=store)
        self.default_aperture = default_aperture
        self.heatmap_enabled = False

        self._executor = executor
        self._busy = threading.Lock()
        self._subscribers: List[Subscriber] = []

        # (duration_seconds, iso, detected aperture) - replaced as one tuple
        self._camera: Tuple[float, float, Optional[float]] = (1 / 120.0, 100.0, None)
        self._mode = MeteringMode.MATRIX
        self._spot_point: Tuple[float, float] = (0.5, 0.5)
        self._latest: Optional[MeterReading] = None

        self._metrics_lock = threading.Lock()
        self._metrics = {
            "frames_processed": 0,
            "frames_dropped": 0,
            "subscriber_errors": 0,
            "latencies": [],  # last MAX_LATENCIES sampling durations in ms
            "started_at": time.time(),
        }

    # ------------------------------------------------------------------
    # Inputs from the capture pipeline and the UI
    # ------------------------------------------------------------------

    def update_exposure(self, duration_seconds: float, iso: float,
                        aperture_hint: Optional[float] = None) -> None:
        """Latest camera auto-exposure parameters (called every frame / on device change)."""
        self._camera = (float(duration_seconds), float(iso), aperture_hint)

    @property
    def exposure(self) -> CameraExposure:
        """Camera exposure with the effective aperture resolved now."""
        duration, iso, hint = self._camera
        aperture = effective_aperture(hint, self.aperture_override.aperture, self.default_aperture)
        return CameraExposure(duration_seconds=duration, iso=iso, aperture=aperture)

    @property
    def mode(self) -> MeteringMode:
        return self._mode

    def set_mode(self, mode: Union[MeteringMode, str]) -> None:
        self._mode = MeteringMode(mode)

    @property
    def spot_point(self) -> Tuple[float, float]:
        return self._spot_point

    def set_spot_point(self, x: float, y: float) -> None:
        """Normalized tap position; clamped to [0, 1] on both axes."""
        self._spot_point = (min(max(float(x), 0.0), 1.0), min(max(float(y), 0.0), 1.0))

    def set_aperture_override(self, aperture: Optional[float]) -> None:
        """Set a custom f-number, or None to go back to the detected/default one."""
        if aperture is None:
            self.aperture_override.clear()
        else:
            self.aperture_override.set(aperture)

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def submit_frame(self, frame) -> Optional[MeterReading]:
        """
        Meter one frame.

        Returns the published reading, or None when the frame was dropped
        because another frame is still being sampled.
        """
        if not self._busy.acquire(blocking=False):
            with self._metrics_lock:
                self._metrics["frames_dropped"] += 1
            logger.debug("Frame dropped: sampler busy")
            return None

        try:
            start = time.perf_counter()
            mode, spot = self._mode, self._spot_point
            sample = self.sampler.sample(frame, spot)
            exposure = self.exposure
            base = base_ev100(exposure)
            reading = MeterReading(
                sample=sample,
                exposure=exposure,
                base_ev100=base,
                scene_ev100=scene_ev100(base, sample, mode, self.calibration),
                mode=mode,
                spot_point=spot,
                calibrated=self.calibration.is_set,
                heatmap=sample.grid_cells if self.heatmap_enabled else None,
                timestamp=time.time(),
            )
            self._latest = reading
            self._record_frame((time.perf_counter() - start) * 1000)
        finally:
            self._busy.release()

        self._publish(reading)
        return reading

    @property
    def latest(self) -> Optional[MeterReading]:
        return self._latest

    # ------------------------------------------------------------------
    # Calibration and suggestions
    # ------------------------------------------------------------------

    def calibrate(self) -> Optional[float]:
        """
        Grey-card calibration from the latest reading in the current mode.

        Returns the new constant, or None if no frame has been metered yet.
        """
        reading = self._latest
        if reading is None:
            logger.warning("Calibration requested before any frame was metered")
            return None
        k = calibrate(reading.sample, self._mode, reading.base_ev100)
        self.calibration.set(k)
        return k

    def reset_calibration(self) -> None:
        self.calibration.clear()

    def suggestions(self, iso: float,
                    apertures: Iterable[float] = APERTURES,
                    shutters: Iterable[Tuple[str, float]] = SHUTTERS) -> List[ExposureSuggestion]:
        """Equivalent exposures for the latest scene EV at `iso` (empty before the first frame)."""
        reading = self._latest
        if reading is None:
            return []
        return equivalent_exposures(reading.scene_ev100, iso, apertures, shutters)

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Receive every published reading. Returns an unsubscribe callable."""
        self._subscribers.append(subscriber)

        def unsubscribe():
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _publish(self, reading: MeterReading) -> None:
        log_reading(reading)
        for subscriber in list(self._subscribers):
            if self._executor is None:
                self._deliver(subscriber, reading)
                continue
            try:
                self._executor.submit(self._deliver, subscriber, reading)
            except RuntimeError:
                # Executor shut down: the consumer is gone
                logger.debug("Reading dropped: delivery executor unavailable")

    def _deliver(self, subscriber: Subscriber, reading: MeterReading) -> None:
        try:
            subscriber(reading)
        except Exception as exc:
            with self._metrics_lock:
                self._metrics["subscriber_errors"] += 1
            logger.warning(f"Subscriber {subscriber!r} failed: {exc}")

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _record_frame(self, duration_ms: float) -> None:
        with self._metrics_lock:
            self._metrics["frames_processed"] += 1
            latencies = self._metrics["latencies"]
            latencies.append(duration_ms)
            if len(latencies) > config.MAX_LATENCIES:
                self._metrics["latencies"] = latencies[-config.MAX_LATENCIES:]

    def get_metrics(self) -> dict:
        """Frame counters and sampling latency percentiles."""
        with self._metrics_lock:
            latencies = list(self._metrics["latencies"])
            counters = {k: self._metrics[k] for k in ("frames_processed", "frames_dropped", "subscriber_errors")}
            started_at = self._metrics["started_at"]

        sorted_lat = sorted(latencies) if latencies else [0]
        p50_idx = int(len(sorted_lat) * 0.5)
        p95_idx = int(len(sorted_lat) * 0.95)
        p99_idx = int(len(sorted_lat) * 0.99)

        return {
            **counters,
            "uptime_seconds": round(time.time() - started_at),
            "latency_ms": {
                "p50": round(sorted_lat[min(p50_idx, len(sorted_lat) - 1)], 3),
                "p95": round(sorted_lat[min(p95_idx, len(sorted_lat) - 1)], 3),
                "p99": round(sorted_lat[min(p99_idx, len(sorted_lat) - 1)], 3),
            },
        }
