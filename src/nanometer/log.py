"""
Logging setup for the meter.

Console output for humans, plus an optional rotating JSON-lines log with
one entry per published reading.
"""

import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from typing import Optional

from nanometer import config

READINGS_LOGGER = "nanometer.readings"

_readings_logger = logging.getLogger(READINGS_LOGGER)


def configure_logging(level: str = config.LOG_LEVEL, log_dir: Optional[str] = config.LOG_DIR) -> None:
    """Install a console handler and, when `log_dir` is set, the readings log."""
    root = logging.getLogger("nanometer")
    root.setLevel(level.upper() if isinstance(level, str) else level)

    if not any(getattr(h, "_nanometer_console", False) for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        console._nanometer_console = True
        root.addHandler(console)

    if log_dir:
        os.makedirs(os.path.expanduser(log_dir), exist_ok=True)
        _readings_logger.setLevel(logging.INFO)
        _readings_logger.propagate = False
        if not _readings_logger.handlers:
            # Rotating file handler: 10MB max, 5 backups
            handler = RotatingFileHandler(
                os.path.join(os.path.expanduser(log_dir), "readings.jsonl"),
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
            handler.setFormatter(logging.Formatter("%(message)s"))
            _readings_logger.addHandler(handler)


def log_reading(reading) -> None:
    """Append one reading as a JSON line (no-op unless the readings log is enabled)."""
    if not _readings_logger.isEnabledFor(logging.INFO) or not _readings_logger.handlers:
        return
    sample = reading.sample
    entry = {
        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(reading.timestamp)),
        "mode": reading.mode.value,
        "base_ev": round(reading.base_ev100, 3),
        "scene_ev": round(reading.scene_ev100, 3),
        "calibrated": reading.calibrated,
        "avg": round(sample.average, 4),
        "matrix": round(sample.matrix_median, 4),
        "center": round(sample.center_weighted, 4),
        "spot": round(sample.spot, 4),
        "t": reading.exposure.duration_seconds,
        "iso": reading.exposure.iso,
        "f": reading.exposure.aperture,
    }
    _readings_logger.info(json.dumps(entry))
