"""
Centralized configuration for the metering engine.
Every constant lives here. Nothing is duplicated.
"""

import os

# Zone sampling
GRID_ROWS = 5
GRID_COLS = 5
DECIMATION_TARGET = 80          # ~80x80 visited points for full-frame stats
NEUTRAL_LUMA = 0.5              # Reported when a frame has no samples at all

# Center-weighted metering
CENTER_WEIGHT = 0.7
OUTER_WEIGHT = 0.3
CENTER_RADIUS_DIVISOR = 4       # radius = min(w, h) / 4

# Spot metering
SPOT_MIN_HALF = 4
SPOT_HALF_DIVISOR = 30          # half-width = max(4, min(w, h) / 30)
SPOT_STEP_DIVISOR = 6           # step = max(1, half / 6)

# Photometric guards
LUMA_FLOOR = 1e-6
DURATION_FLOOR = 1e-6           # seconds
ISO_FLOOR = 1.0

# Equivalence solver
MAX_DELTA_EV = 1.0

# Lens (f/1.78 ~ f/1.8 on most phone main cameras)
DEFAULT_APERTURE = float(os.environ.get("NANOMETER_DEFAULT_APERTURE", "1.8"))

# Persistence keys
CALIBRATION_KEY = "nano.calibration_constant"
APERTURE_OVERRIDE_KEY = "nano.aperture_override"

# Paths
STORE_PATH = os.path.expanduser(
    os.environ.get("NANOMETER_STORE_PATH", "~/.nanometer/settings.json")
)
LOG_DIR = os.environ.get("NANOMETER_LOG_DIR")  # None disables the readings log
LOG_LEVEL = os.environ.get("NANOMETER_LOG_LEVEL", "INFO")

# Session metrics
MAX_LATENCIES = 1000
