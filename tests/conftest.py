"""Shared pytest configuration and synthetic frames for the meter test suite."""

import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add src to path
SRC_DIR = Path(__file__).parent.parent / 'src'
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from nanometer.frame import LumaFrame  # noqa: E402


def create_test_frame(width=800, height=600, scene='uniform', value=128):
    """Create a synthetic luminance frame"""
    img = np.full((height, width), value, dtype=np.uint8)

    if scene == 'bright_center':
        # Dark surround with a bright disc in the middle
        img[:, :] = 30
        radius = min(width, height) // 5
        cv2.circle(img, (width // 2, height // 2), radius, 230, -1)

    elif scene == 'dark_center':
        img[:, :] = 220
        radius = min(width, height) // 5
        cv2.circle(img, (width // 2, height // 2), radius, 20, -1)

    elif scene == 'gradient':
        # Horizontal ramp 0 -> 255
        ramp = np.linspace(0, 255, width).astype(np.uint8)
        img[:, :] = ramp[np.newaxis, :]

    return LumaFrame.from_array(img)


@pytest.fixture
def uniform_frame():
    return create_test_frame(800, 600, 'uniform', 128)


@pytest.fixture
def bright_center_frame():
    return create_test_frame(800, 600, 'bright_center')
