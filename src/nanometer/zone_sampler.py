"""
Zone Sampler
============

Turns one luminance plane into the four brightness statistics the meter
works with:

- average          full-frame mean on a decimated grid
- matrix_median    median of a 5x5 grid of regional means
- center_weighted  0.7 x central disc + 0.3 x surround
- spot             small square window around a user-chosen point

Runs once per captured frame (30+ times per second), so the full-frame
scans are decimated to roughly 80x80 visited points regardless of sensor
resolution. The spot window is small and gets a finer step of its own.

All statistics are normalized to [0, 1]. Nothing here raises on degenerate
input: empty regions fall back to the full-frame average, and a frame with
no pixels at all reports a neutral 0.5.

Usage:
    sampler = ZoneSampler()
    sample = sampler.sample(frame, spot_point=(0.5, 0.5))
    sample.matrix_median, sample.grid_cells[2][2]
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from nanometer import config

GridCells = Tuple[Tuple[float, ...], ...]


@dataclass(frozen=True)
class MeteringSample:
    """Brightness statistics for one frame. Superseded by the next frame, never mutated."""
    average: float
    matrix_median: float
    grid_cells: GridCells  # GRID_ROWS x GRID_COLS, row-major
    center_weighted: float
    spot: float

    @classmethod
    def neutral(cls) -> 'MeteringSample':
        """Sample reported for a frame without any pixels."""
        v = config.NEUTRAL_LUMA
        grid = tuple(tuple(v for _ in range(config.GRID_COLS)) for _ in range(config.GRID_ROWS))
        return cls(average=v, matrix_median=v, grid_cells=grid, center_weighted=v, spot=v)


@dataclass
class SamplerConfig:
    """Tunable sampling parameters."""
    decimation_target: int = config.DECIMATION_TARGET
    center_weight: float = config.CENTER_WEIGHT
    outer_weight: float = config.OUTER_WEIGHT
    center_radius_divisor: int = config.CENTER_RADIUS_DIVISOR
    spot_min_half: int = config.SPOT_MIN_HALF
    spot_half_divisor: int = config.SPOT_HALF_DIVISOR
    spot_step_divisor: int = config.SPOT_STEP_DIVISOR


def _mean(region: np.ndarray) -> Optional[float]:
    """Normalized mean of a uint8 region, None when the region is empty."""
    if region.size == 0:
        return None
    return float(region.mean(dtype=np.float64)) / 255.0


class ZoneSampler:
    """
    Scans luminance frames into MeteringSample statistics.

    Stateless apart from its config; one instance can serve any number of
    frames and threads.
    """

    def __init__(self, config: Optional[SamplerConfig] = None):
        self.config = config or SamplerConfig()

    def sample(self, frame, spot_point: Tuple[float, float] = (0.5, 0.5)) -> MeteringSample:
        """Compute all four statistics for `frame`. Never raises on degenerate frames."""
        if frame.is_empty:
            return MeteringSample.neutral()

        plane = frame.plane
        h, w = plane.shape
        step_x, step_y = self.decimation_steps(w, h)

        # One decimated view feeds the average and the center/outer split
        decimated = plane[::step_y, ::step_x]
        avg = _mean(decimated)
        if avg is None:
            return MeteringSample.neutral()

        grid = self._grid_means(plane, step_x, step_y, avg)
        ordered = sorted(v for row in grid for v in row)
        matrix = ordered[len(ordered) // 2]

        center = self._center_weighted(decimated, w, h, step_x, step_y, avg)
        spot = self._spot(plane, spot_point, avg)

        return MeteringSample(
            average=avg,
            matrix_median=matrix,
            grid_cells=grid,
            center_weighted=center,
            spot=spot,
        )

    def decimation_steps(self, width: int, height: int) -> Tuple[int, int]:
        """(step_x, step_y) visiting at most ~decimation_target points per axis."""
        target = self.config.decimation_target
        return max(1, width // target), max(1, height // target)

    def _grid_means(self, plane: np.ndarray, step_x: int, step_y: int,
                    fallback: float) -> GridCells:
        """5x5 regional means; the last row and column absorb remainder pixels."""
        h, w = plane.shape
        rows, cols = config.GRID_ROWS, config.GRID_COLS
        cell_w = max(1, w // cols)
        cell_h = max(1, h // rows)

        grid = []
        for r in range(rows):
            y0 = r * cell_h
            y1 = h if r == rows - 1 else min(h, y0 + cell_h)
            row = []
            for c in range(cols):
                x0 = c * cell_w
                x1 = w if c == cols - 1 else min(w, x0 + cell_w)
                # Tiny frames leave trailing cells without pixels
                m = _mean(plane[y0:y1:step_y, x0:x1:step_x]) if y0 < y1 and x0 < x1 else None
                row.append(fallback if m is None else m)
            grid.append(tuple(row))
        return tuple(grid)

    def _center_weighted(self, decimated: np.ndarray, width: int, height: int,
                         step_x: int, step_y: int, fallback: float) -> float:
        """Blend of the central disc (inclusive boundary) and everything outside it."""
        cfg = self.config
        cx, cy = width // 2, height // 2
        radius = min(width, height) // cfg.center_radius_divisor

        ys = np.arange(0, height, step_y)[:, np.newaxis]
        xs = np.arange(0, width, step_x)[np.newaxis, :]
        inside = (xs - cx) ** 2 + (ys - cy) ** 2 <= radius * radius

        c = _mean(decimated[inside])
        o = _mean(decimated[~inside])
        c = fallback if c is None else c
        o = fallback if o is None else o
        return cfg.center_weight * c + cfg.outer_weight * o

    def _spot(self, plane: np.ndarray, spot_point: Tuple[float, float], fallback: float) -> float:
        """Mean of a square window centered on the normalized spot point."""
        cfg = self.config
        h, w = plane.shape
        sx = min(max(float(spot_point[0]), 0.0), 1.0)
        sy = min(max(float(spot_point[1]), 0.0), 1.0)
        px, py = int(sx * w), int(sy * h)

        half = max(cfg.spot_min_half, min(w, h) // cfg.spot_half_divisor)
        step = max(1, half // cfg.spot_step_divisor)
        x0, x1 = max(0, px - half), min(w, px + half)
        y0, y1 = max(0, py - half), min(h, py + half)

        m = _mean(plane[y0:y1:step, x0:x1:step]) if y0 < y1 and x0 < x1 else None
        return fallback if m is None else m


_default_sampler = ZoneSampler()


def sample_frame(frame, spot_point: Tuple[float, float] = (0.5, 0.5)) -> MeteringSample:
    """Convenience function using the default sampler."""
    return _default_sampler.sample(frame, spot_point)
