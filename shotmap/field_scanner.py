#!/usr/bin/env python3
"""
Field Heatmap & Range Chart
===========================
Batch evaluation of the shot solver:

- ``compute_heatmap``: every cell of the field view, using seed-and-propagate
  so neighboring cells reuse each other's solutions instead of repeating the
  coarse sweep.
- ``compute_range_chart``: distance x tangential x radial velocity sweep,
  brute force (the grid is small).

Every call builds a fresh grid for exactly one configuration.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional, Tuple

import numpy as np

from .shot_solver import (
    FIELD_LENGTH, FIELD_WIDTH, DISPLAY_BUFFER,
    ShotConfig, ShotEvaluator, ShotResult, range_chart_position,
)

logger = logging.getLogger(__name__)

# 4-connected neighbor offsets: up, down, left, right
NEIGHBOR_OFFSETS = ((-1, 0), (1, 0), (0, -1), (0, 1))

MAX_SEED_SPACING_M = 0.75


class CellStatus(Enum):
    UNCOMPUTED = "uncomputed"
    INFEASIBLE = "infeasible"
    FEASIBLE = "feasible"


@dataclass(frozen=True)
class GridCell:
    """One grid cell: not yet computed, computed infeasible, or a valid shot."""
    status: CellStatus
    result: Optional[ShotResult] = None

    @classmethod
    def from_result(cls, result: Optional[ShotResult]) -> 'GridCell':
        if result is None:
            return INFEASIBLE_CELL
        return cls(CellStatus.FEASIBLE, result)

    @property
    def is_feasible(self) -> bool:
        return self.status is CellStatus.FEASIBLE

    @property
    def is_computed(self) -> bool:
        return self.status is not CellStatus.UNCOMPUTED


UNCOMPUTED_CELL = GridCell(CellStatus.UNCOMPUTED)
INFEASIBLE_CELL = GridCell(CellStatus.INFEASIBLE)


@dataclass
class ShotStats:
    """Running min/max of speed and angle over valid cells."""
    min_speed: float = math.inf
    max_speed: float = -math.inf
    min_angle: float = math.inf
    max_angle: float = -math.inf
    valid_count: int = 0

    def accumulate(self, result: ShotResult) -> None:
        self.valid_count += 1
        self.min_speed = min(self.min_speed, result.shot_speed)
        self.max_speed = max(self.max_speed, result.shot_speed)
        self.min_angle = min(self.min_angle, result.hood_angle_deg)
        self.max_angle = max(self.max_angle, result.hood_angle_deg)


@dataclass
class HeatmapGrid:
    """Field-view heatmap; ``cells[row][col]``, row = y, col = x."""
    cols: int
    rows: int
    resolution: float
    cells: List[List[GridCell]]
    stats: ShotStats = field(default_factory=ShotStats)

    @property
    def valid_count(self) -> int:
        return self.stats.valid_count

    @property
    def total_count(self) -> int:
        return self.cols * self.rows

    def cell_center(self, row: int, col: int) -> Tuple[float, float]:
        """Field position (x, y) of a cell center."""
        return (col + 0.5) * self.resolution, (row + 0.5) * self.resolution

    def feasibility_mask(self) -> np.ndarray:
        return np.array([[c.is_feasible for c in row] for row in self.cells], dtype=bool)

    def _value_map(self, attr: str) -> np.ndarray:
        return np.array(
            [[getattr(c.result, attr) if c.is_feasible else np.nan for c in row]
             for row in self.cells],
            dtype=float,
        )

    def speed_map(self) -> np.ndarray:
        """Shot speed per cell, NaN where no valid shot exists."""
        return self._value_map('shot_speed')

    def angle_map(self) -> np.ndarray:
        """Hood angle (deg) per cell, NaN where no valid shot exists."""
        return self._value_map('hood_angle_deg')


@dataclass(frozen=True)
class RangeChartAxes:
    """Axis definitions of the range chart (start, stop, step; stop inclusive)."""
    distance: Tuple[float, float, float] = (0.5, 10.0, 0.25)
    tangential: Tuple[float, float, float] = (0.0, 5.0, 0.5)
    radial: Tuple[float, float, float] = (-3.0, 3.0, 1.0)

    @staticmethod
    def _values(start: float, stop: float, step: float, decimals: int) -> Tuple[float, ...]:
        count = int(math.floor((stop - start + 0.001) / step)) + 1
        return tuple(round(start + i * step, decimals) for i in range(count))

    def distances(self) -> Tuple[float, ...]:
        return self._values(*self.distance, decimals=2)

    def tangentials(self) -> Tuple[float, ...]:
        return self._values(*self.tangential, decimals=1)

    def radials(self) -> Tuple[float, ...]:
        return self._values(*self.radial, decimals=1)


@dataclass
class RangeChartGrid:
    """Range chart; ``panels[radial][tangential][distance]``."""
    distances: Tuple[float, ...]
    tangentials: Tuple[float, ...]
    radials: Tuple[float, ...]
    panels: List[List[List[GridCell]]]
    stats: ShotStats = field(default_factory=ShotStats)
    total_count: int = 0

    @property
    def valid_count(self) -> int:
        return self.stats.valid_count

    def feasibility_mask(self) -> np.ndarray:
        """Boolean array of shape (radials, tangentials, distances)."""
        return np.array(
            [[[c.is_feasible for c in row] for row in panel] for panel in self.panels],
            dtype=bool,
        )


def heatmap_dimensions(config: ShotConfig) -> Tuple[int, int]:
    """(cols, rows) of the field view for this configuration."""
    res = config.grid_resolution
    display_length = min(FIELD_LENGTH, config.target_x + DISPLAY_BUFFER)
    return math.ceil(display_length / res), math.ceil(FIELD_WIDTH / res)


def seed_spacing(resolution: float) -> int:
    """Seed sub-grid stride: seeds stay within ~0.75 m of each other."""
    return min(4, max(1, int(math.floor(MAX_SEED_SPACING_M / resolution))))


def _empty_heatmap(config: ShotConfig) -> HeatmapGrid:
    cols, rows = heatmap_dimensions(config)
    cells = [[UNCOMPUTED_CELL] * cols for _ in range(rows)]
    return HeatmapGrid(cols=cols, rows=rows, resolution=config.grid_resolution, cells=cells)


class FieldScanner:
    """
    Seed-and-propagate evaluation of the field heatmap.

      Phase 1 - Seed grid: full sweep on a sparse sub-grid.
      Phase 2 - BFS propagation: Newton only, seeded from valid neighbors.
      Phase 3 - Stragglers: full sweep for cells the BFS never reached.
      Phase 4 - Neighbor recovery: one more hinted attempt for infeasible
                cells next to a valid one (fixes sweep mis-seeds).
    """

    def __init__(self, config: ShotConfig):
        self.config = config
        self.evaluator = ShotEvaluator(config)

    def _neighbors(self, grid: HeatmapGrid, row: int, col: int):
        for dr, dc in NEIGHBOR_OFFSETS:
            nr, nc = row + dr, col + dc
            if 0 <= nr < grid.rows and 0 <= nc < grid.cols:
                yield nr, nc

    def _store(self, grid: HeatmapGrid, row: int, col: int,
               result: Optional[ShotResult]) -> GridCell:
        cell = GridCell.from_result(result)
        grid.cells[row][col] = cell
        if result is not None:
            grid.stats.accumulate(result)
        return cell

    def _full(self, grid: HeatmapGrid, row: int, col: int) -> Optional[ShotResult]:
        x, y = grid.cell_center(row, col)
        return self.evaluator.evaluate(x, y)

    def _hinted(self, grid: HeatmapGrid, row: int, col: int,
                hint: ShotResult) -> Optional[ShotResult]:
        x, y = grid.cell_center(row, col)
        return self.evaluator.evaluate_with_hint(x, y, hint.shot_speed, hint.hood_angle_rad)

    def seed_phase(self, grid: HeatmapGrid) -> Deque[Tuple[int, int]]:
        spacing = seed_spacing(grid.resolution)
        queue: Deque[Tuple[int, int]] = deque()
        for r in range(0, grid.rows, spacing):
            for c in range(0, grid.cols, spacing):
                if self._store(grid, r, c, self._full(grid, r, c)).is_feasible:
                    queue.append((r, c))
        return queue

    def propagate_phase(self, grid: HeatmapGrid, queue: Deque[Tuple[int, int]]) -> int:
        reached = 0
        while queue:
            pr, pc = queue.popleft()
            # Only valid cells are ever enqueued
            parent = grid.cells[pr][pc].result

            for nr, nc in self._neighbors(grid, pr, pc):
                if grid.cells[nr][nc].is_computed:
                    continue
                reached += 1
                if self._store(grid, nr, nc, self._hinted(grid, nr, nc, parent)).is_feasible:
                    queue.append((nr, nc))
        return reached

    def straggler_phase(self, grid: HeatmapGrid) -> int:
        count = 0
        for r in range(grid.rows):
            for c in range(grid.cols):
                if grid.cells[r][c].is_computed:
                    continue
                self._store(grid, r, c, self._full(grid, r, c))
                count += 1
        return count

    def recovery_phase(self, grid: HeatmapGrid) -> int:
        recovered = 0
        for r in range(grid.rows):
            for c in range(grid.cols):
                if grid.cells[r][c].status is not CellStatus.INFEASIBLE:
                    continue

                # Borrow a hint from the first valid neighbor
                hint = next(
                    (grid.cells[nr][nc].result for nr, nc in self._neighbors(grid, r, c)
                     if grid.cells[nr][nc].is_feasible),
                    None,
                )
                if hint is None:
                    continue

                result = self._hinted(grid, r, c, hint)
                if result is not None:
                    self._store(grid, r, c, result)
                    recovered += 1
        return recovered

    def scan(self) -> HeatmapGrid:
        grid = _empty_heatmap(self.config)

        queue = self.seed_phase(grid)
        seeds_valid = len(queue)
        reached = self.propagate_phase(grid, queue)
        stragglers = self.straggler_phase(grid)
        recovered = self.recovery_phase(grid)

        logger.debug(
            "heatmap %dx%d: %d valid seeds, %d propagated, %d stragglers, %d recovered, %d valid",
            grid.cols, grid.rows, seeds_valid, reached, stragglers, recovered, grid.valid_count,
        )
        return grid


class RangeChartScanner:
    """Brute-force evaluation over distance x tangential x radial velocity."""

    def __init__(self, config: ShotConfig, axes: Optional[RangeChartAxes] = None):
        self.config = config
        self.axes = axes or RangeChartAxes()

    def scan(self) -> RangeChartGrid:
        distances = self.axes.distances()
        tangentials = self.axes.tangentials()
        radials = self.axes.radials()

        data = RangeChartGrid(distances=distances, tangentials=tangentials,
                              radials=radials, panels=[])

        for radial in radials:
            panel = []
            for tangential in tangentials:
                evaluator = ShotEvaluator(self.config.with_platform_velocity(tangential, radial))
                row = []
                for distance in distances:
                    x, y = range_chart_position(distance, self.config)
                    result = evaluator.evaluate(x, y)
                    row.append(GridCell.from_result(result))
                    data.total_count += 1
                    if result is not None:
                        data.stats.accumulate(result)
                panel.append(row)
            data.panels.append(panel)

        logger.debug("range chart: %d / %d valid", data.valid_count, data.total_count)
        return data


def compute_heatmap(config: ShotConfig) -> HeatmapGrid:
    """Field-view heatmap for one configuration (seed-and-propagate)."""
    return FieldScanner(config).scan()


def compute_range_chart(config: ShotConfig, axes: Optional[RangeChartAxes] = None) -> RangeChartGrid:
    """Range chart for one configuration."""
    return RangeChartScanner(config, axes).scan()


def brute_force_heatmap(config: ShotConfig) -> HeatmapGrid:
    """Reference heatmap with a full sweep at every cell."""
    grid = _empty_heatmap(config)
    evaluator = ShotEvaluator(config)
    for r in range(grid.rows):
        for c in range(grid.cols):
            x, y = grid.cell_center(r, c)
            result = evaluator.evaluate(x, y)
            grid.cells[r][c] = GridCell.from_result(result)
            if result is not None:
                grid.stats.accumulate(result)
    return grid


def classification_agreement(a: HeatmapGrid, b: HeatmapGrid) -> float:
    """Fraction of cells on which two heatmaps agree about feasibility."""
    mask_a = a.feasibility_mask()
    mask_b = b.feasibility_mask()
    if mask_a.shape != mask_b.shape:
        raise ValueError(f"grid shapes differ: {mask_a.shape} vs {mask_b.shape}")
    return float(np.mean(mask_a == mask_b))


if __name__ == "__main__":
    import time

    print("FRC Shot Heatmap")
    print("=" * 60)

    config = ShotConfig(grid_resolution=0.2)

    t0 = time.perf_counter()
    heatmap = compute_heatmap(config)
    dt = (time.perf_counter() - t0) * 1000
    print(f"\nField: {heatmap.cols} x {heatmap.rows} cells @ {heatmap.resolution:.2f} m")
    print(f"  {heatmap.valid_count} / {heatmap.total_count} valid · {dt:.0f} ms")
    if heatmap.valid_count:
        print(f"  Speed: {heatmap.stats.min_speed:.1f}-{heatmap.stats.max_speed:.1f} m/s")
        print(f"  Angle: {heatmap.stats.min_angle:.1f}-{heatmap.stats.max_angle:.1f}°")

    t0 = time.perf_counter()
    chart = compute_range_chart(config)
    dt = (time.perf_counter() - t0) * 1000
    print(f"\nRange chart: {len(chart.distances)} distances x "
          f"{len(chart.tangentials)} tangential x {len(chart.radials)} radial")
    print(f"  {chart.valid_count} / {chart.total_count} valid · {dt:.0f} ms")
