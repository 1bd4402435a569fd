"""
Unit Tests for the Field Heatmap & Range Chart
==============================================
Run: python -m pytest tests/ -v
"""

import numpy as np
import pytest

from shotmap.field_scanner import (
    INFEASIBLE_CELL, UNCOMPUTED_CELL, CellStatus, FieldScanner, GridCell, HeatmapGrid,
    RangeChartAxes,
    ShotStats, brute_force_heatmap, classification_agreement, compute_heatmap,
    compute_range_chart, heatmap_dimensions, seed_spacing,
)
from shotmap.shot_solver import ShotConfig, evaluate_shot, evaluate_shot_at_range


# Target 8 m down the field, 2.14 m above the shooter, ceiling out of reach
OPEN_CONFIG = ShotConfig(
    target_x=8.0, target_y=0.0, target_height=2.64,
    platform_height=0.5, ceiling_height=10.0,
    grid_resolution=0.3,
)

COARSE_CONFIG = OPEN_CONFIG.with_overrides(grid_resolution=1.0, ceiling_height=5.0)

SMALL_AXES = RangeChartAxes(
    distance=(1.0, 3.0, 1.0),
    tangential=(0.0, 1.0, 1.0),
    radial=(-1.0, 1.0, 1.0),
)


@pytest.fixture(scope="module")
def open_heatmap():
    return compute_heatmap(OPEN_CONFIG)


class TestGridCell:
    """Tri-state cells."""

    def test_infeasible_is_not_uncomputed(self):
        assert GridCell.from_result(None) is INFEASIBLE_CELL
        assert INFEASIBLE_CELL.is_computed
        assert not INFEASIBLE_CELL.is_feasible
        assert not UNCOMPUTED_CELL.is_computed

    def test_feasible_cell_carries_result(self):
        result = evaluate_shot(0.0, 0.0, COARSE_CONFIG)
        cell = GridCell.from_result(result)
        assert cell.status is CellStatus.FEASIBLE
        assert cell.result is result

    def test_stats_accumulate(self):
        stats = ShotStats()
        result = evaluate_shot(0.0, 0.0, COARSE_CONFIG)
        stats.accumulate(result)
        stats.accumulate(result)
        assert stats.valid_count == 2
        assert stats.min_speed == stats.max_speed == result.shot_speed
        assert stats.min_angle == stats.max_angle == result.hood_angle_deg


class TestGridGeometry:
    """Heatmap dimensions and seed spacing."""

    def test_dimensions_follow_target(self):
        assert heatmap_dimensions(OPEN_CONFIG.with_overrides(grid_resolution=0.5)) == (19, 17)
        assert heatmap_dimensions(OPEN_CONFIG) == (32, 27)

    def test_dimensions_capped_at_field_length(self):
        cfg = ShotConfig(target_x=16.0, grid_resolution=0.5)
        assert heatmap_dimensions(cfg) == (34, 17)

    @pytest.mark.parametrize("resolution,expected", [
        (0.1, 4),
        (0.25, 3),
        (0.3, 2),
        (0.5, 1),
        (1.0, 1),
    ])
    def test_seed_spacing(self, resolution, expected):
        assert seed_spacing(resolution) == expected


class TestHeatmap:
    """Seed-and-propagate field scan."""

    def test_grid_shape(self, open_heatmap):
        assert (open_heatmap.cols, open_heatmap.rows) == (32, 27)
        assert len(open_heatmap.cells) == 27
        assert all(len(row) == 32 for row in open_heatmap.cells)
        assert open_heatmap.total_count == 32 * 27

    def test_every_cell_computed(self, open_heatmap):
        assert all(c.is_computed for row in open_heatmap.cells for c in row)

    def test_valid_count_matches_cells(self, open_heatmap):
        assert open_heatmap.valid_count == int(open_heatmap.feasibility_mask().sum())
        assert open_heatmap.valid_count > 0

    def test_valid_cells_satisfy_constraints(self, open_heatmap):
        cfg = OPEN_CONFIG
        for row in open_heatmap.cells:
            for cell in row:
                if not cell.is_feasible:
                    continue
                r = cell.result
                assert r.height_error <= 0.05
                assert r.apex_height <= cfg.ceiling_height
                assert r.descent_velocity <= cfg.max_descent_velocity
                assert cfg.min_speed - 1e-9 <= r.shot_speed <= cfg.max_speed + 1e-9
                assert cfg.min_angle - 1e-9 <= r.hood_angle_deg <= cfg.max_angle + 1e-9

    def test_stats_bound_every_valid_cell(self, open_heatmap):
        speeds = open_heatmap.speed_map()
        angles = open_heatmap.angle_map()
        stats = open_heatmap.stats
        assert np.nanmin(speeds) == stats.min_speed
        assert np.nanmax(speeds) == stats.max_speed
        assert np.nanmin(angles) == stats.min_angle
        assert np.nanmax(angles) == stats.max_angle
        assert np.isnan(speeds[~open_heatmap.feasibility_mask()]).all()

    def test_cell_next_to_target_is_infeasible(self, open_heatmap):
        # Cell (row 0, col 26) is centered at (7.95, 0.15), inside the minimum range
        assert open_heatmap.cell_center(0, 26) == pytest.approx((7.95, 0.15))
        assert not open_heatmap.cells[0][26].is_feasible

    def test_agrees_with_brute_force(self, open_heatmap):
        reference = brute_force_heatmap(OPEN_CONFIG)
        assert classification_agreement(open_heatmap, reference) >= 0.99

    def test_deterministic(self):
        first = compute_heatmap(COARSE_CONFIG)
        second = compute_heatmap(COARSE_CONFIG)
        assert first.cells == second.cells
        assert first.stats == second.stats

    def test_recovery_retries_next_to_valid_cell(self, monkeypatch):
        scanner = FieldScanner(COARSE_CONFIG)
        hint = evaluate_shot(0.0, 0.0, COARSE_CONFIG)
        grid = HeatmapGrid(cols=2, rows=1, resolution=1.0,
                           cells=[[GridCell.from_result(hint), INFEASIBLE_CELL]])

        calls = []
        real_hinted = scanner.evaluator.evaluate_with_hint

        def spy(x, y, hint_speed, hint_angle):
            calls.append((x, y, hint_speed, hint_angle))
            return real_hinted(x, y, hint_speed, hint_angle)

        monkeypatch.setattr(scanner.evaluator, "evaluate_with_hint", spy)
        expected = real_hinted(1.5, 0.5, hint.shot_speed, hint.hood_angle_rad)

        recovered = scanner.recovery_phase(grid)

        # One retry, seeded from the valid neighbor
        assert calls == [(1.5, 0.5, hint.shot_speed, hint.hood_angle_rad)]
        assert recovered == int(expected is not None)
        assert grid.cells[0][1] == GridCell.from_result(expected)
        assert grid.valid_count == recovered

    def test_recovery_skips_isolated_cells(self, monkeypatch):
        scanner = FieldScanner(COARSE_CONFIG)
        grid = HeatmapGrid(cols=2, rows=1, resolution=1.0,
                           cells=[[INFEASIBLE_CELL, INFEASIBLE_CELL]])
        calls = []
        monkeypatch.setattr(scanner.evaluator, "evaluate_with_hint",
                            lambda *args: calls.append(args))
        assert scanner.recovery_phase(grid) == 0
        assert calls == []
        assert grid.cells == [[INFEASIBLE_CELL, INFEASIBLE_CELL]]

    def test_ceiling_below_platform_is_empty(self):
        grid = compute_heatmap(COARSE_CONFIG.with_overrides(ceiling_height=0.4))
        assert grid.valid_count == 0
        assert all(c is INFEASIBLE_CELL for row in grid.cells for c in row)

    def test_agreement_requires_same_shape(self):
        a = compute_heatmap(COARSE_CONFIG.with_overrides(ceiling_height=0.4))
        b = compute_heatmap(COARSE_CONFIG.with_overrides(ceiling_height=0.4, target_x=12.0))
        with pytest.raises(ValueError):
            classification_agreement(a, b)


class TestRangeChart:
    """Distance x tangential x radial sweep."""

    def test_default_axes(self):
        axes = RangeChartAxes()
        assert len(axes.distances()) == 39
        assert axes.distances()[0] == 0.5 and axes.distances()[-1] == 10.0
        assert axes.tangentials() == (0.0, 0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 4.5, 5.0)
        assert axes.radials() == (-3.0, -2.0, -1.0, 0.0, 1.0, 2.0, 3.0)

    def test_chart_shape(self):
        chart = compute_range_chart(COARSE_CONFIG, SMALL_AXES)
        assert chart.distances == (1.0, 2.0, 3.0)
        assert chart.tangentials == (0.0, 1.0)
        assert chart.radials == (-1.0, 0.0, 1.0)
        assert chart.total_count == 18
        assert chart.feasibility_mask().shape == (3, 2, 3)
        assert chart.valid_count == int(chart.feasibility_mask().sum())

    def test_cells_match_point_evaluation(self):
        chart = compute_range_chart(COARSE_CONFIG, SMALL_AXES)
        for i, radial in enumerate(chart.radials):
            for j, tangential in enumerate(chart.tangentials):
                for k, distance in enumerate(chart.distances):
                    expected = evaluate_shot_at_range(distance, tangential, radial, COARSE_CONFIG)
                    assert chart.panels[i][j][k] == GridCell.from_result(expected)

    def test_config_left_untouched(self):
        compute_range_chart(COARSE_CONFIG, SMALL_AXES)
        assert COARSE_CONFIG.tangential_velocity == 0.0
        assert COARSE_CONFIG.radial_velocity == 0.0


if __name__ == "__main__":
    pytest.main([__file__, '-v'])
