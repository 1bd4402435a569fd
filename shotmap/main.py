from dataclasses import asdict
from typing import Optional

from fastapi import FastAPI
from pydantic import BaseModel, Field

from .shot_solver import (
    AngleMode, EnvironmentConditions, GamePiece, GamePieceProperties, ShotConfig,
    ShotResult, SpeedMode, compute_detailed_shot, evaluate_shot, evaluate_shot_at_range,
)
from .field_scanner import GridCell, RangeChartAxes, compute_heatmap, compute_range_chart

app = FastAPI(title="FRC Shot Feasibility")


class ShotConfigModel(BaseModel):
    speed_mode: SpeedMode = SpeedMode.VARIABLE
    min_speed: float = Field(6.0, gt=0)
    max_speed: float = Field(12.0, gt=0)
    fixed_speed: float = Field(9.0, gt=0)
    angle_mode: AngleMode = AngleMode.VARIABLE
    min_angle: float = Field(20.0, ge=0, le=90)
    max_angle: float = Field(70.0, ge=0, le=90)
    fixed_angle: float = Field(45.0, ge=0, le=90)
    tangential_velocity: float = 0.0
    radial_velocity: float = 0.0
    grid_resolution: float = Field(0.25, gt=0)
    platform_height: float = Field(0.5, ge=0)
    target_x: float = 4.63
    target_y: float = 4.03
    target_height: float = 1.83
    ceiling_height: float = 4.0
    max_descent_velocity: float = -1.0
    max_lateral_drift: float = Field(0.0, ge=0)
    drag_enabled: bool = False
    game_piece: GamePiece = GamePiece.FUEL
    temperature_celsius: float = 15.0
    altitude_meters: float = 0.0

    def to_config(self) -> ShotConfig:
        values = self.model_dump(exclude={'game_piece', 'temperature_celsius', 'altitude_meters'})
        return ShotConfig(
            **values,
            game_piece=GamePieceProperties.from_game_piece(self.game_piece),
            environment=EnvironmentConditions(
                temperature_celsius=self.temperature_celsius,
                altitude_meters=self.altitude_meters,
            ),
        )


class ShotRequest(BaseModel):
    config: ShotConfigModel = ShotConfigModel()
    x: float
    y: float


class RangeShotRequest(BaseModel):
    config: ShotConfigModel = ShotConfigModel()
    range_distance: float = Field(gt=0)
    tangential_velocity: float = 0.0
    radial_velocity: float = 0.0


class RangeChartRequest(BaseModel):
    config: ShotConfigModel = ShotConfigModel()
    distance_step: float = Field(0.25, gt=0)
    tangential_step: float = Field(0.5, gt=0)
    radial_step: float = Field(1.0, gt=0)


def _shot_response(result: Optional[ShotResult]) -> dict:
    if result is None:
        return {"feasible": False}
    return {"feasible": True, "result": asdict(result)}


def _cell_json(cell: GridCell):
    return {"status": cell.status.value,
            "result": asdict(cell.result) if cell.result else None}


def _stats_json(stats) -> dict:
    if stats.valid_count == 0:
        return {"valid_count": 0}
    return asdict(stats)


@app.post("/api/shot")
async def shot(data: ShotRequest):
    return _shot_response(evaluate_shot(data.x, data.y, data.config.to_config()))


@app.post("/api/shot/detail")
async def shot_detail(data: ShotRequest):
    config = data.config.to_config()
    result = evaluate_shot(data.x, data.y, config)
    if result is None:
        return {"feasible": False}

    detail = compute_detailed_shot(
        result, config.tangential_velocity, config.radial_velocity, config)
    return {"feasible": True, "result": asdict(result), "detail": asdict(detail)}


@app.post("/api/range-shot")
async def range_shot(data: RangeShotRequest):
    result = evaluate_shot_at_range(
        data.range_distance, data.tangential_velocity, data.radial_velocity,
        data.config.to_config(),
    )
    return _shot_response(result)


# Full scans are plain handlers so they run in the threadpool, off the event loop
@app.post("/api/heatmap")
def heatmap(data: ShotConfigModel):
    grid = compute_heatmap(data.to_config())

    # Return what the frontend needs
    return {
        "cols": grid.cols,
        "rows": grid.rows,
        "resolution": grid.resolution,
        "stats": _stats_json(grid.stats),
        "cells": [[_cell_json(c) for c in row] for row in grid.cells],
    }


@app.post("/api/range-chart")
def range_chart(data: RangeChartRequest):
    defaults = RangeChartAxes()
    axes = RangeChartAxes(
        distance=(defaults.distance[0], defaults.distance[1], data.distance_step),
        tangential=(defaults.tangential[0], defaults.tangential[1], data.tangential_step),
        radial=(defaults.radial[0], defaults.radial[1], data.radial_step),
    )
    chart = compute_range_chart(data.config.to_config(), axes)

    return {
        "distances": chart.distances,
        "tangentials": chart.tangentials,
        "radials": chart.radials,
        "stats": _stats_json(chart.stats),
        "total_count": chart.total_count,
        "panels": [[[_cell_json(c) for c in row] for row in panel] for panel in chart.panels],
    }
