"""
HTTP endpoint tests.
Run: python -m pytest tests/ -v
"""

import inspect

import pytest
from fastapi.testclient import TestClient

from shotmap.main import ShotConfigModel, app, heatmap, range_chart
from shotmap.shot_solver import AngleMode, GamePiece, ShotConfig


SCENARIO = {
    "target_x": 8.0, "target_y": 0.0, "target_height": 2.64,
    "platform_height": 0.5, "ceiling_height": 5.0,
}


@pytest.fixture(scope="module")
def client():
    return TestClient(app)


class TestConfigModel:

    def test_defaults_match_solver_defaults(self):
        assert ShotConfigModel().to_config() == ShotConfig()

    def test_game_piece_and_environment(self):
        cfg = ShotConfigModel(
            game_piece=GamePiece.CARGO_2022, altitude_meters=1600.0,
            angle_mode="fixed", drag_enabled=True,
        ).to_config()
        assert cfg.game_piece.name == "Cargo (2022)"
        assert cfg.environment.air_density < 1.225
        assert cfg.angle_mode is AngleMode.FIXED
        assert cfg.drag_k > 0.0


class TestShotEndpoints:

    def test_feasible_shot(self, client):
        response = client.post("/api/shot", json={"config": SCENARIO, "x": 0.0, "y": 0.0})
        assert response.status_code == 200
        body = response.json()
        assert body["feasible"] is True
        assert abs(body["result"]["range_distance"] - 8.0) < 0.05
        assert body["result"]["apex_height"] <= 5.0

    def test_too_close(self, client):
        response = client.post("/api/shot", json={"config": SCENARIO, "x": 7.8, "y": 0.0})
        assert response.status_code == 200
        assert response.json() == {"feasible": False}

    def test_invalid_config_rejected(self, client):
        bad = dict(SCENARIO, speed_mode="turbo")
        response = client.post("/api/shot", json={"config": bad, "x": 0.0, "y": 0.0})
        assert response.status_code == 422

    def test_detail(self, client):
        response = client.post("/api/shot/detail", json={"config": SCENARIO, "x": 0.0, "y": 0.0})
        body = response.json()
        assert body["feasible"] is True
        detail = body["detail"]
        assert len(detail["trajectory"]) == 61
        assert detail["vacuum_trajectory"] is None
        assert detail["drag_enabled"] is False

    def test_range_shot_matches_field_shot(self, client):
        range_body = client.post(
            "/api/range-shot",
            json={"config": SCENARIO, "range_distance": 8.0},
        ).json()
        field_body = client.post(
            "/api/shot",
            json={"config": SCENARIO, "x": 16.0, "y": 0.0},
        ).json()
        assert range_body == field_body

    def test_range_shot_requires_positive_distance(self, client):
        response = client.post("/api/range-shot", json={"config": SCENARIO, "range_distance": 0.0})
        assert response.status_code == 422


class TestGridEndpoints:

    def test_heatmap(self, client):
        response = client.post("/api/heatmap", json=dict(SCENARIO, grid_resolution=1.0))
        assert response.status_code == 200
        body = response.json()
        assert (body["cols"], body["rows"]) == (10, 9)
        assert len(body["cells"]) == 9
        statuses = {c["status"] for row in body["cells"] for c in row}
        assert statuses <= {"feasible", "infeasible"}
        feasible = sum(c["status"] == "feasible" for row in body["cells"] for c in row)
        assert body["stats"]["valid_count"] == feasible

    def test_empty_heatmap_stats(self, client):
        response = client.post(
            "/api/heatmap", json=dict(SCENARIO, grid_resolution=1.0, ceiling_height=0.4))
        assert response.json()["stats"] == {"valid_count": 0}

    def test_heatmap_rejects_zero_resolution(self, client):
        response = client.post("/api/heatmap", json=dict(SCENARIO, grid_resolution=0.0))
        assert response.status_code == 422

    def test_range_chart(self, client):
        response = client.post("/api/range-chart", json={
            "config": SCENARIO,
            "distance_step": 4.75, "tangential_step": 5.0, "radial_step": 3.0,
        })
        assert response.status_code == 200
        body = response.json()
        assert body["distances"] == [0.5, 5.25, 10.0]
        assert body["tangentials"] == [0.0, 5.0]
        assert body["radials"] == [-3.0, 0.0, 3.0]
        assert body["total_count"] == 18
        assert len(body["panels"]) == 3
        assert all(len(panel) == 2 and all(len(row) == 3 for row in panel)
                   for panel in body["panels"])

    def test_scan_handlers_run_in_threadpool(self):
        # Plain functions are dispatched to the threadpool instead of the event loop
        assert not inspect.iscoroutinefunction(heatmap)
        assert not inspect.iscoroutinefunction(range_chart)
