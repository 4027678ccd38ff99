"""
Tests for the simulator bridge server.
"""

import json

import pytest
from fastapi.testclient import TestClient

from bridge.protocol import MANUAL_MESSAGE
from bridge.server import create_app, handle_frame
from path_planner import PathPlanner


def _telemetry_data():
    return {
        "x": 100.0,
        "y": -6.0,
        "s": 100.0,
        "d": 6.0,
        "yaw": 0.0,
        "speed": 0.0,
        "previous_path_x": [],
        "previous_path_y": [],
        "end_path_s": 0.0,
        "end_path_d": 0.0,
        "sensor_fusion": [],
    }


@pytest.fixture
def planner(straight_table):
    return PathPlanner({}, straight_table)


@pytest.fixture
def client(planner):
    return TestClient(create_app(planner))


class TestHandleFrame:
    def test_non_event_frame_gets_no_reply(self, planner):
        assert handle_frame(planner, "2") is None

    def test_event_without_data_gets_manual(self, planner):
        assert handle_frame(planner, '42["telemetry",null]') == MANUAL_MESSAGE

    def test_manual_event_is_echoed(self, planner):
        assert handle_frame(planner, '42["manual",{}]') == MANUAL_MESSAGE

    def test_unknown_event_is_ignored(self, planner):
        assert handle_frame(planner, '42["reset",{}]') is None

    def test_malformed_telemetry_gets_no_reply(self, planner):
        assert handle_frame(planner, '42["telemetry",{"x":1.0}]') is None
        assert planner.skipped_count == 1

    def test_telemetry_gets_control(self, planner):
        reply = handle_frame(planner, "42" + json.dumps(["telemetry", _telemetry_data()]))
        name, data = json.loads(reply[2:])
        assert name == "control"
        assert len(data["next_x"]) == 50
        assert len(data["next_y"]) == 50


class TestWebSocket:
    def test_telemetry_round_trip(self, client):
        with client.websocket_connect("/socket.io/") as websocket:
            websocket.send_text("42" + json.dumps(["telemetry", _telemetry_data()]))
            name, data = json.loads(websocket.receive_text()[2:])
        assert name == "control"
        assert len(data["next_x"]) == 50

    def test_manual_reply(self, client):
        with client.websocket_connect("/") as websocket:
            websocket.send_text('42["telemetry",null]')
            assert websocket.receive_text() == MANUAL_MESSAGE


class TestHttpApi:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_plan_and_state(self, client):
        response = client.post("/api/telemetry", json=_telemetry_data())
        assert response.status_code == 200
        body = response.json()
        assert len(body["next_x"]) == 50
        assert body["used_fallback"] is False
        assert body["state"]["ref_speed"] == pytest.approx(0.224)

        state = client.get("/api/state").json()
        assert state["lane"] == 1
        assert state["ref_speed"] == pytest.approx(0.224)
        assert state["ramp_complete"] is False

    def test_malformed_telemetry_rejected(self, client):
        data = _telemetry_data()
        data["sensor_fusion"] = [[1, 2, 3]]
        response = client.post("/api/telemetry", json=data)
        assert response.status_code == 422

    def test_reset(self, client, planner):
        client.post("/api/telemetry", json=_telemetry_data())
        response = client.post("/api/reset")
        assert response.status_code == 200
        assert planner.state.ref_speed == 0.0
        assert planner.cycle_count == 0
