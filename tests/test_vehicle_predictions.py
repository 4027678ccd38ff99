"""
Tests for behavior/vehicle.py tracks and forecasts.
"""

import pytest

from behavior.vehicle import MPH_TO_MPS, VehicleTrack, ego_track, track_from_sensed
from data.formats.data_format import SensedVehicle, Telemetry


class TestVehicleTrack:
    def test_position_at_constant_speed(self):
        track = VehicleTrack(lane=1, s=100.0, speed=10.0)
        assert track.position_at(0.0) == pytest.approx(100.0)
        assert track.position_at(1.5) == pytest.approx(115.0)

    def test_position_at_with_acceleration(self):
        track = VehicleTrack(lane=1, s=0.0, speed=10.0, accel=2.0)
        assert track.position_at(2.0) == pytest.approx(24.0)

    def test_predictions_at_whole_seconds(self):
        predictions = VehicleTrack(lane=2, s=100.0, speed=10.0).generate_predictions(horizon=3)
        assert [p.s for p in predictions] == pytest.approx([100.0, 110.0, 120.0])
        assert [p.speed for p in predictions] == pytest.approx([10.0, 10.0, 0.0])
        assert all(p.lane == 2 for p in predictions)
        assert all(p.accel == 0.0 for p in predictions)

    def test_default_horizon(self):
        predictions = VehicleTrack(lane=0, s=5.0, speed=4.0).generate_predictions()
        assert len(predictions) == 2
        assert predictions[1].s == pytest.approx(9.0)
        assert predictions[1].speed == 0.0

    def test_predictions_do_not_mutate_track(self):
        track = VehicleTrack(lane=1, s=100.0, speed=10.0)
        track.generate_predictions(horizon=4)
        assert track.s == 100.0
        assert track.speed == 10.0


class TestTrackBuilders:
    def test_track_from_sensed(self):
        vehicle = SensedVehicle(id=3, x=0.0, y=0.0, vx=3.0, vy=4.0, s=250.0, d=9.0)
        track = track_from_sensed(vehicle)
        assert track.lane == 2
        assert track.s == 250.0
        assert track.speed == pytest.approx(5.0)
        assert track.state == "CS"

    def test_ego_track_converts_mph(self):
        telemetry = Telemetry(x=0.0, y=0.0, s=90.0, d=5.5, yaw=0.0, speed=50.0)
        track = ego_track(telemetry, planning_s=100.0, state="KL", ref_speed=49.5, goal_s=6945.554)
        assert track.lane == 1
        assert track.s == 100.0
        assert track.speed == pytest.approx(50.0 * MPH_TO_MPS)
        assert track.target_speed == pytest.approx(49.5 * 0.44704)
        assert track.state == "KL"
        assert track.goal_s == 6945.554
