"""
Tests for control/following_controller.py.
"""

import math

import pytest

from control.following_controller import (
    FollowingController,
    FollowingControllerConfig,
    build_following_controller,
)
from data.formats.data_format import SensedVehicle


def _vehicle(vehicle_id=0, s=0.0, d=6.0, vx=0.0, vy=0.0):
    return SensedVehicle(id=vehicle_id, x=0.0, y=0.0, vx=vx, vy=vy, s=s, d=d)


def _make_controller(**overrides) -> FollowingController:
    return FollowingController(FollowingControllerConfig(**overrides))


class TestAcceleration:
    def test_empty_sensor_fusion_accelerates(self):
        decision = _make_controller().update(
            ego_s=100.0, ref_speed=0.0, sensed=[], ego_lane=1, prev_size=0
        )
        assert decision.ref_speed == pytest.approx(0.224)
        assert not decision.too_close
        assert decision.lead_vehicle_id is None

    def test_clamped_at_cruise_speed(self):
        decision = _make_controller().update(
            ego_s=100.0, ref_speed=49.4, sensed=[], ego_lane=1, prev_size=0
        )
        assert decision.ref_speed == pytest.approx(49.5)
        assert decision.ramp_complete

    def test_holds_cruise_speed(self):
        decision = _make_controller().update(
            ego_s=100.0, ref_speed=49.5, sensed=[], ego_lane=1, prev_size=0, ramp_complete=True
        )
        assert decision.ref_speed == pytest.approx(49.5)

    def test_ramp_from_rest_takes_expected_ticks(self):
        controller = _make_controller()
        ref_speed = 0.0
        ramp_complete = False
        expected_ticks = math.ceil(49.5 / 0.224)

        for tick in range(1, expected_ticks + 1):
            decision = controller.update(
                ego_s=0.0, ref_speed=ref_speed, sensed=[], ego_lane=1,
                prev_size=0, ramp_complete=ramp_complete,
            )
            ref_speed = decision.ref_speed
            ramp_complete = decision.ramp_complete
            if tick < expected_ticks:
                assert ref_speed < 49.5
                assert not ramp_complete

        assert ref_speed == pytest.approx(49.5)
        assert ramp_complete

    def test_ramp_flag_is_sticky(self):
        controller = _make_controller()
        lead = _vehicle(s=115.0)
        decision = controller.update(
            ego_s=100.0, ref_speed=49.5, sensed=[lead], ego_lane=1,
            prev_size=0, ramp_complete=True,
        )
        assert decision.too_close
        assert decision.ramp_complete


class TestLeadVehicle:
    def test_vehicle_within_gap_slows_down(self):
        decision = _make_controller().update(
            ego_s=100.0, ref_speed=30.0, sensed=[_vehicle(vehicle_id=4, s=120.0)],
            ego_lane=1, prev_size=0,
        )
        assert decision.too_close
        assert decision.lead_vehicle_id == 4
        assert decision.ref_speed == pytest.approx(30.0 - 0.224)

    def test_vehicle_beyond_gap_is_ignored(self):
        decision = _make_controller().update(
            ego_s=100.0, ref_speed=30.0, sensed=[_vehicle(s=200.0)],
            ego_lane=1, prev_size=0,
        )
        assert not decision.too_close
        assert decision.ref_speed == pytest.approx(30.224)

    def test_vehicle_behind_is_ignored(self):
        decision = _make_controller().update(
            ego_s=100.0, ref_speed=30.0, sensed=[_vehicle(s=90.0)],
            ego_lane=1, prev_size=0,
        )
        assert not decision.too_close

    def test_vehicle_in_other_lane_is_ignored(self):
        decision = _make_controller().update(
            ego_s=100.0, ref_speed=30.0, sensed=[_vehicle(s=110.0, d=2.0), _vehicle(s=110.0, d=10.0)],
            ego_lane=1, prev_size=0,
        )
        assert not decision.too_close

    def test_negative_offset_vehicle_is_not_in_leftmost_lane(self):
        controller = _make_controller()
        vehicle = _vehicle(vehicle_id=5, s=110.0, d=-1.0)

        left_lane = controller.update(
            ego_s=100.0, ref_speed=30.0, sensed=[vehicle], ego_lane=0, prev_size=0
        )
        right_lane = controller.update(
            ego_s=100.0, ref_speed=30.0, sensed=[vehicle], ego_lane=2, prev_size=0
        )
        assert not left_lane.too_close
        assert right_lane.too_close
        assert right_lane.lead_vehicle_id == 5

    def test_forecast_to_end_of_previous_path(self):
        """A vehicle moving away is judged where it will be when the committed path ends."""
        vehicle = _vehicle(s=120.0, vx=12.0, vy=16.0)  # 20 m/s
        controller = _make_controller()

        without_path = controller.update(
            ego_s=100.0, ref_speed=30.0, sensed=[vehicle], ego_lane=1, prev_size=0
        )
        with_path = controller.update(
            ego_s=100.0, ref_speed=30.0, sensed=[vehicle], ego_lane=1, prev_size=50
        )
        assert without_path.too_close
        assert not with_path.too_close

    def test_speed_clamped_at_zero(self):
        decision = _make_controller().update(
            ego_s=100.0, ref_speed=0.1, sensed=[_vehicle(s=105.0)],
            ego_lane=1, prev_size=0,
        )
        assert decision.ref_speed == 0.0

    def test_first_qualifying_vehicle_is_reported(self):
        sensed = [_vehicle(vehicle_id=1, s=300.0), _vehicle(vehicle_id=2, s=125.0), _vehicle(vehicle_id=3, s=110.0)]
        decision = _make_controller().update(
            ego_s=100.0, ref_speed=20.0, sensed=sensed, ego_lane=1, prev_size=0
        )
        assert decision.lead_vehicle_id == 2

    def test_gap_wraps_across_track_seam(self):
        controller = _make_controller(max_s=6945.554)
        decision = controller.update(
            ego_s=6940.0, ref_speed=30.0, sensed=[_vehicle(s=10.0)], ego_lane=1, prev_size=0
        )
        assert decision.too_close

    def test_gap_ahead_without_wrap(self):
        controller = _make_controller()
        assert controller.gap_ahead(6940.0, 10.0) == pytest.approx(-6930.0)


class TestBuildFollowingController:
    def test_reads_config_sections(self):
        controller = build_following_controller({
            "following": {"cruise_speed": 40.0, "safety_gap": 25.0},
            "road": {"lane_width": 3.5, "max_s": 1000.0},
            "cycle": {"time_step": 0.05},
        })
        assert controller.config.cruise_speed == 40.0
        assert controller.config.safety_gap == 25.0
        assert controller.config.speed_increment == pytest.approx(0.224)
        assert controller.config.lane_width == 3.5
        assert controller.config.max_s == 1000.0
        assert controller.config.time_step == 0.05

    def test_defaults_from_empty_config(self):
        controller = build_following_controller({})
        assert controller.config.cruise_speed == 49.5
        assert controller.config.max_s is None
