"""
Vehicle tracks for the ego and sensed vehicles.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List

from data.formats.data_format import SensedVehicle, Telemetry
from trajectory.lanes import lane_of

MPH_TO_MPS = 0.44704


@dataclass
class VehicleTrack:
    """Kinematic state of one vehicle in road coordinates."""
    lane: int
    s: float
    speed: float  # m/s
    accel: float = 0.0  # m/s^2
    state: str = "CS"  # behavior label, "CS" = constant speed
    goal_s: float = 0.0
    target_speed: float = 0.0  # m/s

    def position_at(self, t: float) -> float:
        return self.s + self.speed * t + self.accel * t * t / 2.0

    def generate_predictions(self, horizon: int = 2) -> List["VehicleTrack"]:
        """
        Forecast the track at each whole second up to horizon.

        Each forecast carries the speed over the following second; the last one
        carries zero.
        """
        predictions = []
        for i in range(horizon):
            next_s = self.position_at(i)
            next_v = 0.0
            if i < horizon - 1:
                next_v = self.position_at(i + 1) - next_s
            predictions.append(replace(self, s=next_s, speed=next_v, accel=0.0))
        return predictions


def track_from_sensed(vehicle: SensedVehicle, lane_width: float = 4.0,
                      num_lanes: int = 3) -> VehicleTrack:
    """Constant-speed track for a sensor-fusion entry."""
    return VehicleTrack(
        lane=lane_of(vehicle.d, lane_width, num_lanes),
        s=vehicle.s,
        speed=vehicle.speed,
        accel=0.0,
        state="CS",
    )


def ego_track(telemetry: Telemetry, planning_s: float, state: str, ref_speed: float,
              goal_s: float, lane_width: float = 4.0, num_lanes: int = 3) -> VehicleTrack:
    """Ego track in its sensed lane; speeds converted from mph."""
    return VehicleTrack(
        lane=lane_of(telemetry.d, lane_width, num_lanes),
        s=planning_s,
        speed=telemetry.speed * MPH_TO_MPS,
        accel=0.0,
        state=state,
        goal_s=goal_s,
        target_speed=ref_speed * MPH_TO_MPS,
    )
