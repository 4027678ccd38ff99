"""
Adaptive-following reference speed controller.

Slows the reference speed while a vehicle in the ego lane is forecast to be
within the safety gap ahead at the end of the already committed path, and
otherwise ramps it up toward the cruise speed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from data.formats.data_format import SensedVehicle
from trajectory.lanes import lane_of
from trajectory.road_frame import wrap_s

logger = logging.getLogger(__name__)


@dataclass
class FollowingControllerConfig:
    """Configuration for the following controller."""

    cruise_speed: float = 49.5  # mph
    speed_increment: float = 0.224  # mph per cycle (~5 m/s^2 at 50 Hz)
    speed_decrement: float = 0.224  # mph per cycle
    safety_gap: float = 30.0  # m
    time_step: float = 0.02  # s
    lane_width: float = 4.0  # m
    num_lanes: int = 3
    max_s: Optional[float] = None  # track length for gap wrapping, None = no wrap


@dataclass
class FollowingDecision:
    """Output of one controller update."""

    ref_speed: float
    too_close: bool
    lead_vehicle_id: Optional[int]
    ramp_complete: bool


class FollowingController:
    """Updates the reference speed from sensed vehicles in the ego lane."""

    def __init__(self, config: FollowingControllerConfig) -> None:
        self.config = config

    def gap_ahead(self, ego_s: float, other_s: float) -> float:
        """Signed longitudinal gap from ego to other, wrapped across the seam when max_s is set."""
        gap = other_s - ego_s
        if self.config.max_s is not None and self.config.max_s > 0.0:
            gap = wrap_s(gap, self.config.max_s)
            if gap > self.config.max_s / 2.0:
                gap -= self.config.max_s
        return gap

    def find_lead_vehicle(
        self,
        ego_s: float,
        ego_lane: int,
        sensed: Sequence[SensedVehicle],
        prev_size: int,
    ) -> Optional[SensedVehicle]:
        """First vehicle in the ego lane forecast to be ahead within the safety gap."""
        horizon_t = prev_size * self.config.time_step
        for vehicle in sensed:
            if lane_of(vehicle.d, self.config.lane_width, self.config.num_lanes) != ego_lane:
                continue
            # Constant-velocity forecast to the end of the committed path.
            projected_s = vehicle.s + horizon_t * vehicle.speed
            gap = self.gap_ahead(ego_s, projected_s)
            if 0.0 < gap < self.config.safety_gap:
                return vehicle
        return None

    def update(
        self,
        ego_s: float,
        ref_speed: float,
        sensed: Sequence[SensedVehicle],
        ego_lane: int,
        prev_size: int,
        ramp_complete: bool = False,
    ) -> FollowingDecision:
        """
        Compute the next reference speed.

        Args:
            ego_s: Ego arc-length (end of previous path when one exists)
            ref_speed: Current reference speed (mph)
            sensed: Sensor fusion vehicles, possibly empty
            ego_lane: Lane the ego keeps
            prev_size: Unconsumed previous path points
            ramp_complete: Whether the initial acceleration ramp already finished

        Returns:
            FollowingDecision
        """
        lead = self.find_lead_vehicle(ego_s, ego_lane, sensed, prev_size)

        if lead is not None:
            new_speed = max(0.0, ref_speed - self.config.speed_decrement)
            logger.info(
                "Slowing down: vehicle %d ahead in lane %d (ref_speed %.3f -> %.3f)",
                lead.id, ego_lane, ref_speed, new_speed,
            )
            return FollowingDecision(new_speed, True, lead.id, ramp_complete)

        new_speed = ref_speed
        if ref_speed < self.config.cruise_speed:
            new_speed = min(self.config.cruise_speed, ref_speed + self.config.speed_increment)
            logger.debug("Accelerating: ref_speed %.3f -> %.3f", ref_speed, new_speed)

        if not ramp_complete and new_speed >= self.config.cruise_speed:
            logger.info("Initial acceleration ramp complete at %.3f mph", new_speed)
            ramp_complete = True

        return FollowingDecision(new_speed, False, None, ramp_complete)


def build_following_controller(config: dict) -> FollowingController:
    """Build a FollowingController from the full planner config dictionary."""
    following_cfg = config.get("following", {})
    road_cfg = config.get("road", {})
    cycle_cfg = config.get("cycle", {})

    max_s = road_cfg.get("max_s")
    controller_config = FollowingControllerConfig(
        cruise_speed=float(following_cfg.get("cruise_speed", 49.5)),
        speed_increment=float(following_cfg.get("speed_increment", 0.224)),
        speed_decrement=float(following_cfg.get("speed_decrement", 0.224)),
        safety_gap=float(following_cfg.get("safety_gap", 30.0)),
        time_step=float(cycle_cfg.get("time_step", 0.02)),
        lane_width=float(road_cfg.get("lane_width", 4.0)),
        num_lanes=int(road_cfg.get("num_lanes", 3)),
        max_s=float(max_s) if max_s is not None else None,
    )
    return FollowingController(controller_config)
