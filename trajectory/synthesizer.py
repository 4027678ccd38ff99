"""
Trajectory synthesis: splices new lane-following points onto the previous path.

Anchors (tail of the previous path plus far-field lane-center points) are moved
into a local frame whose +x axis is the current direction of travel, fitted with a
cubic spline and resampled so consecutive points are one time step apart at the
reference speed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from scipy.interpolate import CubicSpline

from trajectory.exceptions import CurveFitError
from trajectory.lanes import lane_center
from trajectory.road_frame import CenterlineTable, to_cartesian
from trajectory.utils import distance, heading_between, to_local_frame, to_world_frame

logger = logging.getLogger(__name__)

# Previous-path points closer than this (m) to the reference give no heading.
MIN_ANCHOR_SPACING = 1e-6


@dataclass
class TrajectorySynthesizerConfig:
    """Configuration for trajectory synthesis."""

    horizon: int = 50  # points per output trajectory
    time_step: float = 0.02  # s between points
    lane_width: float = 4.0  # m
    anchor_offsets: Tuple[float, ...] = (30.0, 60.0, 90.0)  # m ahead in s
    lookahead_distance: float = 30.0  # m along local x
    speed_to_distance: float = 2.24  # mph per m/s
    history_step: float = 1.0  # m behind the pose for the synthetic history anchor


@dataclass
class SynthesisResult:
    """New trajectory points and the local frame they were built in."""

    next_x: List[float]
    next_y: List[float]
    ref_x: float
    ref_y: float
    ref_yaw: float
    anchors_x: np.ndarray  # local frame
    anchors_y: np.ndarray


class TrajectorySynthesizer:
    """Builds the newly appended part of each cycle's trajectory."""

    def __init__(self, config: TrajectorySynthesizerConfig) -> None:
        self.config = config

    def build_anchors(
        self,
        car_x: float,
        car_y: float,
        car_yaw: float,
        planning_s: float,
        previous_path_x: Sequence[float],
        previous_path_y: Sequence[float],
        lane: int,
        table: CenterlineTable,
    ) -> Tuple[List[float], List[float], float, float, float]:
        """
        Construct world-frame anchor points and the local frame reference.

        The reference is the last previous-path point (the pose when fewer than
        two remain), headed from the latest distinct point before it. When no
        distinct point exists, as after a stop, the pose heading is used with a
        synthetic anchor history_step behind the reference.

        Returns:
            (anchors_x, anchors_y, ref_x, ref_y, ref_yaw)
        """
        prev_size = min(len(previous_path_x), len(previous_path_y))
        anchors_x: List[float] = []
        anchors_y: List[float] = []

        if prev_size < 2:
            ref_x, ref_y, ref_yaw = float(car_x), float(car_y), float(car_yaw)
        else:
            ref_x = float(previous_path_x[prev_size - 1])
            ref_y = float(previous_path_y[prev_size - 1])
            ref_yaw = float(car_yaw)

        # Latest previous point distinct from the reference; a stopped path repeats it.
        history = None
        for i in range(prev_size - 2, -1, -1):
            hx, hy = float(previous_path_x[i]), float(previous_path_y[i])
            if distance(hx, hy, ref_x, ref_y) > MIN_ANCHOR_SPACING:
                history = (hx, hy)
                break

        if history is not None:
            # Heading from the path itself keeps the splice tangent-continuous.
            ref_yaw = heading_between(history[0], history[1], ref_x, ref_y)
            anchors_x += [history[0], ref_x]
            anchors_y += [history[1], ref_y]
        else:
            step = self.config.history_step
            anchors_x += [ref_x - step * math.cos(ref_yaw), ref_x]
            anchors_y += [ref_y - step * math.sin(ref_yaw), ref_y]

        target_d = lane_center(lane, self.config.lane_width)
        for offset in self.config.anchor_offsets:
            wp_x, wp_y = to_cartesian(planning_s + offset, target_d, table)
            anchors_x.append(wp_x)
            anchors_y.append(wp_y)

        return anchors_x, anchors_y, ref_x, ref_y, ref_yaw

    def fit(self, local_x: np.ndarray, local_y: np.ndarray) -> CubicSpline:
        """Fit a C2 curve y(x) through local-frame anchors."""
        if local_x.shape[0] < 2:
            raise CurveFitError(f"need at least 2 anchors, got {local_x.shape[0]}")
        if not np.all(np.isfinite(local_x)) or not np.all(np.isfinite(local_y)):
            raise CurveFitError("non-finite anchor coordinates")
        if not np.all(np.diff(local_x) > 0.0):
            raise CurveFitError(
                f"anchors not strictly increasing in local x: {np.round(local_x, 3).tolist()}"
            )
        try:
            return CubicSpline(local_x, local_y, bc_type="natural")
        except ValueError as e:
            raise CurveFitError(str(e)) from e

    def resample(self, spline: CubicSpline, ref_speed: float, count: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Sample count local-frame points spaced one time step apart at ref_speed (mph).

        The local-x increment is chosen so the straight-line distance to the
        lookahead point is covered in N equal time steps.
        """
        target_x = self.config.lookahead_distance
        target_y = float(spline(target_x))
        target_dist = distance(0.0, 0.0, target_x, target_y)

        n_steps = target_dist / (self.config.time_step * ref_speed / self.config.speed_to_distance)
        x_step = target_x / n_steps

        local_x = x_step * np.arange(1, count + 1, dtype=float)
        local_y = spline(local_x)
        return local_x, np.asarray(local_y, dtype=float)

    def synthesize(
        self,
        car_x: float,
        car_y: float,
        car_yaw: float,
        planning_s: float,
        previous_path_x: Sequence[float],
        previous_path_y: Sequence[float],
        lane: int,
        ref_speed: float,
        table: CenterlineTable,
    ) -> SynthesisResult:
        """
        Generate the points to append after the previous path remainder.

        Args:
            car_x, car_y: Ego world position
            car_yaw: Ego heading (radians)
            planning_s: Arc-length the far-field anchors are measured from
            previous_path_x, previous_path_y: Unconsumed previous path
            lane: Target lane index
            ref_speed: Reference speed (mph)
            table: Centerline waypoints

        Returns:
            SynthesisResult with exactly horizon - prev_size new points

        Raises:
            CurveFitError: If the anchors cannot be fitted
        """
        prev_size = min(len(previous_path_x), len(previous_path_y))
        count = max(0, self.config.horizon - prev_size)

        anchors_x, anchors_y, ref_x, ref_y, ref_yaw = self.build_anchors(
            car_x, car_y, car_yaw, planning_s, previous_path_x, previous_path_y, lane, table
        )
        local_anchor_x, local_anchor_y = to_local_frame(anchors_x, anchors_y, ref_x, ref_y, ref_yaw)

        if count == 0:
            return SynthesisResult([], [], ref_x, ref_y, ref_yaw, local_anchor_x, local_anchor_y)

        if ref_speed <= 0.0:
            # Stationary: hold the reference point.
            return SynthesisResult(
                [ref_x] * count, [ref_y] * count, ref_x, ref_y, ref_yaw,
                local_anchor_x, local_anchor_y,
            )

        spline = self.fit(local_anchor_x, local_anchor_y)
        local_x, local_y = self.resample(spline, ref_speed, count)
        world_x, world_y = to_world_frame(local_x, local_y, ref_x, ref_y, ref_yaw)

        logger.debug(
            "Synthesized %d points (prev_size=%d ref_speed=%.3f lane=%d)",
            count, prev_size, ref_speed, lane,
        )
        return SynthesisResult(
            world_x.tolist(), world_y.tolist(), ref_x, ref_y, ref_yaw,
            local_anchor_x, local_anchor_y,
        )


def build_trajectory_synthesizer(config: dict) -> TrajectorySynthesizer:
    """Build a TrajectorySynthesizer from the full planner config dictionary."""
    cycle_cfg = config.get("cycle", {})
    road_cfg = config.get("road", {})
    trajectory_cfg = config.get("trajectory", {})

    synth_config = TrajectorySynthesizerConfig(
        horizon=int(cycle_cfg.get("horizon", 50)),
        time_step=float(cycle_cfg.get("time_step", 0.02)),
        lane_width=float(road_cfg.get("lane_width", 4.0)),
        anchor_offsets=tuple(float(v) for v in trajectory_cfg.get("anchor_offsets", (30.0, 60.0, 90.0))),
        lookahead_distance=float(trajectory_cfg.get("lookahead_distance", 30.0)),
        speed_to_distance=float(trajectory_cfg.get("speed_to_distance", 2.24)),
        history_step=float(trajectory_cfg.get("history_step", 1.0)),
    )
    return TrajectorySynthesizer(synth_config)
