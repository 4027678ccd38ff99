"""
Main path planner integration script.
Connects lane classification, the following controller and trajectory synthesis,
and serves the simulator over the bridge.
"""

import logging
import math
import time
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from behavior.planner import BehaviorPlanner, KeepLaneBehavior
from behavior.vehicle import ego_track, track_from_sensed
from bridge.protocol import parse_telemetry
from control.following_controller import FollowingController, build_following_controller
from data.formats.data_format import CycleOutput, CycleRecord, ReferenceState, Telemetry
from data.map_loader import load_centerline
from data.recorder import CycleRecorder
from trajectory.exceptions import CurveFitError, TelemetryError
from trajectory.road_frame import CenterlineTable, DEFAULT_MAX_S, to_frenet
from trajectory.synthesizer import TrajectorySynthesizer, build_trajectory_synthesizer

# Configure logging
log_dir = Path(__file__).parent / 'tmp' / 'logs'
log_dir.mkdir(parents=True, exist_ok=True)
log_file = log_dir / 'path_planner.log'

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(str(log_file))
    ]
)
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config" / "planner_config.yaml"


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from YAML file or use defaults."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from {config_path}")
        return config
    else:
        logger.warning(f"Config file not found at {config_path}, using defaults")
        return {}


def run_cycle(
    telemetry: Telemetry,
    state: ReferenceState,
    table: CenterlineTable,
    controller: FollowingController,
    synthesizer: TrajectorySynthesizer,
    behavior: BehaviorPlanner,
    prediction_horizon: int = 2,
) -> CycleOutput:
    """
    Run one planning cycle.

    Pure given its inputs: the reference state comes in and the next one goes out
    inside the returned CycleOutput.

    Args:
        telemetry: Parsed telemetry for this tick
        state: Reference state from the previous tick
        table: Centerline waypoints
        controller: Following controller
        synthesizer: Trajectory synthesizer
        behavior: Behavior planner consulted after the initial ramp
        prediction_horizon: Seconds of constant-velocity forecast handed to the behavior planner

    Returns:
        CycleOutput with the full trajectory and the next reference state
    """
    prev_size = telemetry.prev_size
    previous_x = telemetry.previous_path_x[:prev_size]
    previous_y = telemetry.previous_path_y[:prev_size]
    lane_width = controller.config.lane_width
    num_lanes = controller.config.num_lanes

    # Plan from the end of the committed path when there is one.
    planning_s = telemetry.end_path_s if prev_size > 0 else telemetry.s

    target_lane = state.lane
    behavior_state = state.behavior_state
    if state.ramp_complete:
        ego = ego_track(
            telemetry, planning_s, state.behavior_state, state.ref_speed,
            goal_s=table.max_s, lane_width=lane_width, num_lanes=num_lanes,
        )
        predictions = {
            vehicle.id: track_from_sensed(vehicle, lane_width, num_lanes).generate_predictions(prediction_horizon)
            for vehicle in telemetry.sensor_fusion
        }
        decision = behavior.choose_next_state(ego, target_lane, predictions)
        target_lane = max(0, min(num_lanes - 1, int(decision.lane)))
        behavior_state = decision.state

    following = controller.update(
        ego_s=planning_s,
        ref_speed=state.ref_speed,
        sensed=telemetry.sensor_fusion,
        ego_lane=target_lane,
        prev_size=prev_size,
        ramp_complete=state.ramp_complete,
    )
    next_state = ReferenceState(
        lane=target_lane,
        ref_speed=following.ref_speed,
        ramp_complete=following.ramp_complete,
        behavior_state=behavior_state,
    )

    next_x = [float(v) for v in previous_x]
    next_y = [float(v) for v in previous_y]

    try:
        result = synthesizer.synthesize(
            car_x=telemetry.x,
            car_y=telemetry.y,
            car_yaw=telemetry.yaw_rad,
            planning_s=planning_s,
            previous_path_x=previous_x,
            previous_path_y=previous_y,
            lane=target_lane,
            ref_speed=following.ref_speed,
            table=table,
        )
    except CurveFitError as e:
        logger.warning(f"Curve fit failed, re-emitting {prev_size} previous points: {e}")
        return CycleOutput(
            next_x=next_x,
            next_y=next_y,
            state=next_state,
            prev_size=prev_size,
            planning_s=planning_s,
            too_close=following.too_close,
            lead_vehicle_id=following.lead_vehicle_id,
            used_fallback=True,
        )

    next_x.extend(result.next_x)
    next_y.extend(result.next_y)
    return CycleOutput(
        next_x=next_x,
        next_y=next_y,
        state=next_state,
        prev_size=prev_size,
        planning_s=planning_s,
        too_close=following.too_close,
        lead_vehicle_id=following.lead_vehicle_id,
        used_fallback=False,
        reference_point={"x": result.ref_x, "y": result.ref_y, "heading": result.ref_yaw},
    )


class PathPlanner:
    """Path planner owning the reference state across planning cycles."""

    def __init__(self, config: dict, table: CenterlineTable,
                 behavior: Optional[BehaviorPlanner] = None,
                 recorder: Optional[CycleRecorder] = None):
        """
        Initialize path planner.

        Args:
            config: Planner configuration dictionary (see config/planner_config.yaml)
            table: Centerline waypoints
            behavior: Behavior planner (default: keep lane)
            recorder: Optional cycle recorder
        """
        self.config = config
        self.table = table
        self.controller = build_following_controller(config)
        if self.controller.config.max_s is None:
            self.controller.config.max_s = table.max_s
        self.synthesizer = build_trajectory_synthesizer(config)
        self.behavior = behavior if behavior is not None else KeepLaneBehavior()
        self.recorder = recorder

        road_cfg = config.get("road", {})
        behavior_cfg = config.get("behavior", {})
        self.start_lane = int(road_cfg.get("start_lane", 1))
        self.prediction_horizon = int(behavior_cfg.get("prediction_horizon", 2))
        self.time_step = float(config.get("cycle", {}).get("time_step", 0.02))

        self.state = ReferenceState(lane=self.start_lane)
        self.cycle_count = 0
        self.skipped_count = 0

    @classmethod
    def from_config(cls, config: dict, map_file: Optional[str] = None,
                    record_data: bool = False,
                    recording_dir: Optional[str] = None) -> "PathPlanner":
        """Build a planner, loading the centerline table named in the config."""
        road_cfg = config.get("road", {})
        max_s = float(road_cfg.get("max_s", DEFAULT_MAX_S))
        if map_file is None:
            map_file = road_cfg.get("map_file", "data/highway_map.csv")
        map_path = Path(map_file)
        if not map_path.is_absolute():
            map_path = Path(__file__).parent / map_path
        table = load_centerline(map_path, max_s=max_s)

        recorder = None
        if record_data:
            recording_cfg = config.get("recording", {})
            output_dir = recording_dir or recording_cfg.get("output_dir", "data/recordings")
            recorder = CycleRecorder(
                output_dir,
                horizon=int(config.get("cycle", {}).get("horizon", 50)),
                flush_every=int(recording_cfg.get("flush_every", 50)),
            )
            logger.info(f"Recording planning cycles to {recorder.output_file}")
        return cls(config, table, recorder=recorder)

    def reset(self) -> None:
        """Start a new simulation session."""
        self.state = ReferenceState(lane=self.start_lane)
        self.cycle_count = 0

    def plan(self, telemetry: Telemetry) -> CycleOutput:
        """Run one cycle on parsed telemetry and keep the resulting reference state."""
        start = time.perf_counter()
        output = run_cycle(
            telemetry,
            self.state,
            self.table,
            self.controller,
            self.synthesizer,
            self.behavior,
            prediction_horizon=self.prediction_horizon,
        )
        duration = time.perf_counter() - start
        if duration > self.time_step:
            logger.warning(
                "[SLOW_CYCLE] cycle=%d duration=%.4fs exceeds time step %.3fs",
                self.cycle_count, duration, self.time_step,
            )

        if output.state.ramp_complete and not self.state.ramp_complete:
            logger.info(f"Initial acceleration over at cycle {self.cycle_count}")
        self.state = output.state

        if self.recorder is not None:
            self._record_cycle(telemetry, output)
        self.cycle_count += 1
        return output

    def handle_telemetry(self, data: Dict[str, Any]) -> Optional[CycleOutput]:
        """
        Plan from a raw telemetry event payload.

        Returns:
            CycleOutput, or None when the telemetry is malformed (tick skipped)
        """
        try:
            telemetry = parse_telemetry(data)
        except TelemetryError as e:
            self.skipped_count += 1
            logger.warning(f"Skipping cycle {self.cycle_count}: {e}")
            return None
        return self.plan(telemetry)

    def _record_cycle(self, telemetry: Telemetry, output: CycleOutput) -> None:
        end_s = end_d = math.nan
        if output.num_points >= 2:
            end_heading = math.atan2(
                output.next_y[-1] - output.next_y[-2],
                output.next_x[-1] - output.next_x[-2],
            )
            end_s, end_d = to_frenet(output.next_x[-1], output.next_y[-1], end_heading, self.table)

        self.recorder.record_cycle(CycleRecord(
            timestamp=time.time(),
            cycle_id=self.cycle_count,
            ego_x=telemetry.x,
            ego_y=telemetry.y,
            ego_s=telemetry.s,
            ego_d=telemetry.d,
            ego_yaw=telemetry.yaw,
            ego_speed=telemetry.speed,
            prev_size=output.prev_size,
            lane=output.state.lane,
            ref_speed=output.state.ref_speed,
            ramp_complete=output.state.ramp_complete,
            too_close=output.too_close,
            used_fallback=output.used_fallback,
            num_sensed=len(telemetry.sensor_fusion),
            trajectory=list(zip(output.next_x, output.next_y)),
            plan_end_s=end_s,
            plan_end_d=end_d,
        ))

    def close(self) -> None:
        """Stop the planner and close the recorder."""
        if self.recorder is not None:
            logger.info(f"Closing cycle recorder: {self.recorder.output_file}")
            self.recorder.close()
        logger.info(
            f"Path planner stopped (planned {self.cycle_count} cycles, skipped {self.skipped_count})"
        )


def main():
    """Main entry point."""
    import argparse

    from bridge.server import run_server

    parser = argparse.ArgumentParser(description='Run highway path planner')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to configuration YAML file (default: config/planner_config.yaml)')
    parser.add_argument('--map', dest='map_file', type=str, default=None,
                        help='Centerline waypoint file (default: road.map_file from config)')
    parser.add_argument('--host', type=str, default=None,
                        help='Bridge host (default: bridge.host from config)')
    parser.add_argument('--port', type=int, default=None,
                        help='Bridge port (default: bridge.port from config)')
    parser.add_argument('--record', action='store_true', default=None,
                        help='Record planning cycles to HDF5')
    parser.add_argument('--no-record', dest='record', action='store_false', default=None,
                        help='Disable recording')
    parser.add_argument('--recording_dir', type=str, default=None,
                        help='Directory for recordings')

    args = parser.parse_args()

    config = load_config(args.config)
    bridge_cfg = config.get("bridge", {})
    record = args.record
    if record is None:
        record = bool(config.get("recording", {}).get("enabled", False))

    planner = PathPlanner.from_config(
        config,
        map_file=args.map_file,
        record_data=record,
        recording_dir=args.recording_dir,
    )
    try:
        run_server(
            planner,
            host=args.host or bridge_cfg.get("host", "0.0.0.0"),
            port=args.port or int(bridge_cfg.get("port", 4567)),
        )
    finally:
        planner.close()


if __name__ == "__main__":
    main()
