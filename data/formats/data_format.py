"""
Data format definitions for the highway path planner.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

import numpy as np


@dataclass
class SensedVehicle:
    """One sensor-fusion entry (world velocity in m/s, road frame s/d in meters)."""
    id: int
    x: float
    y: float
    vx: float
    vy: float
    s: float
    d: float

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)


@dataclass
class Telemetry:
    """Ego localization, previous path remainder and sensor fusion for one tick."""
    x: float
    y: float
    s: float
    d: float
    yaw: float  # degrees, as sent by the simulator
    speed: float  # mph
    previous_path_x: List[float] = field(default_factory=list)
    previous_path_y: List[float] = field(default_factory=list)
    end_path_s: float = 0.0
    end_path_d: float = 0.0
    sensor_fusion: List[SensedVehicle] = field(default_factory=list)

    @property
    def prev_size(self) -> int:
        return min(len(self.previous_path_x), len(self.previous_path_y))

    @property
    def yaw_rad(self) -> float:
        return math.radians(self.yaw)


@dataclass(frozen=True)
class ReferenceState:
    """State carried from one planning cycle to the next."""
    lane: int = 1
    ref_speed: float = 0.0  # mph
    ramp_complete: bool = False
    behavior_state: str = "KL"


@dataclass
class CycleOutput:
    """Result of one planning cycle."""
    next_x: List[float]
    next_y: List[float]
    state: ReferenceState
    prev_size: int = 0
    planning_s: float = 0.0
    too_close: bool = False
    lead_vehicle_id: Optional[int] = None
    used_fallback: bool = False
    reference_point: Optional[Dict[str, float]] = None  # x, y, heading of the local frame origin

    @property
    def num_points(self) -> int:
        return len(self.next_x)

    def to_message(self) -> Dict[str, List[float]]:
        """Payload the simulator expects for a control event."""
        return {"next_x": list(self.next_x), "next_y": list(self.next_y)}


@dataclass
class CycleRecord:
    """Complete recorded planning cycle."""
    timestamp: float
    cycle_id: int
    ego_x: float
    ego_y: float
    ego_s: float
    ego_d: float
    ego_yaw: float
    ego_speed: float
    prev_size: int
    lane: int
    ref_speed: float
    ramp_complete: bool
    too_close: bool
    used_fallback: bool
    num_sensed: int
    trajectory: np.ndarray  # [N, 2] world x, y
    plan_end_s: float = float("nan")
    plan_end_d: float = float("nan")
    metadata: Optional[Dict[str, Any]] = None
