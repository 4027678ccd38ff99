"""
Simulator message framing and telemetry parsing.

The simulator speaks socket.io-style text frames: "42" followed by a JSON array
["<event>", {<data>}]. Telemetry arrives as a "telemetry" event; the planner answers
with a "control" event carrying next_x/next_y, or "manual" when there is no data.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError, field_validator

from data.formats.data_format import CycleOutput, SensedVehicle, Telemetry
from trajectory.exceptions import TelemetryError

logger = logging.getLogger(__name__)

EVENT_PREFIX = "42"
MANUAL_MESSAGE = '42["manual",{}]'
SENSOR_FUSION_FIELDS = 7  # id, x, y, vx, vy, s, d


class TelemetryMessage(BaseModel):
    """Telemetry event data from the simulator."""
    x: float
    y: float
    s: float
    d: float
    yaw: float  # degrees
    speed: float  # mph
    previous_path_x: List[float] = []
    previous_path_y: List[float] = []
    end_path_s: float = 0.0
    end_path_d: float = 0.0
    sensor_fusion: List[List[float]] = []

    @field_validator("sensor_fusion")
    @classmethod
    def _check_sensor_rows(cls, rows: List[List[float]]) -> List[List[float]]:
        for i, row in enumerate(rows):
            if len(row) < SENSOR_FUSION_FIELDS:
                raise ValueError(
                    f"sensor_fusion[{i}] has {len(row)} fields, expected {SENSOR_FUSION_FIELDS}"
                )
        return rows

    def to_telemetry(self) -> Telemetry:
        sensed = [
            SensedVehicle(
                id=int(row[0]), x=row[1], y=row[2], vx=row[3], vy=row[4], s=row[5], d=row[6],
            )
            for row in self.sensor_fusion
        ]
        return Telemetry(
            x=self.x,
            y=self.y,
            s=self.s,
            d=self.d,
            yaw=self.yaw,
            speed=self.speed,
            previous_path_x=list(self.previous_path_x),
            previous_path_y=list(self.previous_path_y),
            end_path_s=self.end_path_s,
            end_path_d=self.end_path_d,
            sensor_fusion=sensed,
        )


@dataclass
class SimulatorEvent:
    """Decoded simulator frame."""
    name: str
    data: Optional[Dict[str, Any]]


def decode_frame(frame: str) -> Optional[SimulatorEvent]:
    """
    Decode a simulator text frame.

    Returns:
        None for frames that are not event messages (no "42" prefix). An event
        without usable data decodes as a "manual" event.
    """
    if not frame or len(frame) <= len(EVENT_PREFIX) or not frame.startswith(EVENT_PREFIX):
        return None

    try:
        payload = json.loads(frame[len(EVENT_PREFIX):])
    except json.JSONDecodeError:
        logger.debug("Undecodable event payload, treating as manual: %r", frame[:80])
        return SimulatorEvent("manual", None)

    if not isinstance(payload, list) or len(payload) < 2 or not isinstance(payload[0], str):
        return SimulatorEvent("manual", None)
    if not isinstance(payload[1], dict):
        return SimulatorEvent("manual", None)
    return SimulatorEvent(payload[0], payload[1])


def parse_telemetry(data: Dict[str, Any]) -> Telemetry:
    """
    Validate telemetry event data.

    Raises:
        TelemetryError: If required fields are missing or have the wrong type
    """
    try:
        message = TelemetryMessage.model_validate(data)
    except ValidationError as e:
        raise TelemetryError(f"Malformed telemetry: {e.error_count()} error(s): {e.errors()[:3]}") from e
    return message.to_telemetry()


def encode_control(output: CycleOutput) -> str:
    """Encode a planned trajectory as a control event frame."""
    return EVENT_PREFIX + json.dumps(["control", output.to_message()], separators=(",", ":"))
