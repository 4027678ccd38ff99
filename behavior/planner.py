"""
Behavior planner interface.

A behavior planner looks at forecasts of the surrounding vehicles and picks the
ego's next maneuver state and target lane. The cycle orchestrator only consults
it once the initial acceleration ramp is over.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from behavior.vehicle import VehicleTrack

logger = logging.getLogger(__name__)


class BehaviorState(str, Enum):
    """Maneuver states of the lane-change state machine."""
    KEEP_LANE = "KL"
    PREPARE_LANE_CHANGE_LEFT = "PLCL"
    PREPARE_LANE_CHANGE_RIGHT = "PLCR"
    LANE_CHANGE_LEFT = "LCL"
    LANE_CHANGE_RIGHT = "LCR"


@dataclass(frozen=True)
class BehaviorDecision:
    """Chosen maneuver and the lane the trajectory should target."""
    state: str
    lane: int


Predictions = Dict[int, List[VehicleTrack]]


class BehaviorPlanner(ABC):
    """Chooses the next maneuver for the ego vehicle."""

    @abstractmethod
    def choose_next_state(self, ego: VehicleTrack, target_lane: int,
                          predictions: Predictions) -> BehaviorDecision:
        """
        Pick the next state.

        Args:
            ego: Ego track (sensed lane, planning s, current state, goal)
            target_lane: Lane the ego is currently targeting
            predictions: Forecast tracks keyed by sensed vehicle id

        Returns:
            BehaviorDecision with the next state and target lane
        """


class KeepLaneBehavior(BehaviorPlanner):
    """Always keeps the current target lane."""

    def choose_next_state(self, ego: VehicleTrack, target_lane: int,
                          predictions: Predictions) -> BehaviorDecision:
        logger.debug("Keep lane %d (%d vehicles forecast)", target_lane, len(predictions))
        return BehaviorDecision(state=BehaviorState.KEEP_LANE.value, lane=target_lane)
