"""
Lane classification from lateral offset.
"""

import math

DEFAULT_LANE_WIDTH = 4.0
DEFAULT_NUM_LANES = 3


def lane_of(d: float, lane_width: float = DEFAULT_LANE_WIDTH,
            num_lanes: int = DEFAULT_NUM_LANES) -> int:
    """
    Map a lateral offset to a lane index (0 = leftmost).

    Lanes are half-open intervals [k * lane_width, (k + 1) * lane_width); an offset
    exactly on a boundary belongs to the higher-index lane. Any offset outside
    [0, (num_lanes - 1) * lane_width), negative ones included, falls in the last lane.
    """
    d = float(d)
    if d < 0.0:
        return num_lanes - 1
    index = int(math.floor(d / lane_width))
    return min(num_lanes - 1, index)


def lane_center(lane: int, lane_width: float = DEFAULT_LANE_WIDTH) -> float:
    """Lateral offset of the center of a lane."""
    return lane_width / 2.0 + lane_width * lane
