"""
Shared synthetic roads for planner tests.

The closed loop is a regular polygon traversed counter-clockwise, so the right
side of travel (positive d) points away from the center. Arc-lengths are the
cumulative chord lengths, which makes road-frame conversions exact per segment.
"""

import math

import numpy as np
import pytest

from trajectory.road_frame import CenterlineTable


def make_loop_table(radius: float = 500.0, num_waypoints: int = 200,
                    s_offset: float = 0.0) -> CenterlineTable:
    angles = np.arange(num_waypoints) * (2.0 * math.pi / num_waypoints)
    x = radius * np.cos(angles)
    y = radius * np.sin(angles)
    chord = 2.0 * radius * math.sin(math.pi / num_waypoints)
    s = s_offset + chord * np.arange(num_waypoints)
    rows = np.column_stack([x, y, s, np.cos(angles), np.sin(angles)])
    return CenterlineTable.from_rows(rows, max_s=chord * num_waypoints)


def make_straight_table(heading: float = 0.0, length: float = 3000.0,
                        spacing: float = 30.0) -> CenterlineTable:
    """Straight road from the origin; the seam segment past the last waypoint runs back."""
    s = np.arange(0.0, length, spacing)
    rows = np.column_stack([
        s * math.cos(heading),
        s * math.sin(heading),
        s,
        np.full_like(s, math.cos(heading - math.pi / 2.0)),
        np.full_like(s, math.sin(heading - math.pi / 2.0)),
    ])
    return CenterlineTable.from_rows(rows, max_s=length)


@pytest.fixture
def loop_table():
    return make_loop_table()


@pytest.fixture
def straight_table():
    return make_straight_table()


@pytest.fixture
def road_factory():
    """Access to the table builders for tests that need non-default roads."""
    return {"loop": make_loop_table, "straight": make_straight_table}
