"""
Road frame conversion between (s, d) along the highway centerline and world (x, y).

The centerline is a closed loop: arc-length wraps at max_s and the successor of
the last waypoint is the first one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

# Track length of the simulator highway loop (meters).
DEFAULT_MAX_S = 6945.554


@dataclass(frozen=True)
class CenterlineTable:
    """Discretized road centerline."""

    x: np.ndarray
    y: np.ndarray
    s: np.ndarray
    dx: np.ndarray  # unit normal pointing toward increasing d
    dy: np.ndarray
    max_s: float = DEFAULT_MAX_S

    def __len__(self) -> int:
        return int(self.x.shape[0])

    @classmethod
    def from_rows(cls, rows: np.ndarray, max_s: float = DEFAULT_MAX_S) -> "CenterlineTable":
        """Build from an [N, 5] array of (x, y, s, dx, dy) rows."""
        rows = np.asarray(rows, dtype=float)
        arrays = [np.ascontiguousarray(rows[:, i]) for i in range(5)]
        for arr in arrays:
            arr.setflags(write=False)
        return cls(*arrays, max_s=float(max_s))


def wrap_s(s: float, max_s: float) -> float:
    """Wrap an arc-length into [0, max_s)."""
    wrapped = math.fmod(float(s), max_s)
    if wrapped < 0.0:
        wrapped += max_s
    return wrapped


def to_cartesian(s: float, d: float, table: CenterlineTable) -> Tuple[float, float]:
    """
    Convert road coordinates to world coordinates.

    Args:
        s: Arc-length along the centerline (any value, wrapped by max_s)
        d: Lateral offset, positive to the right of the direction of travel
        table: Centerline waypoints

    Returns:
        (x, y) in world coordinates
    """
    s = wrap_s(s, table.max_s)
    n = len(table)

    prev_wp = int(np.searchsorted(table.s, s, side="right")) - 1
    if prev_wp < 0:
        # Before the first waypoint: still on the seam segment from the last one.
        prev_wp = n - 1
        seg_s = s + table.max_s - float(table.s[prev_wp])
    else:
        seg_s = s - float(table.s[prev_wp])
    next_wp = (prev_wp + 1) % n

    heading = math.atan2(
        float(table.y[next_wp] - table.y[prev_wp]),
        float(table.x[next_wp] - table.x[prev_wp]),
    )
    seg_x = float(table.x[prev_wp]) + seg_s * math.cos(heading)
    seg_y = float(table.y[prev_wp]) + seg_s * math.sin(heading)

    perp_heading = heading - math.pi / 2.0
    return seg_x + d * math.cos(perp_heading), seg_y + d * math.sin(perp_heading)


def closest_waypoint(x: float, y: float, table: CenterlineTable) -> int:
    """Index of the waypoint nearest to (x, y)."""
    dist_sq = (table.x - x) ** 2 + (table.y - y) ** 2
    return int(np.argmin(dist_sq))


def next_waypoint(x: float, y: float, heading: float, table: CenterlineTable) -> int:
    """Index of the closest waypoint ahead of a pose with the given heading (radians)."""
    closest = closest_waypoint(x, y, table)
    bearing = math.atan2(float(table.y[closest]) - y, float(table.x[closest]) - x)
    angle = abs(heading - bearing) % (2.0 * math.pi)
    angle = min(2.0 * math.pi - angle, angle)
    if angle > math.pi / 2.0:
        closest = (closest + 1) % len(table)
    return closest


def to_frenet(x: float, y: float, heading: float, table: CenterlineTable) -> Tuple[float, float]:
    """
    Convert a world pose to road coordinates.

    Projects onto the centerline segment that ends at the next waypoint.
    """
    next_wp = next_waypoint(x, y, heading, table)
    prev_wp = next_wp - 1 if next_wp > 0 else len(table) - 1

    n_x = float(table.x[next_wp] - table.x[prev_wp])
    n_y = float(table.y[next_wp] - table.y[prev_wp])
    x_x = x - float(table.x[prev_wp])
    x_y = y - float(table.y[prev_wp])

    seg_len_sq = n_x * n_x + n_y * n_y
    if seg_len_sq <= 0.0:
        return float(table.s[prev_wp]), 0.0
    proj_norm = (x_x * n_x + x_y * n_y) / seg_len_sq
    proj_x = proj_norm * n_x
    proj_y = proj_norm * n_y

    frenet_d = math.hypot(x_x - proj_x, x_y - proj_y)
    # Right-hand side of the segment is positive d.
    if n_x * x_y - n_y * x_x > 0.0:
        frenet_d = -frenet_d

    frenet_s = float(table.s[prev_wp]) + math.hypot(proj_x, proj_y)
    return wrap_s(frenet_s, table.max_s), frenet_d
