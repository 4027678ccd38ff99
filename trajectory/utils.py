from __future__ import annotations

import math
from typing import Iterable, Tuple

import numpy as np


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def heading_between(x_from: float, y_from: float, x_to: float, y_to: float) -> float:
    """Direction (radians) of the segment from one point to another."""
    return math.atan2(y_to - y_from, x_to - x_from)


def to_local_frame(
    xs: Iterable[float],
    ys: Iterable[float],
    ref_x: float,
    ref_y: float,
    ref_yaw: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Express world points in a frame centered on (ref_x, ref_y) with +x along ref_yaw.

    Translate to the reference point, then rotate by -ref_yaw.
    """
    shift_x = np.asarray(list(xs), dtype=float) - ref_x
    shift_y = np.asarray(list(ys), dtype=float) - ref_y
    cos_yaw = math.cos(-ref_yaw)
    sin_yaw = math.sin(-ref_yaw)
    local_x = shift_x * cos_yaw - shift_y * sin_yaw
    local_y = shift_x * sin_yaw + shift_y * cos_yaw
    return local_x, local_y


def to_world_frame(
    xs: Iterable[float],
    ys: Iterable[float],
    ref_x: float,
    ref_y: float,
    ref_yaw: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Inverse of to_local_frame: rotate by ref_yaw, then translate by the reference point."""
    local_x = np.asarray(list(xs), dtype=float)
    local_y = np.asarray(list(ys), dtype=float)
    cos_yaw = math.cos(ref_yaw)
    sin_yaw = math.sin(ref_yaw)
    world_x = local_x * cos_yaw - local_y * sin_yaw + ref_x
    world_y = local_x * sin_yaw + local_y * cos_yaw + ref_y
    return world_x, world_y
