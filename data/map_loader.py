"""
Loader for the highway centerline waypoint file.

Each row holds "x y s dx dy" separated by whitespace.
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np

from trajectory.exceptions import MapLoadError
from trajectory.road_frame import CenterlineTable, DEFAULT_MAX_S

logger = logging.getLogger(__name__)


def load_centerline(map_file: Union[str, Path], max_s: float = DEFAULT_MAX_S) -> CenterlineTable:
    """
    Load the centerline table.

    Args:
        map_file: Path to the waypoint file
        max_s: Track length at which s wraps

    Returns:
        CenterlineTable

    Raises:
        MapLoadError: If the file is missing, malformed or too short
    """
    map_path = Path(map_file)
    if not map_path.exists():
        raise MapLoadError(f"Map file not found: {map_path}")

    try:
        rows = np.loadtxt(map_path, dtype=float, ndmin=2)
    except ValueError as e:
        raise MapLoadError(f"Malformed map file {map_path}: {e}") from e

    if rows.shape[0] < 2 or rows.shape[1] != 5:
        raise MapLoadError(
            f"Map file {map_path} must have at least 2 rows of 5 columns, got shape {rows.shape}"
        )
    if not np.all(np.diff(rows[:, 2]) > 0.0):
        raise MapLoadError(f"Arc-length column in {map_path} is not strictly increasing")
    if rows[-1, 2] >= max_s:
        raise MapLoadError(f"Last waypoint s={rows[-1, 2]} is not below max_s={max_s}")

    logger.info(f"Loaded {rows.shape[0]} waypoints from {map_path}")
    return CenterlineTable.from_rows(rows, max_s=max_s)
