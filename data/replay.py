"""
Replay utility for path planner recordings.
"""

import json
from pathlib import Path
from typing import Iterator

import h5py
import numpy as np

from .formats.data_format import CycleRecord
from .recorder import SCALAR_FIELDS


class CycleReplay:
    """Read back recorded planning cycles."""

    def __init__(self, recording_file: str):
        """
        Initialize cycle replay.

        Args:
            recording_file: Path to HDF5 recording file
        """
        self.recording_file = Path(recording_file)
        if not self.recording_file.exists():
            raise FileNotFoundError(f"Recording file not found: {recording_file}")

        self.h5_file = h5py.File(self.recording_file, 'r')
        if "metadata" in self.h5_file.attrs:
            self.metadata = json.loads(self.h5_file.attrs["metadata"])
        else:
            self.metadata = {}

    def __len__(self) -> int:
        return int(self.h5_file["cycle/timestamps"].shape[0])

    def get_cycles(self) -> Iterator[CycleRecord]:
        """
        Get recorded cycles iterator.

        Yields:
            CycleRecord per cycle; trajectory NaN padding is stripped
        """
        columns = {attr: self.h5_file[name][()] for name, (attr, _) in SCALAR_FIELDS.items()}
        trajectories = self.h5_file["plan/trajectory"]

        for i in range(len(self)):
            traj = trajectories[i]
            traj = traj[~np.isnan(traj).any(axis=1)]
            values = {attr: column[i].item() for attr, column in columns.items()}
            yield CycleRecord(trajectory=traj, **values)

    def close(self):
        self.h5_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
