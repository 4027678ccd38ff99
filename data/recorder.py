"""
Data recorder for the path planner.
Records one row per planning cycle: ego state, reference state and planned trajectory.
"""

import json
import logging
import queue
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import h5py
import numpy as np

from .formats.data_format import CycleRecord

logger = logging.getLogger(__name__)

# Scalar datasets: name -> (record attribute, dtype)
SCALAR_FIELDS: Dict[str, tuple] = {
    "cycle/timestamps": ("timestamp", np.float64),
    "cycle/ids": ("cycle_id", np.int64),
    "ego/x": ("ego_x", np.float64),
    "ego/y": ("ego_y", np.float64),
    "ego/s": ("ego_s", np.float64),
    "ego/d": ("ego_d", np.float64),
    "ego/yaw": ("ego_yaw", np.float64),
    "ego/speed": ("ego_speed", np.float64),
    "plan/prev_size": ("prev_size", np.int32),
    "plan/lane": ("lane", np.int32),
    "plan/ref_speed": ("ref_speed", np.float64),
    "plan/ramp_complete": ("ramp_complete", np.bool_),
    "plan/too_close": ("too_close", np.bool_),
    "plan/used_fallback": ("used_fallback", np.bool_),
    "plan/num_sensed": ("num_sensed", np.int32),
    "plan/end_s": ("plan_end_s", np.float64),
    "plan/end_d": ("plan_end_d", np.float64),
}


class CycleRecorder:
    """Records planning cycles to HDF5 format."""

    def __init__(self, output_dir: str, horizon: int = 50,
                 recording_name: Optional[str] = None, flush_every: int = 50):
        """
        Initialize cycle recorder.

        Args:
            output_dir: Directory to save recordings
            horizon: Trajectory length stored per cycle (shorter trajectories are NaN-padded)
            recording_name: Name for this recording (default: timestamp)
            flush_every: Buffered cycles per background write
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        if recording_name is None:
            recording_name = f"recording_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        self.recording_name = recording_name
        self.output_file = self.output_dir / f"{recording_name}.h5"
        self.horizon = int(horizon)

        self.h5_file = h5py.File(self.output_file, 'w')
        self._create_datasets()

        self.frame_buffer: List[CycleRecord] = []
        self.frame_buffer_lock = threading.Lock()
        self.flush_queue: "queue.Queue[List[CycleRecord]]" = queue.Queue()
        self.flush_stop_event = threading.Event()
        self.frame_count = 0
        self.flush_every = max(1, int(flush_every))
        self.flush_thread = threading.Thread(
            target=self._flush_worker,
            name="CycleRecorderFlushWorker",
            daemon=True,
        )
        self.flush_thread.start()

        self.metadata = {
            "recording_start_time": datetime.now().isoformat(),
            "recording_name": recording_name,
            "horizon": self.horizon,
        }

    def _create_datasets(self):
        """Create extensible HDF5 datasets."""
        for name, (_, dtype) in SCALAR_FIELDS.items():
            self.h5_file.create_dataset(name, shape=(0,), maxshape=(None,), dtype=dtype)
        self.h5_file.create_dataset(
            "plan/trajectory",
            shape=(0, self.horizon, 2),
            maxshape=(None, self.horizon, 2),
            dtype=np.float64,
            chunks=(64, self.horizon, 2),
        )

    def record_cycle(self, record: CycleRecord):
        """
        Buffer one planning cycle.

        Args:
            record: CycleRecord to store
        """
        with self.frame_buffer_lock:
            self.frame_buffer.append(record)
            self.frame_count += 1
            if len(self.frame_buffer) >= self.flush_every:
                frames = self.frame_buffer
                self.frame_buffer = []
                self.flush_queue.put(frames)

    def flush(self):
        """Hand buffered cycles to the writer thread."""
        with self.frame_buffer_lock:
            if not self.frame_buffer:
                return
            frames = self.frame_buffer
            self.frame_buffer = []
        self.flush_queue.put(frames)

    def _flush_worker(self):
        while not self.flush_stop_event.is_set() or not self.flush_queue.empty():
            try:
                frames = self.flush_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._flush_frames(frames)
            except Exception as e:
                logger.error(f"Failed to write {len(frames)} cycles: {e}", exc_info=True)
            finally:
                self.flush_queue.task_done()

    def _trajectory_array(self, record: CycleRecord) -> np.ndarray:
        padded = np.full((self.horizon, 2), np.nan, dtype=np.float64)
        traj = np.asarray(record.trajectory, dtype=np.float64).reshape(-1, 2)[: self.horizon]
        padded[: traj.shape[0]] = traj
        return padded

    def _flush_frames(self, frames: List[CycleRecord]):
        if not frames:
            return
        current_size = self.h5_file["cycle/timestamps"].shape[0]
        new_size = current_size + len(frames)

        for name, (attr, dtype) in SCALAR_FIELDS.items():
            dataset = self.h5_file[name]
            dataset.resize((new_size,))
            dataset[current_size:] = np.array([getattr(f, attr) for f in frames], dtype=dtype)

        trajectories = self.h5_file["plan/trajectory"]
        trajectories.resize((new_size, self.horizon, 2))
        trajectories[current_size:] = np.stack([self._trajectory_array(f) for f in frames])

    def close(self):
        """Close the recording file."""
        try:
            self.flush()
            self.flush_stop_event.set()
            self.flush_thread.join(timeout=5.0)
        except Exception as e:
            logger.error(f"Error during final flush: {e}", exc_info=True)

        self.metadata["recording_end_time"] = datetime.now().isoformat()
        self.metadata["total_frames"] = self.frame_count
        try:
            self.h5_file.attrs["metadata"] = json.dumps(self.metadata, indent=2)
        except Exception as e:
            logger.warning(f"Failed to save metadata: {e}")

        self.h5_file.close()
        logger.info(f"Recording saved to: {self.output_file}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
