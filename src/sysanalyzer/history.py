"""Thread-safe bounded snapshot history."""

import threading
from collections import deque

from sysanalyzer.models import Snapshot

# Window used for anomaly baselines and statistics
ANALYSIS_HISTORY_CAPACITY = 1000
# Window used for report accumulation
REPORT_HISTORY_CAPACITY = 5000


class BoundedHistory:
    """
    Fixed-capacity FIFO of snapshots.

    Appending beyond capacity evicts the oldest entry. All access goes
    through one lock per instance; readers get a copy, never the backing
    deque.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._snapshots: deque[Snapshot] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return self.count()

    @property
    def capacity(self) -> int:
        return self._snapshots.maxlen or 0

    def append(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshots.append(snapshot)

    def copy_all(self) -> list[Snapshot]:
        """Return the snapshots in insertion order (a copy)."""
        with self._lock:
            return list(self._snapshots)

    def count(self) -> int:
        with self._lock:
            return len(self._snapshots)

    def latest(self) -> Snapshot | None:
        with self._lock:
            return self._snapshots[-1] if self._snapshots else None

    def clear(self) -> int:
        """Empty the history and return how many snapshots were dropped."""
        with self._lock:
            count = len(self._snapshots)
            self._snapshots.clear()
        return count
