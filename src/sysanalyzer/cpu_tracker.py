"""Per-process CPU usage from cumulative CPU time deltas."""

import threading
from collections.abc import Iterable
from dataclasses import dataclass

from sysanalyzer.units import clamp_percent, round1

# Wall-clock gaps shorter than this are treated as noise
MIN_SAMPLE_INTERVAL = 0.1


@dataclass(slots=True)
class _Baseline:
    cpu_time: float
    measured_at: float


class ProcessCpuTracker:
    """
    Converts cumulative per-process CPU time into a usage percentage.

    Each pid gets a baseline on first sight; later observations compare
    against it. Baselines for pids that disappear from an enumeration are
    pruned, so a reused pid starts over as a first observation.
    """

    def __init__(self, min_interval: float = MIN_SAMPLE_INTERVAL) -> None:
        self._min_interval = min_interval
        self._baselines: dict[int, _Baseline] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._baselines)

    def __contains__(self, pid: object) -> bool:
        with self._lock:
            return pid in self._baselines

    def compute(self, pid: int, cpu_time: float | None, now: float) -> float:
        """
        Return the CPU usage of ``pid`` since its last measurement.

        Args:
            pid: Process id.
            cpu_time: Cumulative CPU seconds (user + system), or None if it
                could not be read.
            now: Monotonic wall-clock time in seconds.

        Returns:
            Usage percent in [0, 100] rounded to one decimal; 0.0 on first
            observation, below the noise floor, or when unreadable.
        """
        with self._lock:
            if cpu_time is None:
                self._baselines.pop(pid, None)
                return 0.0

            baseline = self._baselines.get(pid)
            if baseline is None:
                self._baselines[pid] = _Baseline(cpu_time, now)
                return 0.0

            elapsed = now - baseline.measured_at
            if elapsed < self._min_interval:
                return 0.0

            percent = round1(clamp_percent((cpu_time - baseline.cpu_time) / elapsed * 100))
            baseline.cpu_time = cpu_time
            baseline.measured_at = now
            return percent

    def forget(self, pid: int) -> None:
        """Drop the baseline of a single pid."""
        with self._lock:
            self._baselines.pop(pid, None)

    def prune(self, live_pids: Iterable[int]) -> int:
        """
        Remove baselines for pids absent from the latest enumeration.

        Returns:
            Number of baselines removed.
        """
        live = set(live_pids)
        with self._lock:
            stale = [pid for pid in self._baselines if pid not in live]
            for pid in stale:
                del self._baselines[pid]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._baselines.clear()
