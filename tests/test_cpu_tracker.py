"""Tests for the ProcessCpuTracker class."""

import threading

import pytest

from sysanalyzer.cpu_tracker import ProcessCpuTracker


class TestProcessCpuTracker:
    """Tests for delta-based CPU usage."""

    def test_first_observation_returns_zero(self):
        """Test the first sample of a pid only records a baseline."""
        tracker = ProcessCpuTracker()

        assert tracker.compute(42, 10.0, now=100.0) == 0.0
        assert 42 in tracker
        assert len(tracker) == 1

    def test_delta_percentage(self):
        """Test usage is CPU seconds over wall seconds, as a percentage."""
        tracker = ProcessCpuTracker()
        tracker.compute(42, 10.0, now=100.0)

        # 0.5s of CPU over 2s of wall time
        assert tracker.compute(42, 10.5, now=102.0) == 25.0

    def test_result_rounded_to_one_decimal(self):
        tracker = ProcessCpuTracker()
        tracker.compute(42, 0.0, now=0.0)

        assert tracker.compute(42, 1.0, now=3.0) == 33.3

    def test_result_clamped_to_hundred(self):
        """Test multi-core usage beyond 100% is clamped."""
        tracker = ProcessCpuTracker()
        tracker.compute(42, 0.0, now=0.0)

        assert tracker.compute(42, 4.0, now=1.0) == 100.0

    def test_negative_delta_clamped_to_zero(self):
        """Test a pid reused with a smaller CPU counter yields 0 rather than negative."""
        tracker = ProcessCpuTracker()
        tracker.compute(42, 50.0, now=0.0)

        assert tracker.compute(42, 1.0, now=1.0) == 0.0

    def test_below_noise_floor_returns_zero_without_updating(self):
        """Test samples closer than 100ms return 0 and keep the old baseline."""
        tracker = ProcessCpuTracker()
        tracker.compute(42, 10.0, now=100.0)

        assert tracker.compute(42, 10.05, now=100.05) == 0.0
        # Baseline still from t=100.0: 1s CPU over 1s wall
        assert tracker.compute(42, 11.0, now=101.0) == 100.0

    def test_exactly_noise_floor_is_measured(self):
        tracker = ProcessCpuTracker()
        tracker.compute(42, 0.0, now=0.0)

        assert tracker.compute(42, 0.05, now=0.1) == pytest.approx(50.0)

    def test_baseline_refreshed_after_measurement(self):
        tracker = ProcessCpuTracker()
        tracker.compute(42, 0.0, now=0.0)
        tracker.compute(42, 1.0, now=1.0)

        # Delta against t=1.0, not t=0.0
        assert tracker.compute(42, 1.2, now=2.0) == 20.0

    def test_unreadable_cpu_time_drops_baseline(self):
        """Test an unreadable CPU time yields 0 and forgets the pid."""
        tracker = ProcessCpuTracker()
        tracker.compute(42, 10.0, now=0.0)

        assert tracker.compute(42, None, now=1.0) == 0.0
        assert 42 not in tracker

    def test_prune_removes_absent_pids(self):
        """Test pids missing from an enumeration are purged."""
        tracker = ProcessCpuTracker()
        for pid in (1, 2, 3):
            tracker.compute(pid, 1.0, now=0.0)

        removed = tracker.prune([1, 3])

        assert removed == 1
        assert 2 not in tracker
        assert len(tracker) == 2

    def test_reappearing_pid_is_first_observation(self):
        """Test a pruned pid that comes back starts from a fresh baseline."""
        tracker = ProcessCpuTracker()
        tracker.compute(7, 1.0, now=0.0)
        tracker.prune([])

        assert tracker.compute(7, 5.0, now=10.0) == 0.0
        assert tracker.compute(7, 5.5, now=11.0) == 50.0

    def test_forget_and_clear(self):
        tracker = ProcessCpuTracker()
        tracker.compute(1, 1.0, now=0.0)
        tracker.compute(2, 1.0, now=0.0)

        tracker.forget(1)
        assert 1 not in tracker
        tracker.clear()
        assert len(tracker) == 0

    def test_concurrent_compute_and_prune(self):
        """Test compute and prune from several threads keep the map consistent."""
        tracker = ProcessCpuTracker()
        errors: list[Exception] = []

        def worker(offset: int) -> None:
            try:
                for step in range(200):
                    tracker.compute(offset * 1000 + step % 50, float(step), now=float(step))
                    if step % 25 == 0:
                        tracker.prune(range(offset * 1000, offset * 1000 + 25))
            except Exception as exc:  # pragma: no cover - reported below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(tracker) <= 4 * 50
