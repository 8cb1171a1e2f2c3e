"""Verification Test: process churn while snapshots are being collected.

Processes that exit, turn into zombies or refuse access mid-read must never
fail a snapshot; they are skipped or reported with default values.
"""

import asyncio
import multiprocessing
import random
import time

import pytest

from sysanalyzer.collector import SnapshotCollector
from sysanalyzer.engine import AnalysisEngine, create_engine
from sysanalyzer.runner import AnalysisRunner
from sysanalyzer.sources import PsutilMetricsSource, PsutilProcessEnumerator


def dummy_worker(duration: float = 60.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


def _cleanup(processes: list[multiprocessing.Process]) -> None:
    for p in processes:
        if p.is_alive():
            p.terminate()
    for p in processes:
        p.join(timeout=1.0)


class TestChaosMonkey:
    """Chaos verification suite tests."""

    @pytest.mark.asyncio
    async def test_runner_survives_process_termination(self):
        """
        Test that the runner keeps producing snapshots while processes die.

        Dummy processes are terminated between and during ticks. Every tick
        must still yield a snapshot.
        """
        processes = []
        for _ in range(30):
            p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
            p.start()
            processes.append(p)

        engine = create_engine(network_monitoring=False)
        runner = AnalysisRunner(engine, interval=0.2)
        task = asyncio.create_task(runner.run())

        try:
            for p in random.sample(processes, 15):
                p.terminate()
                await asyncio.sleep(0.05)
            await asyncio.sleep(1.0)

            assert runner.is_running, "Runner should still be running after chaos"
        finally:
            runner.stop()
            taken = await asyncio.wait_for(task, timeout=10)
            _cleanup(processes)

        assert taken >= 3, f"Expected at least 3 snapshots after chaos, got {taken}"
        assert taken == runner.ticks, "No tick should have failed"

    @pytest.mark.asyncio
    async def test_terminated_process_not_reported(self):
        """Test a process that has exited is absent from the next snapshot."""
        p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
        p.start()
        time.sleep(0.1)
        pid = p.pid
        p.terminate()
        p.join(timeout=1.0)

        snapshot = await create_engine(network_monitoring=False).take_snapshot()

        assert pid not in {proc.pid for proc in snapshot.processes}
        assert snapshot.system_info.process_count == len(snapshot.processes)

    @pytest.mark.asyncio
    async def test_zombie_process_handling(self):
        """
        Test that a child which has exited but was not reaped is tolerated.
        """
        engine = create_engine(network_monitoring=False)
        p = multiprocessing.Process(target=dummy_worker, args=(0.1,))
        p.start()
        time.sleep(0.3)

        try:
            for _ in range(3):
                snapshot = await engine.take_snapshot()
                assert isinstance(snapshot.processes, tuple)
        finally:
            p.join(timeout=1.0)

        assert engine.get_snapshot_count() == 3

    @pytest.mark.asyncio
    async def test_rapid_process_churn_prunes_baselines(self):
        """
        Test CPU baselines for exited processes do not accumulate.

        After the churn stops and every dummy process is reaped, the tracker
        holds baselines only for processes that still exist.
        """
        collector = SnapshotCollector(PsutilMetricsSource(), PsutilProcessEnumerator())
        engine = AnalysisEngine(collector)
        processes = []

        try:
            for _ in range(5):
                for _ in range(5):
                    p = multiprocessing.Process(target=dummy_worker, args=(10.0,))
                    p.start()
                    processes.append(p)
                await engine.take_snapshot()
                for p in random.sample([p for p in processes if p.is_alive()], 3):
                    p.terminate()
        finally:
            _cleanup(processes)

        snapshot = await engine.take_snapshot()
        live = {proc.pid for proc in snapshot.processes}
        dead = {p.pid for p in processes}

        assert not dead & live
        assert all(pid not in collector.tracker for pid in dead)
