"""Scheduling loop driving one analysis tick per interval."""

import asyncio
import logging
import time
from collections.abc import Callable

from sysanalyzer.engine import AnalysisEngine
from sysanalyzer.errors import CollectionError
from sysanalyzer.models import AnomalyResult, Snapshot
from sysanalyzer.report import ReportGenerator

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Snapshot, AnomalyResult], None]


class AnalysisRunner:
    """
    Runs ``AnalysisEngine.take_snapshot`` at a fixed interval.

    Stop requests are observed between ticks only: a snapshot in flight is
    allowed to finish. A tick whose collection fails is logged and skipped.
    """

    def __init__(
        self,
        engine: AnalysisEngine,
        report: ReportGenerator | None = None,
        interval: float = 60.0,
        duration_minutes: float = 0,
        on_snapshot: SnapshotCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the AnalysisRunner.

        Args:
            engine: Engine invoked once per tick.
            report: Report generator receiving every successful snapshot.
            interval: Seconds between ticks.
            duration_minutes: Stop after this many minutes; 0 runs until stopped.
            on_snapshot: Called with each snapshot and its anomaly result.
            clock: Monotonic clock used for the duration limit.
        """
        if engine is None:
            raise ValueError("engine is required")
        self._engine = engine
        self._report = report
        self._interval = max(0.1, interval)
        self._duration_minutes = max(0, duration_minutes)
        self._on_snapshot = on_snapshot
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._running = False
        self._paused = False
        self._ticks = 0
        self._snapshots_taken = 0

    @property
    def interval(self) -> float:
        """Get the current tick interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the tick interval."""
        self._interval = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def ticks(self) -> int:
        """Ticks attempted, including skipped ones."""
        return self._ticks

    @property
    def snapshots_taken(self) -> int:
        return self._snapshots_taken

    def pause(self) -> None:
        self._paused = True
        logger.info("Analysis paused")

    def resume(self) -> None:
        self._paused = False
        logger.info("Analysis resumed")

    def toggle_pause(self) -> bool:
        """Flip the paused state and return the new value."""
        if self._paused:
            self.resume()
        else:
            self.pause()
        return self._paused

    def stop(self) -> None:
        """Request the loop to exit before its next tick.

        A request made before ``run`` starts makes it return without a tick.
        """
        self._stop_event.set()

    async def step(self) -> Snapshot | None:
        """
        Perform one tick.

        Returns:
            The new snapshot, or None if collection failed and the tick was
            skipped.
        """
        self._ticks += 1
        try:
            snapshot = await self._engine.take_snapshot()
        except CollectionError:
            logger.exception("Error taking snapshot %d, skipping tick", self._ticks)
            return None

        self._snapshots_taken += 1
        if self._report is not None:
            self._report.add_snapshot(snapshot)

        if self._on_snapshot is not None:
            try:
                self._on_snapshot(snapshot, self._engine.last_result)
            except Exception:
                logger.exception("Snapshot callback failed")

        logger.debug(
            "Snapshot %d completed: CPU %.1f%%, RAM %.1f%%",
            self._ticks,
            snapshot.system_info.cpu_usage_percent,
            snapshot.system_info.memory_usage_percent,
        )
        return snapshot

    async def run(self) -> int:
        """
        Run ticks until stopped or the duration elapses.

        Returns:
            Number of snapshots taken.
        """
        self._running = True
        deadline = (
            self._clock() + self._duration_minutes * 60 if self._duration_minutes > 0 else None
        )
        logger.info("Analysis loop started: interval %.1fs", self._interval)

        try:
            while not self._stop_event.is_set():
                if deadline is not None and self._clock() >= deadline:
                    break

                if not self._paused:
                    try:
                        await self.step()
                    except Exception:
                        # Keep the loop running on unexpected errors
                        logger.exception("Error in analysis loop at snapshot %d", self._ticks)

                # Wait for the interval or until stop is requested
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            self._stop_event.clear()

        logger.info("Analysis loop completed. Total snapshots: %d", self._snapshots_taken)
        return self._snapshots_taken
