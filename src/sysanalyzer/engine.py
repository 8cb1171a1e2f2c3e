"""Analysis engine: one entry point per monitoring tick."""

import logging

from sysanalyzer.anomaly import AnomalyDetector
from sysanalyzer.collector import SnapshotCollector
from sysanalyzer.history import ANALYSIS_HISTORY_CAPACITY, BoundedHistory
from sysanalyzer.models import AnomalyResult, Snapshot, Statistics
from sysanalyzer.sources import PsutilMetricsSource, PsutilNetworkProbe, PsutilProcessEnumerator
from sysanalyzer.stats import compute_statistics

logger = logging.getLogger(__name__)


class AnalysisEngine:
    """
    Facade over snapshot collection, history and anomaly detection.

    Invoked once per tick by the scheduling loop. Detection for a new
    snapshot is always baselined on the snapshots taken before it.
    """

    def __init__(
        self,
        collector: SnapshotCollector,
        detector: AnomalyDetector | None = None,
        history: BoundedHistory | None = None,
    ) -> None:
        """
        Initialize the AnalysisEngine.

        Args:
            collector: Collector producing snapshots.
            detector: Anomaly detector. Defaults to the standard rule set.
            history: Analysis history. Defaults to a 1000-snapshot window.
        """
        if collector is None:
            raise ValueError("collector is required")
        self._collector = collector
        self._detector = detector if detector is not None else AnomalyDetector()
        self._history = (
            history if history is not None else BoundedHistory(ANALYSIS_HISTORY_CAPACITY)
        )
        self._last_result = AnomalyResult.clean()

    @property
    def last_result(self) -> AnomalyResult:
        """Anomaly result of the most recent successful snapshot."""
        return self._last_result

    async def take_snapshot(self) -> Snapshot:
        """
        Collect a snapshot, record it and run anomaly detection on it.

        Raises:
            CollectionError: If the snapshot could not be collected. Nothing
                is recorded in that case.
        """
        logger.debug("Taking system snapshot...")
        snapshot = await self._collector.collect()

        prior = self._history.copy_all()
        self._history.append(snapshot)
        self._last_result = self._detector.detect(snapshot, prior)

        logger.debug(
            "Snapshot taken: CPU %.1f%%, RAM %.1f%%, %d processes. Total snapshots: %d",
            snapshot.system_info.cpu_usage_percent,
            snapshot.system_info.memory_usage_percent,
            len(snapshot.processes),
            len(prior) + 1,
        )
        return snapshot

    def detect_anomalies(self, snapshot: Snapshot) -> AnomalyResult:
        """
        Run anomaly detection for ``snapshot`` against the tracked history.

        If ``snapshot`` is itself part of the history, only the entries
        recorded before it form the baseline.
        """
        history = self._history.copy_all()
        for index, entry in enumerate(history):
            if entry is snapshot:
                history = history[:index]
                break
        return self._detector.detect(snapshot, history)

    def get_statistics(self) -> Statistics:
        history = self._history.copy_all()
        if not history:
            logger.debug("No snapshots available for statistics")
        return compute_statistics(history)

    def get_snapshot_count(self) -> int:
        return self._history.count()

    def clear_history(self) -> int:
        """Drop every recorded snapshot. Returns how many were dropped."""
        count = self._history.clear()
        self._last_result = AnomalyResult.clean()
        logger.info("Cleared %d snapshots from history", count)
        return count


def create_engine(network_monitoring: bool = True, disk_path: str | None = None) -> AnalysisEngine:
    """Build an engine wired to the psutil-backed sources."""
    collector = SnapshotCollector(
        metrics=PsutilMetricsSource(disk_path),
        processes=PsutilProcessEnumerator(),
        network=PsutilNetworkProbe() if network_monitoring else None,
    )
    return AnalysisEngine(collector)
