"""Report accumulation and final report generation."""

import logging
import time
from pathlib import Path

from sysanalyzer.config import ExportFormat
from sysanalyzer.engine import AnalysisEngine
from sysanalyzer.exporters import get_exporter
from sysanalyzer.history import REPORT_HISTORY_CAPACITY, BoundedHistory
from sysanalyzer.models import Snapshot

logger = logging.getLogger(__name__)


class ReportGenerator:
    """
    Accumulates snapshots for the final report.

    Keeps its own 5000-snapshot window, independent of the engine's
    analysis history; statistics still come from the engine.
    """

    def __init__(
        self,
        engine: AnalysisEngine,
        output_path: str | Path,
        export_format: ExportFormat = ExportFormat.HTML,
        capacity: int = REPORT_HISTORY_CAPACITY,
    ) -> None:
        if engine is None:
            raise ValueError("engine is required")
        if not str(output_path).strip():
            raise ValueError("output path cannot be empty")
        self._engine = engine
        self._output_path = Path(output_path)
        self._format = export_format
        self._snapshots = BoundedHistory(capacity)

    @property
    def output_path(self) -> Path:
        return self._output_path

    @property
    def export_format(self) -> ExportFormat:
        return self._format

    def add_snapshot(self, snapshot: Snapshot) -> None:
        if snapshot is None:
            logger.warning("Attempted to add null snapshot")
            return
        self._snapshots.append(snapshot)

    def get_snapshot_count(self) -> int:
        return self._snapshots.count()

    def clear(self) -> int:
        count = self._snapshots.clear()
        logger.info("Cleared %d snapshots from report", count)
        return count

    def generate_report(self, export_format: ExportFormat | None = None) -> str:
        """Render the accumulated snapshots in ``export_format`` (default: configured)."""
        export_format = export_format or self._format
        started = time.perf_counter()
        snapshots = self._snapshots.copy_all()
        if not snapshots:
            logger.warning("No snapshots available for report generation")

        exporter = get_exporter(export_format)
        report = exporter.export(
            snapshots, self._engine.get_statistics(), self._engine.last_result
        )
        logger.debug(
            "Generated %s report with %d snapshots, %d chars in %.2fs",
            export_format.name,
            len(snapshots),
            len(report),
            time.perf_counter() - started,
        )
        return report

    def write_report(self) -> Path:
        """Render the report and write it to the configured output path."""
        started = time.perf_counter()
        report = self.generate_report()
        if self._output_path.parent and not self._output_path.parent.exists():
            self._output_path.parent.mkdir(parents=True, exist_ok=True)
        path = get_exporter(self._format).save(report, self._output_path)
        logger.info(
            "Report generated: %s (%.2fKB) in %.2fs",
            path.resolve(),
            path.stat().st_size / 1024,
            time.perf_counter() - started,
        )
        return path
