"""Tests for the ReportGenerator class."""

import json

import pytest

from fakes import FakeMetricsSource, FakeProcessEnumerator, FakeProcessHandle, ManualClock, make_snapshot
from sysanalyzer.collector import SnapshotCollector
from sysanalyzer.config import ExportFormat
from sysanalyzer.engine import AnalysisEngine
from sysanalyzer.report import ReportGenerator


@pytest.fixture
def engine():
    collector = SnapshotCollector(
        FakeMetricsSource(),
        FakeProcessEnumerator([FakeProcessHandle(1)]),
        clock=ManualClock(),
    )
    return AnalysisEngine(collector)


class TestReportGenerator:
    def test_requires_engine_and_path(self, engine):
        with pytest.raises(ValueError):
            ReportGenerator(None, "out.html")
        with pytest.raises(ValueError):
            ReportGenerator(engine, "  ")

    def test_add_snapshot_ignores_none(self, engine):
        report = ReportGenerator(engine, "out.html")

        report.add_snapshot(None)
        report.add_snapshot(make_snapshot())

        assert report.get_snapshot_count() == 1

    def test_capacity_independent_of_engine(self, engine):
        report = ReportGenerator(engine, "out.html", capacity=2)
        for _ in range(5):
            report.add_snapshot(make_snapshot())

        assert report.get_snapshot_count() == 2
        assert engine.get_snapshot_count() == 0

    def test_clear(self, engine):
        report = ReportGenerator(engine, "out.html")
        report.add_snapshot(make_snapshot())

        assert report.clear() == 1
        assert report.get_snapshot_count() == 0

    @pytest.mark.asyncio
    async def test_generate_uses_engine_statistics(self, engine):
        report = ReportGenerator(engine, "out.json", ExportFormat.JSON)
        report.add_snapshot(await engine.take_snapshot())
        report.add_snapshot(await engine.take_snapshot())

        data = json.loads(report.generate_report())

        assert data["statistics"]["snapshot_count"] == 2
        assert len(data["system_snapshots"]) == 2
        assert data["anomalies"]["risk_level"] == "Low"

    def test_generate_with_format_override(self, engine):
        report = ReportGenerator(engine, "out.json", ExportFormat.JSON)

        assert "No snapshots collected." in report.generate_report(ExportFormat.TXT)

    def test_write_report_creates_directories(self, engine, tmp_path):
        path = tmp_path / "reports" / "daily" / "report.csv"
        report = ReportGenerator(engine, path, ExportFormat.CSV)
        report.add_snapshot(make_snapshot())

        written = report.write_report()

        assert written == path
        assert path.exists()
        assert "# System Analysis Summary" in path.read_text(encoding="utf-8")
