"""Tests for the report exporters."""

import csv
import io
import json
from datetime import datetime, timedelta

import pytest

from fakes import make_process, make_snapshot
from sysanalyzer.config import ExportFormat
from sysanalyzer.exporters import (
    TOP_PROCESSES,
    CsvExporter,
    HtmlExporter,
    JsonExporter,
    TxtExporter,
    get_exporter,
)
from sysanalyzer.models import AnomalyResult, RiskLevel, Statistics
from sysanalyzer.stats import compute_statistics


@pytest.fixture
def snapshots():
    start = datetime(2024, 1, 1, 9, 0, 0)
    procs = [make_process(pid=i, name=f"proc{i}", cpu=float(i)) for i in range(30)]
    return [
        make_snapshot(cpu=20.0, memory=40.0, timestamp=start),
        make_snapshot(cpu=30.0, memory=50.0, processes=procs, connections=2, timestamp=start + timedelta(minutes=1)),
    ]


@pytest.fixture
def alert():
    return AnomalyResult(
        has_anomalies=True,
        anomalies=("High CPU usage: 85.0%", "Suspicious process: <evil> (PID 9, CPU: 70.0%)"),
        risk_level=RiskLevel.HIGH,
    )


class TestJsonExporter:
    def test_structure(self, snapshots, alert):
        report = json.loads(JsonExporter().export(snapshots, compute_statistics(snapshots), alert))

        assert set(report) == {"report_metadata", "statistics", "anomalies", "system_snapshots", "summary"}
        assert report["statistics"]["snapshot_count"] == 2
        assert report["statistics"]["cpu_usage"]["average"] == 25.0
        assert report["anomalies"]["risk_level"] == "High"
        assert report["summary"]["highest_memory_usage"] == 50.0
        assert report["summary"]["average_process_count"] == 15

    def test_top_processes_limited(self, snapshots):
        report = json.loads(JsonExporter().export(snapshots, compute_statistics(snapshots)))

        latest = report["system_snapshots"][-1]
        assert len(latest["top_processes"]) == TOP_PROCESSES
        assert latest["network_info"]["active_connections"] == 2
        assert report["anomalies"] is None

    def test_empty(self):
        report = json.loads(JsonExporter().export([], Statistics.empty()))

        assert report["system_snapshots"] == []
        assert report["summary"]["analysis_start_time"] is None
        assert report["summary"]["average_process_count"] == 0


class TestCsvExporter:
    def test_sections(self, snapshots, alert):
        content = CsvExporter().export(snapshots, compute_statistics(snapshots), alert)
        rows = list(csv.reader(io.StringIO(content)))

        assert ["Total Snapshots", "2"] in rows
        assert ["Risk Level", "High"] in rows
        assert ["# System Performance Timeline"] in rows
        assert ["# Process Information (Latest Snapshot)"] in rows
        timeline = rows.index(["# System Performance Timeline"])
        assert rows[timeline + 2][0] == "2024-01-01 09:00:00"

    def test_empty_has_no_process_section(self):
        content = CsvExporter().export([], Statistics.empty())

        assert "Process Information" not in content


class TestTxtExporter:
    def test_contents(self, snapshots, alert):
        content = TxtExporter().export(snapshots, compute_statistics(snapshots), alert)

        assert "SYSTEM PERFORMANCE ANALYSIS REPORT" in content
        assert "Risk level: High" in content
        assert "  * High CPU usage: 85.0%" in content
        assert "proc19" in content
        assert "proc20" not in content

    def test_empty(self):
        content = TxtExporter().export([], Statistics.empty())

        assert "No snapshots collected." in content


class TestHtmlExporter:
    def test_escapes_untrusted_text(self, snapshots, alert):
        content = HtmlExporter().export(snapshots, compute_statistics(snapshots), alert)

        assert "&lt;evil&gt;" in content
        assert "<evil>" not in content
        assert content.startswith("<!DOCTYPE html>")

    def test_empty(self):
        content = HtmlExporter().export([], Statistics.empty())

        assert "No snapshots collected." in content


@pytest.mark.parametrize(
    ("export_format", "cls"),
    [
        (ExportFormat.JSON, JsonExporter),
        (ExportFormat.CSV, CsvExporter),
        (ExportFormat.TXT, TxtExporter),
        (ExportFormat.HTML, HtmlExporter),
    ],
)
def test_get_exporter(export_format, cls):
    assert isinstance(get_exporter(export_format), cls)


def test_save_writes_file(tmp_path):
    path = TxtExporter().save("hello", tmp_path / "out.txt")

    assert path.read_text(encoding="utf-8") == "hello"
