"""Report exporters: JSON, CSV, plain text and HTML."""

import csv
import html
import io
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from sysanalyzer.config import ExportFormat
from sysanalyzer.models import AnomalyResult, ProcessSample, Snapshot, Statistics
from sysanalyzer.units import format_duration

logger = logging.getLogger(__name__)

REPORT_VERSION = "1.0"
TOP_PROCESSES = 20
TOP_CONNECTIONS = 10
CSV_TOP_PROCESSES = 50
TIMELINE_LENGTH = 10

MB = 1024 * 1024


def _timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


class Exporter(ABC):
    """Renders accumulated snapshots into a report string."""

    export_format: ExportFormat

    @abstractmethod
    def export(
        self,
        snapshots: Sequence[Snapshot],
        statistics: Statistics,
        anomalies: AnomalyResult | None = None,
    ) -> str:
        """
        Render a report.

        Args:
            snapshots: Accumulated snapshots, oldest first. May be empty.
            statistics: Statistics over the analysis history.
            anomalies: Latest anomaly result, if any.
        """

    def save(self, content: str, path: str | Path) -> Path:
        path = Path(path)
        path.write_text(content, encoding="utf-8")
        logger.info("%s report saved to: %s", self.export_format.name, path)
        return path


class JsonExporter(Exporter):
    export_format = ExportFormat.JSON

    def export(self, snapshots, statistics, anomalies=None) -> str:
        report = {
            "report_metadata": {
                "generated_at": datetime.now().isoformat(),
                "version": REPORT_VERSION,
                "format": "JSON",
                "description": "System Performance Analysis Report",
            },
            "statistics": {
                "snapshot_count": statistics.snapshot_count,
                "analysis_duration": format_duration(statistics.analysis_duration),
                "analysis_duration_seconds": statistics.analysis_duration.total_seconds(),
                "cpu_usage": {
                    "average": round(statistics.average_cpu_usage, 2),
                    "maximum": round(statistics.maximum_cpu_usage, 2),
                    "minimum": round(statistics.minimum_cpu_usage, 2),
                },
                "memory_usage": {
                    "average": round(statistics.average_memory_usage, 2),
                    "maximum": round(statistics.maximum_memory_usage, 2),
                    "minimum": round(statistics.minimum_memory_usage, 2),
                },
                "total_processes": statistics.total_processes,
            },
            "anomalies": _anomalies_dict(anomalies),
            "system_snapshots": [_snapshot_dict(s) for s in snapshots],
            "summary": {
                "total_snapshots": len(snapshots),
                "analysis_start_time": snapshots[0].timestamp.isoformat() if snapshots else None,
                "analysis_end_time": snapshots[-1].timestamp.isoformat() if snapshots else None,
                "highest_cpu_usage": round(
                    max((s.system_info.cpu_usage_percent for s in snapshots), default=0.0), 2
                ),
                "highest_memory_usage": round(
                    max((s.system_info.memory_usage_percent for s in snapshots), default=0.0), 2
                ),
                "average_process_count": round(
                    sum(s.system_info.process_count for s in snapshots) / len(snapshots)
                )
                if snapshots
                else 0,
            },
        }
        return json.dumps(report, indent=2)


def _anomalies_dict(anomalies: AnomalyResult | None) -> dict | None:
    if anomalies is None:
        return None
    return {
        "has_anomalies": anomalies.has_anomalies,
        "risk_level": anomalies.risk_level.label,
        "anomalies": list(anomalies.anomalies),
    }


def _process_dict(proc: ProcessSample) -> dict:
    return {
        "pid": proc.pid,
        "name": proc.name,
        "executable_path": proc.executable_path,
        "cpu_usage": round(proc.cpu_usage_percent, 2),
        "memory_usage_mb": round(proc.memory_usage_bytes / MB, 2),
        "memory_usage_bytes": proc.memory_usage_bytes,
        "thread_count": proc.thread_count,
        "start_time": datetime.fromtimestamp(proc.start_time).isoformat() if proc.start_time else None,
        "is_system_process": proc.is_system_process,
        "priority": proc.priority,
        "user_name": proc.user_name,
    }


def _snapshot_dict(snapshot: Snapshot) -> dict:
    info = snapshot.system_info
    net = snapshot.network_info
    return {
        "timestamp": snapshot.timestamp.isoformat(),
        "timestamp_unix": int(snapshot.timestamp.timestamp()),
        "system_info": {
            "cpu_usage": round(info.cpu_usage_percent, 2),
            "memory_usage": round(info.memory_usage_percent, 2),
            "disk_usage": round(info.disk_usage_percent, 2),
            "total_memory": info.total_memory_bytes,
            "available_memory": info.available_memory_bytes,
            "process_count": info.process_count,
            "system_uptime_seconds": info.system_uptime.total_seconds(),
        },
        "top_processes": [_process_dict(p) for p in snapshot.processes[:TOP_PROCESSES]],
        "network_info": {
            "total_bytes_sent": net.total_bytes_sent,
            "total_bytes_received": net.total_bytes_received,
            "total_bytes_sent_mb": round(net.total_bytes_sent / MB, 2),
            "total_bytes_received_mb": round(net.total_bytes_received / MB, 2),
            "active_connections": net.active_connections,
            "connections": [
                {
                    "local_endpoint": c.local_endpoint,
                    "remote_endpoint": c.remote_endpoint,
                    "protocol": c.protocol,
                    "state": c.state,
                    "pid": c.pid,
                }
                for c in net.connections[:TOP_CONNECTIONS]
            ],
        },
    }


class CsvExporter(Exporter):
    export_format = ExportFormat.CSV

    def export(self, snapshots, statistics, anomalies=None) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")

        writer.writerow(["# System Analysis Summary"])
        writer.writerow(["Analysis Date", _timestamp(datetime.now())])
        writer.writerow(["Analysis Duration", format_duration(statistics.analysis_duration)])
        writer.writerow(["Total Snapshots", statistics.snapshot_count])
        writer.writerow(["Average CPU Usage", f"{statistics.average_cpu_usage:.2f}"])
        writer.writerow(["Maximum CPU Usage", f"{statistics.maximum_cpu_usage:.2f}"])
        writer.writerow(["Average Memory Usage", f"{statistics.average_memory_usage:.2f}"])
        writer.writerow(["Maximum Memory Usage", f"{statistics.maximum_memory_usage:.2f}"])
        if anomalies is not None:
            writer.writerow(["Risk Level", anomalies.risk_level.label])
        writer.writerow([])

        writer.writerow(["# System Performance Timeline"])
        writer.writerow(
            [
                "Timestamp",
                "CPU Usage %",
                "Memory Usage %",
                "Disk Usage %",
                "Process Count",
                "Active Connections",
            ]
        )
        for snapshot in snapshots:
            info = snapshot.system_info
            writer.writerow(
                [
                    _timestamp(snapshot.timestamp),
                    f"{info.cpu_usage_percent:.2f}",
                    f"{info.memory_usage_percent:.2f}",
                    f"{info.disk_usage_percent:.2f}",
                    info.process_count,
                    snapshot.network_info.active_connections,
                ]
            )

        if snapshots:
            writer.writerow([])
            writer.writerow(["# Process Information (Latest Snapshot)"])
            writer.writerow(
                [
                    "PID",
                    "Process Name",
                    "CPU Usage %",
                    "Memory Usage MB",
                    "Thread Count",
                    "Start Time",
                    "Executable Path",
                    "Is System Process",
                ]
            )
            for proc in snapshots[-1].processes[:CSV_TOP_PROCESSES]:
                writer.writerow(
                    [
                        proc.pid,
                        proc.name,
                        f"{proc.cpu_usage_percent:.1f}",
                        f"{proc.memory_usage_bytes / MB:.1f}",
                        proc.thread_count,
                        _timestamp(datetime.fromtimestamp(proc.start_time)) if proc.start_time else "",
                        proc.executable_path,
                        proc.is_system_process,
                    ]
                )

        return buffer.getvalue()


class TxtExporter(Exporter):
    export_format = ExportFormat.TXT

    RULE = "-" * 80

    def export(self, snapshots, statistics, anomalies=None) -> str:
        lines = [
            "=" * 80,
            "SYSTEM PERFORMANCE ANALYSIS REPORT".center(80),
            "=" * 80,
            "",
            "REPORT INFORMATION",
            self.RULE,
            f"Generated Date:       {_timestamp(datetime.now())}",
            f"Analysis Duration:    {format_duration(statistics.analysis_duration)}",
            f"Total Snapshots:      {statistics.snapshot_count}",
            "",
            "SYSTEM PERFORMANCE STATISTICS",
            self.RULE,
            "CPU Usage:",
            f"  Average:            {statistics.average_cpu_usage:.2f}%",
            f"  Maximum:            {statistics.maximum_cpu_usage:.2f}%",
            f"  Minimum:            {statistics.minimum_cpu_usage:.2f}%",
            "Memory Usage:",
            f"  Average:            {statistics.average_memory_usage:.2f}%",
            f"  Maximum:            {statistics.maximum_memory_usage:.2f}%",
            f"  Minimum:            {statistics.minimum_memory_usage:.2f}%",
            f"Total Processes:      {statistics.total_processes}",
            "",
        ]

        if not snapshots:
            lines.extend(["No snapshots collected.", ""])
            return "\n".join(lines)

        latest = snapshots[-1]
        info = latest.system_info
        net = latest.network_info
        lines.extend(
            [
                "CURRENT SYSTEM STATUS",
                self.RULE,
                f"Snapshot Time:        {_timestamp(latest.timestamp)}",
                f"CPU Usage:            {info.cpu_usage_percent:.1f}%",
                f"Memory Usage:         {info.memory_usage_percent:.1f}%",
                f"Disk Usage:           {info.disk_usage_percent:.1f}%",
                f"Active Processes:     {info.process_count}",
                f"System Uptime:        {format_duration(info.system_uptime)}",
                f"Network Connections:  {net.active_connections}",
                f"Data Sent:            {net.total_bytes_sent / MB:.1f} MB",
                f"Data Received:        {net.total_bytes_received / MB:.1f} MB",
                "",
                "TOP RESOURCE-CONSUMING PROCESSES",
                self.RULE,
                f"{'PID':<8} {'Process Name':<25} {'CPU%':<8} {'RAM(MB)':<10} {'Threads':<8}",
                self.RULE,
            ]
        )
        for proc in latest.processes[:TOP_PROCESSES]:
            lines.append(
                f"{proc.pid:<8} {proc.name[:25]:<25} {proc.cpu_usage_percent:<8.1f} "
                f"{proc.memory_usage_bytes / MB:<10.0f} {proc.thread_count:<8}"
            )
        lines.append("")

        if anomalies is not None and anomalies.has_anomalies:
            lines.extend(["SYSTEM ALERTS", self.RULE, f"Risk level: {anomalies.risk_level.label}"])
            lines.extend(f"  * {alert}" for alert in anomalies.anomalies)
            lines.append("")

        lines.extend(
            [
                f"PERFORMANCE TIMELINE (LAST {TIMELINE_LENGTH} SNAPSHOTS)",
                self.RULE,
                f"{'Time':<12} {'CPU%':<8} {'Memory%':<10} {'Processes':<10}",
                self.RULE,
            ]
        )
        for snapshot in snapshots[-TIMELINE_LENGTH:]:
            s_info = snapshot.system_info
            lines.append(
                f"{snapshot.timestamp:%H:%M:%S}    {s_info.cpu_usage_percent:<8.1f} "
                f"{s_info.memory_usage_percent:<10.1f} {s_info.process_count:<10}"
            )
        lines.append("")
        return "\n".join(lines)


class HtmlExporter(Exporter):
    export_format = ExportFormat.HTML

    STYLE = """
    body { font-family: sans-serif; margin: 2em; color: #222; }
    table { border-collapse: collapse; margin-bottom: 2em; }
    th, td { border: 1px solid #ccc; padding: 4px 8px; text-align: right; }
    th { background: #f0f0f0; }
    td.text { text-align: left; }
    .alert { color: #b00020; }
    """

    def export(self, snapshots, statistics, anomalies=None) -> str:
        esc = html.escape
        parts = [
            "<!DOCTYPE html>",
            "<html><head><meta charset=\"utf-8\">",
            "<title>System Performance Analysis Report</title>",
            f"<style>{self.STYLE}</style></head><body>",
            "<h1>System Performance Analysis Report</h1>",
            f"<p>Generated {esc(_timestamp(datetime.now()))}</p>",
            "<h2>Statistics</h2>",
            "<table>",
            f"<tr><th>Snapshots</th><td>{statistics.snapshot_count}</td></tr>",
            "<tr><th>Duration</th>"
            f"<td>{esc(format_duration(statistics.analysis_duration))}</td></tr>",
            "<tr><th>CPU avg / max / min</th>"
            f"<td>{statistics.average_cpu_usage:.2f}% / {statistics.maximum_cpu_usage:.2f}% / "
            f"{statistics.minimum_cpu_usage:.2f}%</td></tr>",
            "<tr><th>Memory avg / max / min</th>"
            f"<td>{statistics.average_memory_usage:.2f}% / {statistics.maximum_memory_usage:.2f}% / "
            f"{statistics.minimum_memory_usage:.2f}%</td></tr>",
            f"<tr><th>Total processes</th><td>{statistics.total_processes}</td></tr>",
            "</table>",
        ]

        if anomalies is not None and anomalies.has_anomalies:
            parts.append(f"<h2 class=\"alert\">Alerts ({esc(anomalies.risk_level.label)} risk)</h2>")
            parts.append("<ul>")
            parts.extend(f"<li class=\"alert\">{esc(alert)}</li>" for alert in anomalies.anomalies)
            parts.append("</ul>")

        if not snapshots:
            parts.append("<p>No snapshots collected.</p>")
        else:
            parts.append("<h2>Snapshots</h2>")
            parts.append(
                "<table><tr><th>Time</th><th>CPU %</th><th>Memory %</th><th>Disk %</th>"
                "<th>Processes</th><th>Connections</th></tr>"
            )
            for snapshot in snapshots:
                info = snapshot.system_info
                parts.append(
                    f"<tr><td class=\"text\">{esc(_timestamp(snapshot.timestamp))}</td>"
                    f"<td>{info.cpu_usage_percent:.1f}</td>"
                    f"<td>{info.memory_usage_percent:.1f}</td>"
                    f"<td>{info.disk_usage_percent:.1f}</td>"
                    f"<td>{info.process_count}</td>"
                    f"<td>{snapshot.network_info.active_connections}</td></tr>"
                )
            parts.append("</table>")

            parts.append("<h2>Top Processes (Latest Snapshot)</h2>")
            parts.append(
                "<table><tr><th>PID</th><th>Name</th><th>CPU %</th><th>Memory MB</th>"
                "<th>Threads</th><th>Path</th></tr>"
            )
            for proc in snapshots[-1].processes[:TOP_PROCESSES]:
                parts.append(
                    f"<tr><td>{proc.pid}</td><td class=\"text\">{esc(proc.name)}</td>"
                    f"<td>{proc.cpu_usage_percent:.1f}</td>"
                    f"<td>{proc.memory_usage_bytes / MB:.1f}</td>"
                    f"<td>{proc.thread_count}</td>"
                    f"<td class=\"text\">{esc(proc.executable_path)}</td></tr>"
                )
            parts.append("</table>")

        parts.append("</body></html>")
        return "\n".join(parts)


_EXPORTERS: dict[ExportFormat, type[Exporter]] = {
    ExportFormat.JSON: JsonExporter,
    ExportFormat.CSV: CsvExporter,
    ExportFormat.TXT: TxtExporter,
    ExportFormat.HTML: HtmlExporter,
}


def get_exporter(export_format: ExportFormat) -> Exporter:
    """Return an exporter instance for ``export_format``."""
    try:
        return _EXPORTERS[export_format]()
    except KeyError:
        raise ValueError(f"Unsupported export format: {export_format}") from None
