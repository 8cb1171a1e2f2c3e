"""sysanalyzer - Interactive Textual dashboard."""

import logging
from enum import Enum

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static
from textual.widgets.data_table import DuplicateKey

from sysanalyzer.config import AnalysisConfig
from sysanalyzer.engine import AnalysisEngine
from sysanalyzer.models import AnomalyResult, ProcessSample, RiskLevel, Snapshot
from sysanalyzer.report import ReportGenerator
from sysanalyzer.runner import AnalysisRunner
from sysanalyzer.units import format_bytes, format_duration

logger = logging.getLogger(__name__)

# Rows shown in the process table
MAX_TABLE_ROWS = 100

RISK_COLORS = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "dark_orange",
    RiskLevel.CRITICAL: "red",
}

HELP_TEXT = (
    "q: quit and write report\n"
    "p: pause / resume sampling\n"
    "s: show statistics\n"
    "c: clear the anomaly panel\n"
    "ctrl+r: reset analysis history\n"
    "f6: cycle sort key\n"
    "h: this help"
)


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    NAME = "name"


def usage_bar(percent: float, threshold: float, width: int = 20) -> str:
    """Render a percentage as a colored bar, red at or above ``threshold``."""
    filled = min(int(percent / (100 / width)), width)
    color = "red" if percent >= threshold else "green"
    return f"[{color}]" + "█" * filled + f"[/{color}]" + "[dim]░[/dim]" * (width - filled)


class HeaderStats(Static):
    """Header widget showing host resource usage and risk level."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, cpu_threshold: int = 80, memory_threshold: int = 80, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._cpu_threshold = cpu_threshold
        self._memory_threshold = memory_threshold
        self._snapshot: Snapshot | None = None
        self._risk_level: RiskLevel = RiskLevel.LOW
        self._paused = False

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    @property
    def risk_level(self) -> RiskLevel:
        return self._risk_level

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_usage_info(), id="usage-info"),
            Static(self._get_host_info(), id="host-info"),
        )

    def update_stats(self, snapshot: Snapshot, result: AnomalyResult) -> None:
        """Update the statistics from a snapshot and its anomaly result."""
        self._snapshot = snapshot
        self._risk_level = result.risk_level
        self._refresh_display()

    def set_paused(self, paused: bool) -> None:
        self._paused = paused
        self._refresh_display()

    def _refresh_display(self) -> None:
        """Refresh the display with current data."""
        try:
            self.query_one("#usage-info", Static).update(self._get_usage_info())
            self.query_one("#host-info", Static).update(self._get_host_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_usage_info(self) -> str:
        if self._snapshot is None:
            return "Collecting first snapshot..."
        info = self._snapshot.system_info
        used = info.total_memory_bytes - info.available_memory_bytes
        # Use escaped brackets for the bar containers
        return (
            f"CPU \\[{usage_bar(info.cpu_usage_percent, self._cpu_threshold)}] "
            f"{info.cpu_usage_percent:5.1f}%\n"
            f"Mem \\[{usage_bar(info.memory_usage_percent, self._memory_threshold)}] "
            f"{info.memory_usage_percent:5.1f}% {format_bytes(used)}/{format_bytes(info.total_memory_bytes)}\n"
            f"Dsk \\[{usage_bar(info.disk_usage_percent, 90)}] {info.disk_usage_percent:5.1f}%"
        )

    def _get_host_info(self) -> str:
        if self._snapshot is None:
            return ""
        info = self._snapshot.system_info
        net = self._snapshot.network_info
        color = RISK_COLORS[self._risk_level]
        status = "[yellow]PAUSED[/yellow]  " if self._paused else ""
        return (
            f"{status}Risk: [{color}]{self._risk_level.label}[/{color}]\n"
            f"Processes: {info.process_count}  Uptime: {format_duration(info.system_uptime)}\n"
            f"Net: {format_bytes(net.total_bytes_sent).strip()} sent, "
            f"{format_bytes(net.total_bytes_received).strip()} recv, "
            f"{net.active_connections} connections\n"
            f"Updated: {self._snapshot.timestamp:%H:%M:%S}"
        )


class AnomalyPanel(Static):
    """Lists the anomalies of the latest snapshot."""

    DEFAULT_CSS = """
    AnomalyPanel {
        height: auto;
        max-height: 8;
        padding: 0 1;
        border: solid $warning;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__("No anomalies", *args, **kwargs)
        self._anomalies: tuple[str, ...] = ()

    @property
    def anomalies(self) -> tuple[str, ...]:
        return self._anomalies

    def update_result(self, result: AnomalyResult) -> None:
        self._anomalies = result.anomalies
        if not result.has_anomalies:
            self.update("No anomalies")
            return
        color = RISK_COLORS[result.risk_level]
        lines = [f"[{color}]{result.risk_level.label} risk[/{color}]"]
        lines.extend(f"• {anomaly}" for anomaly in result.anomalies)
        self.update("\n".join(lines))


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True  # Default: descending for CPU

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("USER", key="user", width=10)
        table.add_column("PRI", key="priority", width=4)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("RES", key="rss", width=8)
        table.add_column("THR", key="threads", width=5)
        table.add_column("SYS", key="system", width=4)
        table.add_column("Name", key="name", width=20)
        table.add_column("Path", key="path")

    def update_processes(self, processes: tuple[ProcessSample, ...] | list[ProcessSample]) -> None:
        """
        Update the process table with new data.

        Rebuilds the rows in sort order; only the top rows are shown.
        """
        table = self.query_one("#process-table", DataTable)
        shown = self._sort_processes(processes)[:MAX_TABLE_ROWS]

        table.clear()
        for proc in shown:
            self._add_row(table, proc)

    def _sort_processes(self, processes) -> list[ProcessSample]:
        """Sort processes based on the current sort key."""
        key_func = {
            SortKey.CPU: lambda p: (p.cpu_usage_percent, p.memory_usage_bytes),
            SortKey.MEM: lambda p: p.memory_usage_bytes,
            SortKey.PID: lambda p: p.pid,
            SortKey.NAME: lambda p: p.name.lower(),
        }
        return sorted(processes, key=key_func[self._sort_key], reverse=self._sort_reverse)

    def _add_row(self, table: DataTable, proc: ProcessSample) -> None:
        try:
            table.add_row(
                str(proc.pid),
                proc.user_name[:10],
                str(proc.priority),
                f"{proc.cpu_usage_percent:5.1f}",
                format_bytes(proc.memory_usage_bytes),
                str(proc.thread_count),
                "*" if proc.is_system_process else "",
                proc.name[:20],
                proc.executable_path[:60],
                key=str(proc.pid),
            )
        except DuplicateKey:
            logger.debug("Duplicate pid %d in snapshot", proc.pid)


class SysAnalyzerApp(App):
    """Main sysanalyzer dashboard."""

    TITLE = "sysanalyzer"
    SUB_TITLE = "Host Telemetry & Anomaly Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #usage-info {
        width: 1fr;
        padding-right: 2;
    }

    #host-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("p", "pause", "Pause"),
        ("s", "stats", "Stats"),
        ("c", "clear_display", "Clear"),
        ("ctrl+r", "clear_history", "Reset"),
        ("h", "help", "Help"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        engine: AnalysisEngine,
        config: AnalysisConfig | None = None,
        report: ReportGenerator | None = None,
    ) -> None:
        """Initialize the SysAnalyzerApp."""
        super().__init__()
        self._config = config or AnalysisConfig()
        self._engine = engine
        self._report = report
        self._runner = AnalysisRunner(
            engine,
            report=report,
            interval=self._config.interval_seconds,
            duration_minutes=self._config.duration_minutes,
            on_snapshot=self._update_ui,
        )

    @property
    def runner(self) -> AnalysisRunner:
        return self._runner

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(
            self._config.cpu_threshold, self._config.memory_threshold, id="header-stats"
        )
        yield AnomalyPanel(id="anomaly-panel")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the analysis loop when the app is mounted."""
        self.run_worker(self._run_analysis(), exclusive=True, name="analysis")

    async def _run_analysis(self) -> None:
        await self._runner.run()
        if self._config.duration_minutes > 0:
            # Duration elapsed
            self.exit()

    def _update_ui(self, snapshot: Snapshot, result: AnomalyResult) -> None:
        """Update the UI with a new snapshot."""
        try:
            self.query_one("#header-stats", HeaderStats).update_stats(snapshot, result)
            self.query_one("#anomaly-panel", AnomalyPanel).update_result(result)
            self.query_one(ProcessTable).update_processes(snapshot.processes)
        except Exception:
            logger.debug("Dashboard update failed", exc_info=True)

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_pause(self) -> None:
        paused = self._runner.toggle_pause()
        self.query_one("#header-stats", HeaderStats).set_paused(paused)
        self.notify("Analysis paused" if paused else "Analysis resumed")

    def action_stats(self) -> None:
        stats = self._engine.get_statistics()
        self.notify(
            f"Snapshots: {stats.snapshot_count}  Duration: {format_duration(stats.analysis_duration)}\n"
            f"CPU avg/max/min: {stats.average_cpu_usage:.1f}/{stats.maximum_cpu_usage:.1f}/"
            f"{stats.minimum_cpu_usage:.1f}%\n"
            f"Mem avg/max/min: {stats.average_memory_usage:.1f}/{stats.maximum_memory_usage:.1f}/"
            f"{stats.minimum_memory_usage:.1f}%\n"
            f"Processes: {stats.total_processes}",
            title="Statistics",
            timeout=8,
        )

    def action_clear_display(self) -> None:
        self.clear_notifications()
        self.query_one(AnomalyPanel).update_result(AnomalyResult.clean())

    def action_clear_history(self) -> None:
        count = self._engine.clear_history()
        self.notify(f"Cleared {count} snapshots from history")

    def action_help(self) -> None:
        self.notify(HELP_TEXT, title="Help", timeout=8)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._runner.stop()
        self.exit()
