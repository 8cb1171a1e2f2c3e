"""Data models for sysanalyzer."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from functools import total_ordering


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Immutable sample of a single process, valid for one snapshot only."""

    pid: int
    name: str
    executable_path: str  # May be "Unknown" or "Access Denied"
    cpu_usage_percent: float  # 0.0 - 100.0, one decimal
    memory_usage_bytes: int  # Resident set size
    thread_count: int
    start_time: float  # Epoch seconds, 0.0 when unknown
    priority: int
    user_name: str
    is_system_process: bool


@dataclass(slots=True, frozen=True)
class SystemInfo:
    """Host-wide resource readings."""

    cpu_usage_percent: float
    memory_usage_percent: float
    total_memory_bytes: int
    available_memory_bytes: int
    disk_usage_percent: float
    process_count: int
    system_uptime: timedelta


@dataclass(slots=True, frozen=True)
class NetworkConnection:
    """A single active connection."""

    local_endpoint: str
    remote_endpoint: str
    protocol: str
    state: str
    pid: int | None = None


@dataclass(slots=True, frozen=True)
class NetworkInfo:
    """Aggregate network counters plus a bounded connection list.

    The all-zero default instance stands for "network data unavailable".
    """

    total_bytes_sent: int = 0
    total_bytes_received: int = 0
    active_connections: int = 0
    connections: tuple[NetworkConnection, ...] = ()


@dataclass(slots=True, frozen=True)
class Snapshot:
    """One atomic capture of system, process and network state.

    ``processes`` is ordered by CPU descending, then memory descending.
    """

    timestamp: datetime
    system_info: SystemInfo
    processes: tuple[ProcessSample, ...]
    network_info: NetworkInfo = field(default_factory=NetworkInfo)


@total_ordering
class RiskLevel(Enum):
    """Ordinal severity of a set of anomalies."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    def __lt__(self, other: "RiskLevel") -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.value < other.value

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(slots=True, frozen=True)
class AnomalyResult:
    """Outcome of one anomaly detection pass."""

    has_anomalies: bool
    anomalies: tuple[str, ...]
    risk_level: RiskLevel

    @classmethod
    def clean(cls) -> "AnomalyResult":
        return cls(has_anomalies=False, anomalies=(), risk_level=RiskLevel.LOW)


@dataclass(slots=True, frozen=True)
class Statistics:
    """Summary of the analysis history."""

    snapshot_count: int
    analysis_duration: timedelta
    average_cpu_usage: float
    maximum_cpu_usage: float
    minimum_cpu_usage: float
    average_memory_usage: float
    maximum_memory_usage: float
    minimum_memory_usage: float
    total_processes: int

    @classmethod
    def empty(cls) -> "Statistics":
        """Return the all-zero record used when no snapshots exist."""
        return cls(
            snapshot_count=0,
            analysis_duration=timedelta(0),
            average_cpu_usage=0.0,
            maximum_cpu_usage=0.0,
            minimum_cpu_usage=0.0,
            average_memory_usage=0.0,
            maximum_memory_usage=0.0,
            minimum_memory_usage=0.0,
            total_processes=0,
        )
