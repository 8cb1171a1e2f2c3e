"""Host metric sources backed by psutil.

The collector only talks to the three capability protocols defined here,
so tests (and other platforms) can swap in their own implementations.
"""

import logging
import os
import time
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import timedelta
from typing import Generic, Protocol, TypeVar

import psutil

from sysanalyzer.models import NetworkConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Reasons attached to a defaulted Reading
ACCESS_DENIED = "access-denied"
GONE = "gone"
ZOMBIE = "zombie"
UNAVAILABLE = "unavailable"


@dataclass(slots=True, frozen=True)
class Reading(Generic[T]):
    """Value of one process accessor, or the default that replaced it."""

    value: T
    reason: str | None = None

    @property
    def ok(self) -> bool:
        """True when the value was actually read."""
        return self.reason is None

    @property
    def gone(self) -> bool:
        """True when the process exited while being read."""
        return self.reason == GONE


def read(accessor: Callable[[], T], default: T, denied: T | None = None) -> Reading[T]:
    """
    Evaluate a psutil accessor and fold its failure modes into a Reading.

    Args:
        accessor: Zero-argument callable, typically a bound psutil.Process method.
        default: Value substituted when the accessor fails.
        denied: Value substituted on AccessDenied, if different from ``default``.
    """
    try:
        return Reading(accessor())
    except psutil.ZombieProcess:
        return Reading(default, ZOMBIE)
    except psutil.NoSuchProcess:
        return Reading(default, GONE)
    except psutil.AccessDenied:
        return Reading(default if denied is None else denied, ACCESS_DENIED)
    except (psutil.Error, OSError):
        return Reading(default, UNAVAILABLE)


class MetricsSource(Protocol):
    """Host-wide resource readings. Every method may raise independently."""

    def cpu_percent(self) -> float: ...

    def memory_percent(self) -> float: ...

    def disk_percent(self) -> float: ...

    def memory_bytes(self) -> tuple[int, int]: ...

    def uptime(self) -> timedelta: ...


class ProcessHandle(Protocol):
    """A live process whose attributes are read one by one."""

    pid: int

    def oneshot(self) -> AbstractContextManager: ...

    def name(self) -> Reading[str]: ...

    def executable_path(self) -> Reading[str]: ...

    def cpu_time(self) -> Reading[float | None]: ...

    def memory_bytes(self) -> Reading[int]: ...

    def thread_count(self) -> Reading[int]: ...

    def start_time(self) -> Reading[float]: ...

    def priority(self) -> Reading[int]: ...

    def user_name(self) -> Reading[str]: ...


class ProcessEnumerator(Protocol):
    """Lists the processes currently running on the host."""

    def list_processes(self) -> list[ProcessHandle]: ...


class NetworkProbe(Protocol):
    """Aggregate traffic counters and active connections."""

    def io_counters(self) -> tuple[int, int]: ...

    def connections(self) -> list[NetworkConnection]: ...


def _default_disk_path() -> str:
    return os.path.abspath(os.sep)


class PsutilMetricsSource:
    """MetricsSource reading host counters through psutil."""

    def __init__(self, disk_path: str | None = None) -> None:
        """
        Initialize the source.

        Args:
            disk_path: Mount point whose usage is reported. Defaults to the
                filesystem root.
        """
        self._disk_path = disk_path or _default_disk_path()
        # Initialize CPU percent (first call returns 0.0)
        psutil.cpu_percent(interval=None)

    @property
    def disk_path(self) -> str:
        return self._disk_path

    def cpu_percent(self) -> float:
        # Non-blocking, uses the interval since the previous call
        return psutil.cpu_percent(interval=None)

    def memory_percent(self) -> float:
        return psutil.virtual_memory().percent

    def disk_percent(self) -> float:
        return psutil.disk_usage(self._disk_path).percent

    def memory_bytes(self) -> tuple[int, int]:
        mem = psutil.virtual_memory()
        return mem.total, mem.available

    def uptime(self) -> timedelta:
        return timedelta(seconds=max(time.time() - psutil.boot_time(), 0.0))


class PsutilProcessHandle:
    """ProcessHandle wrapping a psutil.Process."""

    __slots__ = ("_proc", "pid")

    def __init__(self, proc: psutil.Process) -> None:
        self._proc = proc
        self.pid = proc.pid

    def oneshot(self) -> AbstractContextManager:
        return self._proc.oneshot()

    def name(self) -> Reading[str]:
        reading = read(self._proc.name, "Unknown")
        if reading.ok and not reading.value:
            return Reading("Unknown", UNAVAILABLE)
        return reading

    def executable_path(self) -> Reading[str]:
        # Kernel threads report an empty path; that is kept as-is
        return read(self._proc.exe, "Unknown", denied="Access Denied")

    def cpu_time(self) -> Reading[float | None]:
        def total() -> float:
            times = self._proc.cpu_times()
            return times.user + times.system

        return read(total, None)

    def memory_bytes(self) -> Reading[int]:
        return read(lambda: self._proc.memory_info().rss, 0)

    def thread_count(self) -> Reading[int]:
        return read(self._proc.num_threads, 0)

    def start_time(self) -> Reading[float]:
        return read(self._proc.create_time, 0.0)

    def priority(self) -> Reading[int]:
        return read(lambda: int(self._proc.nice()), 0)

    def user_name(self) -> Reading[str]:
        return read(self._proc.username, "Unknown")


class PsutilProcessEnumerator:
    """ProcessEnumerator backed by psutil.process_iter()."""

    def list_processes(self) -> list[PsutilProcessHandle]:
        return [PsutilProcessHandle(proc) for proc in psutil.process_iter()]


def _is_loopback(nic: str) -> bool:
    lowered = nic.lower()
    return lowered.startswith("lo") or "loopback" in lowered


def _format_address(addr) -> str:
    if not addr:
        return ""
    ip, port = addr
    if ":" in ip:
        return f"[{ip}]:{port}"
    return f"{ip}:{port}"


class PsutilNetworkProbe:
    """NetworkProbe backed by psutil network counters."""

    _IGNORED_STATES = (psutil.CONN_LISTEN, psutil.CONN_NONE)

    def io_counters(self) -> tuple[int, int]:
        sent = 0
        received = 0
        for nic, counters in psutil.net_io_counters(pernic=True).items():
            if _is_loopback(nic):
                continue
            sent += counters.bytes_sent
            received += counters.bytes_recv
        return sent, received

    def connections(self) -> list[NetworkConnection]:
        result: list[NetworkConnection] = []
        for conn in psutil.net_connections(kind="tcp"):
            if conn.status in self._IGNORED_STATES:
                continue
            result.append(
                NetworkConnection(
                    local_endpoint=_format_address(conn.laddr),
                    remote_endpoint=_format_address(conn.raddr),
                    protocol="TCP",
                    state=conn.status,
                    pid=conn.pid,
                )
            )
        logger.debug("Found %d active TCP connections", len(result))
        return result
