"""Concurrent snapshot collection."""

import asyncio
import dataclasses
import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TypeVar

from sysanalyzer.cpu_tracker import ProcessCpuTracker
from sysanalyzer.errors import CollectionError
from sysanalyzer.models import NetworkInfo, ProcessSample, Snapshot, SystemInfo
from sysanalyzer.sources import (
    ACCESS_DENIED,
    MetricsSource,
    NetworkProbe,
    ProcessEnumerator,
    ProcessHandle,
)
from sysanalyzer.units import clamp_percent

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connections kept per snapshot; active_connections still counts all of them
MAX_CONNECTIONS = 100

SYSTEM_PROCESS_NAMES = frozenset(
    name.lower()
    for name in (
        # Windows
        "System", "Idle", "System Idle Process", "Registry", "smss", "csrss",
        "wininit", "winlogon", "services", "lsass", "svchost", "dwm",
        "explorer", "spoolsv", "audiodg",
        # Linux
        "systemd", "init", "kthreadd", "systemd-journald", "systemd-udevd",
        "systemd-logind", "dbus-daemon", "udevd",
        # macOS
        "launchd", "kernel_task", "WindowServer", "logd", "configd",
    )
)


def is_system_process(name: str, pid: int) -> bool:
    """Return True for well-known operating system processes."""
    return pid in (0, 1) or name.lower() in SYSTEM_PROCESS_NAMES


class SnapshotCollector:
    """
    Collects system info, processes and network info into one Snapshot.

    The three collections run concurrently in worker threads and are joined
    before the snapshot is assembled. Process enumeration failures abort the
    snapshot; network failures degrade to an empty NetworkInfo.
    """

    def __init__(
        self,
        metrics: MetricsSource,
        processes: ProcessEnumerator,
        network: NetworkProbe | None = None,
        tracker: ProcessCpuTracker | None = None,
        clock: Callable[[], float] = time.monotonic,
        max_connections: int = MAX_CONNECTIONS,
    ) -> None:
        """
        Initialize the SnapshotCollector.

        Args:
            metrics: Source of host-wide CPU, memory and disk readings.
            processes: Source of the running process list.
            network: Source of network counters. None disables network
                collection (snapshots carry an empty NetworkInfo).
            tracker: CPU delta tracker; a fresh one is created if omitted.
            clock: Monotonic clock used for CPU deltas.
            max_connections: Connections kept per snapshot.
        """
        if metrics is None:
            raise ValueError("metrics source is required")
        if processes is None:
            raise ValueError("process enumerator is required")
        self._metrics = metrics
        self._processes = processes
        self._network = network
        self._tracker = tracker if tracker is not None else ProcessCpuTracker()
        self._clock = clock
        self._max_connections = max_connections
        self._last_good: dict[str, object] = {}
        self._last_good_lock = threading.Lock()

    @property
    def tracker(self) -> ProcessCpuTracker:
        return self._tracker

    async def collect(self) -> Snapshot:
        """
        Collect one snapshot.

        Raises:
            CollectionError: If the process list could not be enumerated.
        """
        system_info, processes, network_info = await asyncio.gather(
            asyncio.to_thread(self.collect_system_info),
            asyncio.to_thread(self.collect_processes),
            self._collect_network_safe(),
        )
        system_info = dataclasses.replace(system_info, process_count=len(processes))
        return Snapshot(
            timestamp=datetime.now(),
            system_info=system_info,
            processes=tuple(processes),
            network_info=network_info,
        )

    def collect_system_info(self) -> SystemInfo:
        """Read host-wide metrics, falling back to last known values on failure."""
        cpu = self._read_metric("cpu", self._metrics.cpu_percent, 0.0)
        memory = self._read_metric("memory", self._metrics.memory_percent, 0.0)
        disk = self._read_metric("disk", self._metrics.disk_percent, 0.0)
        total, available = self._read_metric("memory_bytes", self._metrics.memory_bytes, (0, 0))
        uptime = self._read_metric("uptime", self._metrics.uptime, timedelta(0))

        return SystemInfo(
            cpu_usage_percent=clamp_percent(cpu),
            memory_usage_percent=clamp_percent(memory),
            total_memory_bytes=int(total),
            available_memory_bytes=int(available),
            disk_usage_percent=clamp_percent(disk),
            process_count=0,  # Filled in from the process list on assembly
            system_uptime=uptime,
        )

    def collect_processes(self) -> list[ProcessSample]:
        """
        Sample every running process, sorted by CPU then memory, descending.

        Processes that exit mid-read are skipped. CPU baselines for pids no
        longer enumerated are pruned once all reads are done.

        Raises:
            CollectionError: If the process list could not be enumerated.
        """
        try:
            handles = list(self._processes.list_processes())
        except Exception as exc:
            raise CollectionError("Process enumeration failed") from exc

        samples: list[ProcessSample] = []
        denied = 0
        for handle in handles:
            sample = self._sample_process(handle)
            if sample is None:
                continue
            if sample.executable_path == "Access Denied":
                denied += 1
            samples.append(sample)

        removed = self._tracker.prune(handle.pid for handle in handles)

        samples.sort(key=lambda p: (p.cpu_usage_percent, p.memory_usage_bytes), reverse=True)
        logger.debug(
            "Collected %d processes (%d with restricted access, %d stale baselines pruned)",
            len(samples),
            denied,
            removed,
        )
        return samples

    def collect_network_info(self) -> NetworkInfo:
        if self._network is None:
            return NetworkInfo()
        sent, received = self._network.io_counters()
        connections = self._network.connections()
        return NetworkInfo(
            total_bytes_sent=int(sent),
            total_bytes_received=int(received),
            active_connections=len(connections),
            connections=tuple(connections[: self._max_connections]),
        )

    async def _collect_network_safe(self) -> NetworkInfo:
        if self._network is None:
            return NetworkInfo()
        try:
            return await asyncio.to_thread(self.collect_network_info)
        except Exception:
            logger.warning("Network collection failed, using empty network info", exc_info=True)
            return NetworkInfo()

    def _sample_process(self, handle: ProcessHandle) -> ProcessSample | None:
        with handle.oneshot():
            name = handle.name()
            path = handle.executable_path()
            cpu_time = handle.cpu_time()
            measured_at = self._clock()
            memory = handle.memory_bytes()
            threads = handle.thread_count()
            started = handle.start_time()
            priority = handle.priority()
            user = handle.user_name()

        readings = (name, path, cpu_time, memory, threads, started, priority, user)
        if any(reading.gone for reading in readings):
            self._tracker.forget(handle.pid)
            return None

        if cpu_time.reason == ACCESS_DENIED:
            logger.debug("CPU time of pid %d is not readable", handle.pid)

        return ProcessSample(
            pid=handle.pid,
            name=name.value,
            executable_path=path.value,
            cpu_usage_percent=self._tracker.compute(handle.pid, cpu_time.value, measured_at),
            memory_usage_bytes=memory.value,
            thread_count=threads.value,
            start_time=started.value,
            priority=priority.value,
            user_name=user.value,
            is_system_process=is_system_process(name.value, handle.pid),
        )

    def _read_metric(self, key: str, reader: Callable[[], T], initial: T) -> T:
        try:
            value = reader()
        except Exception:
            with self._last_good_lock:
                fallback = self._last_good.get(key, initial)
            logger.warning("Could not read %s, using last known value %r", key, fallback, exc_info=True)
            return fallback

        with self._last_good_lock:
            self._last_good[key] = value
        return value
