"""Summary statistics over the snapshot history."""

from collections.abc import Sequence

from sysanalyzer.models import Snapshot, Statistics


def compute_statistics(history: Sequence[Snapshot]) -> Statistics:
    """
    Compute min/avg/max CPU and memory usage over ``history``.

    An empty history yields the all-zero record. ``total_processes`` is the
    process count of the last snapshot only.
    """
    if not history:
        return Statistics.empty()

    cpu_values = [s.system_info.cpu_usage_percent for s in history]
    memory_values = [s.system_info.memory_usage_percent for s in history]
    first = history[0]
    last = history[-1]

    return Statistics(
        snapshot_count=len(history),
        analysis_duration=last.timestamp - first.timestamp,
        average_cpu_usage=sum(cpu_values) / len(cpu_values),
        maximum_cpu_usage=max(cpu_values),
        minimum_cpu_usage=min(cpu_values),
        average_memory_usage=sum(memory_values) / len(memory_values),
        maximum_memory_usage=max(memory_values),
        minimum_memory_usage=min(memory_values),
        total_processes=len(last.processes),
    )
