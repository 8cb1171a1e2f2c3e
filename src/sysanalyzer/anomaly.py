"""Rule-based anomaly detection with risk scoring."""

import logging
from collections.abc import Sequence

from sysanalyzer.models import AnomalyResult, RiskLevel, Snapshot

logger = logging.getLogger(__name__)

CRITICAL_USAGE = 95.0
HIGH_USAGE = 80.0
SUSPICIOUS_PROCESS_CPU = 50.0
SUSPICIOUS_PATH_MARKERS = ("temp", "appdata")
MAX_PROCESS_COUNT = 300
MAX_NETWORK_CONNECTIONS = 1000

# Historical spike rules
MIN_HISTORY_FOR_SPIKES = 5  # History must be strictly longer than this
SPIKE_WINDOW = 10
CPU_SPIKE_RATIO = 2.0
CPU_SPIKE_FLOOR = 50.0
MEMORY_SPIKE_RATIO = 1.5
MEMORY_SPIKE_FLOOR = 70.0

# Message prefixes used for risk classification
_CRITICAL_PREFIXES = ("Critical", "Suspicious")
_WARNING_PREFIXES = ("High",)


class AnomalyDetector:
    """
    Stateless evaluator of anomaly rules.

    ``detect`` is a pure function of its arguments: the same snapshot and
    history always produce the same result.
    """

    def detect(self, current: Snapshot, recent_history: Sequence[Snapshot]) -> AnomalyResult:
        """
        Evaluate all rules against a snapshot.

        Args:
            current: Snapshot under analysis.
            recent_history: Snapshots taken before ``current``, oldest first.

        Returns:
            The anomalies found, in rule order, and the aggregate risk level.
        """
        anomalies: list[str] = []
        anomalies.extend(self._usage_anomalies("CPU", current.system_info.cpu_usage_percent))
        anomalies.extend(self._usage_anomalies("memory", current.system_info.memory_usage_percent))
        anomalies.extend(self._process_anomalies(current))
        anomalies.extend(self._network_anomalies(current))
        if len(recent_history) > MIN_HISTORY_FOR_SPIKES:
            anomalies.extend(self._historical_anomalies(current, recent_history))

        risk_level = calculate_risk_level(anomalies, current)
        if anomalies:
            logger.warning(
                "Detected %d anomalies with risk level %s", len(anomalies), risk_level.label
            )

        return AnomalyResult(
            has_anomalies=bool(anomalies),
            anomalies=tuple(anomalies),
            risk_level=risk_level,
        )

    @staticmethod
    def _usage_anomalies(label: str, usage: float) -> list[str]:
        if usage > CRITICAL_USAGE:
            return [f"Critical {label} usage: {usage:.1f}%"]
        if usage > HIGH_USAGE:
            return [f"High {label} usage: {usage:.1f}%"]
        return []

    @staticmethod
    def _process_anomalies(current: Snapshot) -> list[str]:
        anomalies = [
            f"Suspicious process: {proc.name} (PID {proc.pid}, CPU: {proc.cpu_usage_percent:.1f}%)"
            for proc in current.processes
            if not proc.is_system_process
            and proc.cpu_usage_percent > SUSPICIOUS_PROCESS_CPU
            and _is_suspicious_path(proc.executable_path)
        ]
        if current.system_info.process_count > MAX_PROCESS_COUNT:
            anomalies.append(f"Excessive process count: {current.system_info.process_count}")
        return anomalies

    @staticmethod
    def _network_anomalies(current: Snapshot) -> list[str]:
        connections = current.network_info.active_connections
        if connections > MAX_NETWORK_CONNECTIONS:
            return [f"Excessive network connections: {connections}"]
        return []

    @staticmethod
    def _historical_anomalies(current: Snapshot, history: Sequence[Snapshot]) -> list[str]:
        recent = list(history)[-SPIKE_WINDOW:]
        avg_cpu = sum(s.system_info.cpu_usage_percent for s in recent) / len(recent)
        avg_memory = sum(s.system_info.memory_usage_percent for s in recent) / len(recent)

        anomalies = []
        cpu = current.system_info.cpu_usage_percent
        if cpu > avg_cpu * CPU_SPIKE_RATIO and cpu > CPU_SPIKE_FLOOR:
            anomalies.append(f"CPU spike detected: {cpu:.1f}% (avg: {avg_cpu:.1f}%)")

        memory = current.system_info.memory_usage_percent
        if memory > avg_memory * MEMORY_SPIKE_RATIO and memory > MEMORY_SPIKE_FLOOR:
            anomalies.append(f"Memory spike detected: {memory:.1f}% (avg: {avg_memory:.1f}%)")
        return anomalies


def _is_suspicious_path(path: str) -> bool:
    if not path:
        return True
    lowered = path.lower()
    return any(marker in lowered for marker in SUSPICIOUS_PATH_MARKERS)


def calculate_risk_level(anomalies: Sequence[str], current: Snapshot) -> RiskLevel:
    """
    Aggregate anomalies into a risk level.

    Evaluated top-down, first match wins.
    """
    critical_count = sum(1 for a in anomalies if a.startswith(_CRITICAL_PREFIXES))
    warning_count = sum(1 for a in anomalies if a.startswith(_WARNING_PREFIXES))
    info = current.system_info

    if critical_count > 2 or (
        info.cpu_usage_percent > CRITICAL_USAGE and info.memory_usage_percent > CRITICAL_USAGE
    ):
        return RiskLevel.CRITICAL
    if critical_count > 0 or warning_count > 3:
        return RiskLevel.HIGH
    if warning_count > 0 or len(anomalies) > 2:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW
