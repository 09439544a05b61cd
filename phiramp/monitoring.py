"""Performance metrics collection and health monitoring for plugins."""

from __future__ import annotations

import dataclasses
import logging
import queue
import threading
import time
import weakref
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

_U64_MAX = 2**64 - 1
_F32_MAX = 3.4028234663852886e38
_SUBSCRIBER_CAPACITY = 100


def _elapsed_since(instant: float) -> float:
    return time.monotonic() - instant


@dataclass
class PluginMetrics:
    """Live performance figures of one plugin.

    Latencies and durations are given in seconds.
    """

    plugin_name: str
    memory_usage: int = 0
    cpu_usage: float = 0.0
    active_requests: int = 0
    total_requests: int = 0
    avg_latency_ms: float = 0.0
    error_rate: float = 0.0
    timestamp: float = field(default_factory=time.monotonic)
    custom_metrics: dict[str, Any] = field(default_factory=dict)

    def _touch(self) -> None:
        self.timestamp = time.monotonic()

    def _snapshot(self) -> PluginMetrics:
        return dataclasses.replace(self, custom_metrics=dict(self.custom_metrics))

    def update_memory_usage(self, usage: int) -> None:
        self.memory_usage = usage
        self._touch()

    def update_cpu_usage(self, usage: float) -> None:
        self.cpu_usage = usage
        self._touch()

    def start_request(self) -> RequestTracker:
        self.active_requests += 1
        return RequestTracker(self.plugin_name)

    def end_request(self, success: bool, latency: float) -> None:
        """Finish a request that took ``latency`` seconds."""
        if self.active_requests > 0:
            self.active_requests -= 1
        self.total_requests += 1

        latency_ms = float(int(latency * 1000))
        if self.total_requests == 1:
            self.avg_latency_ms = latency_ms
        else:
            self.avg_latency_ms = self.avg_latency_ms * 0.9 + latency_ms * 0.1

        errors = self.total_requests * self.error_rate
        if not success:
            errors += 1.0
        self.error_rate = errors / self.total_requests
        self._touch()

    def add_custom_metric(self, name: str, value: Any) -> None:
        self.custom_metrics[name] = value
        self._touch()

    def to_json(self) -> dict[str, Any]:
        return {
            "plugin_name": self.plugin_name,
            "memory_usage": self.memory_usage,
            "cpu_usage": self.cpu_usage,
            "active_requests": self.active_requests,
            "total_requests": self.total_requests,
            "avg_latency_ms": self.avg_latency_ms,
            "error_rate": self.error_rate,
            "timestamp": int(_elapsed_since(self.timestamp) * 1000),
            "custom_metrics": dict(self.custom_metrics),
        }

    def is_stale(self, threshold: float) -> bool:
        """True when the metrics are older than ``threshold`` seconds."""
        return _elapsed_since(self.timestamp) > threshold


class RequestTracker:
    """Measures the duration of a single request."""

    def __init__(self, plugin_name: str) -> None:
        self.plugin_name = plugin_name
        self._start = time.monotonic()

    def elapsed(self) -> float:
        """Seconds since the request started."""
        return _elapsed_since(self._start)


@dataclass
class MetricsCollectorStats:
    tracked_plugins: int
    history_size: int
    max_history_size: int
    subscribers: int


@dataclass
class AggregatedMetrics:
    """Metrics of one plugin aggregated over history snapshots."""

    plugin_name: str
    min_memory: int = _U64_MAX
    max_memory: int = 0
    avg_memory: float = 0.0
    min_cpu: float = _F32_MAX
    max_cpu: float = 0.0
    avg_cpu: float = 0.0
    total_requests: int = 0
    error_rate: float = 0.0
    avg_latency: float = 0.0
    samples: int = 0

    def add_sample(self, metrics: PluginMetrics) -> None:
        self.min_memory = min(self.min_memory, metrics.memory_usage)
        self.max_memory = max(self.max_memory, metrics.memory_usage)
        self.min_cpu = min(self.min_cpu, metrics.cpu_usage)
        self.max_cpu = max(self.max_cpu, metrics.cpu_usage)

        total_memory = self.avg_memory * self.samples + metrics.memory_usage
        total_cpu = self.avg_cpu * self.samples + metrics.cpu_usage
        self.samples += 1
        self.avg_memory = total_memory / self.samples
        self.avg_cpu = total_cpu / self.samples

        self.total_requests += metrics.total_requests
        self.error_rate = metrics.error_rate
        self.avg_latency = metrics.avg_latency_ms

    def to_json(self) -> dict[str, Any]:
        return {
            "plugin_name": self.plugin_name,
            "memory_usage": {
                "min": self.min_memory,
                "max": self.max_memory,
                "avg": self.avg_memory,
            },
            "cpu_usage": {
                "min": self.min_cpu,
                "max": self.max_cpu,
                "avg": self.avg_cpu,
            },
            "total_requests": self.total_requests,
            "error_rate": self.error_rate,
            "avg_latency": self.avg_latency,
            "samples": self.samples,
        }


class MetricsCollector:
    """Tracks metrics of registered plugins and keeps a bounded history."""

    def __init__(self, max_history_size: int, aggregation_interval: float) -> None:
        self._lock = threading.RLock()
        self._metrics: dict[str, PluginMetrics] = {}
        self._history: deque[dict[str, PluginMetrics]] = deque(maxlen=max_history_size)
        self.max_history_size = max_history_size
        self.aggregation_interval = aggregation_interval
        self._last_aggregation = time.monotonic()
        self._subscribers: list[weakref.ref[queue.Queue[PluginMetrics]]] = []

    def register_plugin(self, plugin_name: str) -> PluginMetrics:
        """Start tracking a plugin and return its live metrics object."""
        metrics = PluginMetrics(plugin_name)
        with self._lock:
            self._metrics[plugin_name] = metrics
        logger.debug("Registered plugin for metrics collection: %s", plugin_name)
        return metrics

    def unregister_plugin(self, plugin_name: str) -> None:
        with self._lock:
            self._metrics.pop(plugin_name, None)
        logger.debug("Unregistered plugin from metrics collection: %s", plugin_name)

    def get_plugin_metrics(self, plugin_name: str) -> PluginMetrics | None:
        """Return a snapshot of a plugin's metrics, or None if untracked."""
        with self._lock:
            metrics = self._metrics.get(plugin_name)
            return metrics._snapshot() if metrics is not None else None

    def get_all_metrics(self) -> dict[str, PluginMetrics]:
        with self._lock:
            return {name: m._snapshot() for name, m in self._metrics.items()}

    def start_request(self, plugin_name: str) -> RequestTracker | None:
        with self._lock:
            metrics = self._metrics.get(plugin_name)
            return metrics.start_request() if metrics is not None else None

    def end_request(self, plugin_name: str, success: bool, latency: float) -> None:
        with self._lock:
            metrics = self._metrics.get(plugin_name)
            if metrics is not None:
                metrics.end_request(success, latency)

    def update_memory_usage(self, plugin_name: str, usage: int) -> None:
        with self._lock:
            metrics = self._metrics.get(plugin_name)
            if metrics is not None:
                metrics.update_memory_usage(usage)

    def update_cpu_usage(self, plugin_name: str, usage: float) -> None:
        with self._lock:
            metrics = self._metrics.get(plugin_name)
            if metrics is not None:
                metrics.update_cpu_usage(usage)

    def add_custom_metric(self, plugin_name: str, name: str, value: Any) -> None:
        with self._lock:
            metrics = self._metrics.get(plugin_name)
            if metrics is not None:
                metrics.add_custom_metric(name, value)

    def collect_metrics(self) -> None:
        """Record a snapshot if the aggregation interval has passed."""
        with self._lock:
            now = time.monotonic()
            if now - self._last_aggregation < self.aggregation_interval:
                return
            self._last_aggregation = now
            self._history.append(self.get_all_metrics())
            self._notify_subscribers()
            logger.debug(
                "Collected metrics snapshot (history size: %d)", len(self._history)
            )

    def get_history(self) -> list[dict[str, PluginMetrics]]:
        with self._lock:
            return [dict(snapshot) for snapshot in self._history]

    def get_aggregated_metrics(self, window: float) -> dict[str, AggregatedMetrics]:
        """Aggregate every snapshot in the history; ``window`` is not applied."""
        aggregated: dict[str, AggregatedMetrics] = {}
        with self._lock:
            for snapshot in reversed(self._history):
                for name, metrics in snapshot.items():
                    aggregated.setdefault(name, AggregatedMetrics(name)).add_sample(metrics)
        return aggregated

    def subscribe(self) -> queue.Queue[PluginMetrics]:
        """Return a bounded queue that receives metrics on every collection.

        The subscription ends when the queue is garbage collected.
        """
        receiver: queue.Queue[PluginMetrics] = queue.Queue(maxsize=_SUBSCRIBER_CAPACITY)
        with self._lock:
            self._subscribers.append(weakref.ref(receiver))
        return receiver

    def _notify_subscribers(self) -> None:
        metrics = self.get_all_metrics()
        self._subscribers = [ref for ref in self._subscribers if ref() is not None]
        for metric in metrics.values():
            for ref in self._subscribers:
                receiver = ref()
                if receiver is None:
                    continue
                try:
                    receiver.put_nowait(metric._snapshot())
                except queue.Full:
                    pass

    def stats(self) -> MetricsCollectorStats:
        with self._lock:
            return MetricsCollectorStats(
                tracked_plugins=len(self._metrics),
                history_size=len(self._history),
                max_history_size=self.max_history_size,
                subscribers=len(self._subscribers),
            )


@dataclass
class HealthThresholds:
    warning_memory: int = 128 * 1024 * 1024
    critical_memory: int = 256 * 1024 * 1024
    warning_cpu: float = 80.0
    critical_cpu: float = 95.0
    warning_error_rate: float = 0.05
    critical_error_rate: float = 0.2
    warning_latency_ms: float = 1000.0
    critical_latency_ms: float = 5000.0


class HealthStatus(Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

    @classmethod
    def from_metrics(
        cls, metrics: PluginMetrics, thresholds: HealthThresholds
    ) -> HealthStatus:
        checks = (
            (metrics.memory_usage, thresholds.warning_memory, thresholds.critical_memory),
            (metrics.cpu_usage, thresholds.warning_cpu, thresholds.critical_cpu),
            (metrics.error_rate, thresholds.warning_error_rate, thresholds.critical_error_rate),
            (metrics.avg_latency_ms, thresholds.warning_latency_ms, thresholds.critical_latency_ms),
        )
        status = cls.HEALTHY
        for value, warning, critical in checks:
            if value > critical:
                return cls.CRITICAL
            if value > warning:
                status = cls.WARNING
        return status

    def __str__(self) -> str:
        return self.value


@dataclass
class HealthMonitorStats:
    total_plugins: int
    healthy: int
    warning: int
    critical: int
    unknown: int
    history_size: int


class HealthMonitor:
    """Classifies plugin health from collected metrics."""

    def __init__(
        self,
        thresholds: HealthThresholds,
        metrics_collector: MetricsCollector,
        max_status_history: int,
    ) -> None:
        self.thresholds = thresholds
        self.metrics_collector = metrics_collector
        self.max_status_history = max_status_history
        self._lock = threading.Lock()
        self._history: deque[dict[str, HealthStatus]] = deque(maxlen=max_status_history)

    def check_health(self) -> dict[str, HealthStatus]:
        statuses = {
            name: HealthStatus.from_metrics(metrics, self.thresholds)
            for name, metrics in self.metrics_collector.get_all_metrics().items()
        }
        with self._lock:
            self._history.append(dict(statuses))
        return statuses

    def get_plugin_health(self, plugin_name: str) -> HealthStatus:
        metrics = self.metrics_collector.get_plugin_metrics(plugin_name)
        if metrics is None:
            return HealthStatus.UNKNOWN
        return HealthStatus.from_metrics(metrics, self.thresholds)

    def get_health_history(self) -> list[dict[str, HealthStatus]]:
        with self._lock:
            return [dict(entry) for entry in self._history]

    def get_critical_plugins(self) -> list[str]:
        return [
            name
            for name, status in self.check_health().items()
            if status is HealthStatus.CRITICAL
        ]

    def stats(self) -> HealthMonitorStats:
        statuses = self.check_health()
        counts = {status: 0 for status in HealthStatus}
        for status in statuses.values():
            counts[status] += 1
        with self._lock:
            history_size = len(self._history)
        return HealthMonitorStats(
            total_plugins=len(statuses),
            healthy=counts[HealthStatus.HEALTHY],
            warning=counts[HealthStatus.WARNING],
            critical=counts[HealthStatus.CRITICAL],
            unknown=counts[HealthStatus.UNKNOWN],
            history_size=history_size,
        )