"""
Metrics collection for locator healing attempts.

Counters, gauges and bounded timer series are kept in memory behind a single
re-entrant lock so that providers running in worker threads can record safely.
"""

import time
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Any
import logging


@dataclass
class MetricPoint:
    """A single metric data point."""
    timestamp: datetime
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class HealingMetrics:
    """Aggregated view of healing activity."""
    total_healing_attempts: int = 0
    validation_failures: int = 0
    empty_results: int = 0
    outcomes_recorded: int = 0
    successful_outcomes: int = 0
    failed_outcomes: int = 0
    avg_healing_time: float = 0.0
    avg_phase_times: Dict[str, float] = field(default_factory=dict)
    failure_kind_counts: Dict[str, int] = field(default_factory=dict)
    provider_failure_counts: Dict[str, int] = field(default_factory=dict)
    persistence_failures: int = 0

    @property
    def outcome_success_rate(self) -> float:
        if self.outcomes_recorded == 0:
            return 0.0
        return self.successful_outcomes / self.outcomes_recorded


class MetricsCollector:
    """Thread-safe metrics collector for healing operations."""

    def __init__(self, max_points: int = 1000):
        """
        Initialize metrics collector.

        Args:
            max_points: Number of timer points retained per metric key
        """
        self._lock = threading.RLock()

        self._counters: Dict[str, int] = defaultdict(int)
        self._gauges: Dict[str, float] = {}
        self._timers: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_points))
        self._operation_timers: Dict[str, float] = {}

        self.logger = logging.getLogger("healing.metrics")

    def increment_counter(self, name: str, value: int = 1, labels: Dict[str, str] = None):
        """Increment a counter metric."""
        with self._lock:
            self._counters[self._make_key(name, labels)] += value

    def set_gauge(self, name: str, value: float, labels: Dict[str, str] = None):
        """Set a gauge metric value."""
        with self._lock:
            self._gauges[self._make_key(name, labels)] = value

    def record_duration(self, name: str, duration: float, labels: Dict[str, str] = None):
        """Record a duration in seconds."""
        with self._lock:
            self._timers[self._make_key(name, labels)].append(MetricPoint(
                timestamp=datetime.now(),
                value=duration,
                labels=labels or {}
            ))

    def start_timer(self, name: str) -> str:
        """Start a timer and return a timer ID."""
        timer_id = f"{name}_{threading.get_ident()}_{time.perf_counter()}"
        with self._lock:
            self._operation_timers[timer_id] = time.perf_counter()
        return timer_id

    def stop_timer(self, timer_id: str, name: str, labels: Dict[str, str] = None) -> Optional[float]:
        """Stop a timer, record the duration and return it."""
        with self._lock:
            start_time = self._operation_timers.pop(timer_id, None)
            if start_time is None:
                return None
            duration = time.perf_counter() - start_time
            self.record_duration(name, duration, labels)
            return duration

    def record_healing_attempt(self, failure_kind: str, duration: float, candidate_count: int):
        """Record a completed healing attempt."""
        with self._lock:
            self.increment_counter("healing_attempts_total")
            self.increment_counter("healing_attempts_by_kind", labels={"failure_kind": failure_kind})
            if candidate_count == 0:
                self.increment_counter("healing_empty_results")
            self.record_duration("healing_total_duration", duration)
            self.set_gauge("last_candidate_count", candidate_count)

    def record_provider_failure(self, provider: str, reason: str):
        """Record a provider that degraded to zero candidates."""
        with self._lock:
            self.increment_counter("provider_failures_total")
            self.increment_counter("provider_failures", labels={"provider": provider})
            self.increment_counter("provider_failure_reasons", labels={"reason": reason})

    def record_outcome(self, strategy: str, success: bool, execution_time: float):
        """Record the outcome of an applied candidate."""
        with self._lock:
            self.increment_counter("outcomes_total")
            self.increment_counter(f"outcome_{'success' if success else 'failure'}_total")
            self.increment_counter(f"outcome_{'success' if success else 'failure'}",
                                   labels={"strategy": strategy})
            self.record_duration("candidate_execution_time", execution_time, {"strategy": strategy})

    def get_counter(self, name: str, labels: Dict[str, str] = None) -> int:
        with self._lock:
            return self._counters.get(self._make_key(name, labels), 0)

    def get_current_metrics(self) -> HealingMetrics:
        """Get current aggregated metrics."""
        with self._lock:
            durations = [p.value for p in self._timers.get("healing_total_duration", [])]

            phase_times: Dict[str, List[float]] = defaultdict(list)
            for key, points in self._timers.items():
                if key.startswith("healing_phase_duration"):
                    for point in points:
                        phase_times[point.labels.get("phase", "unknown")].append(point.value)

            return HealingMetrics(
                total_healing_attempts=self._counters.get("healing_attempts_total", 0),
                validation_failures=self._counters.get("healing_validation_failures", 0),
                empty_results=self._counters.get("healing_empty_results", 0),
                outcomes_recorded=self._counters.get("outcomes_total", 0),
                successful_outcomes=self._counters.get("outcome_success_total", 0),
                failed_outcomes=self._counters.get("outcome_failure_total", 0),
                avg_healing_time=sum(durations) / len(durations) if durations else 0.0,
                avg_phase_times={
                    phase: sum(values) / len(values) for phase, values in sorted(phase_times.items())
                },
                failure_kind_counts=self._labelled_counts("healing_attempts_by_kind", "failure_kind"),
                provider_failure_counts=self._labelled_counts("provider_failures", "provider"),
                persistence_failures=self._counters.get("learning_persistence_failures", 0),
            )

    def snapshot(self) -> Dict[str, Any]:
        """Return the aggregated metrics plus raw counters and gauges."""
        metrics = self.get_current_metrics()
        with self._lock:
            return {
                "timestamp": datetime.now().isoformat(),
                "metrics": {**metrics.__dict__, "outcome_success_rate": metrics.outcome_success_rate},
                "raw_counters": dict(self._counters),
                "raw_gauges": dict(self._gauges),
            }

    def reset(self):
        """Drop all collected metrics."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._timers.clear()
            self._operation_timers.clear()

    def _labelled_counts(self, name: str, label: str) -> Dict[str, int]:
        prefix = f"{name}_{label}:"
        return {
            key[len(prefix):]: count
            for key, count in sorted(self._counters.items())
            if key.startswith(prefix)
        }

    def _make_key(self, name: str, labels: Dict[str, str] = None) -> str:
        """Create a key for metric storage."""
        if not labels:
            return name

        label_str = "_".join(f"{k}:{v}" for k, v in sorted(labels.items()))
        return f"{name}_{label_str}"


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector
