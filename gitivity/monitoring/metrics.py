import math
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from gitivity.core.constants import (
    CUSTOM_METRIC_RETENTION_SECONDS,
    METRIC_TIMINGS_HISTORY,
    SLOW_OPERATION_MS,
)

logger = structlog.get_logger()


def percentile(values: list[float], pct: float) -> float:
    """Nearest-rank percentile; 0 for no samples."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = math.ceil(pct / 100 * len(ordered)) - 1
    return ordered[max(0, index)]


def metric_key(name: str, labels: dict[str, str] | None) -> str:
    if not labels:
        return name
    rendered = ",".join(f"{key}={value}" for key, value in sorted(labels.items()))
    return f"{name}{{{rendered}}}"


@dataclass
class OperationMetrics:
    name: str
    labels: dict[str, str] = field(default_factory=dict)
    count: int = 0
    error_count: int = 0
    total_time_ms: float = 0.0
    min_time_ms: float = math.inf
    max_time_ms: float = 0.0
    last_executed: datetime | None = None
    timings: deque[float] = field(default_factory=lambda: deque(maxlen=METRIC_TIMINGS_HISTORY))

    @property
    def avg_time_ms(self) -> float:
        return self.total_time_ms / self.count if self.count else 0.0

    @property
    def p95_time_ms(self) -> float:
        return percentile(list(self.timings), 95)

    @property
    def success_rate(self) -> float:
        if not self.count:
            return 100.0
        return (self.count - self.error_count) / self.count * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "labels": self.labels,
            "count": self.count,
            "error_count": self.error_count,
            "success_rate": round(self.success_rate, 2),
            "avg_time_ms": round(self.avg_time_ms, 2),
            "min_time_ms": round(self.min_time_ms, 2) if self.count else 0.0,
            "max_time_ms": round(self.max_time_ms, 2),
            "p95_time_ms": round(self.p95_time_ms, 2),
            "last_executed": self.last_executed.isoformat() if self.last_executed else None,
        }


@dataclass
class CustomMetric:
    name: str
    value: float
    unit: str
    timestamp: datetime
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "timestamp": self.timestamp.isoformat(),
            "labels": self.labels,
        }


class MetricsCollector:
    """In-process timings per operation plus short-lived custom gauges.

    Timings are kept per ``(name, labels)`` pair with the last 100 samples
    for the p95. Custom metrics are retained for one hour.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._timer = timer
        self._operations: dict[str, OperationMetrics] = {}
        self._custom: list[CustomMetric] = []
        self._started_at = self._clock()

    def record_timing(
        self,
        name: str,
        duration_ms: float,
        success: bool = True,
        labels: dict[str, str] | None = None,
    ) -> None:
        key = metric_key(name, labels)
        metric = self._operations.get(key)
        if metric is None:
            metric = OperationMetrics(name=name, labels=dict(labels or {}))
            self._operations[key] = metric

        metric.count += 1
        metric.total_time_ms += duration_ms
        metric.min_time_ms = min(metric.min_time_ms, duration_ms)
        metric.max_time_ms = max(metric.max_time_ms, duration_ms)
        metric.last_executed = self._clock()
        metric.timings.append(duration_ms)
        if not success:
            metric.error_count += 1

        if duration_ms > SLOW_OPERATION_MS:
            logger.warning(
                "Slow operation detected",
                operation=name,
                duration_ms=round(duration_ms, 1),
                **(labels or {}),
            )

    @contextmanager
    def timed(self, name: str, labels: dict[str, str] | None = None) -> Iterator[None]:
        """Time the enclosed block; an exception counts as a failure and propagates."""
        started = self._timer()
        success = True
        try:
            yield
        except Exception:
            success = False
            raise
        finally:
            self.record_timing(name, (self._timer() - started) * 1000, success, labels)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str,
        labels: dict[str, str] | None = None,
    ) -> None:
        now = self._clock()
        self._custom.append(
            CustomMetric(name=name, value=value, unit=unit, timestamp=now, labels=dict(labels or {}))
        )
        cutoff = now - timedelta(seconds=CUSTOM_METRIC_RETENTION_SECONDS)
        self._custom = [metric for metric in self._custom if metric.timestamp > cutoff]

    def record_rate_limit(self, remaining: int, reset_at: datetime) -> None:
        labels = {"source": "github-api"}
        self.record_metric("github_rate_limit_remaining", remaining, "count", labels)
        seconds_until_reset = max(0.0, (reset_at - self._clock()).total_seconds())
        self.record_metric("github_rate_limit_reset_seconds", seconds_until_reset, "seconds", labels)

    def get_operation_metrics(self, name: str | None = None) -> list[OperationMetrics]:
        operations = list(self._operations.values())
        if name:
            return [metric for metric in operations if metric.name == name]
        return sorted(operations, key=lambda metric: metric.count, reverse=True)

    def get_slowest_operations(self, limit: int = 10) -> list[OperationMetrics]:
        return sorted(self._operations.values(), key=lambda m: m.avg_time_ms, reverse=True)[:limit]

    def get_high_error_operations(self, limit: int = 10) -> list[OperationMetrics]:
        failing = [metric for metric in self._operations.values() if metric.error_count]
        return sorted(failing, key=lambda m: m.error_count, reverse=True)[:limit]

    def get_system_health(self) -> dict[str, float]:
        uptime = (self._clock() - self._started_at).total_seconds()
        total = sum(metric.count for metric in self._operations.values())
        total_time = sum(metric.total_time_ms for metric in self._operations.values())
        errors = sum(metric.error_count for metric in self._operations.values())
        return {
            "uptime_seconds": round(uptime, 1),
            "total_operations": total,
            "avg_response_time_ms": round(total_time / total, 2) if total else 0.0,
            "error_rate": round(errors / total * 100, 2) if total else 0.0,
            "operations_per_second": round(total / uptime, 4) if uptime > 0 else 0.0,
        }

    def export(self) -> dict[str, Any]:
        return {
            "operations": [metric.to_dict() for metric in self.get_operation_metrics()],
            "custom": [metric.to_dict() for metric in self._custom],
            "system": self.get_system_health(),
        }

    def reset(self) -> None:
        self._operations.clear()
        self._custom = []
        self._started_at = self._clock()
        logger.info("Metrics reset")


metrics = MetricsCollector()
