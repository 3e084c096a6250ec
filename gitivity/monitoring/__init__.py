from gitivity.monitoring.error_tracker import ErrorReport, ErrorTracker, error_tracker
from gitivity.monitoring.metrics import MetricsCollector, OperationMetrics, metrics

__all__ = [
    "ErrorReport",
    "ErrorTracker",
    "MetricsCollector",
    "OperationMetrics",
    "error_tracker",
    "metrics",
]
