import asyncio
import hashlib
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from gitivity.core.constants import ERROR_RETENTION_HOURS

logger = structlog.get_logger()


def error_fingerprint(error: BaseException, operation: str | None, component: str | None) -> str:
    """Stable id for "the same error": type, message and where it happened."""
    parts = [type(error).__name__, str(error), operation or "", component or ""]
    return hashlib.sha1("|".join(parts).encode()).hexdigest()[:12]


@dataclass
class ErrorReport:
    id: str
    fingerprint: str
    name: str
    message: str
    first_seen: datetime
    last_seen: datetime
    count: int = 1
    stack: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fingerprint": self.fingerprint,
            "name": self.name,
            "message": self.message,
            "count": self.count,
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
            "stack": self.stack,
            "context": self.context,
        }


class ErrorTracker:
    """Aggregates errors by fingerprint so repeats bump a counter."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._reports: dict[str, ErrorReport] = {}

    def track(
        self,
        error: BaseException,
        operation: str | None = None,
        component: str | None = None,
        **context: Any,
    ) -> ErrorReport:
        now = self._clock()
        fingerprint = error_fingerprint(error, operation, component)
        context = {"operation": operation, "component": component, **context}

        report = self._reports.get(fingerprint)
        if report is None:
            stack = None
            if error.__traceback__ is not None:
                stack = "".join(traceback.format_exception(error))
            report = ErrorReport(
                id=f"{fingerprint}_{int(now.timestamp() * 1000)}",
                fingerprint=fingerprint,
                name=type(error).__name__,
                message=str(error),
                first_seen=now,
                last_seen=now,
                stack=stack,
                context=context,
            )
            self._reports[fingerprint] = report
        else:
            report.count += 1
            report.last_seen = now
            report.context.update(context)

        logger.error(
            "Error tracked",
            error_id=report.id,
            fingerprint=fingerprint,
            error_type=report.name,
            error=report.message,
            operation=operation,
            component=component,
            username=context.get("username"),
        )
        return report

    def get_stats(self) -> dict[str, int]:
        cutoff = self._clock() - timedelta(hours=1)
        return {
            "total_errors": sum(report.count for report in self._reports.values()),
            "unique_errors": len(self._reports),
            "recent_errors": sum(
                report.count for report in self._reports.values() if report.last_seen > cutoff
            ),
        }

    def get_top_errors(self, limit: int = 10) -> list[ErrorReport]:
        return sorted(self._reports.values(), key=lambda r: r.count, reverse=True)[:limit]

    def get_recent_errors(self, hours: float = 1) -> list[ErrorReport]:
        cutoff = self._clock() - timedelta(hours=hours)
        recent = [report for report in self._reports.values() if report.last_seen > cutoff]
        return sorted(recent, key=lambda r: r.last_seen, reverse=True)

    def cleanup(self, older_than_hours: float = ERROR_RETENTION_HOURS) -> int:
        """Forget errors not seen within the window; returns how many were dropped."""
        cutoff = self._clock() - timedelta(hours=older_than_hours)
        stale = [key for key, report in self._reports.items() if report.last_seen < cutoff]
        for key in stale:
            del self._reports[key]
        logger.info(
            "Error tracker cleanup completed",
            removed=len(stale),
            remaining=len(self._reports),
        )
        return len(stale)

    def export(self) -> list[ErrorReport]:
        return list(self._reports.values())

    async def run_periodic_cleanup(self, interval_seconds: float = 3600) -> None:
        """Drop stale reports forever; cancel the task to stop."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.cleanup()


error_tracker = ErrorTracker()
