import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger()


class RequestCoalescer:
    """Registry of in-flight work keyed by request identity.

    Concurrent callers asking for the same key share one task. A forced
    call always starts new work but still registers it, so later
    non-forced callers join the forced run.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task] = {}

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def is_pending(self, key: str) -> bool:
        return key.lower() in self._pending

    async def run(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        force: bool = False,
    ) -> Any:
        key = key.lower()

        task = self._pending.get(key)
        if task is not None and not force:
            logger.debug("Joining in-flight request", key=key)
            return await asyncio.shield(task)

        task = asyncio.ensure_future(factory())
        self._pending[key] = task
        task.add_done_callback(lambda finished: self._release(key, finished))

        # Shielded so an abandoned caller does not cancel work others await
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task) -> None:
        # A forced run may have replaced this entry already
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug("In-flight request failed", key=key, error=str(task.exception()))
