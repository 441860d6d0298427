"""Best-effort sink for fire-and-forget side effects.

Audit appends, query logging, library rebuilds and shortcoming reports are
submitted here instead of being awaited by the request. Failures are logged
and counted, never raised.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from toolgate.observability.logging import get_logger
from toolgate.observability.metrics import BEST_EFFORT_FAILURES

logger = get_logger(__name__)


class BestEffortSink:
    """Bounded set of background tasks whose outcome is discarded."""

    def __init__(self, max_pending: int = 1000) -> None:
        self._max_pending = max_pending
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, name: str, work: Coroutine[Any, Any, Any]) -> bool:
        """Schedule work in the background.

        Returns False (and closes the coroutine) when the sink is full.
        """
        if len(self._tasks) >= self._max_pending:
            work.close()
            BEST_EFFORT_FAILURES.labels(task=name, reason="dropped").inc()
            logger.warning("best_effort_task_dropped", task=name, pending=len(self._tasks))
            return False

        task = asyncio.create_task(work, name=name)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(name, t))
        return True

    def _on_done(self, name: str, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            BEST_EFFORT_FAILURES.labels(task=name, reason="error").inc()
            logger.warning(
                "best_effort_task_failed",
                task=name,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every pending task (used on shutdown and in tests)."""
        if not self._tasks:
            return
        pending = list(self._tasks)
        done, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            logger.warning("best_effort_drain_timeout", cancelled=len(still_pending))
