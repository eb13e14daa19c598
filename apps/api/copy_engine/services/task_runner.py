"""Fire-and-forget execution of job pipelines on the running event loop."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
import logging
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Holds strong references to spawned job tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, None], *, name: str | None = None) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("task.crashed name=%s reason=%s", task.get_name(), type(exc).__name__, exc_info=exc)

    async def drain(self) -> None:
        """Wait for every outstanding task; used by tests and graceful shutdown."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("task.cancelled count=%s", len(tasks))
