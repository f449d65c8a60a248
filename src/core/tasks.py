"""Fire-and-forget background execution for long-running jobs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional

LOGGER = logging.getLogger(__name__)


class TaskRunner:
    """Run coroutines detached from the request that triggered them.

    Tasks are kept referenced until they finish so the event loop cannot
    garbage-collect them mid-flight. Failures are logged, never re-raised.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def submit(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            LOGGER.info("Background task %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Background task %s failed", task.get_name(), exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every submitted task, including ones submitted meanwhile, is done."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
