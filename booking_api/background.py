"""
Detached background tasks (sheet write-back, confirmation email)

Work spawned here never feeds back into the request that started it. Failures
are reported on the "booking_api.background" logger only.
"""

import asyncio
import logging
from typing import Awaitable, Optional

logger = logging.getLogger("booking_api.background")


class BackgroundTaskRunner:
    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        # hold a reference until done, otherwise the task can be garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"⏹️ Background task {task.get_name()} cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"❌ Background task {task.get_name()} failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight tasks (shutdown and tests)"""
        if not self._tasks:
            return
        await asyncio.wait(list(self._tasks), timeout=timeout)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
