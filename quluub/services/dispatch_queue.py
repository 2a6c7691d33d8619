"""
quluub/services/dispatch_queue.py

Purpose: Fire-and-forget background work off the request path

- Runs submitted coroutines as tracked asyncio tasks
- Logs and swallows failures so callers never observe them
- Drains outstanding work at shutdown (and in tests)
"""

import asyncio
from typing import Awaitable, Optional, Set

from quluub.core.logging import get_logger

logger = get_logger(__name__)


class DispatchQueue:
    """
    Holds strong references to in-flight tasks until they finish.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, work: Awaitable, name: str = "dispatch") -> asyncio.Task:
        """
        Schedules `work` and returns immediately.

        Args:
            work: Coroutine to run in the background
            name: Label used in logs

        Returns:
            The scheduled task
        """
        task = asyncio.create_task(self._run(work, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, work: Awaitable, name: str) -> None:
        try:
            await work
        except asyncio.CancelledError:
            logger.warning(f"Background task cancelled: {name}")
            raise
        except Exception as e:
            logger.error(f"Background task failed: {name}: {str(e)}", exc_info=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """
        Waits until every submitted task, including ones submitted while
        draining, has finished.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: Optional[float] = 10.0) -> None:
        """
        Drains with a deadline, then cancels whatever is left.
        """
        try:
            await asyncio.wait_for(self.drain(), timeout=timeout)
        except asyncio.TimeoutError:
            remaining = list(self._tasks)
            logger.warning(f"Cancelling {len(remaining)} background tasks at shutdown")
            for task in remaining:
                task.cancel()
            await asyncio.gather(*remaining, return_exceptions=True)
