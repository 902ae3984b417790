"""Tracked fire-and-forget tasks.

Persistence writes and store refreshes run in the background. Each one is a
tracked asyncio task: failures are logged when the task finishes and
``drain()`` lets shutdown code and tests wait for whatever is still pending.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Coroutine

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Set of running background tasks with failure logging."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task[Any]:
        """Schedule a coroutine on the running loop.

        Args:
            coro: Coroutine to run.
            label: Short description used in log messages.

        Returns:
            The created task.
        """
        task = asyncio.create_task(coro, name=f"{self._name}:{label}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug("Background task cancelled: %s", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task failed: %s",
                task.get_name(),
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self) -> None:
        """Wait until every pending task has finished.

        Tasks spawned while draining are awaited too. Failures are already
        logged by the done callback and are not re-raised here.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> None:
        """Cancel every pending task."""
        for task in list(self._tasks):
            task.cancel()
