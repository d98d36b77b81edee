from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine


class TaskScope:
    """Background tasks owned by one session object. Cancelled together when the owner goes away."""

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._tasks: set[asyncio.Task] = set()
        self._logger = logging.getLogger(__name__)

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=f"{self._owner}:{name or 'task'}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "Background task failed",
                exc_info=exc,
                extra={"reason": task.get_name(), "error": str(exc)},
            )

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    async def join(self) -> None:
        """Wait until every task spawned so far (and any they spawn) has finished."""
        current = asyncio.current_task()
        while True:
            pending = [task for task in self._tasks if task is not current and not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        self.cancel_all()
        await self.join()
