"""Ownership of detached background tasks.

Conversation backfills and backup publishes run detached from the code path
that triggered them. [TaskSupervisor][chronicle.core.tasks.TaskSupervisor]
keeps a strong reference to each task until it finishes, logs failures, and
cancels whatever is still pending when the process shuts down.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any

from .logger import Logger


if TYPE_CHECKING:
    from collections.abc import Coroutine


class TaskSupervisor:
    """Registry of fire-and-forget tasks bound to the process lifecycle.

    Examples:
        ```python
        tasks = TaskSupervisor()
        tasks.spawn(fetcher.fetch(reference), name="backfill")
        ...
        await tasks.cancel_all()
        ```
    """

    def __init__(self, name: str = "tasks") -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False
        self._logger = Logger(name)

    @property
    def pending(self) -> int:
        """Number of tasks that have not finished yet."""
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        """Whether [cancel_all()][chronicle.core.tasks.TaskSupervisor.cancel_all] was called."""
        return self._closed

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any] | None:
        """Schedule *coro* on the running loop.

        Returns ``None`` (and closes *coro*) once the supervisor is shut down.
        """
        if self._closed:
            coro.close()
            self._logger.debug("spawn_after_shutdown", task=name)
            return None

        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "task_failed", task=task.get_name(), error=str(exc), error_type=type(exc).__name__
            )

    async def join(self) -> None:
        """Wait until every task (including ones spawned meanwhile) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Refuse new tasks, cancel pending ones, and wait for them to unwind."""
        self._closed = True
        tasks = list(self._tasks)
        if not tasks:
            return

        self._logger.info("cancelling_tasks", count=len(tasks))
        for task in tasks:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.gather(*tasks, return_exceptions=True)
