"""Background task runner abstraction.

Provides a protocol for dispatching job runs off the request path, with an
in-process asyncio implementation. The tracker only depends on the
protocol.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any, Protocol

from loguru import logger


class BackgroundTaskRunner(Protocol):
    """Protocol for background task execution."""

    def submit_task(self, key: str, coro: Coroutine[Any, Any, Any]) -> None:
        """Submit a coroutine for background execution under ``key``."""
        ...

    async def wait(self, key: str) -> None:
        """Wait until the task registered under ``key`` has finished."""
        ...

    def is_running(self, key: str) -> bool:
        """Return whether the task under ``key`` is still in flight."""
        ...

    async def cancel_all(self) -> None:
        """Cancel every in-flight task and wait for them to unwind."""
        ...


class InProcessTaskRunner:
    """In-process background task runner using asyncio.

    Tasks run in the same event loop as the API server via
    asyncio.create_task(). Finished tasks are dropped from the registry.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    def submit_task(self, key: str, coro: Coroutine[Any, Any, Any]) -> None:
        """Submit an async task for background execution.

        Args:
            key: Identifier used to wait on or inspect the task.
            coro: The coroutine to execute.

        Raises:
            ValueError: If a task with the same key is still running.
        """
        if self.is_running(key):
            coro.close()
            msg = f"Task {key} is already running"
            raise ValueError(msg)

        async def _run() -> None:
            try:
                await coro
            except Exception:
                logger.exception(f"Background task {key} failed")
                raise
            finally:
                self._tasks.pop(key, None)

        self._tasks[key] = asyncio.create_task(_run(), name=f"batch-job-{key}")

    async def wait(self, key: str) -> None:
        """Wait for a task to finish; returns immediately for unknown keys.

        Exceptions raised by the task are logged by the runner, not re-raised.
        """
        task = self._tasks.get(key)
        if task is None:
            return
        await asyncio.gather(task, return_exceptions=True)

    def is_running(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    async def cancel_all(self) -> None:
        """Cancel every in-flight task and wait until each has unwound."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info(f"Cancelled {len(tasks)} background tasks")
            await asyncio.gather(*tasks, return_exceptions=True)

    @property
    def running_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())


# Singleton instance for the application
task_runner = InProcessTaskRunner()
