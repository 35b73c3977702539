import asyncio
import inspect
from collections import Counter
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from loguru import logger


class BackgroundJobs:
    """Detached fire-and-forget work whose failures are logged and counted.

    Callers never await these jobs; a failing job shows up in the log and in
    ``failures`` instead of disappearing.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self.failures: Counter[str] = Counter()

    def spawn[T](self, coro: Coroutine[Any, Any, T], *, name: str) -> asyncio.Task[T]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def delay(
        self, seconds: float, func: Callable[[], Awaitable[Any] | Any], *, name: str
    ) -> asyncio.Task[None]:
        async def _delayed() -> None:
            await asyncio.sleep(seconds)
            result = func()
            if inspect.isawaitable(result):
                await result

        return self.spawn(_delayed(), name=name)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            self.failures[task.get_name()] += 1
            logger.opt(exception=exc).warning(f"Background job {task.get_name()} failed")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every job, including jobs spawned while draining."""
        while pending := [task for task in self._tasks if not task.done()]:
            await asyncio.gather(*pending, return_exceptions=True)
        # Let the done callbacks of the last jobs run
        await asyncio.sleep(0)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
