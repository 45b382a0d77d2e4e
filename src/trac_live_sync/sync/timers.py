"""Timer capability backed by the running asyncio loop."""

from __future__ import annotations

import asyncio
import logging

from .protocols import TimerCallback

logger = logging.getLogger(__name__)


class AsyncioTimer:
    """Schedule coroutine callbacks with ``loop.call_later``.

    Cancelling a handle only prevents callbacks that have not fired yet;
    a callback that already started runs to completion.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def schedule(
        self, delay: float, callback: TimerCallback
    ) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), self._fire, callback)

    def cancel(self, handle: asyncio.TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    async def drain(self) -> None:
        """Wait for callbacks that already fired to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _fire(self, callback: TimerCallback) -> None:
        task = asyncio.get_running_loop().create_task(callback())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Scheduled live sync task failed: %s",
                exc,
                exc_info=exc,
            )
