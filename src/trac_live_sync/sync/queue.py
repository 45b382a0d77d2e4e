"""Deduplicating queue of paths waiting for the next flush."""

from __future__ import annotations

from typing import Any

from .protocols import Timer, TimerCallback


class PendingQueue:
    """Paths awaiting publication plus the single debounce timer.

    Paths are unique; iteration follows insertion order so a cycle
    processes targets deterministically.  At most one flush timer is
    pending at a time: scheduling a new one cancels the previous one.

    Args:
        timer: Timer capability used for the debounce delay.
    """

    def __init__(self, timer: Timer) -> None:
        self._timer = timer
        self._paths: dict[str, None] = {}
        self._handle: Any = None

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __iter__(self):
        return iter(list(self._paths))

    def add(self, path: str) -> bool:
        """Enqueue *path*; return False if it was already queued."""
        if path in self._paths:
            return False
        self._paths[path] = None
        return True

    def drain(self) -> list[str]:
        """Return the queued paths and empty the queue."""
        paths = list(self._paths)
        self._paths.clear()
        return paths

    @property
    def flush_scheduled(self) -> bool:
        return self._handle is not None

    def schedule_flush(self, delay: float, callback: TimerCallback) -> None:
        """(Re)start the debounce timer, replacing any pending one."""
        self.cancel_flush()

        async def _fire() -> None:
            self._handle = None
            await callback()

        self._handle = self._timer.schedule(max(0.0, delay), _fire)

    def cancel_flush(self) -> None:
        if self._handle is not None:
            self._timer.cancel(self._handle)
            self._handle = None

    def clear(self) -> None:
        """Drop every queued path and cancel the pending flush."""
        self._paths.clear()
        self.cancel_flush()
