"""Capability interfaces the live sync core depends on.

The engine never touches the file system, the wiki or the event loop's
timers directly; it calls into these protocols, which keeps the state
machine testable with in-memory fakes and a manual clock.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from .models import DocumentInfo, PublishOutcome, RemoteErrorKind

TimerCallback = Callable[[], Awaitable[None]]


class Vault(Protocol):
    """Access to the local document set."""

    async def list_markdown_files(self) -> list[str]: ...

    async def exists(self, path: str) -> bool: ...

    async def read_file(self, path: str) -> bytes:
        """Return raw file content; raises ``OSError`` on failure."""
        ...

    async def get_document(self, path: str) -> DocumentInfo | None:
        """Return link/embed metadata, or ``None`` if unavailable."""
        ...

    async def clear_remote_id(self, path: str) -> None:
        """Forget the remote page recorded in the document's metadata."""
        ...


class PublishPipeline(Protocol):
    """Renders and uploads documents to the remote store."""

    async def publish(
        self, target: str | None = None
    ) -> list[PublishOutcome]:
        """Publish *target*, or every eligible document when ``None``."""
        ...


class RemoteStore(Protocol):
    """Remote operations the orphan reconciler needs."""

    async def delete_by_id(self, remote_id: str) -> None: ...

    def classify_remote_error(self, error: BaseException) -> RemoteErrorKind: ...


class StatePersistence(Protocol):
    """Opaque key-value persistence of the live sync state."""

    def load(self) -> dict[str, Any]: ...

    def save(self, state: dict[str, Any]) -> None: ...


class Notifier(Protocol):
    """User-visible notices (one per cycle, one per cleanup pass)."""

    def notify(self, message: str) -> None: ...


class Timer(Protocol):
    """Cancellable one-shot scheduling."""

    def schedule(self, delay: float, callback: TimerCallback) -> Any:
        """Run *callback* after *delay* seconds; return a cancel handle."""
        ...

    def cancel(self, handle: Any) -> None: ...
