"""Async utilities for running blocking XML-RPC and file calls off the event loop."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Module-level semaphore, initialized at server startup
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 5) -> None:
    """Initialize the Trac request semaphore. Call once at server startup."""
    global _semaphore
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.info(
        "Trac request semaphore initialized: max_parallel=%d",
        max_parallel,
    )


def reset_semaphore() -> None:
    """Drop the semaphore so later calls run unbounded (used on shutdown)."""
    global _semaphore
    _semaphore = None


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used for local disk access; does not take the request semaphore.

    Example:
        data = await run_sync(path.read_bytes)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous Trac call in a thread pool, bounded by the semaphore.

    Falls back to unbounded if the semaphore is not initialized.

    Example:
        await run_sync_limited(client.delete_wiki_page, "Notes/Old")
    """
    if _semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with _semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)
