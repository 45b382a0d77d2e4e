"""Remove remote pages whose local source is no longer eligible.

The backlink state maps every published local path to its remote page.
Any entry whose path is missing from the current eligible set is an
orphan: its page is deleted remotely and the mapping dropped.  A remote
"not found" answer counts as a successful deletion.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .models import CleanupStats, RemoteErrorKind
from .protocols import RemoteStore, Vault

logger = logging.getLogger(__name__)

MS_PER_HOUR = 60 * 60 * 1000


def cleanup_due(
    last_cleanup_ms: int, interval_hours: int, now_ms: int
) -> bool:
    """Return True once *interval_hours* have passed since the last pass."""
    interval_ms = max(1, interval_hours) * MS_PER_HOUR
    return now_ms - last_cleanup_ms >= interval_ms


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class OrphanReconciler:
    """Delete orphaned remote pages and prune the backlink state.

    Args:
        remote: Remote store used for deletions and error classification.
        vault: Local vault, used to clear the remote id from metadata.
        save_state: Persists the engine state; called at most once per pass.
    """

    def __init__(
        self,
        remote: RemoteStore,
        vault: Vault,
        save_state: Callable[[], None],
    ) -> None:
        self.remote = remote
        self.vault = vault
        self._save_state = save_state

    async def reconcile(
        self,
        backlinks: dict[str, str],
        current_eligible_paths: set[str],
    ) -> CleanupStats:
        """Run one pass over *backlinks*, mutating it in place.

        Args:
            backlinks: The engine's path -> remote id mapping.
            current_eligible_paths: Paths that are still in scope.

        Returns:
            ``CleanupStats`` listing deleted paths and failed deletions.
        """
        stale = [
            (path, remote_id)
            for path, remote_id in backlinks.items()
            if path not in current_eligible_paths
        ]
        if not stale:
            return CleanupStats()

        deleted: list[str] = []
        failed: list[tuple[str, str]] = []
        mutated = False

        for path, remote_id in stale:
            if not remote_id:
                del backlinks[path]
                mutated = True
                continue
            try:
                await self.remote.delete_by_id(remote_id)
            except Exception as exc:
                kind = self.remote.classify_remote_error(exc)
                if kind != RemoteErrorKind.NOT_FOUND:
                    logger.error(
                        "Failed to delete wiki page %s for %s: %s",
                        remote_id,
                        path,
                        exc,
                    )
                    failed.append((path, _describe(exc)))
                    continue
                logger.info(
                    "Wiki page %s for %s was already gone", remote_id, path
                )
            del backlinks[path]
            deleted.append(path)
            mutated = True
            await self._clear_remote_id(path)

        if mutated:
            self._save_state()

        logger.info(
            "Orphan cleanup: %d deleted, %d failed",
            len(deleted),
            len(failed),
        )
        return CleanupStats(deleted_paths=deleted, failed_deletions=failed)

    async def _clear_remote_id(self, path: str) -> None:
        try:
            await self.vault.clear_remote_id(path)
        except OSError as exc:
            logger.warning(
                "Could not clear wiki page id from %s: %s", path, exc
            )
