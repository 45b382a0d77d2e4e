"""Live sync engine: scheduling, publishing and orphan cleanup.

``LiveSyncEngine`` owns every piece of mutable live sync state -- the
pending queue and its debounce timer, the interval ticker, the
single-flight flag, the fingerprint table and the backlink state -- and
is the only component that mutates or persists it.  It:

1. Filters file-modified events and queues eligible documents.
2. Flushes the queue after the debounce delay, skipping documents whose
   fingerprint did not change.
3. Periodically queues every eligible document (interval strategy).
4. Runs publish cycles one at a time through the publish pipeline.
5. Deletes orphaned remote pages on a cooldown, or when forced.
6. Pushes a fresh status after every transition.

Per-document failures never abort a cycle; they are collected and
reported in one notice at the end.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from .eligibility import is_eligible
from .hasher import compute_file_hash
from .models import CleanupStats, PublishResult, SyncSettings, SyncStatus
from .protocols import (
    Notifier,
    PublishPipeline,
    RemoteStore,
    StatePersistence,
    Timer,
    Vault,
)
from .queue import PendingQueue
from .reconciler import OrphanReconciler, cleanup_due
from .reporter import format_cleanup_notice, format_cycle_notice
from .state import BACKLINKS_KEY, HASHES_KEY, empty_state
from .status import derive_status

logger = logging.getLogger(__name__)

# Floor for re-queued flushes so a zero debounce cannot spin while a
# cycle is in flight.
RESCHEDULE_MIN_DELAY = 1.0

StatusCallback = Callable[[SyncStatus], None]


class LiveSyncEngine:
    """Coordinate live sync for one vault.

    Args:
        vault: Local document access.
        pipeline: Renders and uploads documents.
        remote: Remote deletions and error classification.
        store: Persistence of settings, fingerprints and backlink state.
        notifier: Receives the end-of-cycle and cleanup notices.
        timer: Schedules the debounce flush and the interval ticker.
        clock: Returns the current time in epoch seconds.
        on_status: Called with the new status whenever it changes.
    """

    def __init__(
        self,
        vault: Vault,
        pipeline: PublishPipeline,
        remote: RemoteStore,
        store: StatePersistence,
        notifier: Notifier,
        timer: Timer,
        clock: Callable[[], float] = time.time,
        on_status: StatusCallback | None = None,
    ) -> None:
        self.vault = vault
        self.pipeline = pipeline
        self.store = store
        self.notifier = notifier
        self.timer = timer
        self._clock = clock
        self._on_status = on_status

        self.settings = SyncSettings()
        self.queue = PendingQueue(timer)
        self.reconciler = OrphanReconciler(remote, vault, self._save_state)

        self._state: dict[str, Any] = empty_state()
        self._started = False
        self._interval_handle: Any = None
        self._in_flight = False
        self._cycle_size: int | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._status = SyncStatus()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def is_syncing(self) -> bool:
        """True while a publish cycle is in flight."""
        return self._in_flight and self._cycle_size is not None

    @property
    def hashes(self) -> dict[str, str]:
        return self._state[HASHES_KEY]

    @property
    def backlinks(self) -> dict[str, str]:
        return self._state[BACKLINKS_KEY]

    @property
    def interval_armed(self) -> bool:
        return self._interval_handle is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load persisted state, arm timers and run the startup cleanup check."""
        self._state = self.store.load()
        self.settings = SyncSettings.model_validate(self._state)
        self._started = True
        logger.info(
            "Live sync started (enabled=%s, strategy=%s)",
            self.settings.enabled,
            self.settings.strategy.value,
        )
        self._apply_runtime_state()
        await self.maybe_run_orphan_cleanup()

    async def stop(self) -> None:
        """Clear the queue and disarm both timers.

        An in-flight publish is not cancelled; it runs to completion.
        """
        self._started = False
        self.queue.clear()
        self._disarm_interval()
        self._refresh_status()
        logger.info("Live sync stopped")

    async def update_settings(self, **changes: Any) -> SyncSettings:
        """Apply settings changes, persist them and re-apply timers.

        Raises:
            ValueError: Unknown setting names.
            pydantic.ValidationError: Values that do not validate.
                Nothing is persisted in either case.
        """
        unknown = set(changes) - set(SyncSettings.model_fields)
        if unknown:
            raise ValueError(
                f"Unknown live sync setting(s): {', '.join(sorted(unknown))}"
            )
        merged = {**self.settings.model_dump(), **changes}
        self.settings = SyncSettings.model_validate(merged)
        self._save_state()
        self._apply_runtime_state()
        return self.settings

    def _apply_runtime_state(self) -> None:
        if not self.settings.enabled:
            self.queue.clear()
            self._disarm_interval()
            self._refresh_status()
            return
        if not self.settings.on_save_active:
            self.queue.clear()
        self._arm_interval()
        self._refresh_status()

    # ------------------------------------------------------------------
    # On-save path
    # ------------------------------------------------------------------

    async def on_file_modified(self, path: str) -> None:
        """Queue *path* for the next flush if it is eligible."""
        if not self._started or not self.settings.on_save_active:
            return
        if not path.lower().endswith(".md"):
            return
        document = await self.vault.get_document(path)
        if document is None or not is_eligible(
            document,
            self.settings.folder_to_publish,
            self.settings.key_backlink,
        ):
            logger.debug("Ignoring change to ineligible %s", path)
            return
        self.queue.add(path)
        self._refresh_status()
        self._schedule_flush(self.settings.debounce_seconds)

    def _schedule_flush(self, delay: float) -> None:
        self.queue.schedule_flush(delay, self.flush)

    async def flush(self) -> None:
        """Drain the queue into one publish cycle."""
        if not self._started or not self.settings.enabled:
            self.queue.clear()
            self._refresh_status()
            return
        if not len(self.queue):
            await self.maybe_run_orphan_cleanup()
            self._refresh_status()
            return
        if self._in_flight:
            logger.debug("Publish in flight, deferring live sync flush")
            self._schedule_flush(
                max(self.settings.debounce_seconds, RESCHEDULE_MIN_DELAY)
            )
            return

        queued = self.queue.drain()
        self._acquire(len(queued))
        succeeded: list[tuple[str, str | None]] = []
        failed: list[tuple[str, str]] = []
        targets: list[tuple[str, str | None]] = []
        try:
            targets = await self._collect_targets(queued)
            self._cycle_size = len(targets)
            self._refresh_status()
            for path, digest in targets:
                try:
                    result = await self._run_publish(
                        path, skip_cleanup=True, known_hashes={path: digest}
                    )
                except Exception as exc:
                    logger.exception("Live sync publish of %s failed", path)
                    failed.append((path, str(exc) or type(exc).__name__))
                    continue
                succeeded.extend(result.succeeded)
                failed.extend(result.failed)
            if targets:
                self._save_state()
        finally:
            self._release()

        if targets:
            self.notifier.notify(
                format_cycle_notice(
                    PublishResult(succeeded=succeeded, failed=failed)
                )
            )
        await self.maybe_run_orphan_cleanup()
        self._refresh_status()

    async def _collect_targets(
        self, paths: list[str]
    ) -> list[tuple[str, str | None]]:
        targets: list[tuple[str, str | None]] = []
        for path in paths:
            if not await self.vault.exists(path):
                logger.debug("Skipping %s: no longer exists", path)
                continue
            digest = await compute_file_hash(self.vault, path)
            if digest is not None and self.hashes.get(path) == digest:
                logger.debug("Skipping %s: content unchanged", path)
                continue
            targets.append((path, digest))
        return targets

    # ------------------------------------------------------------------
    # Interval path
    # ------------------------------------------------------------------

    def _arm_interval(self) -> None:
        self._disarm_interval()
        if not self._started or not self.settings.interval_active:
            return
        period = self.settings.interval_minutes * 60
        self._interval_handle = self.timer.schedule(
            period, self._on_interval_tick
        )

    def _disarm_interval(self) -> None:
        if self._interval_handle is not None:
            self.timer.cancel(self._interval_handle)
            self._interval_handle = None

    async def _on_interval_tick(self) -> None:
        self._interval_handle = None
        self._arm_interval()
        await self.run_interval_tick()

    async def run_interval_tick(self) -> None:
        """Queue every eligible document and flush, then prune fingerprints."""
        if not self._started or not self.settings.interval_active:
            return
        eligible = await self.collect_eligible_paths()
        if eligible:
            for path in eligible:
                self.queue.add(path)
            self._refresh_status()
            await self.flush()
        else:
            await self.maybe_run_orphan_cleanup()
        await self._prune_missing_hashes()

    async def collect_eligible_paths(self) -> list[str]:
        """Return every Markdown document currently in scope."""
        eligible: list[str] = []
        for path in await self.vault.list_markdown_files():
            document = await self.vault.get_document(path)
            if document is not None and is_eligible(
                document,
                self.settings.folder_to_publish,
                self.settings.key_backlink,
            ):
                eligible.append(path)
        return eligible

    async def _prune_missing_hashes(self) -> None:
        missing = [
            path
            for path in list(self.hashes)
            if not await self.vault.exists(path)
        ]
        if not missing:
            return
        for path in missing:
            self.hashes.pop(path, None)
        logger.debug("Pruned %d stale fingerprint(s)", len(missing))
        self._save_state()

    # ------------------------------------------------------------------
    # Publish cycle
    # ------------------------------------------------------------------

    async def publish(
        self,
        target: str | None = None,
        skip_cleanup: bool | None = None,
    ) -> PublishResult:
        """Publish *target* (or every eligible document) as one cycle.

        Waits for any in-flight cycle to finish first.  Orphan cleanup runs
        afterwards unless *skip_cleanup* is true; by default it runs only
        when no explicit target was given.

        Raises:
            Exception: Whatever the publish pipeline raises for the cycle as
                a whole; persisted state is left untouched in that case.
        """
        await self._wait_for_flight()
        self._acquire(1 if target is not None else None)
        try:
            if target is None:
                # Syncing count is the size of the scope being published
                self._cycle_size = len(await self.collect_eligible_paths())
                self._refresh_status()
            result = await self._run_publish(target, skip_cleanup)
            self._save_state()
        finally:
            self._release()
        self.notifier.notify(format_cycle_notice(result))
        return result

    async def _run_publish(
        self,
        target: str | None,
        skip_cleanup: bool | None = None,
        known_hashes: dict[str, str | None] | None = None,
    ) -> PublishResult:
        outcomes = await self.pipeline.publish(target)

        succeeded: list[tuple[str, str | None]] = []
        failed: list[tuple[str, str]] = []
        for outcome in outcomes:
            if not outcome.succeeded:
                reason = outcome.failure_reason or "No reason provided"
                logger.warning(
                    "Publishing %s failed: %s", outcome.path, reason
                )
                failed.append((outcome.path, reason))
                continue
            succeeded.append((outcome.path, outcome.remote_id))
            await self._record_success(
                outcome.path, outcome.remote_id, known_hashes
            )

        result = PublishResult(succeeded=succeeded, failed=failed)
        if skip_cleanup is None:
            skip_cleanup = target is not None
        if skip_cleanup:
            return result

        stats = await self.reconciler.reconcile(
            self.backlinks, result.targeted_paths
        )
        self._notify_cleanup(stats)
        return result.model_copy(update={"cleanup": stats})

    async def _record_success(
        self,
        path: str,
        remote_id: str | None,
        known_hashes: dict[str, str | None] | None,
    ) -> None:
        digest = (known_hashes or {}).get(path)
        if digest is None:
            digest = await compute_file_hash(self.vault, path)
        if digest is not None:
            self.hashes[path] = digest

        if remote_id:
            self.backlinks[path] = remote_id
        else:
            self.backlinks.pop(path, None)

    # ------------------------------------------------------------------
    # Orphan cleanup
    # ------------------------------------------------------------------

    async def maybe_run_orphan_cleanup(
        self, force: bool = False
    ) -> CleanupStats | None:
        """Run an orphan cleanup pass if the cooldown allows it.

        Returns:
            The pass's stats, or ``None`` when no pass ran.
        """
        now_ms = int(self._clock() * 1000)
        if not force and not cleanup_due(
            self.settings.last_orphan_cleanup_ts,
            self.settings.orphan_cleanup_interval_hours,
            now_ms,
        ):
            return None
        if self._in_flight:
            if not force:
                logger.debug("Cycle in flight, skipping cleanup check")
                return None
            await self._wait_for_flight()

        self._acquire(None)
        try:
            eligible = set(await self.collect_eligible_paths())
            stats = await self.reconciler.reconcile(self.backlinks, eligible)
        finally:
            self.settings = self.settings.model_copy(
                update={"last_orphan_cleanup_ts": now_ms}
            )
            self._save_state()
            self._release()
        self._notify_cleanup(stats)
        return stats

    async def run_orphan_cleanup_now(self) -> CleanupStats:
        """Run a cleanup pass regardless of the cooldown."""
        stats = await self.maybe_run_orphan_cleanup(force=True)
        return stats if stats is not None else CleanupStats()

    def _notify_cleanup(self, stats: CleanupStats) -> None:
        notice = format_cleanup_notice(stats)
        if notice:
            self.notifier.notify(notice)

    # ------------------------------------------------------------------
    # Single-flight and status helpers
    # ------------------------------------------------------------------

    async def _wait_for_flight(self) -> None:
        while self._in_flight:
            await self._idle.wait()

    def _acquire(self, cycle_size: int | None) -> None:
        """Mark work in flight; *cycle_size* is ``None`` for cleanup passes."""
        self._in_flight = True
        self._cycle_size = cycle_size
        self._idle.clear()
        self._refresh_status()

    def _release(self) -> None:
        self._in_flight = False
        self._cycle_size = None
        self._idle.set()
        self._refresh_status()

    def _refresh_status(self) -> None:
        status = derive_status(
            self.is_syncing, self._cycle_size or 0, len(self.queue)
        )
        if status == self._status:
            return
        self._status = status
        logger.debug("Live sync status: %s", status.label)
        if self._on_status is not None:
            self._on_status(status)

    def _save_state(self) -> None:
        self._state.update(self.settings.to_state())
        self.store.save(self._state)
