"""Live sync core.

Keeps a local Markdown vault published to Trac wiki pages without manual
intervention.  Saves are debounced into batches, an optional interval
ticker re-publishes the whole scope, unchanged content is skipped by
fingerprint, and remote pages whose source left the publish scope are
deleted on a cooldown.

Modules:

- ``engine``      -- ``LiveSyncEngine``: scheduling, single-flight publish
  cycles and state ownership.
- ``eligibility`` -- Folder / backlink scope filter.
- ``hasher``      -- Content fingerprints for change suppression.
- ``queue``       -- ``PendingQueue``: deduplicated paths plus debounce timer.
- ``reconciler``  -- ``OrphanReconciler``: remote orphan deletion.
- ``state``       -- ``StateStore``: atomic JSON persistence.
- ``status``      -- Idle / pending / syncing derivation.
- ``timers``      -- ``AsyncioTimer``: event-loop backed timer capability.
- ``models``      -- Settings and result data contracts.
- ``protocols``   -- Capabilities the engine is wired with.
- ``reporter``    -- Notice text and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from trac_live_sync.sync import AsyncioTimer, LiveSyncEngine, StateStore

    engine = LiveSyncEngine(
        vault=vault,                 # LocalVault
        pipeline=pipeline,           # TracPublishPipeline
        remote=remote,               # TracDocumentStore
        store=StateStore(Path(".trac_live_sync/state.json")),
        notifier=notifier,
        timer=AsyncioTimer(),
    )
    await engine.start()
    await engine.on_file_modified("Docs/a.md")
"""

from .eligibility import is_eligible, normalize_backlink_key
from .engine import LiveSyncEngine
from .models import (
    CleanupStats,
    DocumentInfo,
    PublishOutcome,
    PublishResult,
    RemoteErrorKind,
    StatusState,
    SyncSettings,
    SyncStatus,
    SyncStrategy,
)
from .reporter import (
    format_cleanup_notice,
    format_cycle_notice,
    format_publish_report,
    publish_result_to_json,
)
from .state import StateStore
from .timers import AsyncioTimer

__all__ = [
    "AsyncioTimer",
    "CleanupStats",
    "DocumentInfo",
    "LiveSyncEngine",
    "PublishOutcome",
    "PublishResult",
    "RemoteErrorKind",
    "StateStore",
    "StatusState",
    "SyncSettings",
    "SyncStatus",
    "SyncStrategy",
    "format_cleanup_notice",
    "format_cycle_notice",
    "format_publish_report",
    "is_eligible",
    "normalize_backlink_key",
    "publish_result_to_json",
]
