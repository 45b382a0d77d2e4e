"""Pydantic models for the live sync core.

Defines the data contracts shared by every live sync module:

- ``SyncStrategy``: When automatic publishes run.
- ``SyncSettings``: User-facing live sync settings (persisted).
- ``DocumentInfo``: What the eligibility filter knows about a document.
- ``PublishOutcome``: Per-document result reported by a publish pipeline.
- ``PublishResult``: Aggregate result of one publish cycle.
- ``CleanupStats``: Result of one orphan reconciliation pass.
- ``RemoteErrorKind``: Two-way classification of remote failures.
- ``StatusState`` / ``SyncStatus``: Status reporter output.

All models are frozen (immutable); settings changes produce a new instance.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class SyncStrategy(str, Enum):
    """When automatic publishes are triggered."""

    ON_SAVE = "on-save"
    INTERVAL = "interval"
    BOTH = "both"


class SyncSettings(BaseModel):
    """Live sync settings as stored in the state file.

    Field aliases are the persisted (camelCase) key names, so
    ``model_dump(by_alias=True)`` produces the on-disk layout directly.
    Out-of-range numbers are clamped rather than rejected, matching how
    older state files were written.

    Attributes:
        folder_to_publish: Scope folder; empty means no folder restriction.
        key_backlink: Required backlink marker; empty means no restriction.
        enabled: Master switch for automatic publishing.
        strategy: On save, on an interval, or both.
        debounce_seconds: Quiet period after the last save (>= 0).
        interval_minutes: Period of the interval ticker (>= 1).
        orphan_cleanup_interval_hours: Cleanup cadence (>= 1).
        last_orphan_cleanup_ts: Epoch milliseconds of the last cleanup pass.
    """

    folder_to_publish: str = Field(default="", alias="folderToPublish")
    key_backlink: str = Field(default="", alias="keyBacklink")
    enabled: bool = Field(default=False, alias="liveSyncEnabled")
    strategy: SyncStrategy = Field(
        default=SyncStrategy.ON_SAVE, alias="liveSyncStrategy"
    )
    debounce_seconds: int = Field(
        default=5, alias="liveSyncDebounceSeconds"
    )
    interval_minutes: int = Field(
        default=30, alias="liveSyncIntervalMinutes"
    )
    orphan_cleanup_interval_hours: int = Field(
        default=24, alias="orphanCleanupIntervalHours"
    )
    last_orphan_cleanup_ts: int = Field(
        default=0, alias="lastOrphanCleanupTs"
    )

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("folder_to_publish", "key_backlink", mode="before")
    @classmethod
    def _strip_text(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("strategy", mode="before")
    @classmethod
    def _default_strategy(cls, value: object) -> object:
        return SyncStrategy.ON_SAVE if value is None else value

    @field_validator("debounce_seconds", mode="before")
    @classmethod
    def _clamp_debounce(cls, value: object) -> object:
        if value is None:
            return 5
        if isinstance(value, (int, float)):
            return max(0, int(value))
        return value

    @field_validator(
        "interval_minutes", "orphan_cleanup_interval_hours", mode="before"
    )
    @classmethod
    def _clamp_at_least_one(cls, value: object, info) -> object:
        if value is None:
            return 30 if info.field_name == "interval_minutes" else 24
        if isinstance(value, (int, float)):
            return max(1, int(value))
        return value

    @field_validator("last_orphan_cleanup_ts", mode="before")
    @classmethod
    def _default_timestamp(cls, value: object) -> object:
        return 0 if value is None else value

    @property
    def on_save_active(self) -> bool:
        """True when saves should enqueue documents."""
        return self.enabled and self.strategy in (
            SyncStrategy.ON_SAVE,
            SyncStrategy.BOTH,
        )

    @property
    def interval_active(self) -> bool:
        """True when the interval ticker should be armed."""
        return self.enabled and self.strategy in (
            SyncStrategy.INTERVAL,
            SyncStrategy.BOTH,
        )

    def to_state(self) -> dict:
        """Return the persisted (camelCase) representation."""
        return self.model_dump(by_alias=True, mode="json")


class DocumentInfo(BaseModel):
    """A local document as seen by the eligibility filter.

    Attributes:
        path: Vault-relative POSIX path (e.g. ``Docs/a.md``).
        links: Raw link targets found in the document body.
        embeds: Raw embed targets found in the document body.
        mtime: Last modification time; never affects eligibility.
        remote_id: Remote page recorded in the document's front matter.
    """

    path: str
    links: tuple[str, ...] = ()
    embeds: tuple[str, ...] = ()
    mtime: float | None = None
    remote_id: str | None = None

    model_config = {"frozen": True}


class PublishOutcome(BaseModel):
    """Result of uploading one document."""

    path: str
    succeeded: bool
    remote_id: str | None = None
    failure_reason: str | None = None

    model_config = {"frozen": True}


class CleanupStats(BaseModel):
    """Result of one orphan reconciliation pass.

    Attributes:
        deleted_paths: Local paths whose remote page is gone.
        failed_deletions: ``(path, reason)`` pairs for failed deletes.
    """

    deleted_paths: list[str] = []
    failed_deletions: list[tuple[str, str]] = []

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not self.deleted_paths and not self.failed_deletions


class PublishResult(BaseModel):
    """Aggregate result of one publish cycle.

    Attributes:
        succeeded: ``(path, remote_id)`` pairs for published documents.
        failed: ``(path, reason)`` pairs for documents that failed.
        cleanup: Stats of the orphan pass run after the cycle, if any.
    """

    succeeded: list[tuple[str, str | None]] = []
    failed: list[tuple[str, str]] = []
    cleanup: CleanupStats | None = None

    model_config = {"frozen": True}

    @property
    def targeted_paths(self) -> set[str]:
        """Every path the cycle attempted, whatever the outcome."""
        return {p for p, _ in self.succeeded} | {p for p, _ in self.failed}


class RemoteErrorKind(str, Enum):
    """Classification of a failed remote call."""

    NOT_FOUND = "not_found"
    OTHER = "other"


class StatusState(str, Enum):
    """The three states rendered by the status reporter."""

    IDLE = "idle"
    PENDING = "pending"
    SYNCING = "syncing"


class SyncStatus(BaseModel):
    """Derived status of the live sync engine."""

    state: StatusState = StatusState.IDLE
    count: int = 0

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        """Human-readable status line, e.g. ``Trac: Pending (3)``."""
        if self.state == StatusState.IDLE:
            return "Trac: Idle"
        title = self.state.value.capitalize()
        if self.count:
            return f"Trac: {title} ({self.count})"
        return f"Trac: {title}"
