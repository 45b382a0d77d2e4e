"""Unified configuration schema for trac_live_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the Trac connection, logging and live sync.

Usage:
    from trac_live_sync.config_schema import (
        UnifiedConfig, build_config,
    )

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .sync.models import SyncSettings, SyncStrategy
from .validators import validate_namespace

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = ".trac_live_sync/live_sync.json"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TracConfig(BaseModel):
    """Trac server connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(default=None, description="Trac server URL")
    username: str | None = Field(
        default=None, description="Trac username"
    )
    password: str | None = Field(
        default=None, description="Trac password"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    max_parallel_requests: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum concurrent requests to Trac instance (1-100)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


class LiveSyncConfig(BaseModel):
    """Where the vault lives and how it maps onto the wiki.

    The optional settings fields only seed the persisted state: they fill
    in keys the state file does not hold yet and never override it.
    """

    vault_root: str = Field(
        default=".", description="Directory holding the Markdown vault"
    )
    state_file: str = Field(
        default=DEFAULT_STATE_FILE,
        description="JSON file persisting live sync state",
    )
    wiki_namespace: str = Field(
        default="", description="Wiki page prefix for published documents"
    )
    watch: bool = Field(
        default=True, description="Watch the vault for file changes"
    )

    folder_to_publish: str | None = None
    key_backlink: str | None = None
    enabled: bool | None = None
    strategy: SyncStrategy | None = None
    debounce_seconds: int | None = Field(default=None, ge=0)
    interval_minutes: int | None = Field(default=None, ge=1)
    orphan_cleanup_interval_hours: int | None = Field(default=None, ge=1)

    model_config = {"frozen": True}

    @field_validator("wiki_namespace")
    @classmethod
    def _check_namespace(cls, value: str) -> str:
        value = value.strip().strip("/")
        is_valid, error_msg = validate_namespace(value)
        if not is_valid:
            raise ValueError(error_msg)
        return value

    def seed_state(self) -> dict[str, Any]:
        """Return the configured settings in persisted (camelCase) form."""
        seeds: dict[str, Any] = {}
        for name, field in SyncSettings.model_fields.items():
            value = getattr(self, name, None)
            if value is None:
                continue
            if isinstance(value, SyncStrategy):
                value = value.value
            seeds[field.alias or name] = value
        return seeds

    def resolve_paths(self, base: Path) -> tuple[Path, Path]:
        """Return absolute (vault_root, state_file) relative to *base*."""
        vault_root = (base / Path(self.vault_root).expanduser()).resolve()
        state_file = (base / Path(self.state_file).expanduser()).resolve()
        return vault_root, state_file


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    trac: TracConfig = Field(default_factory=TracConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    live_sync: LiveSyncConfig = Field(default_factory=LiveSyncConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.  Unknown top-level sections are ignored.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
