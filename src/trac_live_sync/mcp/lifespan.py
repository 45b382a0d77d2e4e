"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config
from ..core.async_utils import init_semaphore, reset_semaphore, run_sync
from ..core.client import TracClient
from ..core.remote import TracDocumentStore
from ..notifier import LogNotifier
from ..publisher import TracPublishPipeline
from ..sync.engine import LiveSyncEngine
from ..sync.state import StateStore
from ..sync.timers import AsyncioTimer
from ..vault import LocalVault, VaultWatcher
from .tools.registry import ServerContext

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config files if present
    - Merge connection settings via load_config(): CLI > env vars > .env > YAML > defaults
    - Create TracClient and validate connection (fail fast if unreachable)
    - Build the vault, publish pipeline and live sync engine, start the
      engine and the vault watcher

    On shutdown:
    - Stop the watcher and the engine, wait for fired timer callbacks

    Args:
        config_overrides: Optional dict with config values from CLI (url, username, password, insecure)

    Yields:
        Dict with 'context' (ServerContext) and 'client' keys

    Raises:
        RuntimeError: If configuration is invalid or Trac connection fails.
    """
    logger.info("Live sync server starting...")
    _stderr_print("Trac Live Sync starting...")

    try:
        # .env first so ${VAR} interpolation in YAML can use its values
        load_dotenv()

        config_files = discover_config_files()
        sources = []
        unified = build_config(load_hierarchical_config())
        yaml_fallbacks: dict[str, Any] | None = None
        if config_files:
            yaml_fallbacks = {
                k: v
                for k, v in unified.trac.model_dump().items()
                if v is not None
            }
            sources.append(f"config file: {config_files[0]}")

        overrides = config_overrides or {}
        config = load_config(
            url=overrides.get("url"),
            username=overrides.get("username"),
            password=overrides.get("password"),
            insecure=overrides.get("insecure", False),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Trac URL: %s", config.trac_url)
        _stderr_print(f"  Trac URL: {config.trac_url}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Ensure TRAC_URL, TRAC_USERNAME, TRAC_PASSWORD are set."
        )
        raise RuntimeError(
            f"Configuration error: {e}. Ensure TRAC_URL, TRAC_USERNAME, TRAC_PASSWORD are set."
        ) from e

    logger.info("Validating Trac connection...")
    _stderr_print("  Validating Trac connection...")
    try:
        client = TracClient(config)
        version = await run_sync(client.validate_connection)
        logger.info(
            "Successfully connected to Trac API version %s", version
        )
        _stderr_print(f"  Connected to Trac API version {version}")
        init_semaphore(config.max_parallel_requests)
        _stderr_print(
            f"  Parallel requests: {config.max_parallel_requests}"
        )
    except Exception as e:
        logger.error("Failed to connect to Trac: %s", e)
        _stderr_print("ERROR: Trac connection failed.")
        _stderr_print(f"  {e}")
        _stderr_print("  Check TRAC_URL, TRAC_USERNAME, TRAC_PASSWORD.")
        raise RuntimeError(
            f"Trac connection failed: {e}. Check TRAC_URL, TRAC_USERNAME, TRAC_PASSWORD."
        ) from e

    live = unified.live_sync
    vault_root, state_file = live.resolve_paths(Path.cwd())
    vault = LocalVault(vault_root)
    timer = AsyncioTimer()
    notifier = LogNotifier()
    engine = LiveSyncEngine(
        vault=vault,
        pipeline=TracPublishPipeline(
            vault, client, lambda: engine.settings, live.wiki_namespace
        ),
        remote=TracDocumentStore(client),
        store=StateStore(state_file, defaults=live.seed_state()),
        notifier=notifier,
        timer=timer,
    )
    try:
        await engine.start()
    except ValueError as e:
        logger.error("Invalid live sync state: %s", e)
        _stderr_print(f"ERROR: Invalid live sync state: {e}")
        raise RuntimeError(f"Invalid live sync state: {e}") from e
    _stderr_print(f"  Vault: {vault_root}")
    _stderr_print(f"  State file: {state_file}")
    _stderr_print(f"  Live sync: {engine.status.label}")

    watcher: VaultWatcher | None = None
    if live.watch:
        watcher = VaultWatcher(vault, engine.on_file_modified)
        await watcher.start()

    _stderr_print("Server ready. Waiting for MCP client connection...")
    context = ServerContext(client=client, engine=engine, notifier=notifier)
    try:
        yield {"context": context, "client": client}
    finally:
        logger.info("Live sync server shutting down")
        if watcher is not None:
            await watcher.stop()
        await engine.stop()
        await timer.drain()
        reset_semaphore()
        _stderr_print("Trac Live Sync shutting down.")
