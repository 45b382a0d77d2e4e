"""MCP tool handlers for live sync.

Defines four tools:

- ``live_sync_status`` -- current status, settings and recent notices.
- ``live_sync_publish`` -- publish one document or the whole scope now.
- ``live_sync_cleanup`` -- run orphan cleanup now, ignoring the cooldown.
- ``live_sync_configure`` -- change live sync settings.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...sync.models import SyncStrategy
from ...sync.reporter import (
    cleanup_stats_to_json,
    format_cleanup_notice,
    format_publish_report,
    publish_result_to_json,
)
from ...validators import validate_vault_path
from .errors import format_timestamp
from .registry import ServerContext, ToolSpec

logger = logging.getLogger(__name__)

_SETTINGS_PROPERTIES: dict[str, dict[str, Any]] = {
    "enabled": {
        "type": "boolean",
        "description": "Master switch for automatic publishing",
    },
    "strategy": {
        "type": "string",
        "enum": [s.value for s in SyncStrategy],
        "description": "Publish on save, on an interval, or both",
    },
    "debounce_seconds": {
        "type": "integer",
        "minimum": 0,
        "description": "Quiet period after the last save before publishing",
    },
    "interval_minutes": {
        "type": "integer",
        "minimum": 1,
        "description": "Period of the interval re-publish",
    },
    "orphan_cleanup_interval_hours": {
        "type": "integer",
        "minimum": 1,
        "description": "Minimum hours between automatic orphan cleanups",
    },
    "folder_to_publish": {
        "type": "string",
        "description": "Vault folder in scope; empty for no folder restriction",
    },
    "key_backlink": {
        "type": "string",
        "description": "Link or embed a document must carry to be in scope; empty for none",
    },
}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _settings_json(ctx: ServerContext) -> dict[str, Any]:
    return ctx.engine.settings.model_dump(mode="json")


async def _handle_status(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    engine = ctx.engine
    settings = engine.settings
    last_cleanup = settings.last_orphan_cleanup_ts / 1000

    lines = [
        engine.status.label,
        f"  Enabled:        {settings.enabled}",
        f"  Strategy:       {settings.strategy.value}",
        f"  Debounce:       {settings.debounce_seconds}s",
        f"  Interval:       {settings.interval_minutes}min",
        f"  Folder:         {settings.folder_to_publish or '(whole vault)'}",
        f"  Backlink key:   {settings.key_backlink or '(none)'}",
        f"  Pending:        {len(engine.queue)}",
        f"  Published pages: {len(engine.backlinks)}",
        f"  Last cleanup:   {format_timestamp(last_cleanup)}",
    ]
    recent = ctx.notifier.recent()
    if recent:
        lines.append("")
        lines.append("Recent notices:")
        lines.extend(f"  [{stamp}] {message}" for stamp, message in recent)

    structured = {
        "status": engine.status.label,
        "state": engine.status.state.value,
        "count": engine.status.count,
        "pending": list(engine.queue),
        "published_pages": dict(engine.backlinks),
        "settings": _settings_json(ctx),
        "recent_notices": [
            {"time": stamp, "message": message} for stamp, message in recent
        ],
    }
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=structured,
    )


async def _handle_publish(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    path = args.get("path")
    if path is not None:
        if not isinstance(path, str):
            raise ValueError("path must be a vault-relative path string")
        path = path.strip()
        is_valid, error_msg = validate_vault_path(path)
        if not is_valid:
            raise ValueError(error_msg)
    skip_cleanup = args.get("skip_cleanup")

    result = await ctx.engine.publish(path, skip_cleanup=skip_cleanup)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_publish_report(result))
        ],
        structuredContent=publish_result_to_json(result),
        isError=bool(result.failed) and not result.succeeded,
    )


async def _handle_cleanup(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    stats = await ctx.engine.run_orphan_cleanup_now()
    text = format_cleanup_notice(stats) or "No orphaned wiki pages found."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=cleanup_stats_to_json(stats),
    )


async def _handle_configure(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    changes = {k: v for k, v in args.items() if v is not None}
    if not changes:
        raise ValueError(
            "Provide at least one setting: "
            + ", ".join(sorted(_SETTINGS_PROPERTIES))
        )
    settings = await ctx.engine.update_settings(**changes)
    logger.info("Live sync settings changed: %s", sorted(changes))

    lines = ["Live sync settings updated."]
    lines.extend(
        f"  {name}: {value}"
        for name, value in settings.model_dump(mode="json").items()
        if name in _SETTINGS_PROPERTIES
    )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={"settings": _settings_json(ctx)},
    )


# ---------------------------------------------------------------------------
# Tool specs
# ---------------------------------------------------------------------------


LIVE_SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="live_sync_status",
            description=(
                "Show live sync status (idle, pending or syncing), current "
                "settings, published pages and recent notices."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=frozenset({"WIKI_VIEW"}),
        handler=_handle_status,
    ),
    ToolSpec(
        tool=types.Tool(
            name="live_sync_publish",
            description=(
                "Publish one vault document, or every document in the "
                "publish scope, to the Trac wiki now. Publishing the whole "
                "scope also removes wiki pages whose source left the scope."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": (
                            "Vault-relative path (e.g. Docs/setup.md). "
                            "Omit to publish the whole scope."
                        ),
                    },
                    "skip_cleanup": {
                        "type": "boolean",
                        "description": (
                            "Skip orphan cleanup after publishing. Defaults "
                            "to true when a path is given."
                        ),
                    },
                },
                "required": [],
            },
        ),
        permissions=frozenset({"WIKI_MODIFY"}),
        handler=_handle_publish,
    ),
    ToolSpec(
        tool=types.Tool(
            name="live_sync_cleanup",
            description=(
                "Delete wiki pages whose source document left the publish "
                "scope, ignoring the cleanup cooldown."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=frozenset({"WIKI_DELETE"}),
        handler=_handle_cleanup,
    ),
    ToolSpec(
        tool=types.Tool(
            name="live_sync_configure",
            description=(
                "Change live sync settings. Only the given settings change; "
                "timers and the pending queue are updated immediately."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": _SETTINGS_PROPERTIES,
                "required": [],
            },
        ),
        permissions=frozenset({"WIKI_MODIFY"}),
        handler=_handle_configure,
    ),
]
