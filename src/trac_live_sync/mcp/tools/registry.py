"""ToolSpec and ToolRegistry for permission-based tool filtering.

This module provides a centralized registry for the MCP tools that
supports filtering based on Trac permissions, so operators can restrict
which live sync operations are exposed to AI agents.

Key concepts:
- ServerContext: The running service (Trac client, live sync engine,
  notifier) handed to every tool handler.
- ToolSpec: Immutable dataclass linking a Tool definition, required permissions,
  and an async handler with signature (context, args) -> CallToolResult.
- ToolRegistry: Filters specs by allowed permissions at construction time,
  then provides list_tools() and call_tool() dispatch with error translation.
- load_permissions_file: Reads a simple text file of Trac permission names.
"""

from __future__ import annotations

import logging
import xmlrpc.client
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import mcp.types as types
from pydantic import ValidationError

if TYPE_CHECKING:
    from ...core.client import TracClient
    from ...notifier import LogNotifier
    from ...sync.engine import LiveSyncEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ServerContext:
    """Objects shared by all tool handlers for the server's lifetime."""

    client: TracClient
    engine: LiveSyncEngine
    notifier: LogNotifier


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        permissions: Trac permissions required to use this tool.
            Empty frozenset means the tool is always available.
        handler: Async handler with signature (context, args) -> CallToolResult.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Callable[[ServerContext, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs with optional permission-based filtering.

    If allowed_permissions is None, all specs are included.
    Otherwise, a spec is included only if:
    - its permissions set is empty (always available), or
    - its permissions are a subset of allowed_permissions.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if (
                allowed_permissions is None
                or not spec.permissions
                or spec.permissions <= allowed_permissions
            ):
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered (permitted) specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        """Return number of registered tools."""
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        context: ServerContext,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Translates XML-RPC faults, validation errors, and unexpected
        exceptions into structured CallToolResult responses with
        corrective actions.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_xmlrpc_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(context, args)
        except xmlrpc.client.Fault as e:
            logger.warning("XML-RPC fault in %s: %s", name, e.faultString)
            return translate_xmlrpc_error(e, args.get("path"))
        except ValidationError as e:
            return build_error_response(
                "validation_error",
                _summarize_validation_error(e),
                "Check parameter values and retry.",
            )
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log, Trac connectivity, and retry later.",
            )


def _summarize_validation_error(error: ValidationError) -> str:
    """One line per invalid field, e.g. ``strategy: Input should be ...``."""
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "value"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Load permissions from a text file.

    Format: one permission per line, ``#`` for comments, blank lines ignored.

    Example file::

        # Status only
        WIKI_VIEW

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file contains invalid permissions or is empty.
    """
    path = Path(path)
    permissions: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        # Trac permissions are UPPER_SNAKE_CASE
        if not stripped.replace("_", "").isalpha() or not stripped.isupper():
            raise ValueError(
                f"Invalid permission '{stripped}' at line {line_num} in {path}. "
                "Expected UPPER_SNAKE_CASE (e.g., WIKI_VIEW)."
            )
        permissions.add(stripped)
    if not permissions:
        raise ValueError(
            f"No permissions found in {path}. File must contain at least one permission."
        )
    return frozenset(permissions)
