"""MCP tool handlers for live sync.

Tools wrap the running ``LiveSyncEngine`` with async handlers and
structured error responses.
"""

from .errors import build_error_response
from .live_sync import LIVE_SYNC_SPECS
from .registry import (
    ServerContext,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)

ALL_SPECS: list[ToolSpec] = list(LIVE_SYNC_SPECS)

__all__ = [
    "ALL_SPECS",
    "LIVE_SYNC_SPECS",
    "ServerContext",
    "ToolRegistry",
    "ToolSpec",
    "build_error_response",
    "load_permissions_file",
]
