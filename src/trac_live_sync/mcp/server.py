"""MCP server for Trac live sync using stdio transport.

Runs the live sync engine for the configured vault for as long as the
MCP client stays connected, and exposes tools to inspect and drive it.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config_loader import ensure_config
from ..core.async_utils import run_sync
from ..logger import setup_logging
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ServerContext,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("trac-live-sync")

# Initialized in main() from the lifespan context
_context: ServerContext | None = None

# Initialized in main()
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, no Trac permission required)
# ---------------------------------------------------------------------------


async def _handle_ping(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test Trac connectivity."""
    try:
        version = await run_sync(ctx.client.validate_connection)
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=(
                        f"Trac live sync connected successfully. API version: {version}. "
                        f"{ctx.engine.status.label}"
                    ),
                )
            ]
        )
    except Exception as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Trac connection failed: {e}. Check TRAC_URL, TRAC_USERNAME, TRAC_PASSWORD.",
                )
            ],
            isError=True,
        )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test Trac connectivity and return the API version and live sync status",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> ServerContext:
    """Get the global ServerContext.

    Raises:
        RuntimeError: If the server lifespan has not started
    """
    if _context is None:
        raise RuntimeError(
            "Server context not initialized. Server lifespan not started."
        )
    return _context


def set_context(context: ServerContext | None) -> None:
    """Set the global ServerContext, or None to clear it."""
    global _context
    _context = context


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set the global ToolRegistry instance, or None to clear it."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """Return all registered (and permitted) tools from the ToolRegistry."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    context = get_context()
    try:
        return await get_registry().call_tool(name, arguments, context)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Create the registry, filtered by *permissions_file* when given."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), starts the
    live sync service via the lifespan manager, and serves JSON-RPC over
    stdio until the client disconnects.

    Args:
        config_overrides: Optional dict with config values to override
            (url, username, password, insecure, debug, log_file, permissions_file)
    """
    overrides = config_overrides or {}

    # Must run BEFORE stdio_server so nothing reaches stdout during negotiation
    setup_logging(
        mode="mcp",
        debug=bool(overrides.get("debug")),
        log_file=overrides.get("log_file"),
    )
    logger.info("trac-live-sync version %s", __version__)

    set_registry(build_registry(overrides.get("permissions_file")))

    # set_context() is called here rather than inside the lifespan: when
    # run via `python -m`, this module is __main__ and a relative import of
    # it from lifespan.py would load a second copy.
    try:
        async with server_lifespan(config_overrides=config_overrides) as ctx:
            set_context(ctx["context"])
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="trac-live-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
    finally:
        set_context(None)
        set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Trac Live Sync - publish a local Markdown vault to Trac wiki pages, as an MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .trac_live_sync/config.yml)
  trac-live-sync

  # Override Trac URL
  trac-live-sync --url https://trac.example.com

  # Use with insecure SSL (development only)
  trac-live-sync --url http://localhost:8000 --insecure

  # Custom log file location, with debug logging
  trac-live-sync --log-file /var/log/trac-live-sync.log --debug

  # Write a starter .trac_live_sync/config.yml
  trac-live-sync --init-config

  # Expose only the status tool
  trac-live-sync --permissions-file /etc/trac-live-sync/read-only.permissions

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--url",
        help="Override Trac instance URL (takes precedence over TRAC_URL env var and config files)",
    )
    parser.add_argument(
        "--username",
        help="Override Trac username (takes precedence over TRAC_USERNAME env var and config files)",
    )
    parser.add_argument(
        "--password",
        help="Override Trac password (takes precedence over TRAC_PASSWORD env var and config files)"
        " (visible in process list -- prefer TRAC_PASSWORD env var for security)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default="/tmp/trac-live-sync.log",
        help="Log file path (default: /tmp/trac-live-sync.log)",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one Trac permission per line (e.g., WIKI_VIEW), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Create a starter config file (if none exists), print its path and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"trac-live-sync version {__version__}",
    )

    args = parser.parse_args()

    if args.init_config:
        print(f"Config file: {ensure_config()}", file=sys.stderr)
        sys.exit(0)

    config_overrides = {}
    if args.url:
        config_overrides["url"] = args.url
    if args.username:
        config_overrides["username"] = args.username
    if args.password:
        config_overrides["password"] = args.password
    if args.insecure:
        config_overrides["insecure"] = True
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.permissions_file:
        config_overrides["permissions_file"] = args.permissions_file

    if config_overrides:
        override_keys = [
            k for k in config_overrides.keys() if k != "password"
        ]
        print(
            f"Config overrides from CLI: {', '.join(override_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(
            main(
                config_overrides=config_overrides
                if config_overrides
                else None
            )
        )
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
