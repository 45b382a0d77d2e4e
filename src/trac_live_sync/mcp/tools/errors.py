"""Error response builders and shared formatting for MCP tool handlers.

Structured error responses carry a corrective action so an AI agent can
recover without human intervention.
"""

import xmlrpc.client
from datetime import datetime, timezone
from typing import Any

import mcp.types as types


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied, validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def format_timestamp(timestamp: Any) -> str:
    """Format a timestamp for display (YYYY-MM-DD HH:MM, UTC).

    Accepts datetime objects and Unix timestamps in seconds; ``0`` and
    ``None`` mean "never".
    """
    match timestamp:
        case 0 | None:
            return "never"
        case datetime() as dt:
            return dt.strftime("%Y-%m-%d %H:%M")
        case int() | float() as ts:
            dt = datetime.fromtimestamp(ts, tz=timezone.utc)
            return dt.strftime("%Y-%m-%d %H:%M")
        case _:
            return str(timestamp)


_WIKI_MESSAGES: dict[str, str] = {
    "not_found": "Use live_sync_status to check the published pages.",
    "not_found_named": "Check that '{entity_name}' exists in the vault and is in the publish scope.",
    "permission": "Contact Trac administrator for WIKI_MODIFY / WIKI_DELETE permission.",
    "server": "Contact Trac administrator or retry later.",
}


def translate_xmlrpc_error(
    error: xmlrpc.client.Fault,
    entity_name: str | None = None,
) -> types.CallToolResult:
    """Translate an XML-RPC fault to a structured error response.

    Args:
        error: XML-RPC fault exception
        entity_name: Optional vault path for contextual suggestions
    """
    fault_str = error.faultString.lower()

    match fault_str:
        case s if "not found" in s or "does not exist" in s:
            if entity_name:
                action = _WIKI_MESSAGES["not_found_named"].format(
                    entity_name=entity_name
                )
            else:
                action = _WIKI_MESSAGES["not_found"]
            return build_error_response(
                "not_found", error.faultString, action
            )

        case s if "permission" in s or "denied" in s:
            return build_error_response(
                "permission_denied",
                error.faultString,
                _WIKI_MESSAGES["permission"],
            )

        case _:
            return build_error_response(
                "server_error", error.faultString, _WIKI_MESSAGES["server"]
            )
