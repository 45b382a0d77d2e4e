"""
Input validation for vault paths, wiki page names and page content.

Every check returns ``(is_valid, error_message)`` so callers decide how
to surface the failure: the client raises ``ValueError`` before any
XML-RPC call, the config schema turns it into a pydantic error, and the
publish tool rejects a bad path before the engine sees it.
"""


def format_validation_error(field_name: str, reason: str) -> str:
    """Return ``"<field_name> <reason>"``, e.g. ``"Page name cannot be empty"``."""
    return f"{field_name} {reason}"


def _check_segments(value: str, field_name: str) -> tuple[bool, str]:
    """Reject traversal, empty segments and leading/trailing slashes."""
    if value.startswith("/") or value.endswith("/"):
        return False, format_validation_error(
            field_name, "cannot start or end with '/'"
        )
    for segment in value.split("/"):
        if segment == "..":
            return False, format_validation_error(
                field_name, "cannot contain '..'"
            )
        if not segment.strip():
            return False, format_validation_error(
                field_name, "cannot have empty path segments"
            )
    return True, ""


def validate_page_name(page_name: str) -> tuple[bool, str]:
    """
    Validate a wiki page name such as ``Notes/Docs/Setup Guide``.

    Rules:
        - Cannot be empty or whitespace-only
        - No ``..`` segment, no empty segment, no leading or trailing ``/``
    """
    if not page_name or not page_name.strip():
        return False, format_validation_error("Page name", "cannot be empty")
    return _check_segments(page_name, "Page name")


def validate_namespace(namespace: str) -> tuple[bool, str]:
    """
    Validate the wiki namespace that published pages are placed under.

    An empty namespace is valid and places pages at the wiki root.
    """
    if not namespace:
        return True, ""
    return _check_segments(namespace, "Namespace")


def validate_vault_path(path: str) -> tuple[bool, str]:
    """
    Validate a vault-relative document path such as ``Docs/setup.md``.

    Backslashes are not accepted: vault paths always use ``/``.
    """
    if not path or not path.strip():
        return False, format_validation_error("Path", "cannot be empty")
    if "\\" in path:
        return False, format_validation_error(
            "Path", "must use '/' as separator"
        )
    if not path.lower().endswith(".md"):
        return False, format_validation_error(
            "Path", "must name a Markdown (.md) file"
        )
    return _check_segments(path, "Path")


def validate_content(
    content: str, max_size: int = 1_000_000
) -> tuple[bool, str]:
    """Reject empty content and content over *max_size* UTF-8 bytes."""
    if not content:
        return False, format_validation_error("Content", "cannot be empty")
    size = len(content.encode("utf-8"))
    if size > max_size:
        return False, format_validation_error(
            "Content", f"exceeds maximum size of {max_size} bytes"
        )
    return True, ""
