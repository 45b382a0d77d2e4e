"""Notice and report formatting for live sync.

Provides the user-facing text for the two notices the engine emits and
structured dicts for MCP tool output:

- ``format_cycle_notice`` -- one line per completed publish cycle.
- ``format_cleanup_notice`` -- one line per orphan cleanup pass.
- ``format_publish_report`` -- detailed multi-line report for manual runs.
- ``publish_result_to_json`` / ``cleanup_stats_to_json`` -- structured output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CleanupStats, PublishResult


def format_cycle_notice(result: PublishResult) -> str:
    """Summarise a publish cycle in a single line (counts only)."""
    published = len(result.succeeded)
    failed = len(result.failed)
    text = f"Live sync: {published} page(s) published"
    if failed:
        text += f", {failed} failed; check the log for details"
    return text + "."


def format_cleanup_notice(stats: CleanupStats) -> str | None:
    """Summarise an orphan cleanup pass, or ``None`` if nothing happened."""
    if stats.is_empty:
        return None
    parts: list[str] = []
    if stats.deleted_paths:
        parts.append(
            f"{len(stats.deleted_paths)} wiki page(s) removed after their "
            "source left the publish scope."
        )
    if stats.failed_deletions:
        parts.append(
            f"{len(stats.failed_deletions)} page removal(s) failed; "
            "check the log."
        )
    return " ".join(parts)


def format_publish_report(result: PublishResult) -> str:
    """Format a full publish result, listing every failure with its reason.

    Args:
        result: The completed publish result.

    Returns:
        Multi-line formatted string.
    """
    lines = [format_cycle_notice(result)]

    if result.succeeded:
        lines.append("")
        lines.append("Published:")
        for path, remote_id in result.succeeded:
            suffix = f" -> {remote_id}" if remote_id else ""
            lines.append(f"  {path}{suffix}")

    if result.failed:
        lines.append("")
        lines.append("Failed:")
        for path, reason in result.failed:
            lines.append(f"  {path}: {reason}")

    if result.cleanup is not None:
        notice = format_cleanup_notice(result.cleanup)
        if notice:
            lines.append("")
            lines.append(notice)

    return "\n".join(lines)


def cleanup_stats_to_json(stats: CleanupStats) -> dict:
    """Convert cleanup stats to a JSON-serialisable dict."""
    return {
        "deleted": list(stats.deleted_paths),
        "failed": [
            {"path": path, "reason": reason}
            for path, reason in stats.failed_deletions
        ],
    }


def publish_result_to_json(result: PublishResult) -> dict:
    """Convert a publish result to a JSON-serialisable dict."""
    data: dict = {
        "summary": {
            "published": len(result.succeeded),
            "failed": len(result.failed),
        },
        "succeeded": [
            {"path": path, "remote_id": remote_id}
            for path, remote_id in result.succeeded
        ],
        "failed": [
            {"path": path, "reason": reason}
            for path, reason in result.failed
        ],
    }
    if result.cleanup is not None:
        data["cleanup"] = cleanup_stats_to_json(result.cleanup)
    return data
