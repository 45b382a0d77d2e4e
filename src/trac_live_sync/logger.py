"""Logging setup for the MCP server and for command-line use.

The MCP server talks JSON-RPC over stdout, so in ``mcp`` mode nothing may
ever be written there: records go to a log file only.  Live sync notices
are logged at INFO by ``trac_live_sync.notifier``; that logger keeps INFO
even when the rest of the file log is at the WARNING default, because the
log is where users look for publish and cleanup results.
"""

import json
import logging
import os
import sys

_DATEFMT = "%Y-%m-%d %H:%M:%S"
_DEFAULT_MCP_LOG_FILE = "/tmp/trac-live-sync.log"
_NOTICE_LOGGER = "trac_live_sync.notifier"

# Transport and file watcher chatter, only useful when debugging them
_NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "watchfiles")


class JsonFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, msg (+ exc)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(
    debug_format: str, with_name: bool = False
) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    name = " %(name)s" if with_name else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s", datefmt=_DATEFMT
    )


def _resolve_level(mode: str, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    default = "WARNING" if mode == "mcp" else "INFO"
    name = os.getenv("LOG_LEVEL", default).upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "mcp" for file logging (never stdout), "cli" for stderr logging.
        debug: If True, overrides LOG_LEVEL to DEBUG.
        log_file: Custom log file path (overrides LOG_FILE env var).
        debug_format: "text" (default) or "json" for structured output.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: WARNING for MCP mode, INFO for CLI mode.
        LOG_FILE: Custom log file path for MCP mode.
                  Default: /tmp/trac-live-sync.log
    """
    level = _resolve_level(mode, debug)

    if mode == "mcp":
        handler: logging.Handler = logging.FileHandler(
            log_file or os.getenv("LOG_FILE", _DEFAULT_MCP_LOG_FILE),
            mode="a",
        )
        handler.setFormatter(_make_formatter(debug_format, with_name=True))
        handlers = [handler]
        # Notices stay visible in the file log at the default level
        notice_logger = logging.getLogger(_NOTICE_LOGGER)
        notice_logger.setLevel(min(level, logging.INFO))
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_make_formatter(debug_format))
        handlers = [stderr_handler]
        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(
                _make_formatter(debug_format, with_name=True)
            )
            handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers)

    if level != logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
