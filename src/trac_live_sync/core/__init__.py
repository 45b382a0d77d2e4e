"""Trac access shared by the live sync service and its MCP tools."""

from .async_utils import run_sync, run_sync_limited
from .client import PageNotModifiedError, TracClient
from .remote import TracDocumentStore, classify_remote_error

__all__ = [
    "PageNotModifiedError",
    "TracClient",
    "TracDocumentStore",
    "classify_remote_error",
    "run_sync",
    "run_sync_limited",
]
