"""Content fingerprints used to skip publishing unchanged documents."""

from __future__ import annotations

import hashlib
import logging

from .protocols import Vault

logger = logging.getLogger(__name__)


def fingerprint(content: bytes) -> str:
    """Return a 128-bit hex digest of *content*.

    Only used for equality checks, never for anything security related.
    """
    return hashlib.md5(content, usedforsecurity=False).hexdigest()


async def compute_file_hash(vault: Vault, path: str) -> str | None:
    """Fingerprint the current content of *path*.

    Returns ``None`` when the file cannot be read; callers must treat that
    as "unknown" and never suppress a publish because of it.
    """
    try:
        content = await vault.read_file(path)
    except OSError as exc:
        logger.warning("Failed to hash %s for live sync: %s", path, exc)
        return None
    return fingerprint(content)
