"""Decide whether a local document is in scope for live sync.

A document is in scope when it lives under the configured publish folder,
or when it links to (or embeds) the configured backlink key.  Both checks
are pure functions of their inputs.
"""

from __future__ import annotations

import re
from urllib.parse import unquote

from .models import DocumentInfo

_MARKDOWN_LINK = re.compile(r"^!?\[[^\]]*\]\((.*)\)$")
_WIKI_LINK = re.compile(r"^!?\[\[(.*)\]\]$")


def normalize_folder(folder: str) -> str:
    """Strip surrounding whitespace and trailing separators."""
    return folder.strip().rstrip("/")


def is_in_folder(path: str, folder: str) -> bool:
    """Return True if *path* is *folder* itself or lies beneath it."""
    return path == folder or path.startswith(f"{folder}/")


def normalize_backlink_key(value: str) -> str:
    """Reduce a link target or backlink key to a comparable form.

    ``[[Publish|label]]``, ``![[Publish#Heading]]``, ``[x](./Publish.md)``
    and ``publish`` all normalise to ``publish``.
    """
    text = value.strip()
    match = _WIKI_LINK.match(text) or _MARKDOWN_LINK.match(text)
    if match:
        text = match.group(1).strip()
    text = text.lstrip("!")
    if text.startswith("<") and text.endswith(">"):
        text = text[1:-1]
    # alias, then heading / block reference
    text = text.split("|", 1)[0]
    text = text.split("#", 1)[0]
    text = unquote(text).replace("\\", "/").strip()
    while text.startswith("./"):
        text = text[2:]
    text = text.lstrip("/")
    if text.lower().endswith(".md"):
        text = text[:-3]
    return text.strip().lower()


def _matches_key(targets: tuple[str, ...], needle: str) -> bool:
    return any(normalize_backlink_key(t) == needle for t in targets)


def is_eligible(
    document: DocumentInfo, folder: str, backlink_key: str
) -> bool:
    """Return True if *document* qualifies for live sync.

    Rules are applied in order:

    1. Inside the configured folder -> eligible.
    2. Folder configured, outside it, no backlink key -> not eligible.
    3. Neither folder nor key configured -> eligible.
    4. No backlink key -> not eligible.
    5. Eligible iff a link or embed target matches the key.
    """
    normalized_folder = normalize_folder(folder)
    needle = normalize_backlink_key(backlink_key)
    folder_active = bool(normalized_folder)
    key_active = bool(needle)

    if folder_active and is_in_folder(document.path, normalized_folder):
        return True
    if folder_active and not key_active:
        return False
    if not folder_active and not key_active:
        return True
    if not key_active:
        return False

    return _matches_key(document.links, needle) or _matches_key(
        document.embeds, needle
    )
