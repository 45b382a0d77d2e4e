"""Local Markdown vault: document access, link extraction and watching.

``LocalVault`` implements the vault capability the live sync engine is
wired with.  Documents are addressed by POSIX paths relative to the
vault root; hidden files and directories (any segment starting with a
dot) are never part of the vault.

Link metadata comes from two sources:

* Standard Markdown links and images, read from the mistune AST.
* Wiki-style ``[[Target|alias]]`` links and ``![[Target]]`` embeds, which
  mistune does not parse, matched with a regular expression.

The remote page a document was published to may be pinned in YAML front
matter under ``wiki-page``; ``clear_remote_id`` removes that key once the
page has been deleted remotely.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import mistune
import yaml
from watchfiles import Change, awatch

from .core.async_utils import run_sync
from .file_handler import (
    decode_bytes,
    is_hidden,
    resolve_vault_path,
    to_vault_path,
    write_file,
)
from .sync.models import DocumentInfo

logger = logging.getLogger(__name__)

REMOTE_ID_KEY = "wiki-page"
MARKDOWN_SUFFIX = ".md"

_FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL
)
_WIKILINK_RE = re.compile(r"(!?)\[\[([^\[\]\n]+?)\]\]")

_markdown_ast = mistune.create_markdown(renderer="ast")


# =============================================================================
# Parsing helpers
# =============================================================================


def split_front_matter(text: str) -> tuple[dict[str, Any], str, str]:
    """Split a document into front matter, raw front matter block and body.

    Returns:
        Tuple of (metadata, raw_block, body).  ``metadata`` is empty and
        ``raw_block`` is ``""`` when the document has no front matter.
        Malformed YAML is logged and treated as empty metadata.
    """
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return {}, "", text
    raw_block = match.group(0)
    body = text[match.end():]
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed front matter: %s", exc)
        return {}, raw_block, body
    if not isinstance(data, dict):
        return {}, raw_block, body
    return data, raw_block, body


def _walk_tokens(
    tokens: list[dict[str, Any]], links: list[str], embeds: list[str]
) -> None:
    for token in tokens:
        kind = token.get("type")
        url = (token.get("attrs") or {}).get("url")
        if kind == "link" and url:
            links.append(url)
        elif kind == "image" and url:
            embeds.append(url)
        children = token.get("children")
        if isinstance(children, list):
            _walk_tokens(children, links, embeds)


def extract_links(body: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Return raw (links, embeds) targets found in a Markdown body."""
    links: list[str] = []
    embeds: list[str] = []
    _walk_tokens(_markdown_ast(body), links, embeds)
    for bang, target in _WIKILINK_RE.findall(body):
        (embeds if bang else links).append(f"[[{target}]]")
    return tuple(links), tuple(embeds)


def remove_front_matter_key(
    text: str, key: str = REMOTE_ID_KEY
) -> str | None:
    """Return *text* without the top-level front matter *key*.

    Other front matter lines are kept verbatim; an emptied block is
    dropped entirely.  Returns ``None`` when the key is not present.
    """
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return None
    line_re = re.compile(rf"^{re.escape(key)}\s*:")
    lines = match.group(1).splitlines()
    kept: list[str] = []
    removed = False
    skipping = False
    for line in lines:
        if line_re.match(line):
            removed = True
            skipping = True
            continue
        # continuation lines of a removed block value are indented
        if skipping and line[:1] in (" ", "\t"):
            continue
        skipping = False
        kept.append(line)
    if not removed:
        return None
    body = text[match.end():]
    if not any(line.strip() for line in kept):
        return body
    newline = "\r\n" if "\r\n" in match.group(0) else "\n"
    block = newline.join(["---", *kept, "---"]) + newline
    return block + body


# =============================================================================
# Vault
# =============================================================================


class LocalVault:
    """Markdown documents under a local directory.

    Args:
        root: Vault root directory.
    """

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    def _scan(self) -> list[str]:
        paths: list[str] = []
        for path in self.root.rglob(f"*{MARKDOWN_SUFFIX}"):
            if not path.is_file():
                continue
            vault_path = to_vault_path(self.root, path)
            if is_hidden(vault_path):
                continue
            paths.append(vault_path)
        return sorted(paths)

    def _resolve(self, path: str) -> Path:
        try:
            return resolve_vault_path(self.root, path)
        except ValueError as exc:
            raise FileNotFoundError(str(exc)) from exc

    async def list_markdown_files(self) -> list[str]:
        """Return every visible ``.md`` document, sorted by path."""
        return await run_sync(self._scan)

    async def exists(self, path: str) -> bool:
        try:
            resolved = self._resolve(path)
        except FileNotFoundError:
            return False
        return await run_sync(resolved.is_file)

    async def read_file(self, path: str) -> bytes:
        """Return the raw bytes of *path*.

        Raises:
            OSError: If the file is missing, outside the vault or unreadable.
        """
        resolved = self._resolve(path)
        return await run_sync(resolved.read_bytes)

    async def read_text(self, path: str) -> str:
        content, _ = decode_bytes(await self.read_file(path))
        return content

    def _load_document(self, path: str) -> DocumentInfo | None:
        try:
            resolved = self._resolve(path)
            raw = resolved.read_bytes()
            mtime = resolved.stat().st_mtime
        except OSError as exc:
            logger.debug("No document at %s: %s", path, exc)
            return None
        text, _ = decode_bytes(raw)
        metadata, _, body = split_front_matter(text)
        links, embeds = extract_links(body)
        remote_id = metadata.get(REMOTE_ID_KEY)
        return DocumentInfo(
            path=path,
            links=links,
            embeds=embeds,
            mtime=mtime,
            remote_id=str(remote_id).strip() if remote_id else None,
        )

    async def get_document(self, path: str) -> DocumentInfo | None:
        """Return link metadata for *path*, or ``None`` if it cannot be read."""
        if is_hidden(path) or not path.lower().endswith(MARKDOWN_SUFFIX):
            return None
        return await run_sync(self._load_document, path)

    def _clear_remote_id(self, path: str) -> bool:
        try:
            resolved = self._resolve(path)
            raw = resolved.read_bytes()
        except FileNotFoundError:
            return False
        text, encoding = decode_bytes(raw)
        updated = remove_front_matter_key(text)
        if updated is None:
            return False
        write_file(resolved, updated, encoding)
        return True

    async def clear_remote_id(self, path: str) -> None:
        """Remove the ``wiki-page`` front matter key from *path*, if present.

        A missing document is not an error.

        Raises:
            OSError: If the document exists but cannot be rewritten.
        """
        if await run_sync(self._clear_remote_id, path):
            logger.info("Cleared %s from %s", REMOTE_ID_KEY, path)


# =============================================================================
# Watcher
# =============================================================================


ChangeCallback = Callable[[str], Awaitable[None]]


class VaultWatcher:
    """Feed created and modified Markdown files to a callback.

    Args:
        vault: The vault whose root is watched.
        callback: Awaited with the vault-relative path of each change.
        debounce_ms: watchfiles batching window in milliseconds.
    """

    def __init__(
        self,
        vault: LocalVault,
        callback: ChangeCallback,
        debounce_ms: int = 200,
    ) -> None:
        self.vault = vault
        self.callback = callback
        self.debounce_ms = debounce_ms
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._watch_loop())
        logger.info("Watching %s for changes", self.vault.root)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def relevant_paths(self, changes: set[tuple[Change, str]]) -> list[str]:
        """Vault paths of added or modified visible Markdown files, in order."""
        paths: list[str] = []
        for change, raw_path in sorted(changes, key=lambda c: c[1]):
            if change not in (Change.added, Change.modified):
                continue
            if not raw_path.lower().endswith(MARKDOWN_SUFFIX):
                continue
            try:
                vault_path = to_vault_path(self.vault.root, Path(raw_path))
            except ValueError:
                continue
            if is_hidden(vault_path) or vault_path in paths:
                continue
            paths.append(vault_path)
        return paths

    async def _watch_loop(self) -> None:
        if not self.vault.root.is_dir():
            logger.warning("Vault root %s does not exist", self.vault.root)
            return
        async for changes in awatch(
            self.vault.root,
            debounce=self.debounce_ms,
            stop_event=self._stop_event,
        ):
            for path in self.relevant_paths(changes):
                try:
                    await self.callback(path)
                except Exception:
                    logger.exception("Handling change to %s failed", path)
