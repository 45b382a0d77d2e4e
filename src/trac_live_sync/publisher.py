"""Publish pipeline that uploads vault documents to Trac wiki pages.

Each document maps to one wiki page:

* The front matter key ``wiki-page`` pins the page name explicitly.
* Otherwise the page is ``<namespace>/<path without .md>``.

Trac renders the Markdown itself through a ``#!markdown`` processor
block, so the body is uploaded unchanged.  A "page not modified" answer
from Trac counts as a successful publish.

Error handling is per-document: one failing upload does not stop the
others, it becomes a failed ``PublishOutcome``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import PurePosixPath

from .core.async_utils import run_sync_limited
from .core.client import PageNotModifiedError, TracClient
from .sync.eligibility import is_eligible
from .sync.models import PublishOutcome, SyncSettings
from .vault import REMOTE_ID_KEY, LocalVault, split_front_matter

logger = logging.getLogger(__name__)

PROCESSOR_OPEN = "{{{#!markdown"
PROCESSOR_CLOSE = "}}}"


def page_name_for(path: str, namespace: str = "") -> str:
    """Derive the wiki page name for a vault path.

    >>> page_name_for("Docs/Setup Guide.md", "Vault")
    'Vault/Docs/Setup Guide'
    """
    posix = PurePosixPath(path)
    stem = posix.with_suffix("") if posix.suffix.lower() == ".md" else posix
    name = stem.as_posix()
    prefix = namespace.strip().strip("/")
    return f"{prefix}/{name}" if prefix else name


def render_page(body: str) -> str:
    """Wrap a Markdown body in a Trac ``#!markdown`` processor block."""
    text = body.strip("\n")
    return f"{PROCESSOR_OPEN}\n{text}\n{PROCESSOR_CLOSE}\n"


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class TracPublishPipeline:
    """Publish vault documents as Trac wiki pages.

    Args:
        vault: Source of documents.
        client: Trac XML-RPC client.
        settings_provider: Returns the engine's current settings, used to
            select documents when publishing the whole scope.
        namespace: Wiki page prefix for documents without an explicit page.
    """

    def __init__(
        self,
        vault: LocalVault,
        client: TracClient,
        settings_provider: Callable[[], SyncSettings],
        namespace: str = "",
    ) -> None:
        self.vault = vault
        self.client = client
        self._settings_provider = settings_provider
        self.namespace = namespace

    async def publish(self, target: str | None = None) -> list[PublishOutcome]:
        """Publish *target*, or every eligible document when ``None``."""
        if target is not None:
            paths = [target]
        else:
            paths = await self._eligible_paths()
            logger.info("Publishing %d document(s) to Trac", len(paths))

        outcomes: list[PublishOutcome] = []
        for path in paths:
            outcomes.append(await self._publish_one(path))
        return outcomes

    async def _eligible_paths(self) -> list[str]:
        settings = self._settings_provider()
        paths: list[str] = []
        for path in await self.vault.list_markdown_files():
            document = await self.vault.get_document(path)
            if document is not None and is_eligible(
                document, settings.folder_to_publish, settings.key_backlink
            ):
                paths.append(path)
        return paths

    async def _publish_one(self, path: str) -> PublishOutcome:
        try:
            text = await self.vault.read_text(path)
        except OSError as exc:
            logger.error("Error reading %s: %s", path, exc)
            return PublishOutcome(
                path=path, succeeded=False, failure_reason=_describe(exc)
            )

        metadata, _, body = split_front_matter(text)
        pinned = metadata.get(REMOTE_ID_KEY)
        page_name = (
            str(pinned).strip()
            if pinned
            else page_name_for(path, self.namespace)
        )

        try:
            await run_sync_limited(
                self.client.put_wiki_page,
                page_name,
                render_page(body),
                f"Live sync from {path}",
            )
        except PageNotModifiedError:
            logger.debug("Wiki page %s already up to date", page_name)
        except Exception as exc:
            logger.error(
                "Failed to publish %s to %s: %s", path, page_name, exc
            )
            return PublishOutcome(
                path=path,
                succeeded=False,
                remote_id=page_name,
                failure_reason=_describe(exc),
            )
        else:
            logger.info("Published %s -> %s", path, page_name)

        return PublishOutcome(path=path, succeeded=True, remote_id=page_name)
