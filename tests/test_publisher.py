"""Tests for the Trac publish pipeline."""

import xmlrpc.client
from pathlib import Path

import pytest

from trac_live_sync.core.client import PageNotModifiedError
from trac_live_sync.publisher import (
    TracPublishPipeline,
    page_name_for,
    render_page,
)
from trac_live_sync.sync.models import SyncSettings
from trac_live_sync.vault import LocalVault


def _write(root: Path, rel: str, text: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def vault(tmp_path):
    _write(tmp_path, "Docs/a.md", "# A\n\nBody of A.\n")
    _write(tmp_path, "Docs/b.md", "---\nwiki-page: Custom/Bee\n---\n# B\n")
    _write(tmp_path, "Other/c.md", "# C\n")
    return LocalVault(tmp_path)


@pytest.fixture
def settings():
    return SyncSettings(folder_to_publish="Docs")


@pytest.fixture
def pipeline(vault, mock_trac_client, settings):
    return TracPublishPipeline(
        vault, mock_trac_client, lambda: settings, namespace="Notes"
    )


class TestPageNames:
    def test_namespace_prefix(self):
        assert page_name_for("Docs/Setup Guide.md", "Vault") == (
            "Vault/Docs/Setup Guide"
        )

    def test_no_namespace(self):
        assert page_name_for("a.md") == "a"

    def test_namespace_slashes_trimmed(self):
        assert page_name_for("a.md", "/Notes/") == "Notes/a"

    def test_uppercase_suffix(self):
        assert page_name_for("Docs/A.MD", "") == "Docs/A"


def test_render_page_wraps_body_in_processor():
    assert render_page("\n# Title\n\ntext\n\n") == (
        "{{{#!markdown\n# Title\n\ntext\n}}}\n"
    )


class TestPublish:
    async def test_single_target(self, pipeline, mock_trac_client):
        outcomes = await pipeline.publish("Docs/a.md")

        assert [o.model_dump() for o in outcomes] == [
            {
                "path": "Docs/a.md",
                "succeeded": True,
                "remote_id": "Notes/Docs/a",
                "failure_reason": None,
            }
        ]
        mock_trac_client.put_wiki_page.assert_called_once_with(
            "Notes/Docs/a",
            "{{{#!markdown\n# A\n\nBody of A.\n}}}\n",
            "Live sync from Docs/a.md",
        )

    async def test_front_matter_pins_page_and_is_not_uploaded(
        self, pipeline, mock_trac_client
    ):
        [outcome] = await pipeline.publish("Docs/b.md")

        assert outcome.remote_id == "Custom/Bee"
        name, content, _ = mock_trac_client.put_wiki_page.call_args[0]
        assert name == "Custom/Bee"
        assert "wiki-page" not in content

    async def test_publish_all_uses_current_scope(
        self, pipeline, mock_trac_client
    ):
        outcomes = await pipeline.publish()

        assert [o.path for o in outcomes] == ["Docs/a.md", "Docs/b.md"]
        assert mock_trac_client.put_wiki_page.call_count == 2

    async def test_scope_follows_settings_provider(
        self, vault, mock_trac_client
    ):
        current = {"settings": SyncSettings(folder_to_publish="Docs")}
        pipeline = TracPublishPipeline(
            vault, mock_trac_client, lambda: current["settings"]
        )
        current["settings"] = SyncSettings(folder_to_publish="Other")

        outcomes = await pipeline.publish()

        assert [o.path for o in outcomes] == ["Other/c.md"]

    async def test_not_modified_counts_as_success(
        self, pipeline, mock_trac_client
    ):
        mock_trac_client.put_wiki_page.side_effect = PageNotModifiedError(
            "Page not modified (content identical)"
        )

        [outcome] = await pipeline.publish("Docs/a.md")

        assert outcome.succeeded
        assert outcome.remote_id == "Notes/Docs/a"

    async def test_upload_failure_is_per_document(
        self, pipeline, mock_trac_client
    ):
        mock_trac_client.put_wiki_page.side_effect = [
            xmlrpc.client.Fault(403, "WIKI_CREATE privileges are required"),
            None,
        ]

        first, second = await pipeline.publish()

        assert not first.succeeded
        assert first.failure_reason == (
            "<Fault 403: 'WIKI_CREATE privileges are required'>"
        )
        assert second.succeeded

    async def test_unreadable_document_fails(self, pipeline, mock_trac_client):
        [outcome] = await pipeline.publish("Docs/missing.md")

        assert not outcome.succeeded
        assert outcome.failure_reason
        mock_trac_client.put_wiki_page.assert_not_called()
