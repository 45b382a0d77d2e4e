"""Tests for the live sync MCP tool handlers, driven through the registry."""

from unittest.mock import MagicMock

import pytest

from trac_live_sync.mcp.tools.live_sync import LIVE_SYNC_SPECS
from trac_live_sync.mcp.tools.registry import ServerContext, ToolRegistry
from trac_live_sync.notifier import LogNotifier


@pytest.fixture
async def rig(make_rig):
    rig = make_rig({"liveSyncEnabled": True, "folderToPublish": "Docs"})
    rig.vault.add("Docs/a.md", "alpha")
    rig.vault.add("Docs/b.md", "beta")
    rig.vault.add("Other/c.md", "gamma")
    await rig.engine.start()
    return rig


@pytest.fixture
def ctx(rig):
    return ServerContext(
        client=MagicMock(), engine=rig.engine, notifier=LogNotifier()
    )


@pytest.fixture
def registry():
    return ToolRegistry(LIVE_SYNC_SPECS)


def _text(result) -> str:
    return result.content[0].text


def test_tool_names_and_permissions():
    specs = {spec.tool.name: spec.permissions for spec in LIVE_SYNC_SPECS}
    assert specs == {
        "live_sync_status": frozenset({"WIKI_VIEW"}),
        "live_sync_publish": frozenset({"WIKI_MODIFY"}),
        "live_sync_cleanup": frozenset({"WIKI_DELETE"}),
        "live_sync_configure": frozenset({"WIKI_MODIFY"}),
    }


class TestStatus:
    async def test_idle_status_and_settings(self, registry, ctx):
        result = await registry.call_tool("live_sync_status", {}, ctx)

        text = _text(result)
        assert text.splitlines()[0] == "Trac: Idle"
        assert "Folder:         Docs" in text
        assert "Backlink key:   (none)" in text
        assert "Last cleanup:   never" in text
        data = result.structuredContent
        assert data["status"] == "Trac: Idle"
        assert data["state"] == "idle"
        assert data["pending"] == []
        assert data["settings"]["folder_to_publish"] == "Docs"
        assert data["settings"]["strategy"] == "on-save"

    async def test_pending_documents_listed(self, registry, ctx, rig):
        await rig.engine.on_file_modified("Docs/a.md")

        result = await registry.call_tool("live_sync_status", {}, ctx)

        assert _text(result).startswith("Trac: Pending (1)")
        assert result.structuredContent["pending"] == ["Docs/a.md"]

    async def test_recent_notices_included(self, registry, ctx):
        ctx.notifier.notify("Live sync: 2 page(s) published.")

        result = await registry.call_tool("live_sync_status", {}, ctx)

        assert "Recent notices:" in _text(result)
        [notice] = result.structuredContent["recent_notices"]
        assert notice["message"] == "Live sync: 2 page(s) published."


class TestPublish:
    async def test_single_path(self, registry, ctx, rig):
        result = await registry.call_tool(
            "live_sync_publish", {"path": " Docs/a.md "}, ctx
        )

        assert not result.isError
        assert _text(result).startswith("Live sync: 1 page(s) published.")
        assert "Docs/a.md -> Wiki/Docs/a" in _text(result)
        assert rig.pipeline.calls == ["Docs/a.md"]
        assert "cleanup" not in result.structuredContent

    async def test_whole_scope_runs_cleanup(self, registry, ctx, rig):
        rig.pipeline.scope = ["Docs/a.md", "Docs/b.md"]

        result = await registry.call_tool("live_sync_publish", {}, ctx)

        data = result.structuredContent
        assert data["summary"] == {"published": 2, "failed": 0}
        assert data["cleanup"] == {"deleted": [], "failed": []}
        assert rig.pipeline.calls == [None]

    async def test_all_failed_is_error(self, registry, ctx, rig):
        rig.pipeline.failures["Docs/a.md"] = "WIKI_CREATE privileges are required"

        result = await registry.call_tool(
            "live_sync_publish", {"path": "Docs/a.md"}, ctx
        )

        assert result.isError
        assert "Docs/a.md: WIKI_CREATE privileges are required" in _text(result)

    async def test_partial_failure_is_not_error(self, registry, ctx, rig):
        rig.pipeline.scope = ["Docs/a.md", "Docs/b.md"]
        rig.pipeline.failures["Docs/b.md"] = "boom"

        result = await registry.call_tool(
            "live_sync_publish", {"skip_cleanup": True}, ctx
        )

        assert not result.isError
        assert _text(result).startswith(
            "Live sync: 1 page(s) published, 1 failed; check the log for details."
        )

    @pytest.mark.parametrize("path", ["", "   ", 5])
    async def test_invalid_path(self, registry, ctx, rig, path):
        result = await registry.call_tool(
            "live_sync_publish", {"path": path}, ctx
        )

        assert result.isError
        assert "Error (validation_error)" in _text(result)
        assert rig.pipeline.calls == []


class TestCleanup:
    async def test_nothing_to_remove(self, registry, ctx):
        result = await registry.call_tool("live_sync_cleanup", {}, ctx)

        assert _text(result) == "No orphaned wiki pages found."
        assert result.structuredContent == {"deleted": [], "failed": []}

    async def test_orphans_removed(self, registry, ctx, rig):
        rig.engine.backlinks["Gone/x.md"] = "Wiki/Gone/x"

        result = await registry.call_tool("live_sync_cleanup", {}, ctx)

        assert _text(result) == (
            "1 wiki page(s) removed after their source left the publish scope."
        )
        assert result.structuredContent["deleted"] == ["Gone/x.md"]
        assert rig.remote.deleted == ["Wiki/Gone/x"]
        assert "Gone/x.md" not in rig.engine.backlinks


class TestConfigure:
    async def test_no_settings_is_validation_error(self, registry, ctx):
        result = await registry.call_tool(
            "live_sync_configure", {"strategy": None}, ctx
        )

        assert result.isError
        assert "Provide at least one setting" in _text(result)

    async def test_updates_and_persists(self, registry, ctx, rig):
        result = await registry.call_tool(
            "live_sync_configure",
            {"strategy": "both", "interval_minutes": 15},
            ctx,
        )

        assert not result.isError
        assert "strategy: both" in _text(result)
        assert result.structuredContent["settings"]["interval_minutes"] == 15
        assert rig.store.data["liveSyncStrategy"] == "both"
        assert rig.store.data["liveSyncIntervalMinutes"] == 15

    async def test_invalid_strategy(self, registry, ctx, rig):
        result = await registry.call_tool(
            "live_sync_configure", {"strategy": "hourly"}, ctx
        )

        assert result.isError
        assert "Error (validation_error)" in _text(result)
        assert rig.engine.settings.strategy.value == "on-save"
