"""Tests for trac_live_sync.mcp.lifespan -- server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Loads config from env vars and YAML (with optional CLI overrides)
- Creates TracClient and validates connection
- Initializes concurrency semaphore
- Builds and starts the live sync engine and vault watcher
- Fails fast on config errors, connection failures or a bad state file
- Prints status messages to stderr
"""

import json
from contextlib import ExitStack
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from trac_live_sync.config import Config
from trac_live_sync.mcp.lifespan import server_lifespan
from trac_live_sync.sync.engine import LiveSyncEngine

_MODULE = "trac_live_sync.mcp.lifespan"

# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------


def _make_config(**overrides):
    """Create a valid Config for testing."""
    defaults = {
        "trac_url": "https://trac.example.com/trac",
        "username": "testuser",
        "password": "testpass",
        "insecure": False,
        "debug": False,
        "max_parallel_requests": 5,
    }
    defaults.update(overrides)
    return Config(**defaults)


class _Startup:
    """Patches every external dependency of server_lifespan()."""

    def __init__(
        self,
        config=None,
        raw_config=None,
        config_files=(),
        run_sync_result="1.3.5",
        run_sync_error=None,
        load_error=None,
    ):
        self.client = MagicMock()
        self.stderr: list[str] = []
        self._config = config or _make_config()
        self._raw = (
            raw_config
            if raw_config is not None
            else {"live_sync": {"watch": False}}
        )
        self._files = list(config_files)
        self._run_sync_result = run_sync_result
        self._run_sync_error = run_sync_error
        self._load_error = load_error
        self._stack = ExitStack()

    def __enter__(self):
        enter = self._stack.enter_context
        enter(patch(f"{_MODULE}.load_dotenv"))
        enter(
            patch(
                f"{_MODULE}.discover_config_files", return_value=self._files
            )
        )
        enter(
            patch(
                f"{_MODULE}.load_hierarchical_config",
                return_value=self._raw,
            )
        )
        if self._load_error is not None:
            self.load_config = enter(
                patch(
                    f"{_MODULE}.load_config", side_effect=self._load_error
                )
            )
        else:
            self.load_config = enter(
                patch(f"{_MODULE}.load_config", return_value=self._config)
            )
        enter(patch(f"{_MODULE}.TracClient", return_value=self.client))
        if self._run_sync_error is not None:
            self.run_sync = enter(
                patch(
                    f"{_MODULE}.run_sync", side_effect=self._run_sync_error
                )
            )
        else:
            self.run_sync = enter(
                patch(
                    f"{_MODULE}.run_sync",
                    return_value=self._run_sync_result,
                )
            )
        self.init_semaphore = enter(patch(f"{_MODULE}.init_semaphore"))
        enter(
            patch(
                f"{_MODULE}._stderr_print",
                side_effect=lambda msg: self.stderr.append(msg),
            )
        )
        return self

    def __exit__(self, *exc_info):
        return self._stack.__exit__(*exc_info)

    @property
    def output(self) -> str:
        return "\n".join(self.stderr)


@pytest.fixture(autouse=True)
def _workdir(tmp_path, monkeypatch):
    """Vault and state file resolve against the working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


# -------------------------------------------------------------------------
# server_lifespan() -- successful startup
# -------------------------------------------------------------------------


class TestServerLifespanSuccess:
    """Tests for the happy path through server_lifespan()."""

    async def test_successful_startup(self):
        with _Startup() as startup:
            async with server_lifespan() as ctx:
                assert ctx["client"] is startup.client
                assert ctx["context"].client is startup.client
                assert isinstance(ctx["context"].engine, LiveSyncEngine)
                startup.run_sync.assert_called_once_with(
                    startup.client.validate_connection
                )
                startup.init_semaphore.assert_called_once_with(5)

    async def test_semaphore_uses_max_parallel_from_config(self):
        with _Startup(config=_make_config(max_parallel_requests=12)) as s:
            async with server_lifespan() as _:
                s.init_semaphore.assert_called_once_with(12)

    async def test_config_overrides_passed_to_load_config(self):
        overrides = {
            "url": "https://override.example.com",
            "username": "admin",
            "password": "secret",
            "insecure": True,
            "debug": True,
        }
        with _Startup() as startup:
            async with server_lifespan(config_overrides=overrides) as _:
                startup.load_config.assert_called_once_with(
                    url="https://override.example.com",
                    username="admin",
                    password="secret",
                    insecure=True,
                    debug=True,
                    yaml_fallbacks=None,
                )

        assert "CLI arguments" in startup.output

    async def test_yaml_values_become_fallbacks(self):
        raw = {
            "trac": {"url": "https://yaml.example.com", "username": "yaml"},
            "live_sync": {"watch": False},
        }
        with _Startup(
            raw_config=raw, config_files=[Path("config.yml")]
        ) as startup:
            async with server_lifespan() as _:
                pass

        fallbacks = startup.load_config.call_args.kwargs["yaml_fallbacks"]
        assert fallbacks["url"] == "https://yaml.example.com"
        assert fallbacks["username"] == "yaml"
        assert "password" not in fallbacks
        assert "config file: config.yml" in startup.output


# -------------------------------------------------------------------------
# server_lifespan() -- live sync wiring
# -------------------------------------------------------------------------


class TestServerLifespanLiveSync:
    """The engine is started from the state file and configured seeds."""

    async def test_state_file_written_under_working_directory(
        self, _workdir
    ):
        with _Startup():
            async with server_lifespan() as ctx:
                engine = ctx["context"].engine
                # Never cleaned before, so the startup check runs a pass
                assert engine.settings.last_orphan_cleanup_ts > 0

        state_file = _workdir / ".trac_live_sync" / "live_sync.json"
        data = json.loads(state_file.read_text(encoding="utf-8"))
        assert data["lastOrphanCleanupTs"] > 0
        assert data["backlinkPublishState"] == {}

    async def test_yaml_seeds_settings(self):
        raw = {
            "live_sync": {
                "watch": False,
                "folder_to_publish": "Docs",
                "enabled": True,
                "strategy": "both",
            }
        }
        with _Startup(raw_config=raw):
            async with server_lifespan() as ctx:
                settings = ctx["context"].engine.settings
                assert settings.folder_to_publish == "Docs"
                assert settings.enabled is True
                assert settings.strategy.value == "both"
                assert ctx["context"].engine.interval_armed

    async def test_state_file_wins_over_seeds(self, _workdir):
        state_dir = _workdir / ".trac_live_sync"
        state_dir.mkdir()
        (state_dir / "live_sync.json").write_text(
            json.dumps({"folderToPublish": "Saved"}), encoding="utf-8"
        )
        raw = {"live_sync": {"watch": False, "folder_to_publish": "Docs"}}

        with _Startup(raw_config=raw):
            async with server_lifespan() as ctx:
                assert ctx["context"].engine.settings.folder_to_publish == (
                    "Saved"
                )

    async def test_invalid_state_file_raises_runtime_error(self, _workdir):
        state_dir = _workdir / ".trac_live_sync"
        state_dir.mkdir()
        (state_dir / "live_sync.json").write_text("[]", encoding="utf-8")

        with _Startup() as startup:
            with pytest.raises(RuntimeError, match="Invalid live sync state"):
                async with server_lifespan() as _:
                    pass  # pragma: no cover

        assert any("Invalid live sync state" in m for m in startup.stderr)

    async def test_watcher_started_and_stopped(self):
        watcher = MagicMock()
        watcher.start = AsyncMock()
        watcher.stop = AsyncMock()

        with (
            _Startup(raw_config={"live_sync": {"watch": True}}),
            patch(
                f"{_MODULE}.VaultWatcher", return_value=watcher
            ) as watcher_cls,
        ):
            async with server_lifespan() as ctx:
                watcher.start.assert_awaited_once()
                watcher.stop.assert_not_awaited()
                engine = ctx["context"].engine
                assert watcher_cls.call_args.args[1] == engine.on_file_modified

        watcher.stop.assert_awaited_once()

    async def test_no_watcher_when_disabled(self):
        with (
            _Startup(),
            patch(f"{_MODULE}.VaultWatcher") as watcher_cls,
        ):
            async with server_lifespan() as _:
                pass

        watcher_cls.assert_not_called()


# -------------------------------------------------------------------------
# server_lifespan() -- config error path
# -------------------------------------------------------------------------


class TestServerLifespanConfigError:
    """Tests for config validation failures in server_lifespan()."""

    async def test_config_error_raises_runtime_error(self):
        with _Startup(load_error=ValueError("Trac URL not found")):
            with pytest.raises(RuntimeError, match="Configuration error"):
                async with server_lifespan() as _:
                    pass  # pragma: no cover

    async def test_config_error_includes_original_message(self):
        with _Startup(load_error=ValueError("Trac URL not found")):
            with pytest.raises(RuntimeError, match="Trac URL not found"):
                async with server_lifespan() as _:
                    pass  # pragma: no cover

    async def test_config_error_stderr_messages(self):
        with _Startup(load_error=ValueError("missing URL")) as startup:
            with pytest.raises(RuntimeError):
                async with server_lifespan() as _:
                    pass  # pragma: no cover

        assert any("starting" in m.lower() for m in startup.stderr)
        assert any("Configuration error" in m for m in startup.stderr)
        assert any("TRAC_URL" in m for m in startup.stderr)

    async def test_invalid_yaml_section_is_config_error(self):
        raw = {"live_sync": {"wiki_namespace": "Team/../Notes"}}
        with _Startup(raw_config=raw):
            with pytest.raises(RuntimeError, match="Configuration error"):
                async with server_lifespan() as _:
                    pass  # pragma: no cover


# -------------------------------------------------------------------------
# server_lifespan() -- connection error path
# -------------------------------------------------------------------------


class TestServerLifespanConnectionError:
    """Tests for Trac connection failures in server_lifespan()."""

    async def test_connection_error_raises_runtime_error(self):
        error = ConnectionError("Connection refused")
        with _Startup(run_sync_error=error):
            with pytest.raises(RuntimeError, match="connection failed"):
                async with server_lifespan() as _:
                    pass  # pragma: no cover

    async def test_connection_error_includes_original_message(self):
        error = ConnectionError("Connection refused")
        with _Startup(run_sync_error=error):
            with pytest.raises(RuntimeError, match="Connection refused"):
                async with server_lifespan() as _:
                    pass  # pragma: no cover

    async def test_connection_error_stderr_messages(self):
        error = ConnectionError("Connection refused")
        with _Startup(run_sync_error=error) as startup:
            with pytest.raises(RuntimeError):
                async with server_lifespan() as _:
                    pass  # pragma: no cover

        assert any("connection failed" in m.lower() for m in startup.stderr)
        assert any("Connection refused" in m for m in startup.stderr)
        assert any("TRAC_URL" in m for m in startup.stderr)

    async def test_generic_exception_also_caught(self):
        """Non-ConnectionError exceptions from validate_connection are also caught."""
        error = Exception("Unexpected XML-RPC fault")
        with _Startup(run_sync_error=error):
            with pytest.raises(RuntimeError, match="connection failed"):
                async with server_lifespan() as _:
                    pass  # pragma: no cover


# -------------------------------------------------------------------------
# server_lifespan() -- shutdown path
# -------------------------------------------------------------------------


class TestServerLifespanShutdown:
    """Tests for the shutdown (exit) path of server_lifespan()."""

    async def test_shutdown_stops_engine(self):
        with _Startup(
            raw_config={
                "live_sync": {
                    "watch": False,
                    "enabled": True,
                    "strategy": "interval",
                }
            }
        ):
            async with server_lifespan() as ctx:
                engine = ctx["context"].engine
                assert engine.interval_armed

        assert not engine.interval_armed

    async def test_success_stderr_messages_full_sequence(self):
        """Verify the full sequence of stderr messages on successful startup."""
        with _Startup() as startup:
            async with server_lifespan() as _:
                pass

        full_output = startup.output
        assert "starting" in full_output.lower()
        assert "Configuration loaded" in full_output
        assert "Connected to Trac API version" in full_output
        assert "1.3.5" in full_output
        assert "Live sync: Trac: Idle" in full_output
        assert "Server ready" in full_output
        assert "shutting down" in full_output.lower()
