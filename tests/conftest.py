"""Shared pytest fixtures for trac-live-sync tests."""

from unittest.mock import MagicMock, Mock

import pytest
from dotenv import load_dotenv

from fakes import (
    FakePipeline,
    FakeRemote,
    FakeTimer,
    FakeVault,
    ListNotifier,
    MemoryStore,
)
from trac_live_sync.config import Config
from trac_live_sync.sync.engine import LiveSyncEngine

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Trac instance",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Trac instance"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        trac_url="https://trac.example.com/trac",
        username="testuser",
        password="testpass",
        insecure=False,
    )


@pytest.fixture
def mock_trac_client(mock_config):
    """Create a mock TracClient instance for testing."""
    from trac_live_sync.core.client import TracClient

    client = MagicMock(spec=TracClient)
    client.config = mock_config
    return client


@pytest.fixture
def mock_xml_response():
    """Factory fixture for creating XML-RPC response mocks."""

    def _create_response(content):
        mock_response = Mock()
        mock_response.status_code = 200
        mock_response.content = (
            content.encode() if isinstance(content, str) else content
        )
        return mock_response

    return _create_response


# ---------------------------------------------------------------------------
# Live sync engine wiring
# ---------------------------------------------------------------------------


class EngineRig:
    """An engine wired to in-memory fakes, plus handles on each fake."""

    def __init__(self, state: dict | None = None) -> None:
        self.timer = FakeTimer()
        self.vault = FakeVault()
        self.pipeline = FakePipeline(self.vault)
        self.remote = FakeRemote()
        self.store = MemoryStore(state)
        self.notifier = ListNotifier()
        self.statuses: list[str] = []
        self.engine = LiveSyncEngine(
            vault=self.vault,
            pipeline=self.pipeline,
            remote=self.remote,
            store=self.store,
            notifier=self.notifier,
            timer=self.timer,
            clock=self.timer.clock,
            on_status=lambda status: self.statuses.append(status.label),
        )


@pytest.fixture
def make_rig():
    """Factory for an ``EngineRig`` with optional initial persisted state."""

    def _make(state: dict | None = None) -> EngineRig:
        return EngineRig(state)

    return _make
