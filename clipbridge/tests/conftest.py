"""Shared fixtures for clipbridge tests."""

from datetime import date, datetime

import pytest
import pytest_asyncio

from clipbridge.bridge.config import Config
from clipbridge.host.workspace import Workspace, WorkspaceUI
from clipbridge.session import BridgeSession

TODAY = date(2026, 10, 18)
NOW = datetime(2026, 10, 18, 15, 4)


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def notify(self, title: str, message: str) -> None:
        self.messages.append((title, message))


@pytest.fixture
def workspace():
    """Workspace with an empty Journal collection."""
    ws = Workspace()
    ws.add_collection("Journal")
    return ws


@pytest.fixture
def journal(workspace):
    return workspace.collection_named("journal")


@pytest.fixture
def ui():
    return WorkspaceUI()


@pytest.fixture
def config(tmp_path):
    return Config(workspace_path=tmp_path / "workspace.json")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def session(workspace, ui, config, notifier):
    """Both contexts running, with today's date pinned."""
    bridge = BridgeSession(workspace, ui, config, notifier=notifier, timeout_ms=1000)
    bridge.plugin.resolver.clock = lambda: TODAY
    bridge.plugin.builder.clock = lambda: NOW
    await bridge.start()
    yield bridge
    await bridge.stop()
