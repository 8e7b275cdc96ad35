"""Pytest fixtures shared across the suite.

All tests are network-isolated - socket connections are blocked by default.
"""

from __future__ import annotations

import os
import socket
from collections.abc import Iterator
from pathlib import Path

import pytest

from tests.fakes import InMemoryKeyValueStore, RecordingSleep
from tests.support.errors import NetworkIsolationError

# =============================================================================
# Network Isolation - Block all socket connections in tests
# =============================================================================


def _blocked_socket_connect(self: socket.socket, *args: object, **kwargs: object) -> None:
    """Raise an error if any test tries to make a real network connection."""
    _ = (self, kwargs)
    raise NetworkIsolationError(str(args))


@pytest.fixture(autouse=True)
def block_network_access(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Block all network access in tests.

    Tests that need HTTP should mock `requests.Session` or use FakeRequestExecutor.
    """
    monkeypatch.setattr(socket.socket, "connect", _blocked_socket_connect)
    yield


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep BOOKYOLO_* settings from the developer shell out of tests."""
    for name in list(os.environ):
        if name.startswith("BOOKYOLO_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def in_memory_store() -> InMemoryKeyValueStore:
    """Provide an in-memory key-value store for tests."""
    return InMemoryKeyValueStore()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Provide a sleep function that records requested delays."""
    return RecordingSleep()
