"""Exports for test fakes."""

from .http import FakeClock, FakeRequestExecutor, RecordingSleep
from .store import FailingKeyValueStore, InMemoryKeyValueStore
from .tokens import FakeTokenProvider

__all__ = [
    "FailingKeyValueStore",
    "FakeClock",
    "FakeRequestExecutor",
    "FakeTokenProvider",
    "InMemoryKeyValueStore",
    "RecordingSleep",
]
