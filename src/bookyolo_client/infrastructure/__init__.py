"""Concrete infrastructure implementations and shared helpers."""

from .http import RequestEngine, build_request_engine, classify_transport_error
from .resilience import EndpointTimeoutPolicy, RetryPolicy
from .store import FileKeyValueStore, ScopedKeyValueStore, scoped_key

__all__ = [
    "EndpointTimeoutPolicy",
    "FileKeyValueStore",
    "RequestEngine",
    "RetryPolicy",
    "ScopedKeyValueStore",
    "build_request_engine",
    "classify_transport_error",
    "scoped_key",
]
