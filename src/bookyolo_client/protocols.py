"""Protocol definitions for dependency injection.

These protocols define the abstract interfaces that client components depend on,
enabling isolated unit testing with in-memory implementations.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from .domain.outcomes import ApiResult, TimeoutClass


@runtime_checkable
class KeyValueStore(Protocol):
    """Durable string key-value storage (the mobile app's AsyncStorage)."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent.

        Raises:
            StoreError: When the backing storage cannot be read.
        """
        ...

    def set(self, key: str, value: str) -> None:
        """Store `value` under `key`.

        Raises:
            StoreError: When the backing storage cannot be written.
        """
        ...

    def remove(self, key: str) -> None:
        """Delete `key` if present."""
        ...


@runtime_checkable
class TokenProvider(Protocol):
    """Source of the bearer token consulted on every outgoing call."""

    def get_token(self) -> str | None:
        """Return the current token, or None when unauthenticated."""
        ...

    def clear_token(self) -> None:
        """Invalidate the current token."""
        ...


@runtime_checkable
class RequestExecutor(Protocol):
    """Executes one logical backend call and returns a `{data, error}` result."""

    def execute(
        self,
        endpoint: str,
        method: str = "GET",
        body: object | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResult:
        """Run the call with timeout, classification and retry."""
        ...


@runtime_checkable
class RetryPolicy(Protocol):
    """Abstract retry policy for transient failures."""

    max_retries: int

    def compute_backoff(self, attempt: int) -> float:
        """Return the delay in seconds before re-issuing after failed `attempt` (0-based)."""
        ...


@runtime_checkable
class TimeoutPolicy(Protocol):
    """Chooses a per-attempt deadline for an endpoint."""

    def classify(self, endpoint: str) -> TimeoutClass:
        """Return the latency class of `endpoint`."""
        ...

    def timeout_for(self, endpoint: str) -> float:
        """Return the timeout in seconds for `endpoint`."""
        ...
