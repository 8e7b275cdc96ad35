"""Custom exceptions for the BookYolo client core.

Backend and transport failures never escape the request engine as exceptions;
they are normalised into a single user-facing string on `ApiResult`. The types
below cover the internal seams (transport, persistence, payload validation)
and caller-side refusals.
"""

from __future__ import annotations

from .domain.outcomes import TransportOutcome


class ClientError(Exception):
    """Base exception for all client errors."""

    pass


class TransportFailure(ClientError):
    """Raised by the transport layer when no usable HTTP response was received."""

    def __init__(self, outcome: TransportOutcome, reason: str) -> None:
        self.outcome = outcome
        self.reason = reason
        super().__init__(f"{outcome.value}: {reason}")


class InsufficientBalanceError(ClientError):
    """Raised when a billable action is requested without enough remaining balance."""

    def __init__(self, required: float, remaining: float) -> None:
        self.required = required
        self.remaining = remaining
        super().__init__(
            f"You need at least {required:g} scans for this action "
            f"({remaining:g} remaining). Please upgrade your plan."
        )


class StoreError(ClientError):
    """Raised when the persistent key-value store cannot be read or written."""

    def __init__(self, key: str, action: str) -> None:
        self.key = key
        self.action = action
        super().__init__(f"Failed to {action} key '{key}' in the local store.")


class ConfigFileNotFoundError(ClientError):
    """Raised when a config file path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Config file not found: {path}")


class ConfigFileParseError(ClientError):
    """Raised when a config file is not valid TOML."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(f"Config file is not valid TOML: {path} ({details})")


class ConfigFileValidationError(ClientError):
    """Raised when a config file fails schema validation."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(f"Config file validation failed for {path}: {details}")
