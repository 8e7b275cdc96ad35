"""Request outcome types: transport outcomes, classified errors, attempts and results.

Usage example:
    from bookyolo_client.domain.outcomes import Fatal, Retryable, TransportOutcome

    error = Retryable(outcome=TransportOutcome.TIMEOUT, reason="read timed out")
    assert error.user_message.startswith("Request timed out")
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

TIMEOUT_MESSAGE = "Request timed out. Please check your internet connection and try again."
NETWORK_MESSAGE = "Network request failed. Please check your internet connection and try again."
GENERIC_NETWORK_MESSAGE = "Network error occurred"
SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."
INVALID_PROFILE_MESSAGE = "Profile payload from the backend is not a valid JSON object."


class TransportOutcome(StrEnum):
    """Closed set of ways a single HTTP attempt can end without success."""

    TIMEOUT = "timeout"
    ABORTED = "aborted"
    CONNECTION_REFUSED = "connection_refused"
    DNS_FAILURE = "dns_failure"
    CONNECTION = "connection"
    HTTP_STATUS = "http_status"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


class TimeoutClass(StrEnum):
    """Latency class of an endpoint."""

    SHORT = "short"
    LONG = "long"


@dataclass(frozen=True)
class RequestAttempt:
    """One issue of a logical call. `attempt_number` starts at 0."""

    endpoint: str
    method: str
    payload: object | None
    timeout_class: TimeoutClass
    attempt_number: int


@dataclass(frozen=True)
class Retryable:
    """A failure where no response was received, so re-issuing is allowed."""

    outcome: TransportOutcome
    reason: str

    @property
    def retryable(self) -> bool:
        return True

    @property
    def user_message(self) -> str:
        if self.outcome in (TransportOutcome.TIMEOUT, TransportOutcome.ABORTED):
            return TIMEOUT_MESSAGE
        if self.outcome in (
            TransportOutcome.CONNECTION,
            TransportOutcome.CONNECTION_REFUSED,
            TransportOutcome.DNS_FAILURE,
        ):
            return NETWORK_MESSAGE
        return self.reason or GENERIC_NETWORK_MESSAGE


@dataclass(frozen=True)
class Fatal:
    """A failure reflecting a server decision (or an unusable answer); never retried."""

    outcome: TransportOutcome
    http_status: int | None
    message: str

    @property
    def retryable(self) -> bool:
        return False

    @property
    def user_message(self) -> str:
        return self.message


type ClassifiedError = Retryable | Fatal


@dataclass(frozen=True)
class ApiResult:
    """`{data, error}` envelope returned by every engine call.

    Exactly one of `data` and `error` is meaningful: `error` is None on success.
    """

    data: object | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: object) -> ApiResult:
        return cls(data=data, error=None)

    @classmethod
    def failure(cls, message: str) -> ApiResult:
        return cls(data=None, error=message)

    def data_as_dict(self) -> dict[str, object] | None:
        """Return `data` when it is a JSON object, else None."""
        if isinstance(self.data, dict):
            return self.data
        return None
