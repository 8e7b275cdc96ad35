"""Request engine: one logical backend call with timeout, classification and retry.

Usage example:
    from pathlib import Path

    import requests

    from bookyolo_client.application.session import SessionManager
    from bookyolo_client.infrastructure.http import RequestEngine
    from bookyolo_client.infrastructure.resilience import EndpointTimeoutPolicy, RetryPolicy
    from bookyolo_client.infrastructure.store import FileKeyValueStore

    sessions = SessionManager(FileKeyValueStore(Path("data/store")))
    engine = RequestEngine(
        session=requests.Session(),
        base_url="https://bookyolo-backend.vercel.app",
        token_provider=sessions,
        retry_policy=RetryPolicy(),
        timeout_policy=EndpointTimeoutPolicy(),
    )
    result = engine.execute("/me")
"""

from __future__ import annotations

import json
import socket
import time
from collections.abc import Callable, Iterator, Mapping
from typing import override

import requests

from ..domain.outcomes import (
    SESSION_EXPIRED_MESSAGE,
    ApiResult,
    ClassifiedError,
    Fatal,
    RequestAttempt,
    Retryable,
    TransportOutcome,
)
from ..exceptions import TransportFailure
from ..observability import get_logger
from ..protocols import RequestExecutor, RetryPolicy, TimeoutPolicy, TokenProvider
from .resilience import EndpointTimeoutPolicy
from .resilience import RetryPolicy as RetryPolicyImpl
from .validation import extract_error_message

logger = get_logger("bookyolo_client.infrastructure.http")

JSON_CONTENT_TYPE = "application/json"
BODY_CHUNK_SIZE = 8192


def _iter_causes(error: BaseException) -> Iterator[BaseException]:
    """Walk the wrapped-exception graph requests/urllib3 build around socket errors."""
    pending: list[BaseException] = [error]
    seen: set[int] = set()
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        for linked in (current.__cause__, current.__context__, getattr(current, "reason", None)):
            if isinstance(linked, BaseException):
                pending.append(linked)
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))


def classify_transport_error(error: requests.RequestException) -> TransportOutcome:
    """Map a requests exception to a transport outcome by exception type."""
    if isinstance(error, requests.Timeout):
        return TransportOutcome.TIMEOUT
    if isinstance(error, requests.exceptions.ChunkedEncodingError):
        return TransportOutcome.ABORTED
    if isinstance(error, requests.ConnectionError):
        for cause in _iter_causes(error):
            if isinstance(cause, socket.gaierror):
                return TransportOutcome.DNS_FAILURE
            if isinstance(cause, ConnectionRefusedError):
                return TransportOutcome.CONNECTION_REFUSED
            if isinstance(cause, (ConnectionAbortedError, ConnectionResetError)):
                return TransportOutcome.ABORTED
            if isinstance(cause, TimeoutError):
                return TransportOutcome.TIMEOUT
        return TransportOutcome.CONNECTION
    return TransportOutcome.UNKNOWN


def _is_json(response: requests.Response) -> bool:
    content_type = response.headers.get("Content-Type") or ""
    return JSON_CONTENT_TYPE in content_type.lower()


def _decode_text(response: requests.Response, content: bytes) -> str:
    return content.decode(response.encoding or "utf-8", errors="replace")


def _parse_body(response: requests.Response, content: bytes) -> object:
    """Return the decoded JSON body, or raw text for non-JSON responses.

    Raises:
        ValueError: When a JSON content-type carries an undecodable body.
    """
    if _is_json(response):
        if not content:
            return None
        return json.loads(content)
    return _decode_text(response, content)


class RequestEngine(RequestExecutor):
    """Executes backend calls with bounded latency and a uniform error surface.

    - 401 clears the session token and fails immediately (never retried)
    - Other non-2xx responses fail immediately with the server's message
    - Transport failures (no response received) retry with exponential backoff
    - Each attempt runs under a wall-clock deadline covering headers and body
    - Every failure reaches the caller as one human-readable string
    """

    def __init__(
        self,
        *,
        session: requests.Session,
        base_url: str,
        token_provider: TokenProvider,
        retry_policy: RetryPolicy | None = None,
        timeout_policy: TimeoutPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.retry_policy = retry_policy or RetryPolicyImpl()
        self.timeout_policy = timeout_policy or EndpointTimeoutPolicy()
        self.sleep = sleep
        self.clock = clock

    @override
    def execute(
        self,
        endpoint: str,
        method: str = "GET",
        body: object | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResult:
        """Run one logical call; returns data on success or a user-facing error string."""
        timeout_class = self.timeout_policy.classify(endpoint)
        attempt_number = 0
        while True:
            attempt = RequestAttempt(
                endpoint=endpoint,
                method=method.upper(),
                payload=body,
                timeout_class=timeout_class,
                attempt_number=attempt_number,
            )
            outcome = self._attempt(attempt, headers)
            if isinstance(outcome, ApiResult):
                return outcome

            if outcome.retryable and attempt_number < self.retry_policy.max_retries:
                delay = self.retry_policy.compute_backoff(attempt_number)
                logger.warning(
                    "%s %s failed (%s), retry %d/%d in %.1fs",
                    attempt.method,
                    endpoint,
                    outcome.outcome.value,
                    attempt_number + 1,
                    self.retry_policy.max_retries,
                    delay,
                )
                self.sleep(delay)
                attempt_number += 1
                continue

            logger.warning(
                "%s %s gave up after %d attempt(s): %s",
                attempt.method,
                endpoint,
                attempt_number + 1,
                outcome.user_message,
            )
            return ApiResult.failure(outcome.user_message)

    def _attempt(
        self, attempt: RequestAttempt, headers: Mapping[str, str] | None
    ) -> ApiResult | ClassifiedError:
        timeout = self.timeout_policy.timeout_for(attempt.endpoint)
        deadline = self.clock() + timeout
        try:
            response = self._send(attempt, headers, timeout)
        except TransportFailure as exc:
            return Retryable(outcome=exc.outcome, reason=exc.reason)

        # Auth failure BEFORE reading the body
        if response.status_code == 401:
            response.close()
            self.token_provider.clear_token()
            logger.info("%s %s returned 401; session cleared", attempt.method, attempt.endpoint)
            return Fatal(
                outcome=TransportOutcome.HTTP_STATUS,
                http_status=401,
                message=SESSION_EXPIRED_MESSAGE,
            )

        try:
            content = self._read_body(attempt, response, deadline)
        except TransportFailure as exc:
            return Retryable(outcome=exc.outcome, reason=exc.reason)

        ok = 200 <= response.status_code < 300
        try:
            data = _parse_body(response, content)
        except ValueError:
            if ok:
                return Fatal(
                    outcome=TransportOutcome.PARSE_ERROR,
                    http_status=response.status_code,
                    message="Received an unreadable response from the server.",
                )
            data = _decode_text(response, content)

        if not ok:
            message = extract_error_message(
                data, status=response.status_code, reason=response.reason or ""
            )
            return Fatal(
                outcome=TransportOutcome.HTTP_STATUS,
                http_status=response.status_code,
                message=message,
            )

        return ApiResult.success(data)

    def _send(
        self, attempt: RequestAttempt, headers: Mapping[str, str] | None, timeout: float
    ) -> requests.Response:
        request_headers = self._build_headers(headers)
        logger.debug(
            "%s %s attempt %d (timeout %.0fs)",
            attempt.method,
            attempt.endpoint,
            attempt.attempt_number,
            timeout,
        )
        try:
            return self.session.request(
                attempt.method,
                f"{self.base_url}{attempt.endpoint}",
                json=attempt.payload,
                headers=request_headers,
                timeout=timeout,
                stream=True,
            )
        except requests.RequestException as exc:
            raise TransportFailure(classify_transport_error(exc), str(exc)) from exc

    def _read_body(
        self, attempt: RequestAttempt, response: requests.Response, deadline: float
    ) -> bytes:
        """Read the streamed body, aborting once the attempt deadline has passed.

        The socket timeout only bounds each read; a server trickling bytes is
        cut off here.
        """
        chunks: list[bytes] = []
        try:
            for chunk in response.iter_content(chunk_size=BODY_CHUNK_SIZE):
                self._check_deadline(attempt, deadline)
                chunks.append(chunk)
            self._check_deadline(attempt, deadline)
        except requests.RequestException as exc:
            raise TransportFailure(classify_transport_error(exc), str(exc)) from exc
        finally:
            response.close()
        return b"".join(chunks)

    def _check_deadline(self, attempt: RequestAttempt, deadline: float) -> None:
        if self.clock() > deadline:
            raise TransportFailure(
                TransportOutcome.TIMEOUT,
                f"{attempt.method} {attempt.endpoint} exceeded its attempt deadline",
            )

    def _build_headers(self, overrides: Mapping[str, str] | None) -> dict[str, str]:
        # Token is read per attempt so a token cleared mid-call is never reused
        headers = {"Content-Type": JSON_CONTENT_TYPE}
        token = self.token_provider.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if overrides:
            headers.update(overrides)
        return headers


def build_request_engine(
    *,
    base_url: str,
    token_provider: TokenProvider,
    max_retries: int,
    base_delay_seconds: float,
    multiplier: float,
    max_backoff_seconds: float,
    jitter_seconds: float,
    short_timeout_seconds: float,
    long_timeout_seconds: float,
) -> RequestEngine:
    session = requests.Session()
    retry_policy = RetryPolicyImpl(
        max_retries=max_retries,
        base_delay_seconds=base_delay_seconds,
        multiplier=multiplier,
        max_backoff_seconds=max_backoff_seconds,
        jitter_seconds=jitter_seconds,
    )
    timeout_policy = EndpointTimeoutPolicy(
        short_timeout_seconds=short_timeout_seconds,
        long_timeout_seconds=long_timeout_seconds,
    )
    return RequestEngine(
        session=session,
        base_url=base_url,
        token_provider=token_provider,
        retry_policy=retry_policy,
        timeout_policy=timeout_policy,
    )
