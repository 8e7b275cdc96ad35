"""Tests for the request engine: timeouts, classification, retry and 401 handling."""

from __future__ import annotations

import json
import socket
from unittest.mock import MagicMock

import pytest
import requests

from bookyolo_client.domain.outcomes import (
    NETWORK_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    TIMEOUT_MESSAGE,
    TransportOutcome,
)
from bookyolo_client.infrastructure import (
    EndpointTimeoutPolicy,
    RequestEngine,
    RetryPolicy,
    build_request_engine,
    classify_transport_error,
)
from tests.fakes import FakeClock, FakeTokenProvider, RecordingSleep

BASE_URL = "https://api.bookyolo.test"


def _response(
    status: int,
    *,
    json_body: object | None = None,
    text: str | None = None,
    raw: bytes | None = None,
    content_type: str | None = None,
    reason: str = "",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.encoding = "utf-8"
    if json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
        response.headers["Content-Type"] = content_type or "application/json"
    elif raw is not None:
        response._content = raw
        response.headers["Content-Type"] = content_type or "application/json"
    else:
        response._content = (text or "").encode("utf-8")
        response.headers["Content-Type"] = content_type or "text/plain; charset=utf-8"
    response._content_consumed = True
    return response


def _engine(
    session: MagicMock,
    *,
    tokens: FakeTokenProvider | None = None,
    sleep: RecordingSleep | None = None,
    max_retries: int = 3,
    clock: FakeClock | None = None,
) -> RequestEngine:
    return RequestEngine(
        session=session,
        base_url=BASE_URL,
        token_provider=tokens or FakeTokenProvider(token="tok-123"),
        retry_policy=RetryPolicy(max_retries=max_retries),
        timeout_policy=EndpointTimeoutPolicy(),
        sleep=sleep or RecordingSleep(),
        clock=clock or FakeClock(),
    )


class TestRequestEngineSuccess:
    """Tests for successful calls."""

    def test_returns_decoded_json(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(200, json_body={"plan": "free"})

        result = _engine(session).execute("/me")

        assert result.ok is True
        assert result.data == {"plan": "free"}
        assert result.error is None

    def test_sends_bearer_token_json_body_and_short_timeout(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(200, json_body={"ok": True})

        _engine(session).execute("/chat/new-scan", "post", {"listing_url": "https://x"})

        session.request.assert_called_once()
        args, kwargs = session.request.call_args
        assert args == ("POST", f"{BASE_URL}/chat/new-scan")
        assert kwargs["json"] == {"listing_url": "https://x"}
        assert kwargs["timeout"] == 30.0
        assert kwargs["headers"]["Authorization"] == "Bearer tok-123"
        assert kwargs["headers"]["Content-Type"] == "application/json"

    @pytest.mark.parametrize("endpoint", ["/question", "/compare", "/chat/abc/ask"])
    def test_ai_endpoints_use_long_timeout(self, endpoint: str) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(200, json_body={"answer": "yes"})

        _engine(session).execute(endpoint, "POST", {"question": "q"})

        assert session.request.call_args.kwargs["timeout"] == 60.0

    def test_omits_authorization_without_token(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(200, json_body={"status": "ok"})

        _engine(session, tokens=FakeTokenProvider(token=None)).execute("/health")

        assert "Authorization" not in session.request.call_args.kwargs["headers"]

    def test_header_overrides_are_sent(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(200, json_body={"ok": True})

        _engine(session).execute("/auth/signup", "POST", {}, headers={"X-App-Source": "mobile"})

        assert session.request.call_args.kwargs["headers"]["X-App-Source"] == "mobile"

    def test_text_body_is_returned_as_string(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(200, text="pong")

        result = _engine(session).execute("/health")

        assert result.data == "pong"

    def test_empty_json_body_is_none(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(204, raw=b"")

        result = _engine(session).execute("/notifications/n-1/read", "POST")

        assert result.ok is True
        assert result.data is None

    def test_unparseable_success_body_is_fatal(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(200, raw=b"{not json")
        sleep = RecordingSleep()

        result = _engine(session, sleep=sleep).execute("/me")

        assert result.ok is False
        assert result.error is not None
        assert "unreadable" in result.error
        assert session.request.call_count == 1
        assert sleep.delays == []


class TestRequestEngineRetry:
    """Tests for transport failures and exponential backoff."""

    def test_timeout_retries_three_times_with_backoff(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = requests.Timeout("read timed out")
        sleep = RecordingSleep()

        result = _engine(session, sleep=sleep).execute("/me")

        assert session.request.call_count == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert result.error == TIMEOUT_MESSAGE
        assert result.data is None

    def test_recovers_after_transient_failure(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = [
            requests.ConnectionError("connection reset"),
            _response(200, json_body={"used": 1}),
        ]
        sleep = RecordingSleep()

        result = _engine(session, sleep=sleep).execute("/me")

        assert result.data == {"used": 1}
        assert session.request.call_count == 2
        assert sleep.delays == [1.0]

    def test_connection_refused_maps_to_network_message(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = requests.ConnectionError(
            ConnectionRefusedError(111, "Connection refused")
        )

        result = _engine(session, max_retries=0).execute("/me")

        assert session.request.call_count == 1
        assert result.error == NETWORK_MESSAGE

    def test_zero_retries_means_single_attempt(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = requests.Timeout()
        sleep = RecordingSleep()

        _engine(session, sleep=sleep, max_retries=0).execute("/me")

        assert session.request.call_count == 1
        assert sleep.delays == []

    def test_token_is_read_on_every_attempt(self) -> None:
        tokens = FakeTokenProvider(token="first")
        seen: list[str | None] = []

        def fake_request(method: str, url: str, **kwargs: object) -> requests.Response:
            _ = (method, url)
            headers = kwargs["headers"]
            assert isinstance(headers, dict)
            seen.append(headers.get("Authorization"))
            if len(seen) == 1:
                tokens.token = None
                raise requests.ConnectionError("connection reset")
            return _response(200, json_body={"ok": True})

        session = MagicMock(spec=requests.Session)
        session.request.side_effect = fake_request

        _engine(session, tokens=tokens).execute("/me")

        assert seen == ["Bearer first", None]


class TestRequestEngineHttpErrors:
    """Tests for non-2xx responses."""

    def test_401_clears_token_and_is_not_retried(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(401, json_body={"detail": "Not authenticated"})
        tokens = FakeTokenProvider(token="stale")
        sleep = RecordingSleep()

        result = _engine(session, tokens=tokens, sleep=sleep).execute("/me")

        assert result.error == SESSION_EXPIRED_MESSAGE
        assert tokens.token is None
        assert tokens.clear_calls == 1
        assert session.request.call_count == 1
        assert sleep.delays == []

    @pytest.mark.parametrize("status", [400, 403, 404, 409, 422, 500, 503])
    def test_http_errors_fail_after_one_attempt(self, status: int) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(status, json_body={"detail": "Scan not found"})
        tokens = FakeTokenProvider(token="tok")

        result = _engine(session, tokens=tokens).execute("/scan/1")

        assert result.error == "Scan not found"
        assert session.request.call_count == 1
        assert tokens.token == "tok"

    def test_validation_detail_list_uses_first_message(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(
            422,
            json_body={
                "detail": [
                    {"loc": ["body", "email"], "msg": "field required", "type": "missing"},
                    {"loc": ["body", "password"], "msg": "too short", "type": "value_error"},
                ]
            },
        )

        result = _engine(session).execute("/auth/signup", "POST", {})

        assert result.error == "field required"

    def test_message_field_is_used(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(409, json_body={"message": "Email already used"})

        assert _engine(session).execute("/auth/signup", "POST", {}).error == "Email already used"

    def test_plain_text_error_body_is_used(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(500, text="Upstream exploded")

        assert _engine(session).execute("/me").error == "Upstream exploded"

    def test_empty_error_body_falls_back_to_status_text(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(
            500, text="", reason="Internal Server Error"
        )

        assert _engine(session).execute("/me").error == "HTTP 500: Internal Server Error"

    @pytest.mark.parametrize(
        ("msg", "expected"),
        [(123, "123"), ({"en": "Email is invalid"}, '{"en": "Email is invalid"}')],
    )
    def test_non_string_validation_message_is_serialised(
        self, msg: object, expected: str
    ) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(422, json_body={"detail": [{"msg": msg}]})

        result = _engine(session).execute("/auth/signup", "POST", {})

        assert result.ok is False
        assert result.error == expected


class _TricklingBody:
    """Raw stream that yields one chunk per read, advancing the clock each time."""

    def __init__(self, chunks: list[bytes], clock: FakeClock, seconds_per_chunk: float) -> None:
        self.chunks = list(chunks)
        self.clock = clock
        self.seconds_per_chunk = seconds_per_chunk
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        if not self.chunks:
            return b""
        self.clock.advance(self.seconds_per_chunk)
        return self.chunks.pop(0)

    def close(self) -> None:
        self.closed = True


def _streamed_response(body: _TricklingBody) -> requests.Response:
    response = requests.Response()
    response.status_code = 200
    response.encoding = "utf-8"
    response.headers["Content-Type"] = "application/json"
    response.raw = body
    return response


class TestRequestEngineDeadline:
    """Each attempt is bounded by a wall-clock deadline, including the body read."""

    def test_body_is_streamed(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _response(200, json_body={"ok": True})

        _engine(session).execute("/me")

        assert session.request.call_args.kwargs["stream"] is True

    def test_slow_body_within_deadline_is_read(self) -> None:
        clock = FakeClock()
        body = _TricklingBody([b'{"plan"', b': "free"', b"}"], clock, seconds_per_chunk=5.0)
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _streamed_response(body)

        result = _engine(session, clock=clock).execute("/me")

        assert result.data == {"plan": "free"}

    def test_trickling_body_past_deadline_times_out(self) -> None:
        clock = FakeClock()
        body = _TricklingBody([b"{", b'"a"', b":", b"1", b"}"], clock, seconds_per_chunk=10.0)
        session = MagicMock(spec=requests.Session)
        session.request.return_value = _streamed_response(body)
        sleep = RecordingSleep()

        result = _engine(session, clock=clock, sleep=sleep, max_retries=0).execute("/me")

        assert result.error == TIMEOUT_MESSAGE
        assert body.closed is True
        assert body.chunks == [b"}"]

    def test_deadline_timeout_is_retried(self) -> None:
        clock = FakeClock()
        slow = _TricklingBody([b"{", b"}", b" ", b" "], clock, seconds_per_chunk=20.0)
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = [
            _streamed_response(slow),
            _response(200, json_body={"plan": "free"}),
        ]
        sleep = RecordingSleep()

        result = _engine(session, clock=clock, sleep=sleep).execute("/me")

        assert result.data == {"plan": "free"}
        assert session.request.call_count == 2
        assert sleep.delays == [1.0]


class TestClassifyTransportError:
    """Tests for mapping requests exceptions to transport outcomes."""

    def test_timeout(self) -> None:
        assert classify_transport_error(requests.ReadTimeout()) is TransportOutcome.TIMEOUT

    def test_dns_failure(self) -> None:
        error = requests.ConnectionError(socket.gaierror(-2, "Name or service not known"))
        assert classify_transport_error(error) is TransportOutcome.DNS_FAILURE

    def test_connection_refused_via_cause_chain(self) -> None:
        inner = ConnectionRefusedError(111, "Connection refused")
        error = requests.ConnectionError("Max retries exceeded")
        error.__cause__ = inner
        assert classify_transport_error(error) is TransportOutcome.CONNECTION_REFUSED

    def test_reset_is_aborted(self) -> None:
        error = requests.ConnectionError(ConnectionResetError(104, "Connection reset by peer"))
        assert classify_transport_error(error) is TransportOutcome.ABORTED

    def test_bare_connection_error(self) -> None:
        error = requests.ConnectionError("something broke")
        assert classify_transport_error(error) is TransportOutcome.CONNECTION

    def test_other_request_exception_is_unknown(self) -> None:
        error = requests.exceptions.InvalidURL("bad url")
        assert classify_transport_error(error) is TransportOutcome.UNKNOWN


def test_build_request_engine_wires_policies() -> None:
    tokens = FakeTokenProvider(token="tok")

    engine = build_request_engine(
        base_url=f"{BASE_URL}/",
        token_provider=tokens,
        max_retries=5,
        base_delay_seconds=0.5,
        multiplier=3.0,
        max_backoff_seconds=4.0,
        jitter_seconds=0.0,
        short_timeout_seconds=10.0,
        long_timeout_seconds=90.0,
    )

    assert engine.base_url == BASE_URL
    assert engine.token_provider is tokens
    assert isinstance(engine.session, requests.Session)
    assert engine.retry_policy.max_retries == 5
    assert engine.retry_policy.compute_backoff(1) == 1.5
    assert engine.timeout_policy.timeout_for("/me") == 10.0
    assert engine.timeout_policy.timeout_for("/compare") == 90.0
