"""Tests for inbound payload validation and error message extraction."""

from __future__ import annotations

import json

import pytest

from bookyolo_client.infrastructure.validation import (
    IncomingDataError,
    extract_error_message,
    parse_pending_user_info,
    parse_profile,
    parse_stored_balance,
    validate_as,
)


class TestParseProfile:
    """Tests for `/me` normalisation."""

    def test_full_payload(self) -> None:
        profile = parse_profile(
            {
                "user": {"id": "u-1", "email": "sam@example.com"},
                "plan": "premium",
                "used": 10.5,
                "remaining": 39.5,
                "limits": {"total_limit": 50},
                "subscription_status": "active",
            }
        )

        assert profile["user"] == {"id": "u-1", "email": "sam@example.com"}
        assert profile["plan"] == "premium"
        assert profile["used"] == 10.5
        assert profile["remaining"] == 39.5
        assert profile["total_limit"] == 50
        assert profile["subscription_status"] == "active"
        assert profile["subscription_expires"] == ""

    def test_missing_fields_use_defaults(self) -> None:
        profile = parse_profile({})

        assert profile["user"] == {}
        assert profile["plan"] == "free"
        assert profile["used"] == 0.0
        assert profile["remaining"] is None
        assert profile["total_limit"] == 50

    def test_explicit_zero_remaining_is_kept(self) -> None:
        assert parse_profile({"used": 0, "remaining": 0})["remaining"] == 0

    @pytest.mark.parametrize("limit", [0, -5, None])
    def test_unusable_total_limit_falls_back(self, limit: int | None) -> None:
        assert parse_profile({"limits": {"total_limit": limit}})["total_limit"] == 50

    def test_configured_default_total_limit_is_used(self) -> None:
        assert parse_profile({}, default_total_limit=100)["total_limit"] == 100
        assert parse_profile({"limits": {"total_limit": 0}}, default_total_limit=100)[
            "total_limit"
        ] == 100

    def test_backend_total_limit_wins_over_default(self) -> None:
        profile = parse_profile({"limits": {"total_limit": 200}}, default_total_limit=100)
        assert profile["total_limit"] == 200

    def test_non_object_payload_is_rejected(self) -> None:
        with pytest.raises(IncomingDataError):
            parse_profile(["not", "a", "profile"])

    def test_non_numeric_usage_is_rejected(self) -> None:
        with pytest.raises(IncomingDataError):
            parse_profile({"used": "lots"})


class TestParseStoredBalance:
    """Tests for persisted balance documents."""

    def test_parses_mobile_shape(self) -> None:
        payload = json.dumps(
            {
                "remaining": 50,
                "used": 0,
                "plan": "free",
                "limits": {"total_limit": 50},
                "isNewAccount": True,
            }
        )

        stored = parse_stored_balance(payload)

        assert stored["remaining"] == 50.0
        assert stored["used"] == 0.0
        assert stored["limits"] == {"total_limit": 50}
        assert stored["isNewAccount"] is True

    def test_missing_flag_is_false(self) -> None:
        stored = parse_stored_balance('{"remaining": 1, "used": 49}')
        assert stored["isNewAccount"] is False
        assert stored["plan"] == "free"

    def test_invalid_json_is_rejected(self) -> None:
        with pytest.raises(IncomingDataError):
            parse_stored_balance("{oops")


def test_parse_pending_user_info() -> None:
    info = parse_pending_user_info('{"email": "a@b.c", "fullName": "A B", "referralCode": null}')
    assert info == {"email": "a@b.c", "fullName": "A B", "referralCode": None}


def test_validate_as_wraps_validation_errors() -> None:
    with pytest.raises(IncomingDataError):
        validate_as(dict[str, int], {"a": "not-int"})


class TestExtractErrorMessage:
    """Tests for reducing error bodies to one message."""

    def test_string_body(self) -> None:
        assert extract_error_message("Boom", status=500, reason="") == "Boom"

    def test_detail_string(self) -> None:
        assert extract_error_message({"detail": "Nope"}, status=400, reason="") == "Nope"

    def test_detail_list_first_msg(self) -> None:
        body = {"detail": [{"msg": "first"}, {"msg": "second"}]}
        assert extract_error_message(body, status=422, reason="") == "first"

    def test_detail_list_without_msg_is_serialised(self) -> None:
        body = {"detail": [{"loc": ["x"]}]}
        assert extract_error_message(body, status=422, reason="") == json.dumps([{"loc": ["x"]}])

    def test_detail_list_numeric_msg_is_stringified(self) -> None:
        body = {"detail": [{"msg": 123}]}
        assert extract_error_message(body, status=422, reason="") == "123"

    def test_detail_list_object_msg_is_serialised(self) -> None:
        body = {"detail": [{"msg": {"en": "Too short"}}]}
        assert extract_error_message(body, status=422, reason="") == '{"en": "Too short"}'

    def test_detail_object_is_serialised(self) -> None:
        body = {"detail": {"code": "E1"}}
        assert extract_error_message(body, status=400, reason="") == '{"code": "E1"}'

    def test_message_before_error(self) -> None:
        body = {"message": "from message", "error": "from error"}
        assert extract_error_message(body, status=400, reason="") == "from message"

    def test_error_field(self) -> None:
        assert extract_error_message({"error": "bad"}, status=400, reason="") == "bad"

    def test_unknown_object_is_serialised(self) -> None:
        assert extract_error_message({"code": 7}, status=400, reason="") == '{"code": 7}'

    def test_list_body_is_serialised(self) -> None:
        assert extract_error_message([1, 2], status=400, reason="") == "[1, 2]"

    @pytest.mark.parametrize("payload", [None, "", {}])
    def test_empty_body_uses_status_text(self, payload: object) -> None:
        assert (
            extract_error_message(payload, status=404, reason="Not Found") == "HTTP 404: Not Found"
        )

    def test_empty_body_without_reason(self) -> None:
        assert extract_error_message(None, status=502, reason="") == "HTTP 502"
