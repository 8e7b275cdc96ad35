"""Pydantic-based validation helpers for inbound IO payloads."""

from __future__ import annotations

import json
from typing import TypedDict

from pydantic import TypeAdapter, ValidationError

from ..domain.balance import DEFAULT_TOTAL_LIMIT
from ..io_contracts import PendingUserInfoIO, ProfileIO, StoredBalanceIO


class IncomingDataError(ValueError):
    """Raised when inbound data fails validation."""


class LimitsInput(TypedDict, total=False):
    total_limit: float | None


class ProfileInput(TypedDict, total=False):
    user: dict[str, object] | None
    plan: str | None
    used: float | None
    remaining: float | None
    limits: LimitsInput | None
    subscription_status: str | None
    subscription_expires: str | None


class StoredBalanceInput(TypedDict, total=False):
    remaining: float | None
    used: float | None
    plan: str | None
    limits: LimitsInput | None
    isNewAccount: bool | None


class ValidationErrorEntryInput(TypedDict, total=False):
    msg: object


def validate_as[SchemaT](schema: type[SchemaT], payload: object) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as exc:
        message = f"Invalid payload for {schema}."
        raise IncomingDataError(message) from exc


def validate_json_as[SchemaT](schema: type[SchemaT], payload: str | bytes | bytearray) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_json(payload)
    except ValidationError as exc:
        message = f"Invalid JSON payload for {schema}."
        raise IncomingDataError(message) from exc


def _as_str(value: object) -> str:
    return value if isinstance(value, str) else ""


def _total_limit(limits: LimitsInput | None, default: int = DEFAULT_TOTAL_LIMIT) -> int:
    value = (limits or {}).get("total_limit")
    if not value or value < 0:
        return default
    return int(value)


def parse_profile(
    payload: object, *, default_total_limit: int = DEFAULT_TOTAL_LIMIT
) -> ProfileIO:
    """Normalise a `/me` response.

    Missing `used` is 0; missing `remaining` stays None so callers can tell an
    omitted value from an explicit zero. A missing or unusable plan limit falls
    back to `default_total_limit`.
    """
    profile = validate_as(ProfileInput, payload)
    return {
        "user": profile.get("user") or {},
        "plan": _as_str(profile.get("plan")) or "free",
        "used": float(profile.get("used") or 0),
        "remaining": profile.get("remaining"),
        "total_limit": _total_limit(profile.get("limits"), default_total_limit),
        "subscription_status": _as_str(profile.get("subscription_status")),
        "subscription_expires": _as_str(profile.get("subscription_expires")),
    }


def parse_stored_balance(payload: str) -> StoredBalanceIO:
    """Parse a persisted `user_scan_balance` JSON document."""
    stored = validate_json_as(StoredBalanceInput, payload)
    return {
        "remaining": float(stored.get("remaining") or 0),
        "used": float(stored.get("used") or 0),
        "plan": _as_str(stored.get("plan")) or "free",
        "limits": {"total_limit": _total_limit(stored.get("limits"))},
        "isNewAccount": bool(stored.get("isNewAccount")),
    }


def parse_pending_user_info(payload: str) -> PendingUserInfoIO:
    return validate_json_as(PendingUserInfoIO, payload)


def extract_error_message(payload: object, *, status: int, reason: str) -> str:
    """Reduce an error body to one human-readable message.

    Order: plain text body, `detail` (first validation entry's `msg` for a list),
    `message`, `error`, then the JSON-encoded object; status text when empty.
    """
    fallback = f"HTTP {status}: {reason}" if reason else f"HTTP {status}"
    if payload is None or payload == "" or payload == {}:
        return fallback
    if isinstance(payload, str):
        return payload
    try:
        body = validate_as(dict[str, object], payload)
    except IncomingDataError:
        return json.dumps(payload)

    detail = body.get("detail")
    if detail:
        if isinstance(detail, list):
            entries = validate_as(list[object], detail)
            first = entries[0] if entries else None
            if isinstance(first, dict):
                entry = validate_as(ValidationErrorEntryInput, first)
                msg = entry.get("msg")
                if msg:
                    return msg if isinstance(msg, str) else json.dumps(msg)
            return json.dumps(detail)
        return detail if isinstance(detail, str) else json.dumps(detail)
    for key in ("message", "error"):
        value = body.get(key)
        if value:
            return value if isinstance(value, str) else json.dumps(value)
    return json.dumps(body)
