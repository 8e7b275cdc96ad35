"""Boundary-neutral IO contracts for infrastructure validation.

Usage example:
    from bookyolo_client.io_contracts import ProfileIO

    profile: ProfileIO = {
        "user": {"id": "u-1", "email": "sam@example.com"},
        "plan": "free",
        "used": 10.5,
        "remaining": 39.5,
        "total_limit": 50,
        "subscription_status": "",
        "subscription_expires": "",
    }
"""

from __future__ import annotations

from typing import TypedDict


class ProfileIO(TypedDict):
    """Normalised `/me` payload shape.

    `remaining` is None when the backend omitted it.
    """

    user: dict[str, object]
    plan: str
    used: float
    remaining: float | None
    total_limit: int
    subscription_status: str
    subscription_expires: str


class StoredLimitsIO(TypedDict):
    """Persisted plan limits."""

    total_limit: int


class StoredBalanceIO(TypedDict, total=False):
    """Persisted `user_scan_balance` payload shape."""

    remaining: float
    used: float
    plan: str
    limits: StoredLimitsIO
    isNewAccount: bool


class PendingUserInfoIO(TypedDict, total=False):
    """Sign-up details kept until email verification completes."""

    email: str
    fullName: str
    referralCode: str | None
