"""Scan balance value type and the pure arithmetic that keeps it consistent.

All functions here are side-effect free. Persistence and the new-account guard
live in `bookyolo_client.application.balance`.

Usage example:
    from bookyolo_client.domain.balance import (
        QUESTION_COST,
        Balance,
        apply_deduction,
        clamp_authoritative,
    )

    balance = clamp_authoritative(used=60, remaining=-10, total_limit=50)
    assert (balance.used, balance.remaining) == (50, 0)
    balance = apply_deduction(Balance(remaining=40, used=10), QUESTION_COST)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum

DEFAULT_TOTAL_LIMIT = 50
QUESTION_COST = 0.5
COMPARISON_COST = 1.0


class Plan(StrEnum):
    """Subscription plan."""

    FREE = "free"
    PREMIUM = "premium"

    @classmethod
    def parse(cls, value: object) -> Plan:
        text = str(value or "").strip().lower()
        if text == cls.PREMIUM.value:
            return cls.PREMIUM
        return cls.FREE


@dataclass(frozen=True)
class Balance:
    """Remaining/used quota against a plan limit.

    Quantities are multiples of 0.5 held as floats, which represent halves exactly.
    """

    remaining: float
    used: float
    plan: Plan = Plan.FREE
    total_limit: int = DEFAULT_TOTAL_LIMIT
    is_new_account: bool = False

    def with_usage(self, *, used: float, remaining: float) -> Balance:
        return replace(self, used=used, remaining=remaining)

    def to_store(self) -> dict[str, object]:
        """Serialise in the shape the mobile client persists."""
        payload: dict[str, object] = {
            "remaining": _number(self.remaining),
            "used": _number(self.used),
            "plan": self.plan.value,
            "limits": {"total_limit": self.total_limit},
        }
        if self.is_new_account:
            payload["isNewAccount"] = True
        return payload


def _number(value: float) -> float | int:
    return int(value) if float(value).is_integer() else value


def is_uninitialized(*, used: float, remaining: float) -> bool:
    """Return True when the backend reports an account it has not set up yet."""
    return used == 0 and remaining == 0


def bootstrap_balance(*, plan: Plan, total_limit: int) -> Balance:
    """Synthesize the full allowance for a brand-new account."""
    return Balance(
        remaining=float(total_limit),
        used=0.0,
        plan=plan,
        total_limit=total_limit,
        is_new_account=True,
    )


def clamp_authoritative(
    *,
    used: float,
    remaining: float,
    total_limit: int,
    plan: Plan = Plan.FREE,
) -> Balance:
    """Clamp backend numbers into [0, total_limit] with used + remaining == total_limit.

    `used` is the authoritative figure; `remaining` is derived from it whenever
    the two disagree, so a momentarily inconsistent backend pair cannot show
    more than the plan allows.
    """
    limit = float(total_limit)
    used_final = min(limit, max(0.0, float(used)))
    remaining_final = max(0.0, min(limit, float(remaining)))
    if used_final + remaining_final != limit:
        remaining_final = limit - used_final
    return Balance(
        remaining=remaining_final,
        used=used_final,
        plan=plan,
        total_limit=total_limit,
    )


def cap_balance(balance: Balance) -> Balance:
    """Re-apply the clamp to a persisted balance, keeping its other fields."""
    clamped = clamp_authoritative(
        used=balance.used,
        remaining=balance.remaining,
        total_limit=balance.total_limit,
        plan=balance.plan,
    )
    return balance.with_usage(used=clamped.used, remaining=clamped.remaining)


def apply_deduction(balance: Balance, amount: float) -> Balance:
    """Return `balance` with `amount` moved from remaining to used, never past the limit.

    Raises:
        ValueError: When `amount` is negative.
    """
    if amount < 0:
        raise ValueError("amount must be >= 0")
    limit = float(balance.total_limit)
    new_used = min(limit, balance.used + amount)
    new_remaining = max(0.0, limit - new_used)
    return balance.with_usage(used=new_used, remaining=new_remaining)


def can_afford(balance: Balance | None, cost: float) -> bool:
    """Return True when the known balance covers `cost` (unknown balance is allowed)."""
    if balance is None:
        return True
    return balance.remaining >= cost
