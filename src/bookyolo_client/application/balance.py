"""Scan balance reconciliation between optimistic local state and the backend.

Two writers touch the balance: in-app actions apply their known cost right away
(`deduct`), and profile fetches bring the backend's authoritative numbers
(`reconcile` on the guarded paths, `refresh` on the paths that bypass the
guard). The rules:

- A fetch reporting `used == 0 and remaining == 0` means the backend has not
  initialised the account yet. The full allowance is synthesised locally and
  the new-account guard is set.
- While the guard is active, guarded reconciles leave the balance untouched,
  so a stale zero read cannot clobber the bootstrapped value. The guard is
  cleared the first time a guarded fetch shows real usage (`used > 0`), or when
  a guard-bypassing refresh adopts backend numbers.
- Every adoption of backend numbers is clamped into `[0, total_limit]` with
  `used + remaining == total_limit`.

Nothing here raises to the caller: unreadable or unwritable storage is logged
and the in-memory value is returned instead.

Usage example:
    from bookyolo_client.application.balance import BalanceReconciler
    from bookyolo_client.domain.balance import QUESTION_COST

    reconciler = BalanceReconciler(store)
    reconciler.reconcile(profile)
    reconciler.deduct(QUESTION_COST)
"""

from __future__ import annotations

import json
import logging
import threading
from enum import StrEnum

from ..domain.balance import (
    DEFAULT_TOTAL_LIMIT,
    Balance,
    Plan,
    apply_deduction,
    bootstrap_balance,
    cap_balance,
    clamp_authoritative,
    is_uninitialized,
)
from ..exceptions import StoreError
from ..infrastructure.store import BALANCE_KEY, NEW_ACCOUNT_KEY
from ..infrastructure.validation import IncomingDataError, parse_stored_balance
from ..io_contracts import ProfileIO
from ..observability import get_logger
from ..protocols import KeyValueStore

_GUARD_VALUE = "true"


class ReconcileState(StrEnum):
    """Lifecycle of one user's balance."""

    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPED = "bootstrapped"
    SYNCED = "synced"


def _backend_remaining(profile: ProfileIO) -> float:
    remaining = profile["remaining"]
    if remaining is None:
        return profile["total_limit"] - profile["used"]
    return remaining


class BalanceReconciler:
    """Maintains one user's balance in a (user-scoped) key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        default_total_limit: int = DEFAULT_TOTAL_LIMIT,
        guard_clears_on_usage: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.default_total_limit = default_total_limit
        self.guard_clears_on_usage = guard_clears_on_usage
        self.logger = logger or get_logger("bookyolo_client.application.balance")
        self._lock = threading.Lock()
        self._current: Balance | None = None
        self._guard: bool | None = None

    # Queries

    def current(self) -> Balance | None:
        """Return the last known balance (memory, then store), capped to the plan limit."""
        if self._current is None:
            stored = self._load()
            if stored is not None:
                self._current = cap_balance(stored)
        return self._current

    def guard_active(self) -> bool:
        if self._guard is None:
            try:
                self._guard = self.store.get(NEW_ACCOUNT_KEY) == _GUARD_VALUE
            except StoreError:
                self.logger.exception("Could not read new-account flag; assuming unset")
                return False
        return self._guard

    def state(self) -> ReconcileState:
        if self.guard_active():
            return ReconcileState.BOOTSTRAPPED
        if self.current() is None:
            return ReconcileState.UNINITIALIZED
        return ReconcileState.SYNCED

    # Writers

    def reconcile(self, profile: ProfileIO) -> Balance | None:
        """Merge a profile fetch on a guarded path (start-up, user refresh)."""
        with self._lock:
            if self.guard_active():
                if not (self.guard_clears_on_usage and profile["used"] > 0):
                    self.logger.debug("New-account guard active; ignoring backend balance")
                    return self.current()
                self.logger.info("Backend shows usage; clearing new-account guard")
                self._set_guard(False)
            return self._adopt(profile)

    def refresh(self, profile: ProfileIO) -> Balance:
        """Adopt a profile fetch unconditionally (login, explicit balance refresh)."""
        with self._lock:
            balance = self._adopt(profile)
            if not balance.is_new_account and self.guard_active():
                self._set_guard(False)
            return balance

    def deduct(self, amount: float, fallback: Balance | None = None) -> Balance | None:
        """Apply a known action cost before the backend confirms it.

        Returns None, without writing, when the plan limit is already reached.

        Raises:
            ValueError: When `amount` is negative.
        """
        if amount < 0:
            raise ValueError("amount must be >= 0")
        with self._lock:
            base = self.current() or fallback
            if base is None:
                base = Balance(
                    remaining=float(self.default_total_limit),
                    used=0.0,
                    total_limit=self.default_total_limit,
                )
            if base.used >= base.total_limit:
                self.logger.info("Scan limit reached; not deducting %.1f", amount)
                return None
            updated = apply_deduction(base, amount)
            self._persist(updated)
            return updated

    def assume(self, balance: Balance) -> Balance:
        """Hold `balance` in memory when nothing is known; the store is not written."""
        with self._lock:
            known = self.current()
            if known is not None:
                return known
            self._current = balance
            return balance

    def clear_guard(self) -> None:
        with self._lock:
            self._set_guard(False)

    def reset(self) -> None:
        """Forget the persisted balance and the guard for this user."""
        with self._lock:
            self._current = None
            self._set_guard(False)
            try:
                self.store.remove(BALANCE_KEY)
            except StoreError:
                self.logger.exception("Could not remove persisted balance")

    # Internals (caller holds the lock)

    def _adopt(self, profile: ProfileIO) -> Balance:
        used = profile["used"]
        remaining = _backend_remaining(profile)
        total_limit = profile["total_limit"]
        plan = Plan.parse(profile["plan"])
        if is_uninitialized(used=used, remaining=remaining):
            self.logger.info("Backend balance not initialised; bootstrapping %d scans", total_limit)
            balance = bootstrap_balance(plan=plan, total_limit=total_limit)
            self._persist(balance)
            self._set_guard(True)
            return balance
        balance = clamp_authoritative(
            used=used,
            remaining=remaining,
            total_limit=total_limit,
            plan=plan,
        )
        self._persist(balance)
        return balance

    def _persist(self, balance: Balance) -> None:
        self._current = balance
        try:
            self.store.set(BALANCE_KEY, json.dumps(balance.to_store()))
        except StoreError:
            self.logger.exception("Could not persist balance; keeping it in memory only")

    def _set_guard(self, active: bool) -> None:
        self._guard = active
        try:
            if active:
                self.store.set(NEW_ACCOUNT_KEY, _GUARD_VALUE)
            else:
                self.store.remove(NEW_ACCOUNT_KEY)
        except StoreError:
            self.logger.exception("Could not update new-account flag")

    def _load(self) -> Balance | None:
        try:
            raw = self.store.get(BALANCE_KEY)
        except StoreError:
            self.logger.exception("Could not read persisted balance")
            return None
        if not raw:
            return None
        try:
            stored = parse_stored_balance(raw)
        except IncomingDataError:
            self.logger.warning("Discarding unreadable persisted balance")
            return None
        return Balance(
            remaining=stored["remaining"],
            used=stored["used"],
            plan=Plan.parse(stored["plan"]),
            total_limit=stored["limits"]["total_limit"],
            is_new_account=stored["isNewAccount"],
        )
