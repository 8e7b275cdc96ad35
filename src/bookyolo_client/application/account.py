"""Account flows: authentication status, sign-in/out and billable actions.

`AccountService` ties the domain client, the session manager and the balance
reconciler together the way the app screens use them:

- start-up and user refreshes go through the guarded `reconcile`
- login and explicit balance refreshes bypass the guard with `refresh`
- question and comparison calls check the known balance first and apply
  their cost optimistically once the backend accepts them

Balances are kept per user: the reconciler is rebuilt for the user id of
each adopted profile.

Usage example:
    from bookyolo_client.application.account import AccountService

    service = AccountService(client, sessions, reconciler_for)
    service.check_auth_status()
    result = service.ask_question("Is the host responsive?")
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..domain.balance import (
    COMPARISON_COST,
    DEFAULT_TOTAL_LIMIT,
    QUESTION_COST,
    Balance,
    can_afford,
)
from ..domain.outcomes import INVALID_PROFILE_MESSAGE, SESSION_EXPIRED_MESSAGE, ApiResult
from ..exceptions import InsufficientBalanceError
from ..infrastructure.validation import IncomingDataError, parse_profile
from ..io_contracts import ProfileIO
from ..observability import get_logger
from .balance import BalanceReconciler
from .client import BookYoloClient
from .session import SessionManager

NOT_SIGNED_IN_MESSAGE = "Not signed in."
SIGN_UP_MESSAGE = "Please check your email to verify your account"
EMAIL_VERIFIED_MESSAGE = "Email verified successfully"

type ReconcilerFactory = Callable[[str | None], BalanceReconciler]


def _user_id(user: dict[str, object]) -> str | None:
    value = user.get("id")
    if value is None or value == "":
        return None
    return str(value)


class AccountService:
    """Signed-in user state and the balance rules around billable actions."""

    def __init__(
        self,
        client: BookYoloClient,
        sessions: SessionManager,
        reconciler_for: ReconcilerFactory,
        *,
        default_total_limit: int = DEFAULT_TOTAL_LIMIT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.sessions = sessions
        self.reconciler_for = reconciler_for
        self.default_total_limit = default_total_limit
        self.logger = logger or get_logger("bookyolo_client.application.account")
        self._user: dict[str, object] | None = None
        self._user_id: str | None = None
        self._reconciler = reconciler_for(None)

    @property
    def user(self) -> dict[str, object] | None:
        return self._user

    @property
    def reconciler(self) -> BalanceReconciler:
        return self._reconciler

    @property
    def balance(self) -> Balance | None:
        return self._reconciler.current()

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None and self.sessions.session().is_valid

    def check_auth_status(self) -> ApiResult:
        """Restore the signed-in user at start-up.

        Without a stored token the user is signed out. A failed profile fetch
        clears the token.
        """
        if not self.sessions.session().is_valid:
            self._forget_user()
            return ApiResult.failure(NOT_SIGNED_IN_MESSAGE)
        result, profile = self._fetch_profile()
        if profile is None:
            self.logger.info("Stored session rejected at start-up: %s", result.error)
            self.sessions.clear_token()
            self._forget_user()
            return result
        self._adopt_user(profile["user"])
        self._reconciler.reconcile(profile)
        return result

    def sign_in(self, email: str, password: str) -> ApiResult:
        """Log in, open a login session and adopt the backend balance.

        When the profile fetch fails the persisted balance is kept; only a user
        with nothing on record sees the free allowance, held in memory.
        """
        result = self.client.login(email, password)
        if not result.ok:
            return result
        self.sessions.start_login_session()

        me, profile = self._fetch_profile()
        if profile is None:
            self.logger.warning("Profile fetch after login failed: %s", me.error)
            login_data = result.data_as_dict() or {}
            user = login_data.get("user")
            self._adopt_user(user if isinstance(user, dict) else {})
            self._reconciler.assume(self._free_allowance())
            return result
        self._adopt_user(profile["user"])
        self._reconciler.refresh(profile)
        return result

    def sign_up(
        self,
        email: str,
        password: str,
        first_name: str,
        referral_code: str | None = None,
    ) -> ApiResult:
        """Register an account and keep its details until the email is verified.

        A failed referral tracking call is logged and does not fail the sign-up.
        """
        result = self.client.signup(first_name, email, password, password)
        if not result.ok:
            return result

        user_id = (result.data_as_dict() or {}).get("user_id")
        if referral_code and user_id:
            tracked = self.client.track_referral_signup(referral_code, email, str(user_id))
            if not tracked.ok:
                self.logger.warning("Referral tracking failed: %s", tracked.error)

        self.sessions.set_pending_user_info(
            {"email": email, "fullName": first_name, "referralCode": referral_code}
        )
        return ApiResult.success({"message": SIGN_UP_MESSAGE})

    def verify_email(self, token: str) -> ApiResult:
        """Confirm an email address and release the pending sign-up details.

        The verified identity comes from the response, falling back to the
        details stored at sign-up.
        """
        result = self.client.verify_email(token)
        if not result.ok:
            return result

        data = result.data_as_dict() or {}
        raw_user = data.get("user")
        user: dict[str, object] = raw_user if isinstance(raw_user, dict) else {}
        pending = self.sessions.get_pending_user_info() or {}
        email = user.get("email") or data.get("email") or pending.get("email")
        full_name = (
            user.get("fullName")
            or data.get("fullName")
            or user.get("name")
            or pending.get("fullName")
        )
        self.sessions.clear_pending_user_info()
        return ApiResult.success(
            {"message": EMAIL_VERIFIED_MESSAGE, "email": email, "full_name": full_name}
        )

    def sign_out(self) -> ApiResult:
        result = self.client.logout()
        self.sessions.end_login_session()
        self._forget_user()
        return result

    def refresh_user(self) -> ApiResult:
        """Re-fetch the profile; balance goes through the new-account guard."""
        result, profile = self._fetch_profile()
        if profile is None:
            if result.error == SESSION_EXPIRED_MESSAGE:
                self._forget_user()
            return result
        self._adopt_user(profile["user"])
        self._reconciler.reconcile(profile)
        return result

    def refresh_scan_balance(self) -> ApiResult:
        """Re-fetch the profile and adopt its balance unconditionally."""
        result, profile = self._fetch_profile()
        if profile is None:
            if result.error == SESSION_EXPIRED_MESSAGE:
                self._forget_user()
            return result
        self._adopt_user(profile["user"])
        self._reconciler.refresh(profile)
        return result

    def ask_question(self, question: str | dict[str, object]) -> ApiResult:
        """Ask a listing question; costs `QUESTION_COST` once the backend answers.

        Raises:
            InsufficientBalanceError: When the known balance cannot cover the cost.
        """
        self._require(QUESTION_COST)
        result = self.client.ask_question(question)
        if result.ok:
            self._reconciler.deduct(QUESTION_COST)
        return result

    def compare_listings(
        self, scan_a_url: str, scan_b_url: str, question: str | None = None
    ) -> ApiResult:
        """Compare two listings; costs `COMPARISON_COST` once the backend answers.

        Raises:
            InsufficientBalanceError: When the known balance cannot cover the cost.
        """
        self._require(COMPARISON_COST)
        result = self.client.compare_listings(scan_a_url, scan_b_url, question)
        if result.ok:
            self._reconciler.deduct(COMPARISON_COST)
        return result

    def _require(self, cost: float) -> None:
        balance = self.balance
        if balance is not None and not can_afford(balance, cost):
            raise InsufficientBalanceError(cost, balance.remaining)

    def _fetch_profile(self) -> tuple[ApiResult, ProfileIO | None]:
        result = self.client.get_current_user()
        if not result.ok:
            return result, None
        try:
            return result, parse_profile(
                result.data, default_total_limit=self.default_total_limit
            )
        except IncomingDataError:
            self.logger.warning("Discarding malformed profile payload")
            return ApiResult.failure(INVALID_PROFILE_MESSAGE), None

    def _free_allowance(self) -> Balance:
        return Balance(
            remaining=float(self.default_total_limit),
            used=0.0,
            total_limit=self.default_total_limit,
        )

    def _adopt_user(self, user: dict[str, object]) -> None:
        self._user = user
        user_id = _user_id(user)
        if user_id != self._user_id:
            self._user_id = user_id
            self._reconciler = self.reconciler_for(user_id)

    def _forget_user(self) -> None:
        self._user = None
        if self._user_id is not None:
            self._user_id = None
            self._reconciler = self.reconciler_for(None)
