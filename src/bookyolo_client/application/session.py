"""Session and token management.

The session manager is the single source of truth for the bearer token. It is
passed explicitly to the request engine (as its token provider) and to the
account flows, never reached through a module-level singleton.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import override

from ..exceptions import StoreError
from ..infrastructure.store import AUTH_TOKEN_KEY, LOGIN_SESSION_KEY, PENDING_USER_INFO_KEY
from ..infrastructure.validation import IncomingDataError, parse_pending_user_info
from ..io_contracts import PendingUserInfoIO
from ..observability import get_logger
from ..protocols import KeyValueStore, TokenProvider

SESSION_NOTIFICATION_KEYS: tuple[str, ...] = (
    "upgrade_screen_notification",
    "referral_screen_notification",
)


@dataclass(frozen=True)
class Session:
    """Bearer token snapshot; a missing token means unauthenticated."""

    token: str | None

    @property
    def is_valid(self) -> bool:
        return bool(self.token)


class SessionManager(TokenProvider):
    """Owns the bearer token lifecycle on top of a key-value store.

    Store failures never propagate: reads degrade to "unauthenticated" and
    writes are logged.
    """

    def __init__(self, store: KeyValueStore, *, logger: logging.Logger | None = None) -> None:
        self.store = store
        self.logger = logger or get_logger("bookyolo_client.application.session")

    def session(self) -> Session:
        return Session(token=self.get_token())

    @override
    def get_token(self) -> str | None:
        try:
            return self.store.get(AUTH_TOKEN_KEY) or None
        except StoreError:
            self.logger.exception("Could not read auth token; treating as signed out")
            return None

    def set_token(self, token: str) -> None:
        """Persist the token returned by a successful login."""
        try:
            self.store.set(AUTH_TOKEN_KEY, token)
        except StoreError:
            self.logger.exception("Could not persist auth token")

    @override
    def clear_token(self) -> None:
        try:
            self.store.remove(AUTH_TOKEN_KEY)
        except StoreError:
            self.logger.exception("Could not clear auth token")

    # Pending sign-up details, kept until the email address is verified.

    def set_pending_user_info(self, info: PendingUserInfoIO) -> None:
        try:
            self.store.set(PENDING_USER_INFO_KEY, json.dumps(info))
        except StoreError:
            self.logger.exception("Could not persist pending user info")

    def get_pending_user_info(self) -> PendingUserInfoIO | None:
        try:
            raw = self.store.get(PENDING_USER_INFO_KEY)
        except StoreError:
            self.logger.exception("Could not read pending user info")
            return None
        if not raw:
            return None
        try:
            return parse_pending_user_info(raw)
        except IncomingDataError:
            self.logger.warning("Discarding unreadable pending user info")
            return None

    def clear_pending_user_info(self) -> None:
        try:
            self.store.remove(PENDING_USER_INFO_KEY)
        except StoreError:
            self.logger.exception("Could not clear pending user info")

    # Login session identifiers scope per-session UI flags.

    def start_login_session(self) -> str:
        session_id = f"session_{int(time.time() * 1000)}_{secrets.token_hex(5)}"
        try:
            self.store.set(LOGIN_SESSION_KEY, session_id)
        except StoreError:
            self.logger.exception("Could not persist login session id")
        return session_id

    def current_login_session(self) -> str | None:
        try:
            return self.store.get(LOGIN_SESSION_KEY)
        except StoreError:
            self.logger.exception("Could not read login session id")
            return None

    def end_login_session(self) -> None:
        """Drop the login session id and the notification flags scoped to it."""
        session_id = self.current_login_session()
        if not session_id:
            return
        try:
            for base in SESSION_NOTIFICATION_KEYS:
                self.store.remove(f"{base}_{session_id}")
            self.store.remove(LOGIN_SESSION_KEY)
        except StoreError:
            self.logger.exception("Could not clear login session keys")
