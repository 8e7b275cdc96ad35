"""Persistent key-value store implementations.

Usage example:
    from pathlib import Path

    from bookyolo_client.infrastructure.store import FileKeyValueStore, ScopedKeyValueStore

    store = FileKeyValueStore(Path("data/store"))
    store.set("auth_token", "abc")
    user_store = ScopedKeyValueStore(store, user_id="u-1")
    user_store.set("user_scan_balance", "{}")  # stored as user_scan_balance_u-1
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import override

from ..exceptions import StoreError
from ..protocols import KeyValueStore
from .validation import IncomingDataError, validate_json_as

AUTH_TOKEN_KEY = "auth_token"
BALANCE_KEY = "user_scan_balance"
NEW_ACCOUNT_KEY = "is_new_account"
PENDING_USER_INFO_KEY = "pending_user_info"
LOGIN_SESSION_KEY = "current_login_session_id"


def scoped_key(base: str, user_id: str | None) -> str:
    """Return the per-user variant `<base>_<userId>`, or `base` when unscoped."""
    if not user_id:
        return base
    return f"{base}_{user_id}"


@dataclass
class FileKeyValueStore(KeyValueStore):
    """File-backed store: one small JSON document per key."""

    store_dir: Path

    def __post_init__(self) -> None:
        self.store_dir = Path(self.store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        h = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.store_dir / f"{h}.json"

    @override
    def get(self, key: str) -> str | None:
        p = self._path(key)
        if not p.exists():
            return None
        try:
            payload = p.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(key, "read") from exc
        try:
            entry = validate_json_as(dict[str, str], payload)
        except IncomingDataError as exc:
            raise StoreError(key, "decode") from exc
        return entry.get("value")

    @override
    def set(self, key: str, value: str) -> None:
        p = self._path(key)
        tmp = p.with_suffix(".tmp")
        try:
            tmp.write_text(
                json.dumps({"key": key, "value": value}, ensure_ascii=False),
                encoding="utf-8",
            )
            tmp.replace(p)
        except OSError as exc:
            raise StoreError(key, "write") from exc

    @override
    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StoreError(key, "remove") from exc


@dataclass
class ScopedKeyValueStore(KeyValueStore):
    """Wraps a store so every key is suffixed with the logical user id.

    Keys listed in `shared_keys` (the auth token by default) stay unscoped.
    """

    inner: KeyValueStore
    user_id: str | None = None
    shared_keys: frozenset[str] = field(default_factory=lambda: frozenset({AUTH_TOKEN_KEY}))

    def _key(self, key: str) -> str:
        if key in self.shared_keys:
            return key
        return scoped_key(key, self.user_id)

    @override
    def get(self, key: str) -> str | None:
        return self.inner.get(self._key(key))

    @override
    def set(self, key: str, value: str) -> None:
        self.inner.set(self._key(key), value)

    @override
    def remove(self, key: str) -> None:
        self.inner.remove(self._key(key))
