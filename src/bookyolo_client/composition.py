"""Composition root for wiring CLI dependencies."""

from __future__ import annotations

from pathlib import Path

from .application.account import AccountService
from .application.balance import BalanceReconciler
from .application.client import BookYoloClient
from .application.session import SessionManager
from .cli import CliDependencies, create_app
from .config import ClientConfig
from .infrastructure import FileKeyValueStore, ScopedKeyValueStore, build_request_engine


def build_cli_dependencies(*, config: ClientConfig) -> CliDependencies:
    """Build concrete dependencies for CLI commands.

    Args:
        config: Client configuration (engine, store and balance settings).
    """
    store = FileKeyValueStore(Path(config.store_dir))
    sessions = SessionManager(store)
    engine = build_request_engine(
        base_url=config.api_base_url,
        token_provider=sessions,
        max_retries=config.max_retries,
        base_delay_seconds=config.backoff_base_seconds,
        multiplier=config.backoff_multiplier,
        max_backoff_seconds=config.backoff_max_seconds,
        jitter_seconds=config.backoff_jitter_seconds,
        short_timeout_seconds=config.short_timeout_seconds,
        long_timeout_seconds=config.long_timeout_seconds,
    )
    client = BookYoloClient(engine, sessions, app_source=config.app_source)

    def reconciler_for(user_id: str | None) -> BalanceReconciler:
        scope = config.user_scope or user_id
        return BalanceReconciler(
            ScopedKeyValueStore(store, user_id=scope),
            default_total_limit=config.default_total_limit,
        )

    account = AccountService(
        client,
        sessions,
        reconciler_for,
        default_total_limit=config.default_total_limit,
    )
    return CliDependencies(client=client, sessions=sessions, account=account)


app = create_app(build_cli_dependencies)
