"""Centralised, injectable configuration for the BookYolo client core."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Self

from dotenv import load_dotenv

from .config_file import ClientConfigFile

DEFAULT_API_BASE_URL = "https://bookyolo-backend.vercel.app"
DEFAULT_STORE_DIR = "data/store"


class NonNegativeIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a non-negative integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a non-negative integer.")


class PositiveIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a positive integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive integer.")


class NonNegativeNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a non-negative number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a non-negative number.")


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a positive number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive number.")


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for the request engine, store and CLI.

    Load from environment with `ClientConfig.from_env()` or construct directly for testing.
    """

    # Backend
    api_base_url: str = DEFAULT_API_BASE_URL
    app_source: str = "mobile"

    # Timeout classes
    short_timeout_seconds: float = 30.0
    long_timeout_seconds: float = 60.0  # question and comparison endpoints

    # Retry
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    backoff_max_seconds: float = 8.0
    backoff_jitter_seconds: float = 0.0

    # Balance
    default_total_limit: int = 50

    # Local state
    store_dir: str = DEFAULT_STORE_DIR
    user_scope: str | None = None

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            ClientConfig instance populated from environment.
        """
        load_dotenv(dotenv_path)

        return cls(
            api_base_url=os.getenv("BOOKYOLO_API_BASE_URL", DEFAULT_API_BASE_URL)
            .strip()
            .rstrip("/")
            or DEFAULT_API_BASE_URL,
            app_source=os.getenv("BOOKYOLO_APP_SOURCE", "mobile").strip() or "mobile",
            short_timeout_seconds=_parse_positive_float(
                os.getenv("BOOKYOLO_SHORT_TIMEOUT_SECONDS", "30"),
                env_name="BOOKYOLO_SHORT_TIMEOUT_SECONDS",
            ),
            long_timeout_seconds=_parse_positive_float(
                os.getenv("BOOKYOLO_LONG_TIMEOUT_SECONDS", "60"),
                env_name="BOOKYOLO_LONG_TIMEOUT_SECONDS",
            ),
            max_retries=_parse_non_negative_int(
                os.getenv("BOOKYOLO_MAX_RETRIES", "3"),
                env_name="BOOKYOLO_MAX_RETRIES",
            ),
            backoff_base_seconds=_parse_non_negative_float(
                os.getenv("BOOKYOLO_BACKOFF_BASE_SECONDS", "1.0"),
                env_name="BOOKYOLO_BACKOFF_BASE_SECONDS",
            ),
            backoff_multiplier=_parse_positive_float(
                os.getenv("BOOKYOLO_BACKOFF_MULTIPLIER", "2.0"),
                env_name="BOOKYOLO_BACKOFF_MULTIPLIER",
            ),
            backoff_max_seconds=_parse_non_negative_float(
                os.getenv("BOOKYOLO_BACKOFF_MAX_SECONDS", "8.0"),
                env_name="BOOKYOLO_BACKOFF_MAX_SECONDS",
            ),
            backoff_jitter_seconds=_parse_non_negative_float(
                os.getenv("BOOKYOLO_BACKOFF_JITTER_SECONDS", "0.0"),
                env_name="BOOKYOLO_BACKOFF_JITTER_SECONDS",
            ),
            default_total_limit=_parse_positive_int(
                os.getenv("BOOKYOLO_DEFAULT_TOTAL_LIMIT", "50"),
                env_name="BOOKYOLO_DEFAULT_TOTAL_LIMIT",
            ),
            store_dir=os.getenv("BOOKYOLO_STORE_DIR", DEFAULT_STORE_DIR).strip()
            or DEFAULT_STORE_DIR,
            user_scope=os.getenv("BOOKYOLO_USER_SCOPE", "").strip() or None,
            log_level=os.getenv("BOOKYOLO_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

    def with_file_overrides(self, file_config: ClientConfigFile) -> Self:
        """Return a new config with config-file values overriding env/default values."""
        return replace(
            self,
            api_base_url=self.api_base_url
            if file_config.api_base_url is None
            else file_config.api_base_url,
            short_timeout_seconds=self.short_timeout_seconds
            if file_config.short_timeout_seconds is None
            else file_config.short_timeout_seconds,
            long_timeout_seconds=self.long_timeout_seconds
            if file_config.long_timeout_seconds is None
            else file_config.long_timeout_seconds,
            max_retries=self.max_retries
            if file_config.max_retries is None
            else file_config.max_retries,
            backoff_base_seconds=self.backoff_base_seconds
            if file_config.backoff_base_seconds is None
            else file_config.backoff_base_seconds,
            backoff_multiplier=self.backoff_multiplier
            if file_config.backoff_multiplier is None
            else file_config.backoff_multiplier,
            backoff_max_seconds=self.backoff_max_seconds
            if file_config.backoff_max_seconds is None
            else file_config.backoff_max_seconds,
            backoff_jitter_seconds=self.backoff_jitter_seconds
            if file_config.backoff_jitter_seconds is None
            else file_config.backoff_jitter_seconds,
            default_total_limit=self.default_total_limit
            if file_config.default_total_limit is None
            else file_config.default_total_limit,
            app_source=self.app_source if file_config.app_source is None else file_config.app_source,
            store_dir=self.store_dir if file_config.store_dir is None else file_config.store_dir,
            user_scope=self.user_scope if file_config.user_scope is None else file_config.user_scope,
            log_level=self.log_level if file_config.log_level is None else file_config.log_level,
        )


def _parse_non_negative_int(value: str, *, env_name: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise NonNegativeIntegerEnvVarError(env_name) from exc
    if parsed < 0:
        raise NonNegativeIntegerEnvVarError(env_name)
    return parsed


def _parse_positive_int(value: str, *, env_name: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise PositiveIntegerEnvVarError(env_name) from exc
    if parsed < 1:
        raise PositiveIntegerEnvVarError(env_name)
    return parsed


def _parse_non_negative_float(value: str, *, env_name: str) -> float:
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise NonNegativeNumberEnvVarError(env_name) from exc
    if parsed < 0.0:
        raise NonNegativeNumberEnvVarError(env_name)
    return parsed


def _parse_positive_float(value: str, *, env_name: str) -> float:
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if parsed <= 0.0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed
