"""Typed parsing and validation for client config files."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .exceptions import ConfigFileNotFoundError, ConfigFileParseError, ConfigFileValidationError

_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ClientConfigFile:
    """Validated client config values loaded from a TOML file."""

    api_base_url: str | None = None
    short_timeout_seconds: float | None = None
    long_timeout_seconds: float | None = None
    max_retries: int | None = None
    backoff_base_seconds: float | None = None
    backoff_multiplier: float | None = None
    backoff_max_seconds: float | None = None
    backoff_jitter_seconds: float | None = None
    default_total_limit: int | None = None
    app_source: str | None = None
    store_dir: str | None = None
    user_scope: str | None = None
    log_level: str | None = None


class _ClientSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    api_base_url: str | None = None
    short_timeout_seconds: float | None = None
    long_timeout_seconds: float | None = None
    max_retries: int | None = None
    backoff_base_seconds: float | None = None
    backoff_multiplier: float | None = None
    backoff_max_seconds: float | None = None
    backoff_jitter_seconds: float | None = None
    default_total_limit: int | None = None
    app_source: str | None = None
    store_dir: str | None = None
    user_scope: str | None = None
    log_level: str | None = None

    @field_validator("api_base_url")
    @classmethod
    def _validate_base_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        url = value.strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            raise ValueError
        return url

    @field_validator("app_source", "store_dir", "user_scope")
    @classmethod
    def _validate_non_empty_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            raise ValueError
        return text

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str | None) -> str | None:
        if value is None:
            return None
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError
        return level

    @field_validator("short_timeout_seconds", "long_timeout_seconds", "backoff_multiplier")
    @classmethod
    def _validate_positive_float(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value <= 0.0:
            raise ValueError
        return value

    @field_validator("backoff_base_seconds", "backoff_max_seconds", "backoff_jitter_seconds")
    @classmethod
    def _validate_non_negative_float(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value < 0.0:
            raise ValueError
        return value

    @field_validator("max_retries")
    @classmethod
    def _validate_non_negative_int(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 0:
            raise ValueError
        return value

    @field_validator("default_total_limit")
    @classmethod
    def _validate_positive_int(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 1:
            raise ValueError
        return value


class _ConfigFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    client: _ClientSectionModel

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError
        return value


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ("<root>",)))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}"


def load_client_config_file(path: Path) -> ClientConfigFile:
    """Load and validate a client TOML config file."""
    if not path.exists():
        raise ConfigFileNotFoundError(str(path))

    raw_payload = path.read_text(encoding="utf-8")
    try:
        payload: object = tomllib.loads(raw_payload)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileParseError(str(path), str(exc)) from exc

    try:
        model = _ConfigFileModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigFileValidationError(str(path), _format_validation_error(exc)) from exc

    section = model.client
    return ClientConfigFile(
        api_base_url=section.api_base_url,
        short_timeout_seconds=section.short_timeout_seconds,
        long_timeout_seconds=section.long_timeout_seconds,
        max_retries=section.max_retries,
        backoff_base_seconds=section.backoff_base_seconds,
        backoff_multiplier=section.backoff_multiplier,
        backoff_max_seconds=section.backoff_max_seconds,
        backoff_jitter_seconds=section.backoff_jitter_seconds,
        default_total_limit=section.default_total_limit,
        app_source=section.app_source,
        store_dir=section.store_dir,
        user_scope=section.user_scope,
        log_level=section.log_level,
    )
