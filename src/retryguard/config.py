"""Retry configuration loading/saving."""

from __future__ import annotations

import os
import sys
from contextlib import suppress
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from retryguard.evaluator import DEFAULT_REFRESH_GRACE_SECONDS
from retryguard.retry import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAYS, RetryPolicy
from retryguard.status_codes import DEFAULT_RETRYABLE_STATUSES, StatusClassifier, classifier_for

DEFAULT_CONFIG_PATH = Path("~/.config/retryguard/config.toml").expanduser()
MAX_RETRIES_ENV = "RETRYGUARD_MAX_RETRIES"
RETRY_DELAYS_ENV = "RETRYGUARD_RETRY_DELAYS"
_TABLE = "retry"


class RetryConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_delays: list[float] = Field(default_factory=lambda: list(DEFAULT_RETRY_DELAYS))
    refresh_grace_seconds: float = Field(default=DEFAULT_REFRESH_GRACE_SECONDS, ge=0)
    mask_secondary_failures: bool = True
    retryable_statuses: list[int] = Field(
        default_factory=lambda: sorted(DEFAULT_RETRYABLE_STATUSES)
    )

    @field_validator("retry_delays")
    @classmethod
    def _validate_delays(cls, value: list[float]) -> list[float]:
        if any(delay < 0 for delay in value):
            raise ValueError("Retry delays must be >= 0")
        return value

    @field_validator("retryable_statuses")
    @classmethod
    def _validate_statuses(cls, value: list[int]) -> list[int]:
        for status in value:
            if not 100 <= status <= 599:
                raise ValueError(f"Invalid HTTP status code: {status}")
        return sorted(set(value))

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(max_retries=self.max_retries, retry_delays=tuple(self.retry_delays))

    def classifier(self) -> StatusClassifier:
        return classifier_for(self.retryable_statuses)


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _normalize_delays(value: object) -> list[float] | None:
    if not isinstance(value, list):
        return None
    if not all(_is_number(item) and item >= 0 for item in value):
        return None
    return [float(item) for item in value]


def _normalize_statuses(value: object) -> list[int] | None:
    if not isinstance(value, list):
        return None
    statuses = [
        item
        for item in value
        if isinstance(item, int) and not isinstance(item, bool) and 100 <= item <= 599
    ]
    return statuses


def _parse_env_delays(raw: str) -> list[float] | None:
    parts = [part.strip() for part in raw.split(",") if part.strip()]
    try:
        delays = [float(part) for part in parts]
    except ValueError:
        return None
    if any(delay < 0 for delay in delays):
        return None
    return delays


def _apply_env(cfg: RetryConfig) -> None:
    env_retries = os.getenv(MAX_RETRIES_ENV, "").strip()
    if env_retries:
        with suppress(ValueError):
            retries = int(env_retries)
            if retries >= 0:
                cfg.max_retries = retries

    env_delays = os.getenv(RETRY_DELAYS_ENV)
    if env_delays is not None:
        delays = _parse_env_delays(env_delays)
        if delays is not None:
            cfg.retry_delays = delays


def _sanitize(raw: dict[str, object]) -> RetryConfig:
    cfg = RetryConfig()

    max_retries = raw.get("max_retries", cfg.max_retries)
    if isinstance(max_retries, int) and not isinstance(max_retries, bool) and max_retries >= 0:
        cfg.max_retries = max_retries

    delays = _normalize_delays(raw.get("retry_delays", cfg.retry_delays))
    if delays is not None:
        cfg.retry_delays = delays

    grace = raw.get("refresh_grace_seconds", cfg.refresh_grace_seconds)
    if _is_number(grace) and grace >= 0:
        cfg.refresh_grace_seconds = float(grace)

    mask = raw.get("mask_secondary_failures", cfg.mask_secondary_failures)
    if isinstance(mask, bool):
        cfg.mask_secondary_failures = mask

    statuses = _normalize_statuses(raw.get("retryable_statuses", cfg.retryable_statuses))
    if statuses is not None:
        cfg.retryable_statuses = statuses

    return cfg


def load_config(path: str | Path | None = None) -> RetryConfig:
    resolved = get_config_path(path)
    raw: object = {}
    if resolved.exists():
        try:
            with resolved.open("rb") as handle:
                raw = tomllib.load(handle).get(_TABLE, {})
        except (tomllib.TOMLDecodeError, OSError):
            raw = {}
    cfg = _sanitize(raw) if isinstance(raw, dict) else RetryConfig()
    _apply_env(cfg)
    return cfg


def _toml_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, list):
        return "[" + ", ".join(_toml_scalar(item) for item in value) + "]"
    raise TypeError(f"Unsupported TOML scalar type: {type(value)!r}")


def save_config(config: RetryConfig, path: str | Path | None = None) -> Path:
    resolved = get_config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    lines = [
        f"[{_TABLE}]",
        f"max_retries = {_toml_scalar(config.max_retries)}",
        f"retry_delays = {_toml_scalar(config.retry_delays)}",
        f"refresh_grace_seconds = {_toml_scalar(config.refresh_grace_seconds)}",
        f"mask_secondary_failures = {_toml_scalar(config.mask_secondary_failures)}",
        f"retryable_statuses = {_toml_scalar(config.retryable_statuses)}",
    ]
    resolved.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o600)
    return resolved
