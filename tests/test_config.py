from __future__ import annotations

from pathlib import Path

import pytest

from retryguard.config import (
    MAX_RETRIES_ENV,
    RETRY_DELAYS_ENV,
    RetryConfig,
    load_config,
    save_config,
)
from retryguard.status_codes import DEFAULT_RETRYABLE_STATUSES


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(MAX_RETRIES_ENV, raising=False)
    monkeypatch.delenv(RETRY_DELAYS_ENV, raising=False)


def test_load_defaults_when_config_missing(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "config.toml")

    assert cfg.max_retries == 1
    assert cfg.retry_delays == [1.0]
    assert cfg.refresh_grace_seconds == 2.0
    assert cfg.mask_secondary_failures is True
    assert set(cfg.retryable_statuses) == set(DEFAULT_RETRYABLE_STATUSES)


def test_config_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    original = RetryConfig(
        max_retries=3,
        retry_delays=[0.5, 1.0, 4.0],
        refresh_grace_seconds=1.5,
        mask_secondary_failures=False,
        retryable_statuses=[503, 429],
    )

    save_config(original, path)
    loaded = load_config(path)

    assert loaded == original
    assert loaded.retryable_statuses == [429, 503]


def test_policy_and_classifier_follow_config() -> None:
    cfg = RetryConfig(max_retries=4, retry_delays=[2.0], retryable_statuses=[409])

    policy = cfg.to_policy()
    classify = cfg.classifier()

    assert policy.max_retries == 4
    assert policy.retry_delays == (2.0,)
    assert classify(409) is True
    assert classify(500) is False


def test_environment_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.toml"
    save_config(RetryConfig(max_retries=2, retry_delays=[1.0]), path)
    monkeypatch.setenv(MAX_RETRIES_ENV, "5")
    monkeypatch.setenv(RETRY_DELAYS_ENV, "0.25, 0.5")

    cfg = load_config(path)

    assert cfg.max_retries == 5
    assert cfg.retry_delays == [0.25, 0.5]


def test_invalid_environment_values_are_ignored(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(MAX_RETRIES_ENV, "many")
    monkeypatch.setenv(RETRY_DELAYS_ENV, "1,-2")

    cfg = load_config(tmp_path / "missing.toml")

    assert cfg.max_retries == 1
    assert cfg.retry_delays == [1.0]
