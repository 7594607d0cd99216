"""Diagnostic CLI: fetch one URL through the retry transport."""

from __future__ import annotations

import argparse
import asyncio
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

import httpx

from .config import RetryConfig, load_config
from .connectivity import ConnectivityProbe
from .errors import ExitCode, RetryGuardError, user_facing_error
from .logging import configure_logging
from .orchestrator import RetryOutcome
from .transport import ATTEMPTS_EXTENSION, OUTCOME_EXTENSION, RetryTransport

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
_VALID_METHODS = ("GET", "HEAD", "OPTIONS", "DELETE", "POST", "PUT", "PATCH")

logger = py_logging.getLogger(__name__)

TransportFactory = Callable[[], httpx.AsyncBaseTransport]


def _retries_type(value: str) -> int:
    try:
        retries = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--retries must be an integer") from exc
    if retries < 0:
        raise argparse.ArgumentTypeError("--retries must be >= 0")
    return retries


def _seconds_type(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("durations must be numbers of seconds") from exc
    if seconds < 0:
        raise argparse.ArgumentTypeError("durations must be >= 0")
    return seconds


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="retryguard")
    parser.add_argument("url")
    parser.add_argument("--method", type=str.upper, choices=_VALID_METHODS, default="GET")
    parser.add_argument("--retries", type=_retries_type, default=None)
    parser.add_argument(
        "--delay",
        type=_seconds_type,
        action="append",
        default=None,
        help="Backoff delay in seconds; repeat to build a schedule",
    )
    parser.add_argument("--grace", type=_seconds_type, default=None)
    parser.add_argument("--token", default=None, help="Authorization value for retried requests")
    parser.add_argument(
        "--no-mask",
        action="store_true",
        help="Raise instead of returning a placeholder when a retry breaks",
    )
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--log-level", type=_log_level_type, default="INFO")
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def resolve_config(namespace: argparse.Namespace) -> RetryConfig:
    config = load_config(namespace.config)
    if namespace.retries is not None:
        config.max_retries = namespace.retries
    if namespace.delay is not None:
        config.retry_delays = list(namespace.delay)
    if namespace.grace is not None:
        config.refresh_grace_seconds = namespace.grace
    if namespace.no_mask:
        config.mask_secondary_failures = False
    return config


async def _notify_offline() -> None:
    logger.warning("No network connectivity; requests will be retried when possible")


async def fetch(
    namespace: argparse.Namespace,
    config: RetryConfig,
    *,
    inner: httpx.AsyncBaseTransport,
    probe: ConnectivityProbe | None = None,
) -> httpx.Response:
    token = namespace.token
    transport = RetryTransport.build(
        inner=inner,
        config=config,
        navigator=_notify_offline,
        access_token_getter=(lambda: token) if token else None,
        probe=probe,
    )
    headers = {"Authorization": token} if token else None
    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.request(namespace.method, namespace.url, headers=headers)
        await response.aread()
        return response


def _exit_code_for(outcome: RetryOutcome) -> ExitCode:
    if outcome in (RetryOutcome.SUCCESS, RetryOutcome.RETRIED_SUCCESS):
        return ExitCode.SUCCESS
    if outcome is RetryOutcome.SECONDARY_FAILURE:
        return ExitCode.SECONDARY_FAILURE
    return ExitCode.REQUEST_FAILED


def main(
    argv: Sequence[str] | None = None,
    *,
    transport_factory: TransportFactory | None = None,
    probe: ConnectivityProbe | None = None,
) -> int:
    logger = configure_logging()
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    logger = configure_logging(level=namespace.log_level, log_file=namespace.log_file)
    try:
        config = resolve_config(namespace)
        inner = transport_factory() if transport_factory else httpx.AsyncHTTPTransport()
        response = asyncio.run(fetch(namespace, config, inner=inner, probe=probe))
    except RetryGuardError as exc:
        logger.error(
            "Handled RetryGuardError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except httpx.HTTPError as exc:
        logger.error("Request failed: %r", exc)
        print(user_facing_error(f"Request failed: {exc}", hint="Check the URL and network"), file=sys.stderr)
        return int(ExitCode.REQUEST_FAILED)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        print(user_facing_error(f"Invalid configuration: {exc}"), file=sys.stderr)
        return int(ExitCode.CONFIG_ERROR)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        if namespace.log_file is not None:
            hint = f"Inspect logs: {namespace.log_file}"
        else:
            hint = "Re-run with --log-level DEBUG --log-file PATH"
        print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)

    outcome = RetryOutcome(response.extensions.get(OUTCOME_EXTENSION, RetryOutcome.SUCCESS))
    attempts = response.extensions.get(ATTEMPTS_EXTENSION, 0)
    print(f"{outcome.value} {response.status_code} attempts={attempts}")
    return int(_exit_code_for(outcome))


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
