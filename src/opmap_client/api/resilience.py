"""API resilience utilities for opmap-client.

This module provides the retry executor (exponential backoff without jitter),
the settings-aware retry configuration, and actionable error messages for
failed HTTP calls.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from opmap_client.core.config import CallOptions, RetryConfig
from opmap_client.core.constants import (
    DEFAULT_RETRY_COUNT,
    DEFAULT_RETRY_DELAY_SEC,
    SETTING_RETRY_COUNT,
    SETTING_RETRY_DELAY,
    SETTING_RETRY_STATUS_CODES,
)
from opmap_client.core.exceptions import ConfigurationError, TransportError
from opmap_client.core.settings import SettingsStore

T = TypeVar("T")


class ErrorMessageHelper:
    """Provides contextual error messages with actionable suggestions."""

    @staticmethod
    def get_http_error_message(status_code: int, operation: str = "API call") -> str:
        """Get detailed error message with suggestions for HTTP status codes."""
        messages = {
            400: {
                "title": "Bad Request",
                "reason": "The request was malformed or contains invalid parameters",
                "suggestions": [
                    "Check the parameters passed for every {placeholder} in the operation",
                    "Look for unresolved {placeholders} left in the URI or body",
                ],
            },
            401: {
                "title": "Authentication Failed",
                "reason": "The bearer token is missing, invalid or expired",
                "suggestions": [
                    "Rotate the token: opmap token set",
                    "Check OPMAP_TOKEN is not shadowing a newer token in the keyring",
                ],
            },
            403: {
                "title": "Access Forbidden",
                "reason": "The token does not grant access to this resource",
                "suggestions": [
                    "Verify the account behind the token has the required roles",
                    "Confirm InstanceBaseUri points at the intended instance",
                ],
            },
            404: {
                "title": "Resource Not Found",
                "reason": "The requested record or endpoint does not exist",
                "suggestions": [
                    "Verify the record identifier passed as a parameter",
                    "Check basePath and path in the operations map",
                ],
            },
            429: {
                "title": "Rate Limit Exceeded",
                "reason": "Too many requests sent to the API",
                "suggestions": [
                    "Wait a few minutes before retrying",
                    "Raise Defaults.RetryDelaySec to back off for longer",
                    "Use a smaller batch size when paging",
                ],
            },
            500: {
                "title": "Internal Server Error",
                "reason": "The remote service encountered an error",
                "suggestions": [
                    "This is typically a temporary issue - retry in a few minutes",
                    "Increase retry attempts (Defaults.RetryCount)",
                ],
            },
            502: {
                "title": "Bad Gateway",
                "reason": "Upstream server error or network issue",
                "suggestions": ["Wait a few minutes and retry"],
            },
            503: {
                "title": "Service Unavailable",
                "reason": "The service is temporarily unavailable",
                "suggestions": ["The instance may be undergoing maintenance", "Wait 5-10 minutes and retry"],
            },
            504: {
                "title": "Gateway Timeout",
                "reason": "The request took too long to complete",
                "suggestions": ["Raise TimeoutSec for this call", "Request fewer records per call"],
            },
        }

        error_info = messages.get(
            status_code,
            {
                "title": f"HTTP {status_code}",
                "reason": "An unexpected HTTP error occurred",
                "suggestions": ["Check your network connection", "Review logs for more details"],
            },
        )

        output = [
            f"{'=' * 60}",
            f"HTTP {status_code}: {error_info['title']}",
            f"{'=' * 60}",
            f"Operation: {operation}",
            "",
            "Why this happened:",
            f"  {error_info['reason']}",
            "",
            "How to fix it:",
        ]
        for i, suggestion in enumerate(error_info["suggestions"], 1):
            output.append(f"  {i}. {suggestion}")
        return "\n".join(output)

    @staticmethod
    def get_network_error_message(error: BaseException, operation: str = "operation") -> str:
        """Get detailed message for network-level failures (no HTTP status)."""
        return "\n".join(
            [
                f"{'=' * 60}",
                f"Network Error: {type(error).__name__}",
                f"{'=' * 60}",
                f"During: {operation}",
                f"Error details: {error!s}",
                "",
                "How to fix it:",
                "  1. Check your internet connection and proxy settings",
                "  2. Verify InstanceBaseUri resolves and is reachable",
                "  3. Raise TimeoutSec if the instance is slow to respond",
            ]
        )


def retry_on_status_codes(status_codes: Iterable[int]) -> Callable[[BaseException], bool]:
    """Build a ``should_retry`` predicate limited to ``status_codes``.

    Transport errors without a status (network failures) stay retryable.
    """
    codes = frozenset(status_codes)

    def should_retry(error: BaseException) -> bool:
        status_code = getattr(error, "status_code", None)
        return status_code is None or status_code in codes

    return should_retry


def resolve_retry_config(settings: SettingsStore, options: CallOptions | None = None) -> RetryConfig:
    """Resolve retry settings: call options > Defaults.* settings > built-in defaults.

    Raises:
        ConfigurationError: If a Defaults.* value is not numeric
    """
    options = options or CallOptions()
    max_retries = options.retry_count
    if max_retries is None:
        max_retries = settings.get_number(SETTING_RETRY_COUNT, int)
    if max_retries is None:
        max_retries = DEFAULT_RETRY_COUNT

    base_delay = options.retry_delay_sec
    if base_delay is None:
        base_delay = settings.get_number(SETTING_RETRY_DELAY, float)
    if base_delay is None:
        base_delay = DEFAULT_RETRY_DELAY_SEC

    if max_retries < 0 or base_delay < 0:
        raise ConfigurationError(
            "Retry count and delay must not be negative",
            details=f"RetryCount={max_retries}, RetryDelaySec={base_delay}",
        )

    retry_status_codes = None
    raw_codes = settings.get(SETTING_RETRY_STATUS_CODES)
    if raw_codes:
        try:
            retry_status_codes = frozenset(int(code) for code in raw_codes)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"{SETTING_RETRY_STATUS_CODES} must be a list of HTTP status codes",
                field=SETTING_RETRY_STATUS_CODES,
                details=repr(raw_codes),
            ) from e

    return RetryConfig(max_retries=int(max_retries), base_delay=float(base_delay), retry_status_codes=retry_status_codes)


def _log_final_failure(logger: logging.Logger, error: BaseException, operation_name: str, attempts: int) -> None:
    logger.error(f"All {attempts} attempts failed for {operation_name}")
    if isinstance(error, TransportError) and error.status_code:
        logger.error("\n" + ErrorMessageHelper.get_http_error_message(error.status_code, operation=operation_name))
    elif isinstance(error, (TransportError, ConnectionError, TimeoutError)):
        logger.error("\n" + ErrorMessageHelper.get_network_error_message(error, operation=operation_name))
    else:
        logger.error(f"Error: {error!s}")


def run_with_retry(
    action: Callable[[], T],
    max_retries: int,
    initial_delay_sec: float,
    *,
    should_retry: Callable[[BaseException], bool] | None = None,
    logger: logging.Logger | None = None,
    operation_name: str = "operation",
) -> T:
    """
    Run ``action`` with retry and exponential backoff.

    The first attempt runs immediately. After a failure on attempt ``n``
    (0-based) the executor sleeps ``initial_delay_sec * 2**n`` seconds and
    tries again, for ``max_retries + 1`` attempts in total. Every exception
    is retried unless ``should_retry`` returns False for it. The final
    failure is re-raised unchanged.

    Args:
        action: Zero-argument callable performing one attempt
        max_retries: Retries after the first attempt
        initial_delay_sec: Delay before the first retry
        should_retry: Optional predicate narrowing which errors are retried
        logger: Logger instance for retry messages
        operation_name: Human-readable name for logging

    Returns:
        Result of the first successful attempt

    Example:
        result = run_with_retry(lambda: transport.send("GET", uri, headers), 3, 2.0)
    """
    _logger = logger or logging.getLogger(__name__)
    attempts = max_retries + 1

    for attempt in range(attempts):
        try:
            result = action()
            if attempt > 0:
                _logger.info(f"✓ {operation_name} succeeded on attempt {attempt + 1}/{attempts}")
            return result
        except Exception as e:
            if should_retry is not None and not should_retry(e):
                _logger.warning(f"{operation_name} failed with non-retryable error, not retrying: {e!s}")
                raise
            if attempt == max_retries:
                _log_final_failure(_logger, e, operation_name, attempts)
                raise

            delay = initial_delay_sec * (2**attempt)
            _logger.warning(
                f"⚠ {operation_name} attempt {attempt + 1}/{attempts} failed: {e!s}. Retrying in {delay:.1f}s..."
            )
            time.sleep(delay)

    # Unreachable: the last attempt always returns or raises.
    raise RuntimeError(f"Retry loop exited unexpectedly for {operation_name}")


def retry_with_backoff(
    max_retries: int = DEFAULT_RETRY_COUNT,
    base_delay: float = DEFAULT_RETRY_DELAY_SEC,
    should_retry: Callable[[BaseException], bool] | None = None,
    logger: logging.Logger | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator form of ``run_with_retry``.

    Example:
        @retry_with_backoff(max_retries=3, base_delay=1.0)
        def fetch_data():
            return transport.send("GET", uri, headers)
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return run_with_retry(
                lambda: func(*args, **kwargs),
                max_retries,
                base_delay,
                should_retry=should_retry,
                logger=logger,
                operation_name=func.__name__,
            )

        return wrapper

    return decorator
