"""Configuration dataclasses for opmap-client.

These dataclasses centralize per-call and retry options for type safety
and easy testing. They can be created from command-line arguments or
used directly in code.
"""

from __future__ import annotations

import argparse
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass
class RetryConfig:
    """Configuration for retry logic with exponential backoff.

    Attributes:
        max_retries: Number of retries after the first attempt (default: 3)
        base_delay: Initial delay in seconds, doubled after each failure (default: 2.0)
        retry_status_codes: Restrict retries to these HTTP statuses (default: None = retry everything)
    """

    max_retries: int = 3
    base_delay: float = 2.0
    retry_status_codes: frozenset[int] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "max_retries": self.max_retries,
            "base_delay": self.base_delay,
            "retry_status_codes": sorted(self.retry_status_codes) if self.retry_status_codes else None,
        }


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string (default: "INFO")
        file_max_bytes: Maximum size per log file (default: 10MB)
        file_backup_count: Number of backup log files (default: 5)
    """

    level: str = "INFO"
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


# Keys accepted by CallOptions.from_mapping, in the PascalCase form used by
# operation-map callers and settings files.
_OPTION_KEYS: dict[str, str] = {
    "Headers": "headers",
    "Query": "query",
    "RetryCount": "retry_count",
    "RetryDelaySec": "retry_delay_sec",
    "TimeoutSec": "timeout_sec",
    "ExpectStatus": "expect_status",
}


@dataclass
class CallOptions:
    """Per-call overrides for a dispatched operation.

    Unset (None) fields fall back to the ``Defaults.*`` settings and then to
    the hard-coded defaults in ``opmap_client.core.constants``.

    Attributes:
        headers: Extra headers; win over builder-derived headers on conflict
        query: Extra query parameters; win over map-derived query on conflict
        retry_count: Retries after the first attempt
        retry_delay_sec: Initial backoff delay in seconds
        timeout_sec: Per-request transport timeout in seconds
        expect_status: Exact HTTP status the response must have
    """

    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    retry_count: int | None = None
    retry_delay_sec: float | None = None
    timeout_sec: float | None = None
    expect_status: int | None = None

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None) -> CallOptions:
        """Build options from a ``{"Headers": ..., "RetryCount": ...}`` style mapping.

        Both PascalCase and snake_case keys are accepted; unknown keys raise
        ``ValueError`` so typos are not silently ignored.
        """
        if not options:
            return cls()
        kwargs: dict[str, Any] = {}
        known = set(_OPTION_KEYS.values())
        for key, value in options.items():
            name = _OPTION_KEYS.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown call option: {key!r}")
            if name in ("headers", "query"):
                value = dict(value or {})
            kwargs[name] = value
        return cls(**kwargs)

    def with_query(self, **overrides: Any) -> CallOptions:
        """Return a copy whose query is a fresh dict with ``overrides`` applied."""
        query = dict(self.query)
        query.update(overrides)
        return replace(self, headers=dict(self.headers), query=query)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> CallOptions:
        """Create options from parsed command-line arguments."""
        return cls(
            headers=dict(getattr(args, "header", None) or {}),
            query=dict(getattr(args, "query", None) or {}),
            retry_count=getattr(args, "retry_count", None),
            retry_delay_sec=getattr(args, "retry_delay", None),
            timeout_sec=getattr(args, "timeout", None),
            expect_status=getattr(args, "expect_status", None),
        )
