"""Request metrics for opmap-client."""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opmap_client.core.constants import BANNER_WIDTH, STATUS_ERROR, STATUS_SUCCESS


class RequestMetrics:
    """Thread-safe request counters, overall and per operation key.

    Every dispatcher attempt records exactly one update, on the success path
    and on the failure path. Counters accumulate until ``reset()``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._request_count = 0
        self._total_duration_ms = 0.0
        self._per_operation: dict[str, dict[str, Any]] = {}

    def record(self, operation_key: str, duration_ms: float, status: str = STATUS_SUCCESS) -> None:
        """Record one finished attempt."""
        with self._lock:
            self._request_count += 1
            self._total_duration_ms += duration_ms
            entry = self._per_operation.setdefault(
                operation_key,
                {"count": 0, "total_duration_ms": 0.0, "success": 0, "error": 0},
            )
            entry["count"] += 1
            entry["total_duration_ms"] += duration_ms
            if status == STATUS_ERROR:
                entry["error"] += 1
            else:
                entry["success"] += 1

    @contextmanager
    def track(self, operation_key: str) -> Iterator[None]:
        """Time the enclosed block and record it as Success or Error."""
        started = time.perf_counter()
        status = STATUS_ERROR
        try:
            yield
            status = STATUS_SUCCESS
        finally:
            self.record(operation_key, (time.perf_counter() - started) * 1000, status)

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of the current counters."""
        with self._lock:
            return {
                "request_count": self._request_count,
                "total_duration_ms": self._total_duration_ms,
                "per_operation": {key: dict(value) for key, value in self._per_operation.items()},
            }

    def reset(self) -> None:
        """Return all counters to zero."""
        with self._lock:
            self._request_count = 0
            self._total_duration_ms = 0.0
            self._per_operation = {}

    def get_summary(self) -> str:
        """Generate a printable metrics summary."""
        data = self.snapshot()
        if not data["request_count"]:
            return "No requests recorded"

        total = data["total_duration_ms"]
        lines = ["", "=" * BANNER_WIDTH, "REQUEST METRICS", "=" * BANNER_WIDTH]
        ordered = sorted(data["per_operation"].items(), key=lambda x: x[1]["total_duration_ms"], reverse=True)
        for operation, entry in ordered:
            percentage = (entry["total_duration_ms"] / total) * 100 if total > 0 else 0
            lines.append(
                f"{operation:30s}: {entry['count']:4d} req {entry['error']:3d} err "
                f"{entry['total_duration_ms']:9.1f}ms ({percentage:5.1f}%)"
            )
        lines.extend(
            [
                "=" * BANNER_WIDTH,
                f"{'Total':30s}: {data['request_count']:4d} req {total:17.1f}ms",
                "=" * BANNER_WIDTH,
            ]
        )
        return "\n".join(lines)


_default_metrics = RequestMetrics()


def get_metrics() -> RequestMetrics:
    """Return the process-wide metrics instance."""
    return _default_metrics
