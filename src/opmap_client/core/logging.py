"""Logging helpers for opmap-client.

Every dispatcher attempt is logged with ``extra`` fields (``action``, ``uri``,
``method``, ``attempt``, ``status``, ``duration_ms``). The JSON formatter
flattens those fields into one JSON object per line; the sensitive-data filter
keeps bearer tokens out of both formats.
"""

import atexit
import json
import logging
import os
import re
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from opmap_client.core.constants import DEFAULT_LOG

REDACTED = "[REDACTED]"
TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}
_SCRUBBED_MARKER = "_opmap_scrubbed"
_SECRET_WORDS = {"token", "secret", "password", "passwd", "authorization", "apikey"}
_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_AUTH_HEADER_RE = re.compile(
    r"""(?ix)
    (?P<key>["']?authorization["']?\s*[:=]\s*)
    (?P<quote>["']?)
    (?:(?P<scheme>[A-Za-z]+)\s+)?[A-Za-z0-9._~+/=-]+
    (?P=quote)
    """
)
_BEARER_RE = re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9._~+/=-]+")
_SECRET_PAIR_RE = re.compile(
    r"""(?ix)
    (?P<key>["']?(?<![A-Za-z0-9_])
        (?:access[_-]?token|api[_-]?key|client[_-]?secret|password|secret|token)
    (?![A-Za-z0-9_])["']?\s*[:=]\s*)
    (?P<value>"[^"]*"|'[^']*'|[^,\s;}\]]+)
    """
)


def _is_secret_key(name: str) -> bool:
    """True for field names such as ``token``, ``clientSecret`` or ``api_key``."""
    words = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name.strip()).lower()
    parts = [part for part in re.split(r"[^a-z0-9]+", words) if part]
    if not parts:
        return False
    return bool(_SECRET_WORDS.intersection(parts)) or parts[-2:] in (["api", "key"], ["auth", "header"])


def redact_message(message: str) -> str:
    """Mask bearer tokens and secret-looking ``key=value`` pairs in free text."""

    def auth_header(match: re.Match[str]) -> str:
        scheme = match.group("scheme")
        quote = match.group("quote")
        masked = f"{scheme} {REDACTED}" if scheme else REDACTED
        return f"{match.group('key')}{quote}{masked}{quote}"

    def secret_pair(match: re.Match[str]) -> str:
        value = match.group("value")
        quote = value[0] if len(value) >= 2 and value[0] in "'\"" and value[-1] == value[0] else ""
        return f"{match.group('key')}{quote}{REDACTED}{quote}"

    message = _AUTH_HEADER_RE.sub(auth_header, message)
    message = _SECRET_PAIR_RE.sub(secret_pair, message)
    return _BEARER_RE.sub(lambda m: f"{m.group(1)} {REDACTED}", message)


def _scrub(value: object) -> object:
    if isinstance(value, str):
        return redact_message(value)
    if isinstance(value, dict):
        return {key: REDACTED if _is_secret_key(str(key)) else _scrub(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(item) for item in value)
    return value


def _scrub_fields(fields: dict[str, object]) -> dict[str, object]:
    return {key: REDACTED if _is_secret_key(key) else _scrub(value) for key, value in fields.items()}


def _record_text(record: logging.LogRecord) -> str:
    try:
        return record.getMessage()
    except (TypeError, ValueError):
        return f"{record.msg!s} [log-message-format-error]"


def _custom_fields(record: logging.LogRecord) -> dict[str, object]:
    """Attributes attached to ``record`` through ``extra=``."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if isinstance(key, str) and key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class SensitiveDataFilter(logging.Filter):
    """Best-effort redaction for sensitive values in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.__dict__.get(_SCRUBBED_MARKER):
            record.msg = redact_message(_record_text(record))
            record.args = ()
            record.__dict__.update(_scrub_fields(_custom_fields(record)))
            record.__dict__[_SCRUBBED_MARKER] = True
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per log record.

    Dispatcher records carry ``action``, ``uri`` and ``method`` alongside
    timestamp and level. Records that did not pass through
    ``SensitiveDataFilter`` are redacted here.
    """

    def format(self, record: logging.LogRecord) -> str:
        scrubbed = bool(record.__dict__.get(_SCRUBBED_MARKER))
        message = _record_text(record)
        fields = _custom_fields(record)
        if not scrubbed:
            message = redact_message(message)
            fields = _scrub_fields(fields)

        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(fields)
        return json.dumps(entry, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Adds fixed context fields to every record, call-site ``extra`` wins."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**dict(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def with_log_context(
    logger: logging.Logger | logging.LoggerAdapter, **context: object
) -> logging.Logger | logging.LoggerAdapter:
    """Wrap ``logger`` so every record carries ``context``.

    Nested calls flatten into a single adapter; None values are skipped.
    """
    if not isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        return logger

    merged: dict[str, object] = {}
    base = logger
    while isinstance(base, logging.LoggerAdapter):
        merged = {**dict(base.extra or {}), **merged}
        base = base.logger
    merged.update({key: value for key, value in context.items() if value is not None})
    return ContextLoggerAdapter(base, merged)


def _resolve_level(log_level: str | None) -> int:
    name = (log_level or os.environ.get("LOG_LEVEL") or DEFAULT_LOG.level).upper()
    if name not in _VALID_LEVELS:
        print(f"Warning: Invalid log level '{log_level}', using INFO", file=sys.stderr)
        name = "INFO"
    return getattr(logging, name)


def _open_log_file(log_file: str | Path) -> logging.Handler | None:
    path = Path(log_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            path, maxBytes=DEFAULT_LOG.file_max_bytes, backupCount=DEFAULT_LOG.file_backup_count
        )
    except OSError as e:
        print(f"Warning: Cannot open log file {path}: {e}. Logging to console only.", file=sys.stderr)
        return None


_shutdown_hooked = False


def setup_logging(
    log_level: str | None = None, log_format: str = "text", log_file: str | Path | None = None
) -> logging.Logger:
    """Configure the root logger for console output and an optional log file.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL; falls back to
            the LOG_LEVEL environment variable, then INFO
        log_format: "text" (default) or "json"
        log_file: Optional rotating log file; parent directories are created

    Returns:
        The ``opmap_client`` package logger
    """
    global _shutdown_hooked
    if not _shutdown_hooked:
        atexit.register(logging.shutdown)
        _shutdown_hooked = True

    level = _resolve_level(log_level)
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        file_handler = _open_log_file(log_file)
        if file_handler is not None:
            handlers.append(file_handler)

    formatter = JSONFormatter() if log_format.lower() == "json" else logging.Formatter(TEXT_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        handler.addFilter(SensitiveDataFilter())
        root.addHandler(handler)
    root.setLevel(level)

    logger = logging.getLogger("opmap_client")
    logger.setLevel(logging.NOTSET)
    return logger
