"""Dot-path addressable settings store backed by a JSON file.

Keys such as ``Defaults.RetryCount`` address nested objects::

    {"InstanceBaseUri": "https://example.service-now.com",
     "Defaults": {"RetryCount": 5, "sysparm_limit": 200}}

The file may also hold ``Token`` as a last-resort credential source. That
fallback is not secure; prefer the OS keyring or the environment.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from opmap_client.core.constants import CONFIG_FILE_ENV_VAR, DEFAULT_CONFIG_FILE
from opmap_client.core.exceptions import ConfigurationError

_MISSING = object()


class SettingsStore:
    """Read/write key-value settings with dot-path keys.

    The file is read lazily on first access and written back on every
    ``set``/``remove``. All access is serialized with a lock.
    """

    def __init__(self, path: str | Path | None = None, logger: logging.Logger | None = None):
        self.path = Path(path) if path is not None else DEFAULT_CONFIG_FILE
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        if not self.path.exists():
            self.logger.debug(f"Settings file not found: {self.path}")
            self._data = {}
            return self._data
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                "Settings file contains invalid JSON", config_file=str(self.path), details=str(e)
            ) from e
        except OSError as e:
            raise ConfigurationError("Cannot read settings file", config_file=str(self.path), details=str(e)) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Settings file must contain a JSON object", config_file=str(self.path)
            )
        self._data = data
        return self._data

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(prefix=".config_", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
                f.write("\n")
            # The file can hold a token, keep it owner-only.
            os.chmod(temp_path, 0o600)
            os.replace(temp_path, self.path)
        except OSError:
            with contextlib.suppress(OSError):
                os.unlink(temp_path)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value at ``key`` (``"A.B.C"``) or ``default``."""
        with self._lock:
            node: Any = self._load()
            for part in key.split("."):
                if not isinstance(node, dict) or part not in node:
                    return default
                node = node[part]
            return node

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` at ``key``, creating intermediate objects."""
        with self._lock:
            node = self._load()
            *parents, leaf = key.split(".")
            for part in parents:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[leaf] = value
            self._save()
            self.logger.debug(f"Setting '{key}' updated in {self.path}")

    def remove(self, key: str) -> bool:
        """Delete ``key``; returns False when it was not present."""
        with self._lock:
            node: Any = self._load()
            *parents, leaf = key.split(".")
            for part in parents:
                node = node.get(part) if isinstance(node, dict) else None
            if not isinstance(node, dict) or node.pop(leaf, _MISSING) is _MISSING:
                return False
            self._save()
            return True

    def get_number(self, key: str, cast: type[int] | type[float]) -> int | float | None:
        """Return a numeric setting, or None when unset.

        Raises:
            ConfigurationError: If the stored value is not numeric
        """
        value = self.get(key)
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            raise ConfigurationError(f"Setting '{key}' must be a number", config_file=str(self.path), field=key)
        try:
            return cast(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Setting '{key}' must be a number", config_file=str(self.path), field=key, details=repr(value)
            ) from e

    def reload(self) -> None:
        """Drop the in-memory copy so the next access re-reads the file."""
        with self._lock:
            self._data = None


_default_settings: SettingsStore | None = None
_default_settings_lock = threading.Lock()


def get_settings() -> SettingsStore:
    """Return the process-wide settings store.

    Location priority: 1) OPMAP_CONFIG_FILE env var, 2) ~/.opmap/config.json
    """
    global _default_settings
    with _default_settings_lock:
        if _default_settings is None:
            override = (os.environ.get(CONFIG_FILE_ENV_VAR) or "").strip()
            _default_settings = SettingsStore(override or None)
        return _default_settings


def set_default_settings(store: SettingsStore | None) -> None:
    """Replace the process-wide settings store (None restores lazy creation)."""
    global _default_settings
    with _default_settings_lock:
        _default_settings = store
