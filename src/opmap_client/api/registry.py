"""Operation registry: the declarative operation map and its process-wide cache.

The map is a JSON document::

    {
      "basePath": "/api/now",
      "operations": {
        "Change.Get": {"path": "/table/change_request/{sys_id}", "method": "GET", "auth": "Bearer"}
      }
    }

It is read once, on the first ``resolve()``, and kept for the lifetime of the
registry. There is no hot-reload.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any

from opmap_client.core.constants import OPERATIONS_FILE_ENV_VAR, VALID_METHODS
from opmap_client.core.exceptions import OperationMapLoadError, OperationNotFoundError

BUNDLED_OPERATIONS = "operations.json"


class HttpMethod(str, Enum):
    """HTTP methods an operation may use."""

    GET = "GET"
    POST = "POST"
    PATCH = "PATCH"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass(frozen=True)
class OperationDefinition:
    """One entry of the operation map.

    Attributes:
        key: Operation key, e.g. "Change.Get"
        path: Path template with {param} placeholders
        method: HTTP method
        auth: Auth mode tag ("Bearer") or None for no Authorization header
        query: Query parameter name -> value template
        body: Nested body template, or None for body-less operations
    """

    key: str
    path: str
    method: HttpMethod
    auth: str | None = None
    query: Mapping[str, Any] | None = None
    body: Mapping[str, Any] | None = None

    @classmethod
    def from_dict(cls, key: str, raw: Any) -> OperationDefinition:
        """Validate and build a definition from its JSON object.

        Raises:
            ValueError: If a required field is missing or invalid
        """
        if not isinstance(raw, dict):
            raise ValueError(f"operation '{key}' must be an object")
        path = raw.get("path")
        if not isinstance(path, str) or not path.strip():
            raise ValueError(f"operation '{key}' has no path")
        method = str(raw.get("method") or "").upper()
        if method not in VALID_METHODS:
            raise ValueError(f"operation '{key}' has invalid method {raw.get('method')!r}")
        query = raw.get("query")
        if query is not None and not isinstance(query, dict):
            raise ValueError(f"operation '{key}' query must be an object")
        body = raw.get("body")
        if body is not None and not isinstance(body, dict):
            raise ValueError(f"operation '{key}' body must be an object")
        auth = raw.get("auth")
        if auth is not None and not isinstance(auth, str):
            raise ValueError(f"operation '{key}' auth must be a string, got {auth!r}")
        return cls(
            key=key,
            path=path,
            method=HttpMethod(method),
            auth=auth or None,
            query=MappingProxyType(query) if query is not None else None,
            body=MappingProxyType(body) if body is not None else None,
        )


@dataclass(frozen=True)
class OperationsMap:
    """Base path plus every operation definition, keyed by operation key."""

    base_path: str = ""
    operations: Mapping[str, OperationDefinition] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> OperationsMap:
        if not isinstance(raw, dict):
            raise ValueError("operations map must be a JSON object")
        operations = raw.get("operations")
        if not isinstance(operations, dict):
            raise ValueError("operations map has no 'operations' object")
        base_path = raw.get("basePath") or ""
        if not isinstance(base_path, str):
            raise ValueError("'basePath' must be a string")
        definitions = {key: OperationDefinition.from_dict(key, value) for key, value in operations.items()}
        return cls(base_path=base_path, operations=MappingProxyType(definitions))


def _default_source() -> Path | None:
    override = (os.environ.get(OPERATIONS_FILE_ENV_VAR) or "").strip()
    return Path(override) if override else None


class OperationRegistry:
    """Lazily loads and caches an operations map; resolves keys to definitions.

    Args:
        source: JSON file with the map; None means OPMAP_OPERATIONS_FILE,
            then the map bundled with the package
        logger: Logger instance
    """

    def __init__(self, source: str | Path | None = None, logger: logging.Logger | None = None):
        self.source = Path(source) if source is not None else _default_source()
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._map: OperationsMap | None = None

    @property
    def source_name(self) -> str:
        return str(self.source) if self.source is not None else f"bundled:{BUNDLED_OPERATIONS}"

    def _read_source(self) -> str:
        if self.source is not None:
            return self.source.read_text(encoding="utf-8")
        return resources.files("opmap_client.data").joinpath(BUNDLED_OPERATIONS).read_text(encoding="utf-8")

    def load(self) -> OperationsMap:
        """Return the cached map, reading the source on first use.

        Raises:
            OperationMapLoadError: If the source is missing, unreadable or invalid
        """
        with self._lock:
            if self._map is not None:
                return self._map
            try:
                raw = json.loads(self._read_source())
            except FileNotFoundError as e:
                raise OperationMapLoadError("Operations map not found", source=self.source_name) from e
            except OSError as e:
                raise OperationMapLoadError(
                    "Cannot read operations map", source=self.source_name, details=str(e)
                ) from e
            except json.JSONDecodeError as e:
                raise OperationMapLoadError(
                    "Operations map is not valid JSON", source=self.source_name, details=str(e)
                ) from e
            try:
                self._map = OperationsMap.from_dict(raw)
            except ValueError as e:
                raise OperationMapLoadError(
                    "Operations map is invalid", source=self.source_name, details=str(e)
                ) from e
            self.logger.debug(f"Loaded {len(self._map.operations)} operation(s) from {self.source_name}")
            return self._map

    @property
    def base_path(self) -> str:
        return self.load().base_path

    def resolve(self, operation_key: str) -> OperationDefinition:
        """Return the definition for ``operation_key``.

        Raises:
            OperationNotFoundError: If the key is not in the map
            OperationMapLoadError: If the map cannot be loaded
        """
        operations = self.load().operations
        try:
            return operations[operation_key]
        except KeyError:
            raise OperationNotFoundError(operation_key, available=list(operations)) from None

    def keys(self) -> list[str]:
        """Return all operation keys, sorted."""
        return sorted(self.load().operations)


_default_registry: OperationRegistry | None = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> OperationRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = OperationRegistry()
        return _default_registry
