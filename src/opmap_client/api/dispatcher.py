"""Operation dispatcher: operation key + params + options -> decoded response.

Pipeline per call::

    registry.resolve -> RequestBuilder (URI, headers, body)
        -> run_with_retry(transport.send) -> raw response

Lookup and build errors propagate untouched and are never retried. Each
transport attempt is timed, recorded in the metrics and logged once.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from typing import Any

from opmap_client.api.registry import OperationRegistry, get_default_registry
from opmap_client.api.request import RequestBuilder
from opmap_client.api.resilience import resolve_retry_config, retry_on_status_codes, run_with_retry
from opmap_client.api.templates import find_placeholders, substitute
from opmap_client.api.transport import HttpxTransport, Transport
from opmap_client.core.config import CallOptions
from opmap_client.core.constants import DEFAULT_TIMEOUT_SEC, SETTING_TIMEOUT, STATUS_ERROR, STATUS_SUCCESS
from opmap_client.core.credentials import KeyringSecretStore, TokenProvider
from opmap_client.core.metrics import RequestMetrics, get_metrics
from opmap_client.core.settings import SettingsStore, get_settings

OptionsLike = CallOptions | Mapping[str, Any] | None


def coerce_options(options: OptionsLike) -> CallOptions:
    """Accept a ``CallOptions``, a PascalCase mapping, or None."""
    if isinstance(options, CallOptions):
        return options
    return CallOptions.from_mapping(options)


class OperationDispatcher:
    """Interprets operation definitions and executes them over HTTP.

    Every collaborator is injectable; omitted ones fall back to the
    process-wide defaults (registry, settings, metrics) or to fresh
    instances (token provider backed by the OS keyring, httpx transport).

    Args:
        registry: Operation registry
        settings: Settings store for InstanceBaseUri and Defaults.*
        token_provider: Bearer token resolution chain
        transport: Object with a ``send`` method (see ``Transport``)
        metrics: Request metrics sink
        logger: Logger instance
    """

    def __init__(
        self,
        registry: OperationRegistry | None = None,
        settings: SettingsStore | None = None,
        token_provider: TokenProvider | None = None,
        transport: Transport | None = None,
        metrics: RequestMetrics | None = None,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.registry = registry or get_default_registry()
        self.settings = settings or get_settings()
        self.token_provider = token_provider or TokenProvider(
            settings=self.settings, secret_store=KeyringSecretStore(), logger=self.logger
        )
        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(logger=self.logger)
        self.metrics = metrics or get_metrics()
        self.builder = RequestBuilder(self.settings, self.token_provider, logger=self.logger)

    def _timeout(self, options: CallOptions) -> float:
        if options.timeout_sec is not None:
            return float(options.timeout_sec)
        configured = self.settings.get_number(SETTING_TIMEOUT, float)
        return float(configured) if configured is not None else DEFAULT_TIMEOUT_SEC

    def invoke(self, operation_key: str, params: Mapping[str, Any] | None = None, options: OptionsLike = None) -> Any:
        """Execute the operation named ``operation_key``.

        Args:
            operation_key: Key in the operations map, e.g. "Change.Get"
            params: Placeholder values for path, query and body templates
            options: ``CallOptions`` or a ``{"Headers": ..., "RetryCount": ...}`` mapping

        Returns:
            The decoded JSON response (None for an empty body)

        Raises:
            OperationNotFoundError: Unknown key
            ConfigurationError: InstanceBaseUri missing or Defaults.* invalid
            TokenNotFoundError: Bearer operation with no resolvable token
            TransportError: Final failure after all retry attempts
        """
        options = coerce_options(options)
        definition = self.registry.resolve(operation_key)

        uri = self.builder.build_uri(definition, params, options, base_path=self.registry.base_path)
        headers = self.builder.build_headers(definition, options)
        body = self.builder.build_body(definition, params)
        method = definition.method.value

        unresolved = find_placeholders(
            [substitute(definition.path, params), substitute(definition.query, params), body]
        )
        if unresolved:
            self.logger.debug(f"{operation_key}: unresolved placeholders sent literally: {sorted(unresolved)}")

        timeout = self._timeout(options)
        retry = resolve_retry_config(self.settings, options)
        should_retry = retry_on_status_codes(retry.retry_status_codes) if retry.retry_status_codes else None

        attempt = 0

        def send_once() -> Any:
            nonlocal attempt
            attempt += 1
            started = time.perf_counter()
            status = STATUS_ERROR
            try:
                response = self.transport.send(
                    method, uri, headers, body, timeout=timeout, expect_status=options.expect_status
                )
                status = STATUS_SUCCESS
                return response
            finally:
                duration_ms = (time.perf_counter() - started) * 1000
                self.metrics.record(operation_key, duration_ms, status)
                self.logger.log(
                    logging.INFO if status == STATUS_SUCCESS else logging.WARNING,
                    f"{method} {operation_key} -> {status} ({duration_ms:.0f}ms)",
                    extra={
                        "action": operation_key,
                        "uri": uri,
                        "method": method,
                        "attempt": attempt,
                        "status": status,
                        "duration_ms": round(duration_ms, 3),
                    },
                )

        return run_with_retry(
            send_once,
            retry.max_retries,
            retry.base_delay,
            should_retry=should_retry,
            logger=self.logger,
            operation_name=operation_key,
        )

    def close(self) -> None:
        """Close the transport if this dispatcher created it."""
        if self._owns_transport and hasattr(self.transport, "close"):
            self.transport.close()

    def __enter__(self) -> OperationDispatcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


_default_dispatcher: OperationDispatcher | None = None
_default_dispatcher_lock = threading.Lock()


def get_default_dispatcher() -> OperationDispatcher:
    """Return the process-wide dispatcher, creating it on first use."""
    global _default_dispatcher
    with _default_dispatcher_lock:
        if _default_dispatcher is None:
            _default_dispatcher = OperationDispatcher()
        return _default_dispatcher


def invoke(operation_key: str, params: Mapping[str, Any] | None = None, options: OptionsLike = None) -> Any:
    """Invoke an operation through the process-wide dispatcher."""
    return get_default_dispatcher().invoke(operation_key, params, options)
