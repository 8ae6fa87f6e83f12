"""Request building: URI, headers and body for an operation definition."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from opmap_client.api.registry import OperationDefinition
from opmap_client.api.templates import substitute
from opmap_client.core.config import CallOptions
from opmap_client.core.constants import AUTH_BEARER, LIMIT_PARAM, SETTING_BASE_URI, SETTING_DEFAULT_LIMIT
from opmap_client.core.credentials import TokenProvider
from opmap_client.core.exceptions import ConfigurationError
from opmap_client.core.settings import SettingsStore


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_query(query: Mapping[str, Any]) -> str:
    """Percent-encode ``query`` into ``k=v&k=v`` form, skipping None values."""
    return "&".join(
        f"{quote(str(key), safe='')}={quote(_query_value(value), safe='')}"
        for key, value in query.items()
        if value is not None
    )


class RequestBuilder:
    """Builds the URI, headers and body for one operation call.

    Args:
        settings: Source of InstanceBaseUri and Defaults.sysparm_limit
        token_provider: Resolves the bearer token for "Bearer" operations
        logger: Logger instance
    """

    def __init__(
        self,
        settings: SettingsStore,
        token_provider: TokenProvider,
        logger: logging.Logger | None = None,
    ):
        self.settings = settings
        self.token_provider = token_provider
        self.logger = logger or logging.getLogger(__name__)

    def base_uri(self) -> str:
        """Return the configured instance base URI without a trailing slash.

        Raises:
            ConfigurationError: If InstanceBaseUri is not set
        """
        value = str(self.settings.get(SETTING_BASE_URI) or "").strip()
        if not value:
            raise ConfigurationError(
                f"{SETTING_BASE_URI} is not configured",
                config_file=str(self.settings.path),
                field=SETTING_BASE_URI,
                details=f"Run: opmap config set {SETTING_BASE_URI} https://<instance>.example.com",
            )
        return value.rstrip("/")

    def build_query(
        self, definition: OperationDefinition, params: Mapping[str, Any] | None, options: CallOptions
    ) -> dict[str, Any]:
        """Merge map-derived query, option overrides and the default limit.

        A key present with a None value is dropped from the final query; an
        option of ``{"sysparm_limit": None}`` therefore suppresses the
        configured default limit.
        """
        query: dict[str, Any] = dict(substitute(definition.query, params) or {})
        query.update(options.query)
        if LIMIT_PARAM not in query:
            default_limit = self.settings.get(SETTING_DEFAULT_LIMIT)
            if default_limit is not None and default_limit != "":
                query[LIMIT_PARAM] = default_limit
        return {key: value for key, value in query.items() if value is not None}

    def build_uri(
        self,
        definition: OperationDefinition,
        params: Mapping[str, Any] | None,
        options: CallOptions | None = None,
        base_path: str = "",
    ) -> str:
        """Return ``base_uri + base_path + path`` plus the encoded query, if any."""
        options = options or CallOptions()
        base = self.base_uri()
        path = substitute(definition.path, params)
        encoded = encode_query(self.build_query(definition, params, options))
        uri = f"{base}{base_path}{path}"
        if encoded:
            uri = f"{uri}?{encoded}"
        return uri

    def build_body(self, definition: OperationDefinition, params: Mapping[str, Any] | None) -> dict[str, Any] | None:
        """Return the substituted body, or None when the operation has no body."""
        if definition.body is None:
            return None
        return substitute(definition.body, params)

    def build_headers(self, definition: OperationDefinition, options: CallOptions | None = None) -> dict[str, str]:
        """Return request headers; option headers win on conflict.

        Raises:
            TokenNotFoundError: If the operation needs a token and none resolves
        """
        options = options or CallOptions()
        headers = {"Accept": "application/json"}
        if definition.auth:
            if definition.auth.lower() == AUTH_BEARER.lower():
                headers.update(self.token_provider.build_auth_headers())
            else:
                self.logger.debug(f"Ignoring unsupported auth mode {definition.auth!r} for {definition.key}")
        headers.update(options.headers)
        return headers
