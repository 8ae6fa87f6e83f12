"""Synchronous HTTP transport built on httpx.

Any object with a matching ``send`` method can stand in for
``HttpxTransport``; tests pass simple fakes or an ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import httpx

from opmap_client.core.constants import DEFAULT_TIMEOUT_SEC
from opmap_client.core.exceptions import TransportError


class Transport(Protocol):
    """Narrow transport contract used by the dispatcher."""

    def send(
        self,
        method: str,
        uri: str,
        headers: Mapping[str, str],
        body: Any = None,
        timeout: float | None = None,
        expect_status: int | None = None,
    ) -> Any: ...


class HttpxTransport:
    """Sends one request per ``send`` call through a shared ``httpx.Client``.

    Args:
        client: Pre-configured client; one is created (and owned) when omitted
        logger: Logger instance
    """

    def __init__(self, client: httpx.Client | None = None, logger: logging.Logger | None = None):
        self._owns_client = client is None
        self.client = client or httpx.Client(follow_redirects=True)
        self.logger = logger or logging.getLogger(__name__)

    def send(
        self,
        method: str,
        uri: str,
        headers: Mapping[str, str],
        body: Any = None,
        timeout: float | None = None,
        expect_status: int | None = None,
    ) -> Any:
        """Send the request and return the decoded JSON response.

        Returns None for an empty response body.

        Raises:
            TransportError: On network failure, a non-2xx status, a status
                other than ``expect_status``, or an undecodable body
        """
        request_headers = dict(headers)
        content = None
        if body is not None:
            request_headers.setdefault("Content-Type", "application/json")
            content = json.dumps(body).encode("utf-8")

        try:
            response = self.client.request(
                method,
                uri,
                headers=request_headers,
                content=content,
                timeout=timeout if timeout is not None else DEFAULT_TIMEOUT_SEC,
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"{type(e).__name__}: {e!s}", uri=uri, method=method, original_error=e
            ) from e

        status = response.status_code
        if expect_status is not None and status != expect_status:
            raise TransportError(
                f"Expected HTTP {expect_status}",
                status_code=status,
                uri=uri,
                method=method,
                response_text=response.text,
            )
        if not response.is_success:
            raise TransportError(
                response.reason_phrase or "Request failed",
                status_code=status,
                uri=uri,
                method=method,
                response_text=response.text,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                "Response is not valid JSON",
                status_code=status,
                uri=uri,
                method=method,
                response_text=response.text,
                original_error=e,
            ) from e

    def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
