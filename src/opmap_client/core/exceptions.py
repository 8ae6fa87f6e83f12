"""Custom exceptions for opmap-client.

All exception classes are designed to provide clear, actionable error messages
with context about what went wrong and how to fix it.
"""


class OpMapError(Exception):
    """Base exception for all opmap-client errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(OpMapError):
    """Exception raised for configuration-related errors.

    Examples:
        - InstanceBaseUri not set
        - Invalid JSON in the settings file
        - Non-numeric value under a Defaults.* key
    """

    def __init__(
        self, message: str, config_file: str | None = None, field: str | None = None, details: str | None = None
    ):
        self.config_file = config_file
        self.field = field
        super().__init__(message, details)


class OperationNotFoundError(OpMapError, LookupError):
    """Raised when an operation key is not present in the operations map."""

    def __init__(self, operation_key: str, available: list[str] | None = None):
        self.operation_key = operation_key
        self.available = available or []
        details = None
        if self.available:
            preview = ", ".join(sorted(self.available)[:10])
            details = f"known operations: {preview}"
        super().__init__(f"Unknown operation '{operation_key}'", details)


class OperationMapLoadError(OpMapError):
    """Raised when the operations map cannot be read, parsed or validated."""

    def __init__(self, message: str, source: str | None = None, details: str | None = None):
        self.source = source
        super().__init__(message, details)

    def __str__(self) -> str:
        parts = [self.message]
        if self.source:
            parts.append(f"source: {self.source}")
        if self.details:
            parts.append(self.details)
        return " - ".join(parts)


class AuthError(OpMapError):
    """Base exception for authentication failures."""

    pass


class TokenNotFoundError(AuthError):
    """Raised when no bearer token can be resolved from any source.

    Attributes:
        sources: Names of the sources that were checked, in priority order
    """

    def __init__(self, message: str, sources: list[str] | None = None, details: str | None = None):
        self.sources = sources or []
        super().__init__(message, details)


class TransportError(OpMapError):
    """Exception raised for HTTP and network failures.

    Carries the status code and request context so callers can inspect the
    failure after retries are exhausted.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        uri: str | None = None,
        method: str | None = None,
        response_text: str | None = None,
        original_error: Exception | None = None,
    ):
        self.status_code = status_code
        self.uri = uri
        self.method = method
        self.response_text = response_text
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code:
            parts.append(f"HTTP {self.status_code}")
        if self.method and self.uri:
            parts.append(f"during {self.method} {self.uri}")
        if self.response_text:
            parts.append(self.response_text[:500])
        return " - ".join(parts)
