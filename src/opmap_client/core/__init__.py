"""Core module - Foundation components with no dependency on the HTTP layer.

This module provides the basic building blocks used throughout the client:
- Version information
- Custom exceptions
- Configuration dataclasses and constants
- Settings store, token provider and request metrics
"""

from opmap_client.core.version import __version__

from opmap_client.core.exceptions import (
    OpMapError,
    ConfigurationError,
    OperationNotFoundError,
    OperationMapLoadError,
    AuthError,
    TokenNotFoundError,
    TransportError,
)

from opmap_client.core.config import (
    RetryConfig,
    LogConfig,
    CallOptions,
)

from opmap_client.core.settings import SettingsStore, get_settings
from opmap_client.core.credentials import KeyringSecretStore, SecretStore, TokenProvider
from opmap_client.core.metrics import RequestMetrics, get_metrics

__all__ = [
    # Version
    '__version__',
    # Exceptions
    'OpMapError',
    'ConfigurationError',
    'OperationNotFoundError',
    'OperationMapLoadError',
    'AuthError',
    'TokenNotFoundError',
    'TransportError',
    # Config dataclasses
    'RetryConfig',
    'LogConfig',
    'CallOptions',
    # Services
    'SettingsStore',
    'get_settings',
    'KeyringSecretStore',
    'SecretStore',
    'TokenProvider',
    'RequestMetrics',
    'get_metrics',
]
