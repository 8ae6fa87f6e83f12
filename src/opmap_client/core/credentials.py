"""Bearer token resolution and rotation for opmap-client.

Priority order for ``get_token()``:
    1. Secret store (OS keyring) if available
    2. Environment variable OPMAP_TOKEN (a ``.env`` file is loaded first)
    3. ``Token`` in the settings file (not secure)
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Protocol

from dotenv import find_dotenv, load_dotenv

from opmap_client.core.constants import (
    SECRET_SERVICE_NAME,
    SETTING_TOKEN,
    TOKEN_ENV_VAR,
    TOKEN_SECRET_NAME,
)
from opmap_client.core.exceptions import TokenNotFoundError
from opmap_client.core.settings import SettingsStore, get_settings


def normalize_token(value: Any) -> str:
    """Normalize a token value consistently across all sources.

    Strips whitespace and surrounding quotes (common in .env files).
    """
    if value is None:
        return ""
    s = str(value).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in {'"', "'"}:
        s = s[1:-1].strip()
    return s


class SecretStore(Protocol):
    """Narrow contract for an external secret store."""

    def get(self, name: str) -> str | None: ...

    def set(self, name: str, secret: str) -> None: ...

    def remove(self, name: str) -> None: ...


class SecretStoreUnavailable(RuntimeError):
    """Raised by a secret store that cannot be reached on this machine."""


class KeyringSecretStore:
    """Secret store backed by the OS keyring (``pip install opmap-client[keyring]``)."""

    def __init__(self, service_name: str = SECRET_SERVICE_NAME):
        self.service_name = service_name

    @staticmethod
    def _keyring():
        try:
            import keyring
        except ImportError as e:
            raise SecretStoreUnavailable("keyring is not installed") from e
        return keyring

    def get(self, name: str) -> str | None:
        return self._keyring().get_password(self.service_name, name)

    def set(self, name: str, secret: str) -> None:
        self._keyring().set_password(self.service_name, name, secret)

    def remove(self, name: str) -> None:
        keyring = self._keyring()
        from keyring.errors import PasswordDeleteError

        try:
            keyring.delete_password(self.service_name, name)
        except PasswordDeleteError:
            # Nothing stored under this name
            pass


# ==================== TOKEN SOURCES ====================


class TokenSource(ABC):
    """Abstract base class for one link in the token resolution chain."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the name of this token source."""
        pass

    def load(self, logger: logging.Logger) -> str | None:
        """Return a normalized token, or None if the source has none."""
        token = normalize_token(self._load_impl(logger))
        return token or None

    @abstractmethod
    def _load_impl(self, logger: logging.Logger) -> Any:
        pass


class SecretStoreTokenSource(TokenSource):
    """Read the token from a secret store; lookup errors never break the chain."""

    def __init__(self, store: SecretStore, secret_name: str = TOKEN_SECRET_NAME):
        self.store = store
        self.secret_name = secret_name

    @property
    def source_name(self) -> str:
        return f"secret-store:{self.secret_name}"

    def _load_impl(self, logger: logging.Logger) -> Any:
        try:
            return self.store.get(self.secret_name)
        except Exception as e:
            logger.debug(f"Secret store lookup failed, trying next source: {e}")
            return None


class EnvironmentTokenSource(TokenSource):
    """Read the token from an environment variable, after loading ``.env``."""

    def __init__(self, env_var: str = TOKEN_ENV_VAR):
        self.env_var = env_var

    @property
    def source_name(self) -> str:
        return f"environment:{self.env_var}"

    def _load_impl(self, logger: logging.Logger) -> Any:
        return os.environ.get(self.env_var)


class SettingsTokenSource(TokenSource):
    """Read the token from the settings file."""

    def __init__(self, settings: SettingsStore, key: str = SETTING_TOKEN):
        self.settings = settings
        self.key = key

    @property
    def source_name(self) -> str:
        return f"config:{self.key}"

    def _load_impl(self, logger: logging.Logger) -> Any:
        return self.settings.get(self.key)


# ==================== TOKEN PROVIDER ====================


def _bootstrap_dotenv(logger: logging.Logger) -> None:
    """Load variables from a ``.env`` file in the working directory, if any."""
    try:
        if load_dotenv(find_dotenv(usecwd=True)):
            logger.debug(".env file found and loaded")
    except OSError as e:
        logger.debug(f"Failed to load .env via python-dotenv: {e}")


class TokenProvider:
    """Resolves, stores and removes the bearer token.

    Args:
        settings: Settings store used as the last-resort source and write fallback
        secret_store: Optional secret store; None means no store is configured
        env_var: Environment variable checked second
        secret_name: Entry name inside the secret store
        logger: Logger instance
    """

    def __init__(
        self,
        settings: SettingsStore | None = None,
        secret_store: SecretStore | None = None,
        env_var: str = TOKEN_ENV_VAR,
        secret_name: str = TOKEN_SECRET_NAME,
        logger: logging.Logger | None = None,
    ):
        self.settings = settings if settings is not None else get_settings()
        self.secret_store = secret_store
        self.env_var = env_var
        self.secret_name = secret_name
        self.logger = logger or logging.getLogger(__name__)
        self._dotenv_loaded = False

    def _sources(self) -> list[TokenSource]:
        sources: list[TokenSource] = []
        if self.secret_store is not None:
            sources.append(SecretStoreTokenSource(self.secret_store, self.secret_name))
        sources.append(EnvironmentTokenSource(self.env_var))
        sources.append(SettingsTokenSource(self.settings))
        return sources

    def resolve_token(self) -> tuple[str, str]:
        """Return ``(token, source_name)`` for the first source with a token.

        Raises:
            TokenNotFoundError: If no source yields a token
        """
        if not self._dotenv_loaded:
            _bootstrap_dotenv(self.logger)
            self._dotenv_loaded = True

        sources = self._sources()
        for source in sources:
            token = source.load(self.logger)
            if token:
                self.logger.debug(f"Bearer token resolved from {source.source_name}")
                return token, source.source_name

        raise TokenNotFoundError(
            "No bearer token found",
            sources=[source.source_name for source in sources],
            details=(
                f"Store it in the secret store as '{self.secret_name}' (opmap token set), "
                f"export {self.env_var}=<token>, "
                f"or set '{SETTING_TOKEN}' in {self.settings.path} (not secure)"
            ),
        )

    def get_token(self) -> str:
        """Return the first token found, in priority order.

        Raises:
            TokenNotFoundError: If no source yields a token
        """
        return self.resolve_token()[0]

    def build_auth_headers(self) -> dict[str, str]:
        """Return the Authorization header for the resolved token."""
        return {"Authorization": f"Bearer {self.get_token()}"}

    def set_token(self, token: str) -> str:
        """Store ``token``; returns the name of the source it was written to."""
        token = normalize_token(token)
        if not token:
            raise ValueError("Token must not be empty")
        if self.secret_store is not None:
            try:
                self.secret_store.set(self.secret_name, token)
                self.logger.info(f"Token stored in secret store as '{self.secret_name}'")
                return f"secret-store:{self.secret_name}"
            except Exception as e:
                self.logger.debug(f"Secret store write failed: {e}")
        self.logger.warning(
            f"Secret store unavailable; token saved to {self.settings.path}. "
            "This file is not a secure location for credentials."
        )
        self.settings.set(SETTING_TOKEN, token)
        return f"config:{SETTING_TOKEN}"

    def remove_token(self) -> str:
        """Remove the stored token; returns the name of the source it was removed from."""
        if self.secret_store is not None:
            try:
                self.secret_store.remove(self.secret_name)
                self.logger.info(f"Token removed from secret store ('{self.secret_name}')")
                return f"secret-store:{self.secret_name}"
            except Exception as e:
                self.logger.debug(f"Secret store removal failed: {e}")
        self.logger.warning(f"Secret store unavailable; removing token from {self.settings.path}")
        self.settings.remove(SETTING_TOKEN)
        return f"config:{SETTING_TOKEN}"
