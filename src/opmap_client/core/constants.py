"""Constants and default values for opmap-client.

This module centralizes all magic numbers, default configurations,
environment variable names and settings keys used throughout the client.
"""

from pathlib import Path

from opmap_client.core.config import LogConfig

# ==================== DISPLAY CONSTANTS ====================

# Width of banner separator lines (used across CLI output)
BANNER_WIDTH: int = 60

# ==================== HTTP ====================

VALID_METHODS: frozenset[str] = frozenset({"GET", "POST", "PATCH", "PUT", "DELETE"})

# Only auth mode with a meaning today; absence means no Authorization header
AUTH_BEARER: str = "Bearer"

# Query parameters driving server-side paging
LIMIT_PARAM: str = "sysparm_limit"
OFFSET_PARAM: str = "sysparm_offset"

# ==================== CALL DEFAULTS ====================

DEFAULT_RETRY_COUNT: int = 3
DEFAULT_RETRY_DELAY_SEC: float = 2.0
DEFAULT_TIMEOUT_SEC: float = 60.0
DEFAULT_BATCH_SIZE: int = 100

# ==================== LOGGING DEFAULTS ====================

DEFAULT_LOG = LogConfig()

# ==================== SETTINGS KEYS ====================

# Dot-path keys read from the settings store
SETTING_BASE_URI: str = "InstanceBaseUri"
SETTING_TOKEN: str = "Token"
SETTING_DEFAULT_LIMIT: str = f"Defaults.{LIMIT_PARAM}"
SETTING_RETRY_COUNT: str = "Defaults.RetryCount"
SETTING_RETRY_DELAY: str = "Defaults.RetryDelaySec"
SETTING_TIMEOUT: str = "Defaults.TimeoutSec"
SETTING_RETRY_STATUS_CODES: str = "Defaults.RetryStatusCodes"

# ==================== ENVIRONMENT ====================

TOKEN_ENV_VAR: str = "OPMAP_TOKEN"
CONFIG_FILE_ENV_VAR: str = "OPMAP_CONFIG_FILE"
OPERATIONS_FILE_ENV_VAR: str = "OPMAP_OPERATIONS_FILE"

DEFAULT_CONFIG_FILE: Path = Path.home() / ".opmap" / "config.json"

# ==================== SECRET STORE ====================

# Keyring service and entry name used for the bearer token
SECRET_SERVICE_NAME: str = "opmap-client"
TOKEN_SECRET_NAME: str = "opmap-token"

# ==================== METRICS ====================

STATUS_SUCCESS: str = "Success"
STATUS_ERROR: str = "Error"
