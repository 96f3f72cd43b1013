"""
Market Data Client Configuration
================================

Parses and validates configuration from environment variables.

For On-Call Engineers:
    Environment variables:
    - ALPHA_VANTAGE_API_KEY: Upstream API key (required)
    - ALPHA_VANTAGE_BASE_URL: Query endpoint (default: public Alpha Vantage URL)
    - CACHE_EXPIRATION_MS: Freshness window for cached responses (default: 300000)
    - REQUEST_TIMEOUT_SECONDS: Per-attempt timeout (default: 10)
    - NEWS_TIMEOUT_SECONDS: Per-attempt timeout for news (default: 15)
    - CACHE_DB_PATH: SQLite file backing the device store (unset = in-memory)

    If every request fails with INVALID_CREDENTIALS:
    1. Check ALPHA_VANTAGE_API_KEY is set and not the placeholder value
    2. Verify the key at https://www.alphavantage.co/support/#api-key

For Developers:
    - Use get_config() to load all configuration
    - Configuration is validated on instantiation
    - Tests build ClientConfig directly instead of touching the environment
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Configuration constants
DEFAULT_BASE_URL = "https://www.alphavantage.co/query"
DEFAULT_CACHE_EXPIRATION_MS = 300_000  # 5 minutes
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_NEWS_TIMEOUT_SECONDS = 15.0
PLACEHOLDER_API_KEY = "your_api_key_here"


@dataclass(frozen=True)
class ClientConfig:
    """
    Configuration for the market data client.

    All fields are validated on instantiation.
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    cache_expiration_ms: int = DEFAULT_CACHE_EXPIRATION_MS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    news_timeout_seconds: float = DEFAULT_NEWS_TIMEOUT_SECONDS
    cache_db_path: str | None = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """
        Validate all configuration values.

        Raises:
            ConfigurationError: If any validation fails
        """
        if not self.api_key:
            raise ConfigurationError("ALPHA_VANTAGE_API_KEY is required")

        if self.api_key == PLACEHOLDER_API_KEY:
            logger.warning("ALPHA_VANTAGE_API_KEY is still the placeholder value")

        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"Invalid ALPHA_VANTAGE_BASE_URL format: {self.base_url}"
            )

        if self.cache_expiration_ms <= 0:
            raise ConfigurationError(
                f"CACHE_EXPIRATION_MS must be positive, got {self.cache_expiration_ms}"
            )

        if self.request_timeout_seconds <= 0 or self.news_timeout_seconds <= 0:
            raise ConfigurationError("Request timeouts must be positive")


def get_config() -> ClientConfig:
    """
    Load and validate configuration from environment variables.

    Returns:
        ClientConfig with all settings

    Raises:
        ConfigurationError: If required vars missing or invalid

    Example:
        >>> config = get_config()
        >>> config.cache_expiration_ms
        300000
    """
    api_key = os.environ.get("ALPHA_VANTAGE_API_KEY", "")
    base_url = os.environ.get("ALPHA_VANTAGE_BASE_URL", DEFAULT_BASE_URL)
    cache_db_path = os.environ.get("CACHE_DB_PATH") or None

    config = ClientConfig(
        api_key=api_key,
        base_url=base_url,
        cache_expiration_ms=_int_from_env(
            "CACHE_EXPIRATION_MS", DEFAULT_CACHE_EXPIRATION_MS
        ),
        request_timeout_seconds=_float_from_env(
            "REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS
        ),
        news_timeout_seconds=_float_from_env(
            "NEWS_TIMEOUT_SECONDS", DEFAULT_NEWS_TIMEOUT_SECONDS
        ),
        cache_db_path=cache_db_path,
    )

    logger.info(
        "Configuration loaded",
        extra={
            "base_url": config.base_url,
            "cache_expiration_ms": config.cache_expiration_ms,
            "cache_backend": "sqlite" if config.cache_db_path else "memory",
        },
    )

    return config


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


class ConfigurationError(Exception):
    """
    Raised when configuration is invalid or missing.

    On-Call Note:
        The client cannot be built without a valid configuration. Check the
        environment variables listed in this module's docstring.
    """

    pass
