"""Response cache for the market data client."""

from src.stockapp.shared.cache.response_cache import (
    CACHE_KEY_PREFIX,
    CacheEntry,
    CacheStats,
    ResponseCache,
)

__all__ = [
    "CACHE_KEY_PREFIX",
    "CacheEntry",
    "CacheStats",
    "ResponseCache",
]
