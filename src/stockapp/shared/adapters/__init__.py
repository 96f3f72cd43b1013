"""Upstream market data API adapters."""

from src.stockapp.shared.adapters.alpha_vantage import (
    AlphaVantageAdapter,
    build_cache_key,
    normalize_symbol,
)

__all__ = [
    "AlphaVantageAdapter",
    "build_cache_key",
    "normalize_symbol",
]
