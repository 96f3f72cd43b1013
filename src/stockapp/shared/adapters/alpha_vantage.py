"""Alpha Vantage endpoint client.

Every public method follows the same path:

    fresh cache hit  -> return cached value
    cache miss       -> RetryEngine.execute(transport call)
                        -> shape response -> cache.put -> return
    final failure    -> stale cache entry if one exists (logged), else raise

Stale fallback applies to every final failure, including INVALID_CREDENTIALS,
DATA_NOT_AVAILABLE and shaping failures. The fresh-cache check does not
evict expired entries, so they remain available for the fallback.

Concurrent misses for the same key are not coalesced; both callers fetch
and the last cache write wins.
"""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from src.stockapp.shared.adapters import shaping
from src.stockapp.shared.cache import ResponseCache
from src.stockapp.shared.classifier import TransportResult
from src.stockapp.shared.config import ClientConfig
from src.stockapp.shared.errors import ClassifiedError
from src.stockapp.shared.logging_utils import redact_params, sanitize_for_log
from src.stockapp.shared.retry import RetryEngine

logger = logging.getLogger(__name__)

INTRADAY_INTERVALS = ("1min", "5min", "15min", "30min", "60min")

# Staleness is more tolerable for these endpoints, so they give up sooner
SEARCH_MAX_ATTEMPTS = 2
MARKET_STATUS_MAX_ATTEMPTS = 2

DEFAULT_NEWS_LIMIT = 50

StaleFallbackListener = Callable[[str, ClassifiedError], None]


def normalize_symbol(symbol: str) -> str:
    """Upper-case, stripped ticker symbol."""
    normalized = symbol.strip().upper()
    if not normalized:
        raise ValueError("symbol must not be empty")
    return normalized


def normalize_list(values: list[str] | None, upper: bool = False) -> list[str]:
    """Deduplicated, sorted, stripped list in one case (empty entries dropped)."""
    if not values:
        return []
    cleaned = {v.strip().upper() if upper else v.strip().lower() for v in values}
    return sorted(v for v in cleaned if v)


def build_cache_key(endpoint: str, *parts: str | int) -> str:
    """Deterministic cache key, e.g. ``build_cache_key("overview", "AAPL")`` -> ``overview_AAPL``."""
    return "_".join([endpoint, *(str(part) for part in parts)])


class AlphaVantageAdapter:
    """Async client for the Alpha Vantage query API.

    Example:
        async with AlphaVantageAdapter(config, ResponseCache(store)) as api:
            quote = await api.get_global_quote("AAPL")
            print(quote["05. price"])
    """

    def __init__(
        self,
        config: ClientConfig,
        cache: ResponseCache,
        retry_engine: RetryEngine | None = None,
        client: httpx.AsyncClient | None = None,
        on_stale_fallback: StaleFallbackListener | None = None,
    ):
        """Initialize the adapter.

        Args:
            config: API key, endpoint, TTL and timeouts
            cache: Persistent response cache
            retry_engine: Retry engine (default policies if omitted)
            client: Pre-built HTTP client; created lazily if omitted
            on_stale_fallback: Called with (cache_key, error) whenever a stale
                entry is served instead of raising
        """
        self._config = config
        self._cache = cache
        self._retry = retry_engine or RetryEngine()
        self._client = client
        self._on_stale_fallback = on_stale_fallback

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.request_timeout_seconds)
        return self._client

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def get_global_quote(self, symbol: str) -> dict[str, Any]:
        """Latest quote for ``symbol`` (the unwrapped ``Global Quote`` object).

        Keys follow the upstream format: ``"05. price"``, ``"09. change"``,
        ``"10. change percent"`` ...
        """
        symbol = normalize_symbol(symbol)
        return await self._fetch(
            build_cache_key("quote", symbol),
            {"function": "GLOBAL_QUOTE", "symbol": symbol},
            shape=shaping.unwrap_global_quote,
        )

    async def get_company_overview(self, symbol: str) -> dict[str, Any]:
        """Company fundamentals (Name, Sector, MarketCapitalization, PERatio ...)."""
        symbol = normalize_symbol(symbol)
        return await self._fetch(
            build_cache_key("overview", symbol),
            {"function": "OVERVIEW", "symbol": symbol},
            shape=shaping.require_overview,
        )

    async def get_intraday_data(self, symbol: str, interval: str = "5min") -> dict[str, Any]:
        """Intraday OHLCV bars.

        Args:
            symbol: Ticker symbol
            interval: One of 1min, 5min, 15min, 30min, 60min

        Raises:
            ValueError: On an unsupported interval
            ClassifiedError: When the fetch fails and nothing is cached
        """
        if interval not in INTRADAY_INTERVALS:
            raise ValueError(
                f"Unsupported interval {interval!r}; expected one of {', '.join(INTRADAY_INTERVALS)}"
            )
        symbol = normalize_symbol(symbol)
        series_key = shaping.intraday_series_key(interval)
        return await self._fetch(
            build_cache_key("intraday", symbol, interval),
            {"function": "TIME_SERIES_INTRADAY", "symbol": symbol, "interval": interval},
            shape=lambda payload: shaping.require_series(payload, series_key),
        )

    async def get_daily_data(self, symbol: str) -> dict[str, Any]:
        return await self._get_series("daily", "TIME_SERIES_DAILY", symbol)

    async def get_weekly_data(self, symbol: str) -> dict[str, Any]:
        return await self._get_series("weekly", "TIME_SERIES_WEEKLY", symbol)

    async def get_monthly_data(self, symbol: str) -> dict[str, Any]:
        return await self._get_series("monthly", "TIME_SERIES_MONTHLY", symbol)

    async def _get_series(self, name: str, function: str, symbol: str) -> dict[str, Any]:
        symbol = normalize_symbol(symbol)
        series_key = shaping.SERIES_KEYS[function]
        return await self._fetch(
            build_cache_key(name, symbol),
            {"function": function, "symbol": symbol},
            shape=lambda payload: shaping.require_series(payload, series_key),
        )

    async def get_news(
        self,
        tickers: list[str] | None = None,
        topics: list[str] | None = None,
        limit: int = DEFAULT_NEWS_LIMIT,
    ) -> dict[str, Any]:
        """News and sentiment feed, newest first.

        Args:
            tickers: Restrict to these symbols (any order; normalized)
            topics: Restrict to these topics, e.g. ["technology", "earnings"]
            limit: Maximum articles to return
        """
        if limit <= 0:
            raise ValueError("limit must be positive")
        ticker_list = normalize_list(tickers, upper=True)
        topic_list = normalize_list(topics)

        params: dict[str, Any] = {
            "function": "NEWS_SENTIMENT",
            "limit": str(limit),
            "sort": "LATEST",
        }
        if ticker_list:
            params["tickers"] = ",".join(ticker_list)
        if topic_list:
            params["topics"] = ",".join(topic_list)

        cache_key = build_cache_key(
            "news",
            ",".join(ticker_list) or "general",
            ",".join(topic_list) or "general",
            limit,
        )
        return await self._fetch(
            cache_key,
            params,
            shape=shaping.require_news_feed,
            timeout=self._config.news_timeout_seconds,
        )

    async def search_symbol(self, keywords: str) -> dict[str, Any]:
        """Symbol search; the body's ``bestMatches`` list may be empty."""
        keywords = keywords.strip()
        if not keywords:
            raise ValueError("keywords must not be empty")
        return await self._fetch(
            build_cache_key("search", keywords.lower()),
            {"function": "SYMBOL_SEARCH", "keywords": keywords},
            shape=shaping.require_search_matches,
            max_attempts=SEARCH_MAX_ATTEMPTS,
        )

    async def get_market_status(self) -> dict[str, Any]:
        return await self._fetch(
            "market_status",
            {"function": "MARKET_STATUS"},
            shape=shaping.require_market_status,
            max_attempts=MARKET_STATUS_MAX_ATTEMPTS,
        )

    async def get_earnings(self, symbol: str) -> dict[str, Any]:
        """Annual and quarterly EPS history."""
        symbol = normalize_symbol(symbol)
        return await self._fetch(
            build_cache_key("earnings", symbol),
            {"function": "EARNINGS", "symbol": symbol},
            shape=shaping.require_earnings,
        )

    async def get_top_gainers_losers(self) -> dict[str, Any]:
        """Top gainers, top losers and most actively traded tickers."""
        return await self._fetch(
            "top_gainers_losers",
            {"function": "TOP_GAINERS_LOSERS"},
            shape=shaping.require_movers,
        )

    # ------------------------------------------------------------------
    # Cache / retry / fallback pipeline
    # ------------------------------------------------------------------

    async def _fetch(
        self,
        cache_key: str,
        params: dict[str, Any],
        *,
        shape: Callable[[Any], Any] | None = None,
        max_attempts: int | None = None,
        timeout: float | None = None,
    ) -> Any:
        # TODO: coalesce concurrent misses with an in-flight map keyed by cache_key
        cached = await self._cache.get_fresh(
            cache_key, self._config.cache_expiration_ms, evict=False
        )
        if cached is not None:
            return cached

        try:
            result = await self._retry.execute(
                lambda: self._send(params, timeout), max_attempts=max_attempts
            )
            data = shape(result.payload) if shape else result.payload
        except ClassifiedError as e:
            return await self._fall_back_to_stale(cache_key, e)

        await self._cache.put(cache_key, data)
        return data

    async def _send(self, params: dict[str, Any], timeout: float | None) -> TransportResult:
        """One transport attempt."""
        request_params = {**params, "apikey": self._config.api_key}
        logger.debug(
            "Upstream request",
            extra={"params": redact_params(request_params)},
        )
        response = await self.client.get(
            self._config.base_url,
            params=request_params,
            timeout=timeout if timeout is not None else self._config.request_timeout_seconds,
        )
        return TransportResult.from_response(response)

    async def _fall_back_to_stale(self, cache_key: str, error: ClassifiedError) -> Any:
        stale = await self._cache.get_stale(cache_key)
        if stale is None:
            logger.error(
                "Upstream request failed with no cached fallback",
                extra={"cache_key": sanitize_for_log(cache_key), **error.to_log_dict()},
            )
            raise error

        logger.warning(
            "Serving stale cached data after upstream failure",
            extra={"cache_key": sanitize_for_log(cache_key), **error.to_log_dict()},
        )
        if self._on_stale_fallback is not None:
            self._on_stale_fallback(cache_key, error)
        return stale

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AlphaVantageAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
