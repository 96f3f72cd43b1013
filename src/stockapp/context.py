"""Application context handed to screens.

Holds the configuration, device store, response cache and endpoint client
in one explicit object instead of module-level singletons.

Usage:
    async with create_context() as ctx:
        overview = await ctx.api.get_company_overview("AAPL")
        if ctx.stale_fallbacks:
            show_banner(stale_data_banner(next(iter(ctx.stale_fallbacks.values()))))
"""

import logging
from dataclasses import dataclass, field

from src.stockapp.shared.adapters import AlphaVantageAdapter
from src.stockapp.shared.cache import ResponseCache
from src.stockapp.shared.config import ClientConfig, get_config
from src.stockapp.shared.errors import ClassifiedError
from src.stockapp.shared.retry import RetryEngine
from src.stockapp.shared.storage import InMemoryStore, KeyValueStore, SQLiteStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a screen needs to load market data."""

    config: ClientConfig
    store: KeyValueStore
    cache: ResponseCache
    api: AlphaVantageAdapter
    # cache_key -> error, for every stale fallback served since the last clear
    stale_fallbacks: dict[str, ClassifiedError] = field(default_factory=dict)

    def clear_stale_fallbacks(self) -> None:
        self.stale_fallbacks.clear()

    async def close(self) -> None:
        try:
            await self.api.aclose()
        finally:
            if isinstance(self.store, SQLiteStore):
                self.store.close()

    async def __aenter__(self) -> "AppContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def create_context(
    config: ClientConfig | None = None,
    store: KeyValueStore | None = None,
    retry_engine: RetryEngine | None = None,
) -> AppContext:
    """Build an AppContext.

    Args:
        config: Defaults to get_config() (environment variables)
        store: Defaults to SQLiteStore at CACHE_DB_PATH, or InMemoryStore
        retry_engine: Defaults to RetryEngine() with the standard policies
    """
    config = config or get_config()
    if store is None:
        store = SQLiteStore(config.cache_db_path) if config.cache_db_path else InMemoryStore()

    cache = ResponseCache(store)
    stale_fallbacks: dict[str, ClassifiedError] = {}
    api = AlphaVantageAdapter(
        config,
        cache,
        retry_engine=retry_engine,
        on_stale_fallback=stale_fallbacks.__setitem__,
    )

    logger.debug("App context created", extra={"store": type(store).__name__})
    return AppContext(
        config=config,
        store=store,
        cache=cache,
        api=api,
        stale_fallbacks=stale_fallbacks,
    )
