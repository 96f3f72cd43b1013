"""Persistent API response cache on top of device storage.

Entries are written as JSON ``{"value": ..., "stored_at_ms": ...}`` under
``apicache:<key>`` so they never collide with favorites/watchlists kept in
the same store.

Freshness:
- fresh: ``now - stored_at_ms < ttl_ms``
- stale: older than that, kept until overwritten by the next good fetch
- no background sweep; ``get_fresh`` deletes an expired entry when it sees one,
  unless the caller passes ``evict=False`` to keep it for a stale fallback

Storage failures (unreadable JSON, backend errors, unserializable values)
are logged and reported as a miss. The cache never fails a request.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from src.stockapp.shared.logging_utils import get_safe_error_info, sanitize_for_log
from src.stockapp.shared.storage import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "apicache:"


def _now_ms() -> int:
    return int(time.time() * 1000)


class CacheEntry(BaseModel):
    """A cached upstream response and when it was stored."""

    value: Any
    stored_at_ms: int

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.stored_at_ms

    def is_fresh(self, ttl_ms: int, now_ms: int) -> bool:
        return self.age_ms(now_ms) < ttl_ms


@dataclass
class CacheStats:
    """Counters for cache performance monitoring."""

    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    evictions: int = 0
    storage_errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Fresh hits / (fresh hits + misses)."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.stale_hits = 0
        self.evictions = 0
        self.storage_errors = 0


class ResponseCache:
    """TTL cache of upstream responses persisted in a KeyValueStore.

    Example:
        cache = ResponseCache(InMemoryStore())

        value = await cache.get_fresh("overview_AAPL", ttl_ms=300_000)
        if value is None:
            value = await fetch_overview("AAPL")
            await cache.put("overview_AAPL", value)
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        """
        Args:
            store: Device storage backend shared with other app state.
            clock: Milliseconds since the epoch. Injected in tests.
        """
        self._store = store
        self._clock = clock
        self.stats = CacheStats()

    @staticmethod
    def storage_key(key: str) -> str:
        """Namespaced key used in the underlying store."""
        return f"{CACHE_KEY_PREFIX}{key}"

    async def get(self, key: str) -> CacheEntry | None:
        """Read the raw entry without applying any TTL."""
        try:
            raw = await self._store.get_item(self.storage_key(key))
        except Exception as e:
            self.stats.storage_errors += 1
            logger.warning(
                "Cache read failed",
                extra={"cache_key": sanitize_for_log(key), **get_safe_error_info(e)},
            )
            return None

        if raw is None:
            return None

        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError:
            self.stats.storage_errors += 1
            logger.warning(
                "Discarding unreadable cache entry",
                extra={"cache_key": sanitize_for_log(key)},
            )
            return None

    async def get_fresh(self, key: str, ttl_ms: int, evict: bool = True) -> Any | None:
        """Return the cached value if younger than ``ttl_ms``.

        Args:
            key: Cache key without the storage prefix
            ttl_ms: Freshness window
            evict: Remove an expired entry as a side effect. The endpoint
                client passes False so the entry is still there for
                ``get_stale`` if the refetch fails.
        """
        entry = await self.get(key)
        if entry is None:
            self.stats.misses += 1
            logger.debug("Cache miss", extra={"cache_key": sanitize_for_log(key)})
            return None

        now = self._clock()
        if entry.is_fresh(ttl_ms, now):
            self.stats.hits += 1
            logger.debug("Cache hit", extra={"cache_key": sanitize_for_log(key)})
            return entry.value

        self.stats.misses += 1
        logger.debug(
            "Cache entry expired",
            extra={"cache_key": sanitize_for_log(key), "age_ms": entry.age_ms(now)},
        )
        if evict:
            self.stats.evictions += 1
            await self._remove(key)
        return None

    async def get_stale(self, key: str) -> Any | None:
        """Return the cached value regardless of age.

        Read-only: ``stored_at_ms`` is left untouched so a stale read never
        makes the entry look fresher.
        """
        entry = await self.get(key)
        if entry is None:
            return None
        self.stats.stale_hits += 1
        return entry.value

    async def put(self, key: str, value: Any) -> None:
        """Store ``value`` stamped with the current time, replacing any entry."""
        entry = CacheEntry(value=value, stored_at_ms=self._clock())
        try:
            payload = entry.model_dump_json()
            await self._store.set_item(self.storage_key(key), payload)
        except Exception as e:
            self.stats.storage_errors += 1
            logger.warning(
                "Cache write failed",
                extra={"cache_key": sanitize_for_log(key), **get_safe_error_info(e)},
            )

    async def _remove(self, key: str) -> None:
        try:
            await self._store.remove_item(self.storage_key(key))
        except Exception as e:
            self.stats.storage_errors += 1
            logger.warning(
                "Cache eviction failed",
                extra={"cache_key": sanitize_for_log(key), **get_safe_error_info(e)},
            )
