"""
Tiered Reference Cache

Two-level cache for slowly changing reference data (provinces, cities,
postal codes, ...) and small client preferences:

1. Volatile tier: a dict in this process, checked first
2. Durable tier: a DurableStore shared with the rest of the process

Keys follow the format:

    {prefix}{namespace}[_{identifier}]

Examples:
    @location_cache_provinces
    @location_cache_cities_31
    @storefront:default_address

Each entry carries its own expiry. Expired entries are treated as absent and
removed from the durable tier when read. Storage failures never escape this
class: writes are best-effort and reads report a miss.

There is no locking. Concurrent writers of the same key are producing the
same derived data, so whichever lands last is as good as the other.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel

from storefront.config import settings
from storefront.services.durable_store import DurableStore, get_durable_store

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    """Stored form of a cached value."""
    data: Any
    timestamp: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class TieredCache:
    """
    Read-through cache over a volatile and a durable tier.

    Values must be JSON-serializable; store `model_dump()` output rather than
    pydantic models.
    """

    def __init__(
        self,
        store: DurableStore,
        prefix: str,
        ttl_for_namespace: Optional[Callable[[str], int]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._prefix = prefix
        self._ttl_for_namespace = ttl_for_namespace or settings.ttl_for_namespace
        self._clock = clock
        self._memory: Dict[str, CacheEntry] = {}

    @property
    def prefix(self) -> str:
        return self._prefix

    def make_key(self, namespace: str, identifier: Optional[Any] = None) -> str:
        """Create the storage key for a namespace and optional identifier."""
        if identifier is None or identifier == "":
            return f"{self._prefix}{namespace}"
        return f"{self._prefix}{namespace}_{identifier}"

    async def set(
        self,
        namespace: str,
        value: Any,
        identifier: Optional[Any] = None,
        ttl: Optional[int] = None,
    ) -> None:
        """Cache `value`; `ttl` in seconds, defaulting per namespace."""
        key = self.make_key(namespace, identifier)
        if ttl is None:
            ttl = self._ttl_for_namespace(namespace)

        now = self._clock()
        entry = CacheEntry(data=value, timestamp=now, expires_at=now + timedelta(seconds=ttl))
        self._memory[key] = entry

        try:
            await self._store.set_item(key, entry.model_dump_json())
        except Exception as e:
            logger.warning(f"Failed to persist cache entry {key}: {e}")

    async def get(self, namespace: str, identifier: Optional[Any] = None) -> Optional[Any]:
        """Return the cached value, or None on a miss or expiry."""
        key = self.make_key(namespace, identifier)
        now = self._clock()

        entry = self._memory.get(key)
        if entry is not None:
            if entry.is_valid(now):
                return entry.data
            del self._memory[key]

        try:
            raw = await self._store.get_item(key)
            if raw is None:
                return None
            entry = CacheEntry.model_validate_json(raw)
        except Exception as e:
            logger.warning(f"Failed to read cache entry {key}: {e}")
            return None

        if entry.is_valid(now):
            # Promote so the next read stays in memory
            self._memory[key] = entry
            return entry.data

        logger.debug(f"Cache entry {key} expired at {entry.expires_at.isoformat()}")
        await self._remove_durable(key)
        return None

    async def get_or_load(
        self,
        namespace: str,
        loader: Callable[[], Awaitable[Any]],
        identifier: Optional[Any] = None,
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Read-through helper: return the cached value or load, cache and return it.

        Loader errors propagate and nothing is cached. A loader returning None
        is not cached either.
        """
        cached = await self.get(namespace, identifier)
        if cached is not None:
            return cached

        value = await loader()
        if value is not None:
            await self.set(namespace, value, identifier, ttl)
        return value

    async def remove(self, namespace: str, identifier: Optional[Any] = None) -> None:
        """Remove one entry from both tiers."""
        key = self.make_key(namespace, identifier)
        self._memory.pop(key, None)
        await self._remove_durable(key)

    async def clear_all(self) -> int:
        """
        Remove every entry under this cache's prefix.

        Keys of other namespaces in the shared durable store are left alone.
        Returns the number of durable keys removed.
        """
        self._memory.clear()
        try:
            keys = [key for key in await self._store.get_all_keys() if key.startswith(self._prefix)]
            await self._store.remove_many(keys)
        except Exception as e:
            logger.warning(f"Failed to clear cache prefix {self._prefix}: {e}")
            return 0
        logger.info(f"Cleared {len(keys)} cache entries under {self._prefix}")
        return len(keys)

    async def get_cache_info(self) -> dict:
        """Entry counts for both tiers."""
        try:
            keys = [key for key in await self._store.get_all_keys() if key.startswith(self._prefix)]
        except Exception as e:
            logger.warning(f"Failed to list cache keys for {self._prefix}: {e}")
            return {
                "memory_size": len(self._memory),
                "persistent_keys": 0,
                "total_size": "Unable to calculate",
            }
        return {
            "memory_size": len(self._memory),
            "persistent_keys": len(keys),
            "total_size": f"{len(keys)} items cached",
        }

    async def _remove_durable(self, key: str) -> None:
        try:
            await self._store.remove_item(key)
        except Exception as e:
            logger.warning(f"Failed to remove cache entry {key}: {e}")


# Singleton cache instances
_reference_cache: Optional[TieredCache] = None
_preference_cache: Optional[TieredCache] = None


def get_reference_cache() -> TieredCache:
    """Cache for region and postal-code reference data."""
    global _reference_cache

    if _reference_cache is None:
        _reference_cache = TieredCache(get_durable_store(), settings.REFERENCE_CACHE_PREFIX)

    return _reference_cache


def get_preference_cache() -> TieredCache:
    """Cache for client preferences (default address)."""
    global _preference_cache

    if _preference_cache is None:
        _preference_cache = TieredCache(get_durable_store(), settings.PREFERENCE_CACHE_PREFIX)

    return _preference_cache
