"""
Durable key/value storage for the client cache tier.

A plain string-keyed, string-valued async store. It knows nothing about
TTLs, JSON or namespaces; those live in the reference cache on top of it.

Backends:
1. Redis (preferred for deployed instances)
2. In-memory (development/testing; lost on restart)

Errors are NOT swallowed here. The reference cache decides what a storage
failure means for its callers.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from storefront.config import settings

logger = logging.getLogger(__name__)


class DurableStore(ABC):
    """Abstract durable store interface."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Get raw value, or None if absent."""
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store raw value."""
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete key (no-op if absent)."""
        pass

    @abstractmethod
    async def remove_many(self, keys: Iterable[str]) -> None:
        """Delete several keys."""
        pass

    @abstractmethod
    async def get_all_keys(self) -> List[str]:
        """All keys in the store, across every namespace."""
        pass


class InMemoryStore(DurableStore):
    """
    In-memory store for development and tests.

    Behaves like the real store (string values only) so serialization bugs
    show up in tests too.
    """

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Durable store values must be str, got {type(value).__name__}")
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    async def remove_many(self, keys: Iterable[str]) -> None:
        for key in list(keys):
            self._data.pop(key, None)

    async def get_all_keys(self) -> List[str]:
        return list(self._data.keys())


class RedisStore(DurableStore):
    """Redis-backed durable store."""

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client = None

    async def _get_client(self):
        if self._client is None:
            import redis.asyncio as redis
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def get_item(self, key: str) -> Optional[str]:
        client = await self._get_client()
        return await client.get(key)

    async def set_item(self, key: str, value: str) -> None:
        client = await self._get_client()
        await client.set(key, value)

    async def remove_item(self, key: str) -> None:
        client = await self._get_client()
        await client.delete(key)

    async def remove_many(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        client = await self._get_client()
        await client.delete(*keys)

    async def get_all_keys(self) -> List[str]:
        client = await self._get_client()
        return [key async for key in client.scan_iter(match="*", count=100)]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Singleton store instance
_store_instance: Optional[DurableStore] = None


def get_durable_store() -> DurableStore:
    """Get the durable store singleton."""
    global _store_instance

    if _store_instance is None:
        if settings.REDIS_URL and settings.CACHE_ENABLED:
            _store_instance = RedisStore(settings.REDIS_URL)
            logger.info("Durable store initialized with Redis backend")
        else:
            _store_instance = InMemoryStore()
            logger.info("Durable store initialized with in-memory backend")

    return _store_instance
