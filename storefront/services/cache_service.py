"""
Result Set Cache for Decorated Order Lists.

Every list query the storefront runs (paged history, simple recent list, ...)
is cached under a canonical descriptor of the query that produced it, so two
callers asking the same question share one entry regardless of argument
order. Cache keys follow the format:

    {namespace}:{partner_id}:{kind}:{page_size}:{filters_hash}

Examples:
    orders:7:orders:10:d75171398898
    orders:7:orders-simple:20:d75171398898

Paged queries accumulate pages under the same key, the way an infinite list
keeps every page it has loaded.

Usage:
    cache = get_result_cache()

    descriptor = QueryDescriptor.create("orders", partner_id=7, page_size=10)
    await cache.set(descriptor, orders)
    orders = await cache.get(descriptor)

    # After a write, drop everything cached for the partner
    await cache.invalidate_partner(7)
"""
import json
import hashlib
from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import asyncio
import logging

from storefront.config import settings
from storefront.schemas.order import Order

logger = logging.getLogger(__name__)

# Query kinds
ORDERS_PAGED = "orders"
ORDERS_SIMPLE = "orders-simple"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryCache:
    """
    Process-local TTL cache.

    Values are kept as Python objects (no serialization), so callers must
    treat what they get back as read-only.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._cache: Dict[str, Tuple[Any, datetime]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if expires_at > self._clock():
                    return value
                else:
                    del self._cache[key]
            return None

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        async with self._lock:
            now = self._clock()
            self._evict_expired(now)
            expires_at = now + timedelta(seconds=ttl)
            self._cache[key] = (value, expires_at)
            return True

    async def clear_pattern(self, pattern: str) -> int:
        """Clear keys matching pattern (simple prefix match)."""
        async with self._lock:
            prefix = pattern.rstrip('*')
            keys_to_delete = [k for k in self._cache.keys() if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._cache[key]
            return len(keys_to_delete)

    def _evict_expired(self, now: datetime) -> int:
        """Remove expired entries. Caller holds the lock."""
        expired_keys = [
            k for k, (_, expires_at) in self._cache.items()
            if expires_at <= now
        ]
        for key in expired_keys:
            del self._cache[key]
        return len(expired_keys)


@dataclass(frozen=True)
class QueryDescriptor:
    """
    Canonical description of an order list query.

    `filters` holds any extra query fields as sorted (name, value) pairs;
    fields set to None are dropped so they never split the cache.
    """
    kind: str
    partner_id: Optional[int]
    page_size: int
    filters: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def create(cls, kind: str, partner_id: Optional[int], page_size: int, **filters) -> "QueryDescriptor":
        cleaned = tuple(sorted((name, value) for name, value in filters.items() if value is not None))
        return cls(kind=kind, partner_id=partner_id, page_size=page_size, filters=cleaned)

    def filter_dict(self) -> Dict[str, Any]:
        return dict(self.filters)


class ResultSetCache:
    """
    Cache of decorated order lists keyed by query descriptor.

    Features:
    - Content-addressed keys (same query, same entry)
    - Page accumulation for paged queries
    - Partner-wide invalidation after writes
    """

    def __init__(self, backend: InMemoryCache, namespace: str = "orders", ttl: Optional[int] = None):
        self._backend = backend
        self._namespace = namespace
        self._ttl = ttl or settings.ORDER_RESULT_CACHE_TTL

    @staticmethod
    def hash_params(params: dict) -> str:
        """Create hash from query parameters."""
        sorted_params = sorted(params.items())
        param_str = json.dumps(sorted_params, sort_keys=True, default=str)
        return hashlib.md5(param_str.encode()).hexdigest()[:12]

    def _partner_prefix(self, partner_id: Optional[int]) -> str:
        partner = partner_id if partner_id is not None else "all"
        return f"{self._namespace}:{partner}:"

    def make_key(self, descriptor: QueryDescriptor) -> str:
        """Create the cache key for a descriptor."""
        filters_hash = self.hash_params(descriptor.filter_dict())
        return (
            f"{self._partner_prefix(descriptor.partner_id)}"
            f"{descriptor.kind}:{descriptor.page_size}:{filters_hash}"
        )

    async def get(self, descriptor: QueryDescriptor) -> Optional[List[Order]]:
        """Get the cached orders for a query, if any."""
        return await self._backend.get(self.make_key(descriptor))

    async def set(self, descriptor: QueryDescriptor, orders: List[Order]) -> None:
        """Replace the cached orders for a query (first page or refresh)."""
        await self._backend.set(self.make_key(descriptor), list(orders), self._ttl)

    async def append_page(self, descriptor: QueryDescriptor, orders: List[Order]) -> List[Order]:
        """
        Add a further page to a cached query.

        Orders already present (same id) are replaced in place; new ones are
        appended in page order. Returns the accumulated list.
        """
        existing = await self.get(descriptor) or []
        positions = {order.id: index for index, order in enumerate(existing)}
        combined = list(existing)
        for order in orders:
            if order.id in positions:
                combined[positions[order.id]] = order
            else:
                positions[order.id] = len(combined)
                combined.append(order)
        await self._backend.set(self.make_key(descriptor), combined, self._ttl)
        return combined

    async def find_order(self, descriptor: QueryDescriptor, order_id: int) -> Optional[Order]:
        """Look up one order inside a cached query result."""
        orders = await self.get(descriptor)
        if not orders:
            return None
        for order in orders:
            if order.id == order_id:
                return order
        return None

    async def invalidate_partner(self, partner_id: Optional[int]) -> int:
        """Drop every cached result set for a partner."""
        count = await self._backend.clear_pattern(f"{self._partner_prefix(partner_id)}*")
        if partner_id is not None:
            # Unscoped queries may contain the partner's orders too
            count += await self._backend.clear_pattern(f"{self._partner_prefix(None)}*")
        logger.debug(f"Invalidated {count} result sets for partner {partner_id}")
        return count


# Singleton cache instance
_cache_instance: Optional[ResultSetCache] = None


def get_result_cache() -> ResultSetCache:
    """Get the result set cache singleton."""
    global _cache_instance

    if _cache_instance is None:
        _cache_instance = ResultSetCache(InMemoryCache())
        logger.info("Result set cache initialized")

    return _cache_instance
