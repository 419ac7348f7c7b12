"""
Order Read Resolver.

Produces one order for a detail view from whatever read path has it:

1. Cached list results, searched in a fixed priority order. List reads carry
   product images, so a cached hit is preferred even over a fresh read.
2. A single-order read from the backend (no images), retried once on
   transport errors.

Network results are returned as they are; they are never written into the
list caches, which stay owned by the list queries that produced them.

Concurrent resolutions of the same order share one in-flight task.
"""
import asyncio
import logging
from typing import Dict, List, Optional, Tuple

import httpx

from storefront.config import settings
from storefront.schemas.order import Order
from storefront.services.cache_service import (
    ORDERS_PAGED,
    ORDERS_SIMPLE,
    QueryDescriptor,
    ResultSetCache,
    get_result_cache,
)
from storefront.services.odoo_client import OdooRPCError
from storefront.services.order_gateway import (
    OrderGateway,
    OrderNotFoundError,
    OrderResolutionError,
)

logger = logging.getLogger(__name__)


class OrderResolver:
    """
    Resolves a single order from cached list results or the backend.

    Usage:
        resolver = OrderResolver(OrderGateway(), get_result_cache())
        order = await resolver.resolve(42, partner_id=7)
    """

    def __init__(
        self,
        gateway: OrderGateway,
        result_cache: Optional[ResultSetCache] = None,
        page_sizes: Optional[List[int]] = None,
        simple_limits: Optional[List[int]] = None,
        retries: Optional[int] = None,
    ):
        self.gateway = gateway
        self.result_cache = result_cache or get_result_cache()
        self.page_sizes = list(page_sizes if page_sizes is not None else settings.ORDER_LIST_PAGE_SIZES)
        self.simple_limits = list(simple_limits if simple_limits is not None else settings.ORDER_SIMPLE_LIST_LIMITS)
        self.retries = settings.ORDER_FETCH_RETRIES if retries is None else retries
        self._pending: Dict[Tuple[int, Optional[int]], asyncio.Future] = {}

    def candidates(self, partner_id: Optional[int]) -> List[QueryDescriptor]:
        """Cached list queries to search, highest priority first."""
        paged = [QueryDescriptor.create(ORDERS_PAGED, partner_id, size) for size in self.page_sizes]
        simple = [QueryDescriptor.create(ORDERS_SIMPLE, partner_id, limit) for limit in self.simple_limits]
        return paged + simple

    async def find_cached(self, order_id: int, partner_id: Optional[int]) -> Optional[Order]:
        """First cached list hit for the order, or None. Never touches the network."""
        for descriptor in self.candidates(partner_id):
            order = await self.result_cache.find_order(descriptor, order_id)
            if order is not None:
                logger.debug(f"Order {order_id} resolved from cached {descriptor.kind} (size {descriptor.page_size})")
                return order
        return None

    async def resolve(self, order_id: int, partner_id: Optional[int] = None) -> Order:
        """
        Resolve one order.

        Raises:
            OrderNotFoundError: if no cache has it and the backend reports none
            OrderResolutionError: if no cache has it and the backend read fails
        """
        key = (order_id, partner_id)
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._resolve(order_id, partner_id))
            self._pending[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            logger.debug(f"Joining in-flight resolution of order {order_id}")
        return await asyncio.shield(task)

    def _forget(self, key: Tuple[int, Optional[int]], task: asyncio.Future) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    async def _resolve(self, order_id: int, partner_id: Optional[int]) -> Order:
        cached = await self.find_cached(order_id, partner_id)
        if cached is not None:
            return cached

        logger.info(f"Order {order_id} not in cached lists for partner {partner_id}, reading from backend")
        return await self._fetch(order_id)

    async def _fetch(self, order_id: int) -> Order:
        attempts = self.retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                return await self.gateway.read_order(order_id)
            except OrderNotFoundError:
                logger.warning(f"Order {order_id} does not exist in the backend")
                raise
            except httpx.TransportError as e:
                last_error = e
                logger.warning(f"Reading order {order_id} failed (attempt {attempt}/{attempts}): {e}")
            except (OdooRPCError, httpx.HTTPError, ValueError) as e:
                logger.error(f"Reading order {order_id} failed: {e}")
                raise OrderResolutionError(order_id, f"Order {order_id} could not be loaded: {e}") from e

        logger.error(f"Giving up on order {order_id} after {attempts} attempts")
        raise OrderResolutionError(
            order_id, f"Order {order_id} could not be loaded: {last_error}"
        ) from last_error
