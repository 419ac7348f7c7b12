import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from storefront.schemas.order import Order, OrderLine
from storefront.services.cache_service import InMemoryCache, ResultSetCache
from storefront.services.durable_store import InMemoryStore
from storefront.services.order_gateway import OrderNotFoundError, apply_annotation
from storefront.services.order_resolver import OrderResolver
from storefront.services.order_service import OrderService
from storefront.services.reference_cache import TieredCache


class FakeClock:
    """Controllable clock for TTL tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingStore(InMemoryStore):
    """In-memory store that counts calls and can be told to fail."""

    def __init__(self):
        super().__init__()
        self.get_calls = 0
        self.set_calls = 0
        self.remove_calls = 0
        self.fail_reads = False
        self.fail_writes = False

    async def get_item(self, key):
        self.get_calls += 1
        if self.fail_reads:
            raise ConnectionError("durable store unavailable")
        return await super().get_item(key)

    async def set_item(self, key, value):
        self.set_calls += 1
        if self.fail_writes:
            raise ConnectionError("durable store unavailable")
        await super().set_item(key, value)

    async def remove_item(self, key):
        self.remove_calls += 1
        if self.fail_writes:
            raise ConnectionError("durable store unavailable")
        await super().remove_item(key)


class FakeGateway:
    """
    Stand-in for OrderGateway backed by a dict of orders.

    `read_order` behaves like the single-order read (no images);
    `search_orders` returns `list_results` sliced by offset/limit.
    """

    def __init__(self):
        self.orders: Dict[int, Order] = {}
        self.list_results: List[Order] = []
        self.read_calls: List[int] = []
        self.search_calls: List[tuple] = []
        self.writes: List[tuple] = []
        self.read_errors: List[Exception] = []
        self.read_gate: Optional[asyncio.Event] = None
        self.confirmed: List[int] = []
        self.cancelled: List[int] = []

    async def read_order(self, order_id: int) -> Order:
        self.read_calls.append(order_id)
        if self.read_gate is not None:
            await self.read_gate.wait()
        if self.read_errors:
            raise self.read_errors.pop(0)
        if order_id not in self.orders:
            raise OrderNotFoundError(order_id)
        order = self.orders[order_id]
        # Single reads never carry images
        lines = [line.model_copy(update={"image_128": None}) for line in order.order_line]
        return order.model_copy(update={"order_line": lines})

    async def search_orders(self, domain, limit: int = 20, offset: int = 0) -> List[Order]:
        self.search_calls.append((domain, limit, offset))
        return self.list_results[offset:offset + limit]

    async def write_order(self, order_id: int, values: dict) -> bool:
        self.writes.append((order_id, values))
        order = self.orders[order_id]
        self.orders[order_id] = apply_annotation(
            order, values.get("state", order.state), values.get("note", order.note)
        )
        return True

    async def confirm_order(self, order_id: int) -> None:
        self.confirmed.append(order_id)
        order = self.orders[order_id]
        self.orders[order_id] = apply_annotation(order, "sale", order.note)

    async def cancel_order(self, order_id: int) -> None:
        self.cancelled.append(order_id)
        order = self.orders[order_id]
        self.orders[order_id] = apply_annotation(order, "cancel", order.note)


def build_order(
    order_id: int,
    partner_id: int = 7,
    state: str = "sale",
    note: str = "",
    image: Optional[str] = None,
    date_order: str = "2024-01-01 10:00:00",
    amount_total: float = 150000,
) -> Order:
    """Decorated order with one line, decoded the way the gateway does it."""
    order = Order(
        id=order_id,
        name=f"S{order_id:05d}",
        partner_id=partner_id,
        partner_name="Budi",
        date_order=date_order,
        state=state,
        note=note,
        order_line=[
            OrderLine(
                id=order_id * 10,
                product_id=100 + order_id,
                product_name="Cat Food 1kg",
                quantity=2,
                price_unit=75000,
                price_subtotal=150000,
                price_total=150000,
                image_128=image,
            )
        ],
        amount_untaxed=amount_total,
        amount_total=amount_total,
    )
    return apply_annotation(order, state, note)


# ==================== FIXTURES ====================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def reference_cache(store, clock):
    return TieredCache(store, "@location_cache_", clock=clock)


@pytest.fixture
def preference_cache(store, clock):
    return TieredCache(store, "@storefront:", clock=clock)


@pytest.fixture
def result_cache(clock):
    return ResultSetCache(InMemoryCache(clock=clock), ttl=300)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def resolver(gateway, result_cache):
    return OrderResolver(gateway, result_cache, page_sizes=[5, 10, 20], simple_limits=[20], retries=1)


@pytest.fixture
def order_service(gateway, result_cache, resolver):
    return OrderService(gateway, result_cache=result_cache, resolver=resolver)


@pytest.fixture
def order_factory():
    """Return the order builder."""
    return build_order
