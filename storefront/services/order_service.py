"""
Order Service.

Consumer-facing order operations for the storefront:
- Paged and recent order lists (cached as result sets)
- Order detail through the read resolver
- Lifecycle status and payment updates written into the order note
- Cancel / confirm actions
- Pending-payment queries and the activity timeline

Every write invalidates the partner's cached result sets so the next list
read goes back to the backend. Write errors propagate unchanged; nothing is
rolled back or retried here.
"""
import logging
from typing import List, Optional, Union

from storefront.schemas.order import (
    Activity,
    ActivityType,
    NativeOrderState,
    Order,
    OrderFilter,
    OrderStatus,
    PaymentRecord,
)
from storefront.services.cache_service import (
    ORDERS_PAGED,
    ORDERS_SIMPLE,
    QueryDescriptor,
    ResultSetCache,
    get_result_cache,
)
from storefront.services.order_gateway import OrderGateway, apply_annotation, build_domain
from storefront.services.order_resolver import OrderResolver
from storefront.services.payment_codec import check_payment_fields, encode_payment, is_pending
from storefront.services.status_codec import encode_status, normalize_status_code

logger = logging.getLogger(__name__)


# Timeline presentation per effective status: (type, title, icon, description template)
ACTIVITY_PRESENTATION = {
    OrderStatus.WAITING_PAYMENT.value: (
        ActivityType.ORDER, "Menunggu Pembayaran", "access-time",
        "Pesanan {name} - Selesaikan pembayaran sebelum batas waktu",
    ),
    OrderStatus.PAYMENT_CONFIRMED.value: (
        ActivityType.PAYMENT, "Pembayaran Berhasil", "payment",
        "Pembayaran untuk pesanan {name} telah dikonfirmasi",
    ),
    OrderStatus.ADMIN_REVIEW.value: (
        ActivityType.ORDER, "Sedang Ditinjau Admin", "rate-review",
        "Pesanan {name} sedang ditinjau oleh admin",
    ),
    OrderStatus.PROCESSING.value: (
        ActivityType.ORDER, "Pesanan Diproses", "inventory",
        "Pesanan {name} sedang diproses - {items} produk",
    ),
    OrderStatus.INSPECTING.value: (
        ActivityType.ORDER, "Pesanan Diproses", "inventory",
        "Pesanan {name} sedang diproses - {items} produk",
    ),
    OrderStatus.SHIPPED.value: (
        ActivityType.DELIVERY, "Pesanan Dikirim", "local-shipping",
        "Pesanan {name} sedang dalam perjalanan",
    ),
    OrderStatus.DELIVERED.value: (
        ActivityType.DELIVERY, "Pesanan Selesai", "check-circle",
        "Pesanan {name} telah diterima",
    ),
    OrderStatus.DONE.value: (
        ActivityType.DELIVERY, "Pesanan Selesai", "check-circle",
        "Pesanan {name} telah diterima",
    ),
    OrderStatus.CANCEL.value: (
        ActivityType.ORDER, "Pesanan Dibatalkan", "cancel",
        "Pesanan {name} telah dibatalkan",
    ),
    OrderStatus.RETURN_APPROVED.value: (
        ActivityType.ORDER, "Pengembalian Disetujui", "assignment-return",
        "Pengembalian untuk pesanan {name} telah disetujui",
    ),
    OrderStatus.APPROVED.value: (
        ActivityType.ORDER, "Pesanan Disetujui", "verified",
        "Pesanan {name} telah disetujui oleh admin",
    ),
}

# Titles for statuses without a dedicated presentation
ACTIVITY_TITLES = {
    OrderStatus.DRAFT.value: "Pesanan Draft",
    OrderStatus.SENT.value: "Penawaran Terkirim",
    OrderStatus.SALE.value: "Pesanan Dikonfirmasi",
}


class OrderService:
    """
    Order operations for storefront consumers.

    Usage:
        service = OrderService(OrderGateway())

        orders = await service.list_orders(partner_id=7, page_size=10)
        order = await service.get_order(42, partner_id=7)
        order = await service.set_status(42, "shipped", partner_id=7)
    """

    def __init__(
        self,
        gateway: OrderGateway,
        result_cache: Optional[ResultSetCache] = None,
        resolver: Optional[OrderResolver] = None,
    ):
        self.gateway = gateway
        self.result_cache = result_cache or get_result_cache()
        self.resolver = resolver or OrderResolver(gateway, self.result_cache)

    # ==================== READS ====================

    async def list_orders(
        self,
        partner_id: Optional[int],
        page_size: int = 10,
        page: int = 1,
        state: Optional[NativeOrderState] = None,
    ) -> List[Order]:
        """
        Load one page of the partner's order history.

        Page 1 replaces the cached result set; later pages are appended to it.
        Returns only the requested page.
        """
        if page < 1:
            raise ValueError(f"Page must be >= 1, got {page}")

        order_filter = OrderFilter(partner_id=partner_id, state=state, limit=page_size, offset=(page - 1) * page_size)
        orders = await self.gateway.search_orders(
            build_domain(order_filter), limit=order_filter.limit, offset=order_filter.offset
        )

        descriptor = QueryDescriptor.create(
            ORDERS_PAGED, partner_id, page_size, state=state.value if state else None
        )
        if page == 1:
            await self.result_cache.set(descriptor, orders)
        else:
            await self.result_cache.append_page(descriptor, orders)

        logger.debug(f"Loaded {len(orders)} orders for partner {partner_id} (page {page}, size {page_size})")
        return orders

    async def list_recent_orders(self, partner_id: Optional[int], limit: int = 20) -> List[Order]:
        """Simple (non-paged) list of the partner's latest orders."""
        order_filter = OrderFilter(partner_id=partner_id, limit=limit)
        orders = await self.gateway.search_orders(build_domain(order_filter), limit=limit)
        await self.result_cache.set(QueryDescriptor.create(ORDERS_SIMPLE, partner_id, limit), orders)
        return orders

    async def get_order(self, order_id: int, partner_id: Optional[int] = None) -> Order:
        """Order detail; see OrderResolver.resolve for the read order."""
        return await self.resolver.resolve(order_id, partner_id)

    # ==================== WRITES ====================

    async def set_status(
        self,
        order_id: int,
        status: Union[OrderStatus, str],
        partner_id: Optional[int] = None,
    ) -> Order:
        """
        Move an order to a new effective status.

        The current note is read fresh from the backend so tags written by
        other clients are not lost.

        Raises:
            AnnotationValueError: if `status` is not a valid status code
        """
        code = normalize_status_code(status)
        current = await self.gateway.read_order(order_id)
        encoded = encode_status(code, current.note)

        await self.gateway.write_order(
            order_id, {"state": encoded.native_state.value, "note": encoded.annotation}
        )
        logger.info(f"Order {order_id} status set to {code} (native {encoded.native_state.value})")

        return await self._after_write(current, encoded.native_state.value, encoded.annotation, partner_id)

    async def set_payment(
        self,
        order_id: int,
        record: PaymentRecord,
        order_status: Optional[Union[OrderStatus, str]] = None,
        partner_id: Optional[int] = None,
    ) -> Order:
        """
        Attach a payment record to an order, replacing any earlier one.

        When `order_status` is given the lifecycle status is changed in the
        same write.

        Raises:
            AnnotationValueError: if a payment field contains ':' or a line
                break, or `order_status` is not a valid status code
        """
        check_payment_fields(record)
        if order_status is not None:
            order_status = normalize_status_code(order_status)

        current = await self.gateway.read_order(order_id)
        note = encode_payment(record, current.note)
        state = current.state
        values = {"note": note}

        if order_status is not None:
            encoded = encode_status(order_status, note)
            note = encoded.annotation
            state = encoded.native_state.value
            values = {"state": state, "note": note}

        await self.gateway.write_order(order_id, values)
        logger.info(f"Order {order_id} payment set to {record.provider}:{record.payment_id}:{record.status}")

        return await self._after_write(current, state, note, partner_id)

    async def cancel_order(
        self,
        order_id: int,
        reason: Optional[str] = None,
        partner_id: Optional[int] = None,
    ) -> Order:
        """
        Cancel an order through the backend action.

        Lifecycle tags are removed so the order reads as cancelled; the
        payment line and free text stay. A reason is appended as free text.
        """
        await self.gateway.cancel_order(order_id)
        current = await self.gateway.read_order(order_id)

        note = encode_status(OrderStatus.CANCEL, current.note).annotation
        if reason:
            note = f"{note}\n{reason}" if note else reason
        if note != current.note:
            await self.gateway.write_order(order_id, {"note": note})

        return await self._after_write(current, current.state, note, partner_id)

    async def confirm_order(self, order_id: int, partner_id: Optional[int] = None) -> Order:
        """Confirm a quotation through the backend action."""
        await self.gateway.confirm_order(order_id)
        current = await self.gateway.read_order(order_id)
        return await self._after_write(current, current.state, current.note, partner_id)

    async def _after_write(self, current: Order, state: str, note: str, partner_id: Optional[int]) -> Order:
        # Keep the image-bearing lines of a cached copy when one exists
        cached = await self.resolver.find_cached(current.id, partner_id)
        order_line = cached.order_line if cached is not None and cached.has_images else None

        await self.result_cache.invalidate_partner(partner_id if partner_id is not None else current.partner_id)
        return apply_annotation(current, state, note, order_line)

    # ==================== PAYMENTS ====================

    async def has_pending_payment(self, order_id: int, partner_id: Optional[int] = None) -> bool:
        """True if the order carries a payment that has not settled."""
        order = await self.get_order(order_id, partner_id)
        return is_pending(order.payment)

    async def get_orders_with_pending_payments(self, partner_id: Optional[int], limit: int = 100) -> List[Order]:
        """Orders still awaiting payment that carry an unsettled payment record."""
        order_filter = OrderFilter(partner_id=partner_id, limit=limit)
        orders = await self.gateway.search_orders(build_domain(order_filter), limit=limit)
        return [
            order for order in orders
            if is_pending(order.payment) and order.status == OrderStatus.WAITING_PAYMENT.value
        ]

    # ==================== ACTIVITIES ====================

    async def get_activities(self, partner_id: Optional[int], limit: int = 50) -> List[Activity]:
        """Timeline of the partner's recent orders, newest first."""
        orders = await self.list_recent_orders(partner_id, limit=20)
        activities = [build_activity(order) for order in orders]
        activities.sort(key=lambda activity: activity.date or "", reverse=True)
        return activities[:limit]


def build_activity(order: Order) -> Activity:
    """Timeline entry for one order, based on its effective status."""
    presentation = ACTIVITY_PRESENTATION.get(order.status)
    if presentation is not None:
        activity_type, title, icon, template = presentation
        description = template.format(name=order.name, items=order.total_items)
    else:
        activity_type = ActivityType.ORDER
        title = ACTIVITY_TITLES.get(order.status) or order.status_text or "Pesanan"
        icon = None
        description = f"Pesanan {order.name} - {order.total_items} produk"

    return Activity(
        id=f"order_{order.id}_{order.status}",
        type=activity_type,
        title=title,
        description=description,
        date=order.date_order,
        status=order.status,
        icon=icon,
        amount=order.amount_total,
        order_id=order.id,
    )


# Singleton instance
_order_service: Optional[OrderService] = None


def get_order_service() -> OrderService:
    """Get the order service singleton (shared so in-flight reads coalesce)."""
    global _order_service

    if _order_service is None:
        _order_service = OrderService(OrderGateway())

    return _order_service
