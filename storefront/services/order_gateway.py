"""
Sale Order Gateway.

Reads and writes `sale.order` records through the Odoo client and turns raw
records into decorated `Order` models.

Two read paths exist and they do NOT return the same shape:
- List reads (`search_orders`) enrich every line with its product image.
- Single reads (`read_order`) skip the image lookup entirely.

Callers that need a consistent view go through the order resolver, which
prefers list results over single reads.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from storefront.schemas.order import Order, OrderFilter, OrderLine
from storefront.services.odoo_client import OdooClient, OdooRPCError, get_odoo_client
from storefront.services.payment_codec import decode_payment
from storefront.services.status_codec import decode_status

logger = logging.getLogger(__name__)

SALE_ORDER = "sale.order"
SALE_ORDER_LINE = "sale.order.line"
PRODUCT = "product.product"

ORDER_FIELDS = [
    "id",
    "name",
    "partner_id",
    "date_order",
    "state",
    "order_line",
    "amount_untaxed",
    "amount_tax",
    "amount_total",
    "currency_id",
    "note",
]

LINE_FIELDS = [
    "id",
    "product_id",
    "name",
    "product_uom_qty",
    "price_unit",
    "price_total",
    "price_subtotal",
    "discount",
    "tax_id",
]


class OrderResolutionError(Exception):
    """An order could not be produced from any read path."""

    def __init__(self, order_id: int, message: str):
        self.order_id = order_id
        self.message = message
        super().__init__(message)


class OrderNotFoundError(OrderResolutionError):
    """The backend has no order with this id."""

    def __init__(self, order_id: int):
        super().__init__(order_id, f"Order {order_id} not found")


# ==================== TRANSFORMATION ====================

def _m2o_id(value: Any) -> Optional[int]:
    """Id part of an Odoo many2one value ([id, name] or False)."""
    if isinstance(value, (list, tuple)) and value:
        return value[0]
    return None


def _m2o_name(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)) and len(value) > 1:
        return value[1]
    return None


def _text(value: Any) -> str:
    # Odoo sends False for empty char/text fields
    return value if isinstance(value, str) else ""


def transform_line(raw: Dict) -> OrderLine:
    """Convert a raw sale.order.line record."""
    return OrderLine(
        id=raw.get("id"),
        product_id=_m2o_id(raw.get("product_id")),
        product_name=_m2o_name(raw.get("product_id")) or _text(raw.get("name")) or "Product",
        quantity=raw.get("product_uom_qty") or 0,
        price_unit=raw.get("price_unit") or 0,
        price_subtotal=raw.get("price_subtotal") or 0,
        price_total=raw.get("price_total") or 0,
        discount=raw.get("discount") or None,
        tax_ids=list(raw.get("tax_id") or []),
        image_128=_text(raw.get("image_128")) or None,
    )


def transform_order(raw: Dict) -> Order:
    """
    Convert a raw sale.order record into a decorated Order.

    `order_line` may hold line records (dicts) or bare ids; bare ids are
    dropped. Effective status and payment are decoded from `state` + `note`.
    """
    note = _text(raw.get("note"))
    state = _text(raw.get("state")) or "draft"
    effective = decode_status(state, note)

    return Order(
        id=raw["id"],
        name=_text(raw.get("name")),
        partner_id=_m2o_id(raw.get("partner_id")),
        partner_name=_m2o_name(raw.get("partner_id")),
        date_order=_text(raw.get("date_order")) or None,
        state=state,
        note=note,
        status=effective.code,
        status_text=effective.label,
        payment=decode_payment(note),
        order_line=[transform_line(line) for line in raw.get("order_line") or [] if isinstance(line, dict)],
        amount_untaxed=raw.get("amount_untaxed") or 0,
        amount_tax=raw.get("amount_tax") or 0,
        amount_total=raw.get("amount_total") or 0,
        currency=_m2o_name(raw.get("currency_id")),
    )


def _to_order(raw: Dict) -> Order:
    try:
        return transform_order(raw)
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Malformed sale.order record {raw.get('id')!r}: {e}")
        raise OdooRPCError(message=f"Malformed sale.order record: {e}") from e


def apply_annotation(
    order: Order,
    state: str,
    note: str,
    order_line: Optional[List[OrderLine]] = None,
) -> Order:
    """Copy of `order` re-decorated for a new state and note."""
    effective = decode_status(state, note)
    update = {
        "state": state,
        "note": note,
        "status": effective.code,
        "status_text": effective.label,
        "payment": decode_payment(note),
    }
    if order_line is not None:
        update["order_line"] = order_line
    return order.model_copy(update=update)


def build_domain(order_filter: OrderFilter) -> List[List]:
    """Odoo search domain for a list filter."""
    domain = []
    if order_filter.state:
        domain.append(["state", "=", order_filter.state.value])
    if order_filter.partner_id:
        domain.append(["partner_id", "=", order_filter.partner_id])
    if order_filter.date_from:
        domain.append(["date_order", ">=", order_filter.date_from])
    if order_filter.date_to:
        domain.append(["date_order", "<=", order_filter.date_to])
    return domain


# ==================== GATEWAY ====================

class OrderGateway:
    """
    sale.order access for the storefront.

    Usage:
        gateway = OrderGateway()

        orders = await gateway.search_orders(build_domain(OrderFilter(partner_id=7)), limit=10)
        order = await gateway.read_order(42)
        await gateway.write_order(42, {"note": "[SHIPPED]"})
    """

    def __init__(self, client: Optional[OdooClient] = None):
        self.client = client or get_odoo_client()

    # ==================== READS ====================

    async def search_orders(self, domain: List, limit: int = 20, offset: int = 0) -> List[Order]:
        """List read: orders newest first, lines enriched with product images."""
        raw_orders = await self.client.execute_kw(
            SALE_ORDER,
            "search_read",
            [],
            {
                "domain": domain,
                "fields": ORDER_FIELDS,
                "limit": limit,
                "offset": offset,
                "order": "date_order desc",
            },
        )
        raw_orders = raw_orders or []

        line_ids = [line_id for raw in raw_orders for line_id in raw.get("order_line") or []]
        lines_by_id = await self._read_lines(line_ids)
        await self._attach_images(lines_by_id.values())

        for raw in raw_orders:
            raw["order_line"] = [lines_by_id[i] for i in raw.get("order_line") or [] if i in lines_by_id]

        return [_to_order(raw) for raw in raw_orders]

    async def read_order(self, order_id: int) -> Order:
        """
        Single read: one order with its lines but without images.

        Raises:
            OrderNotFoundError: if the backend has no such order
        """
        raw_orders = await self.client.execute_kw(
            SALE_ORDER,
            "search_read",
            [],
            {"domain": [["id", "=", order_id]], "fields": ORDER_FIELDS, "limit": 1},
        )
        if not raw_orders:
            raise OrderNotFoundError(order_id)

        raw = raw_orders[0]
        lines_by_id = await self._read_lines(raw.get("order_line") or [])
        raw["order_line"] = [lines_by_id[i] for i in raw.get("order_line") or [] if i in lines_by_id]
        return _to_order(raw)

    async def _read_lines(self, line_ids: List[int]) -> Dict[int, Dict]:
        if not line_ids:
            return {}
        lines = await self.client.execute_kw(
            SALE_ORDER_LINE,
            "read",
            [line_ids],
            {"fields": LINE_FIELDS},
        )
        return {line["id"]: line for line in lines or []}

    async def _attach_images(self, lines: Iterable[Dict]) -> None:
        """Copy product images onto lines. Failures leave lines image-less."""
        lines = list(lines)
        product_ids = sorted({_m2o_id(line.get("product_id")) for line in lines} - {None})
        if not product_ids:
            return

        try:
            products = await self.client.execute_kw(
                PRODUCT,
                "read",
                [product_ids],
                {"fields": ["id", "image_128"]},
            )
        except Exception as e:
            logger.warning(f"Product image lookup failed, continuing without images: {e}")
            return

        images = {product["id"]: product["image_128"] for product in products or [] if product.get("image_128")}
        for line in lines:
            image = images.get(_m2o_id(line.get("product_id")))
            if image:
                line["image_128"] = image

    # ==================== WRITES ====================

    async def write_order(self, order_id: int, values: Dict[str, Any]) -> bool:
        """Write fields on one order."""
        result = await self.client.execute_kw(SALE_ORDER, "write", [[order_id], values])
        logger.info(f"Order {order_id} updated: {sorted(values)}")
        return bool(result)

    async def confirm_order(self, order_id: int) -> None:
        await self.client.execute_kw(SALE_ORDER, "action_confirm", [[order_id]])
        logger.info(f"Order {order_id} confirmed")

    async def cancel_order(self, order_id: int) -> None:
        await self.client.execute_kw(SALE_ORDER, "action_cancel", [[order_id]])
        logger.info(f"Order {order_id} cancelled")
