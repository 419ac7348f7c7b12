"""
Odoo client and sale order gateway tests.

The backend is simulated with httpx.MockTransport; each JSON-RPC call is
routed on (model, method).

Covers:
- Authentication and JSON-RPC / HTTP error surfacing
- List reads with product image enrichment (and tolerance of its failure)
- Single reads without images, not-found handling
- Raw record transformation
"""

import json

import httpx
import pytest

from storefront.services.odoo_client import OdooClient, OdooRPCError
from storefront.services.order_gateway import (
    OrderGateway,
    OrderNotFoundError,
    transform_order,
)


RAW_ORDER = {
    "id": 42,
    "name": "S00042",
    "partner_id": [7, "Budi"],
    "date_order": "2024-01-01 10:00:00",
    "state": "draft",
    "order_line": [420],
    "amount_untaxed": 150000.0,
    "amount_tax": 0.0,
    "amount_total": 150000.0,
    "currency_id": [12, "IDR"],
    "note": "[PAYMENT] dana:PAY1:PENDING\n[WAITING_PAYMENT] notes",
}

RAW_LINE = {
    "id": 420,
    "product_id": [142, "Cat Food 1kg"],
    "name": "Cat Food 1kg",
    "product_uom_qty": 2.0,
    "price_unit": 75000.0,
    "price_total": 150000.0,
    "price_subtotal": 150000.0,
    "discount": 0.0,
    "tax_id": [],
}


class FakeOdoo:
    """JSON-RPC endpoint routed on (model, method)."""

    def __init__(self):
        self.uid = 2
        self.routes = {}
        self.calls = []

    def route(self, model, method, result):
        self.routes[(model, method)] = result

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        params = payload["params"]

        if params["service"] == "common":
            self.calls.append(("common", params["method"]))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": self.uid})

        _db, _uid, _password, model, method, args, kwargs = params["args"]
        self.calls.append((model, method, args, kwargs))
        result = self.routes.get((model, method))
        if isinstance(result, httpx.Response):
            return result
        if callable(result):
            result = result(args, kwargs)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

    def calls_to(self, model, method):
        return [call for call in self.calls if call[:2] == (model, method)]


@pytest.fixture
def odoo():
    return FakeOdoo()


@pytest.fixture
def client(odoo):
    return OdooClient(
        url="http://odoo.test",
        database="shop",
        username="api",
        password="secret",
        transport=httpx.MockTransport(odoo.handler),
    )


@pytest.fixture
def odoo_gateway(client):
    return OrderGateway(client=client)


def rpc_error(message="Record does not exist", name="odoo.exceptions.MissingError"):
    return httpx.Response(200, json={
        "jsonrpc": "2.0",
        "id": 1,
        "error": {"code": 200, "message": "Odoo Server Error", "data": {"name": name, "message": message}},
    })


# ============================================================================
# CLIENT
# ============================================================================

class TestOdooClient:

    async def test_authenticates_once(self, client, odoo):
        odoo.route("sale.order", "search_read", [])

        await client.execute_kw("sale.order", "search_read", [], {"limit": 1})
        await client.execute_kw("sale.order", "search_read", [], {"limit": 1})

        assert odoo.calls.count(("common", "authenticate")) == 1

    async def test_failed_authentication(self, client, odoo):
        odoo.uid = False

        with pytest.raises(OdooRPCError):
            await client.authenticate()

    async def test_rpc_error(self, client, odoo):
        odoo.route("sale.order", "write", rpc_error())

        with pytest.raises(OdooRPCError) as exc_info:
            await client.execute_kw("sale.order", "write", [[42], {"note": "x"}])

        assert exc_info.value.message == "Record does not exist"
        assert exc_info.value.error_name == "odoo.exceptions.MissingError"
        assert exc_info.value.code == 200

    async def test_http_error(self, client, odoo):
        odoo.route("sale.order", "write", httpx.Response(500, text="Internal Server Error"))

        with pytest.raises(httpx.HTTPStatusError):
            await client.execute_kw("sale.order", "write", [[42], {"note": "x"}])

    async def test_non_json_body(self, client, odoo):
        odoo.route("sale.order", "read", httpx.Response(200, text="<html>Maintenance</html>"))

        with pytest.raises(OdooRPCError) as exc_info:
            await client.execute_kw("sale.order", "read", [[42]])

        assert "Invalid JSON-RPC response" in exc_info.value.message

    async def test_non_object_body(self, client, odoo):
        odoo.route("sale.order", "read", httpx.Response(200, json=[1, 2, 3]))

        with pytest.raises(OdooRPCError):
            await client.execute_kw("sale.order", "read", [[42]])


# ============================================================================
# TRANSFORMATION
# ============================================================================

class TestTransformOrder:

    def test_decorates_status_and_payment(self):
        order = transform_order({**RAW_ORDER, "order_line": [dict(RAW_LINE)]})

        assert order.status == "waiting_payment"
        assert order.status_text == "Menunggu Pembayaran"
        assert order.payment.payment_id == "PAY1"
        assert order.partner_id == 7
        assert order.partner_name == "Budi"
        assert order.currency == "IDR"
        assert order.order_line[0].product_name == "Cat Food 1kg"

    def test_odoo_false_values(self):
        order = transform_order({"id": 1, "name": False, "note": False, "partner_id": False, "state": "sale"})

        assert order.note == ""
        assert order.partner_id is None
        assert order.status == "sale"
        assert order.transaction_id == "TRX-1"
        assert order.payment is None

    def test_bare_line_ids_are_dropped(self):
        order = transform_order({**RAW_ORDER, "order_line": [420]})

        assert order.order_line == []


# ============================================================================
# GATEWAY READS
# ============================================================================

class TestGatewayReads:

    def setup_backend(self, odoo, images=True):
        odoo.route("sale.order", "search_read", lambda args, kwargs: [dict(RAW_ORDER)])
        odoo.route("sale.order.line", "read", lambda args, kwargs: [dict(RAW_LINE)])
        if images:
            odoo.route("product.product", "read", [{"id": 142, "image_128": "aW1hZ2U="}])

    async def test_list_read_enriches_images(self, odoo_gateway, odoo):
        self.setup_backend(odoo)

        orders = await odoo_gateway.search_orders([["partner_id", "=", 7]], limit=10)

        assert len(orders) == 1
        assert orders[0].order_line[0].image_128 == "aW1hZ2U="
        search = odoo.calls_to("sale.order", "search_read")[0]
        assert search[3]["order"] == "date_order desc"
        assert search[3]["limit"] == 10

    async def test_image_failure_is_tolerated(self, odoo_gateway, odoo):
        self.setup_backend(odoo, images=False)
        odoo.route("product.product", "read", rpc_error("Access denied", "odoo.exceptions.AccessError"))

        orders = await odoo_gateway.search_orders([], limit=10)

        assert orders[0].order_line[0].image_128 is None
        assert orders[0].status == "waiting_payment"

    async def test_single_read_skips_images(self, odoo_gateway, odoo):
        self.setup_backend(odoo)

        order = await odoo_gateway.read_order(42)

        assert order.id == 42
        assert order.order_line[0].image_128 is None
        assert odoo.calls_to("product.product", "read") == []
        assert odoo.calls_to("sale.order", "search_read")[0][3]["domain"] == [["id", "=", 42]]

    async def test_single_read_not_found(self, odoo_gateway, odoo):
        odoo.route("sale.order", "search_read", [])

        with pytest.raises(OrderNotFoundError) as exc_info:
            await odoo_gateway.read_order(404)

        assert exc_info.value.order_id == 404

    async def test_empty_list(self, odoo_gateway, odoo):
        odoo.route("sale.order", "search_read", [])

        assert await odoo_gateway.search_orders([]) == []
        assert odoo.calls_to("sale.order.line", "read") == []

    @pytest.mark.parametrize("record", [
        {"name": "S00042", "state": "sale"},
        {**RAW_ORDER, "amount_total": "a lot"},
    ])
    async def test_malformed_record_is_a_backend_error(self, odoo_gateway, odoo, record):
        odoo.route("sale.order", "search_read", lambda args, kwargs: [dict(record)])
        odoo.route("sale.order.line", "read", lambda args, kwargs: [dict(RAW_LINE)])

        with pytest.raises(OdooRPCError):
            await odoo_gateway.read_order(42)


# ============================================================================
# GATEWAY WRITES
# ============================================================================

class TestGatewayWrites:

    async def test_write(self, odoo_gateway, odoo):
        odoo.route("sale.order", "write", True)

        assert await odoo_gateway.write_order(42, {"state": "sale", "note": "[SHIPPED]"}) is True
        call = odoo.calls_to("sale.order", "write")[0]
        assert call[2] == [[42], {"state": "sale", "note": "[SHIPPED]"}]

    async def test_write_error_propagates(self, odoo_gateway, odoo):
        odoo.route("sale.order", "write", rpc_error())

        with pytest.raises(OdooRPCError):
            await odoo_gateway.write_order(42, {"note": "x"})

    async def test_actions(self, odoo_gateway, odoo):
        odoo.route("sale.order", "action_confirm", True)
        odoo.route("sale.order", "action_cancel", True)

        await odoo_gateway.confirm_order(42)
        await odoo_gateway.cancel_order(42)

        assert odoo.calls_to("sale.order", "action_confirm")[0][2] == [[42]]
        assert odoo.calls_to("sale.order", "action_cancel")[0][2] == [[42]]
