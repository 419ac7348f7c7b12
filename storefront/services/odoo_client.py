"""
Odoo JSON-RPC Client.

Thin transport for the commerce backend:
- Authentication (uid cached for the life of the client)
- `execute_kw` calls against any model

Every call is a POST to `{ODOO_URL}/jsonrpc`:

    {"jsonrpc": "2.0", "method": "call",
     "params": {"service": "object", "method": "execute_kw",
                "args": [db, uid, password, model, method, args, kwargs]},
     "id": 1}

HTTP-level failures surface as `httpx.HTTPError`; errors reported inside a
JSON-RPC response surface as `OdooRPCError`.
"""
import httpx
import itertools
import logging
from typing import Any, Dict, List, Optional

from storefront.config import settings

logger = logging.getLogger(__name__)


class OdooRPCError(Exception):
    """Error returned by the Odoo JSON-RPC endpoint."""

    def __init__(self, message: str, code: Optional[int] = None, data: Dict = None):
        self.message = message
        self.code = code
        self.data = data or {}
        super().__init__(f"Odoo RPC Error ({code}): {message}")

    @property
    def error_name(self) -> Optional[str]:
        """Server-side exception class, e.g. 'odoo.exceptions.MissingError'."""
        return self.data.get("name")


class OdooClient:
    """
    Client for the Odoo JSON-RPC API.

    Usage:
        client = OdooClient()

        orders = await client.execute_kw(
            "sale.order", "search_read", [],
            {"domain": [["partner_id", "=", 7]], "fields": ["id", "name"], "limit": 10},
        )
    """

    def __init__(
        self,
        url: Optional[str] = None,
        database: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (url or settings.ODOO_URL).rstrip("/")
        self.database = database or settings.ODOO_DATABASE
        self.username = username or settings.ODOO_USERNAME
        self.password = password or settings.ODOO_PASSWORD
        self.timeout = timeout or settings.ODOO_TIMEOUT
        self._transport = transport
        self._uid: Optional[int] = None
        self._request_ids = itertools.count(1)

    async def _call(self, service: str, method: str, *args: Any) -> Any:
        """Make a JSON-RPC call and return its `result` member."""
        payload = {
            "jsonrpc": "2.0",
            "method": "call",
            "params": {"service": service, "method": method, "args": list(args)},
            "id": next(self._request_ids),
        }

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            response = await client.post(f"{self.base_url}/jsonrpc", json=payload)

            if response.status_code >= 400:
                logger.error(f"Odoo HTTP error: {response.status_code} - {response.text}")
            response.raise_for_status()

            try:
                body = response.json()
            except ValueError as e:
                logger.error(f"Odoo returned a non-JSON response for {service}.{method}: {e}")
                raise OdooRPCError(message=f"Invalid JSON-RPC response: {e}") from e

        if not isinstance(body, dict):
            raise OdooRPCError(message=f"Invalid JSON-RPC response: expected an object, got {type(body).__name__}")

        error = body.get("error")
        if error:
            data = error.get("data") or {}
            message = data.get("message") or error.get("message") or "Unknown Odoo error"
            logger.error(f"Odoo RPC error in {service}.{method}: {message}")
            raise OdooRPCError(message=message, code=error.get("code"), data=data)

        return body.get("result")

    async def authenticate(self) -> int:
        """Log in and return the uid (cached after the first success)."""
        if self._uid:
            return self._uid

        uid = await self._call("common", "authenticate", self.database, self.username, self.password, {})
        if not uid:
            raise OdooRPCError(message=f"Authentication failed for user {self.username!r}")

        self._uid = uid
        logger.info(f"Authenticated with Odoo as uid {uid}")
        return uid

    async def execute_kw(
        self,
        model: str,
        method: str,
        args: Optional[List] = None,
        kwargs: Optional[Dict] = None,
    ) -> Any:
        """Call `method` on `model` through `object.execute_kw`."""
        uid = await self.authenticate()
        return await self._call(
            "object",
            "execute_kw",
            self.database,
            uid,
            self.password,
            model,
            method,
            args or [],
            kwargs or {},
        )


# Singleton client instance
_client_instance: Optional[OdooClient] = None


def get_odoo_client() -> OdooClient:
    """Get the Odoo client singleton."""
    global _client_instance

    if _client_instance is None:
        _client_instance = OdooClient()

    return _client_instance
