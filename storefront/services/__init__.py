# Services module
from storefront.services.order_service import OrderService
from storefront.services.order_resolver import OrderResolver
from storefront.services.order_gateway import OrderGateway
from storefront.services.odoo_client import OdooClient

# Caches
from storefront.services.cache_service import ResultSetCache
from storefront.services.reference_cache import TieredCache

# Address reference data
from storefront.services.region_service import RegionService
from storefront.services.address_service import DefaultAddressService

__all__ = [
    "OrderService",
    "OrderResolver",
    "OrderGateway",
    "OdooClient",
    # Caches
    "ResultSetCache",
    "TieredCache",
    # Addresses
    "RegionService",
    "DefaultAddressService",
]
