from typing import Annotated

from fastapi import Depends

from storefront.services.address_service import DefaultAddressService, get_default_address_service
from storefront.services.order_service import OrderService, get_order_service
from storefront.services.region_service import RegionService, get_region_service


# Type aliases for cleaner endpoint signatures
Orders = Annotated[OrderService, Depends(get_order_service)]
Regions = Annotated[RegionService, Depends(get_region_service)]
DefaultAddresses = Annotated[DefaultAddressService, Depends(get_default_address_service)]
