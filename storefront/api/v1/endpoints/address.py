from typing import Optional

from fastapi import APIRouter, Query

from storefront.api.deps import DefaultAddresses
from storefront.schemas.address import DefaultAddressResponse, DefaultAddressUpdate

router = APIRouter()


@router.get("/default", response_model=DefaultAddressResponse)
async def get_default_address(
    service: DefaultAddresses,
    partner_id: Optional[int] = Query(None),
):
    """Get the customer's default shipping address id, if one is set."""
    address_id = await service.get_default_address_id(partner_id)
    return DefaultAddressResponse(partner_id=partner_id, address_id=address_id, is_set=address_id is not None)


@router.put("/default", response_model=DefaultAddressResponse)
async def set_default_address(
    data: DefaultAddressUpdate,
    service: DefaultAddresses,
):
    """Mark an address as the customer's default."""
    await service.set_default_address(data.address_id, data.partner_id)
    return DefaultAddressResponse(partner_id=data.partner_id, address_id=data.address_id, is_set=True)


@router.delete("/default", response_model=DefaultAddressResponse)
async def clear_default_address(
    service: DefaultAddresses,
    partner_id: Optional[int] = Query(None),
):
    """Forget the customer's default address."""
    await service.clear_default_address(partner_id)
    return DefaultAddressResponse(partner_id=partner_id)
