from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class DefaultAddressUpdate(BaseModel):
    """Mark an address as the partner's default."""
    address_id: str = Field(..., min_length=1, description="Backend address (res.partner) id")
    partner_id: Optional[int] = None

    model_config = ConfigDict(coerce_numbers_to_str=True)


class DefaultAddressResponse(BaseModel):
    partner_id: Optional[int] = None
    address_id: Optional[str] = None
    is_set: bool = False
