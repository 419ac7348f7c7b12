"""
Default Address Preference

The backend has no notion of a default shipping address, so the choice is
kept in the preference cache as one scalar per partner:

    @storefront:default_address_7 -> "15"

Storage failures are absorbed by the cache: a failed write is logged and a
failed read behaves as "no default set".
"""

import logging
from typing import Optional, Union

from storefront.services.reference_cache import TieredCache, get_preference_cache

logger = logging.getLogger(__name__)

NAMESPACE = "default_address"


class DefaultAddressService:
    """
    Service for the partner's default address id.
    """

    def __init__(self, cache: Optional[TieredCache] = None):
        self.cache = cache or get_preference_cache()

    async def set_default_address(self, address_id: Union[str, int], partner_id: Optional[int] = None) -> None:
        await self.cache.set(NAMESPACE, str(address_id), identifier=partner_id)
        logger.info(f"Default address for partner {partner_id} set to {address_id}")

    async def get_default_address_id(self, partner_id: Optional[int] = None) -> Optional[str]:
        return await self.cache.get(NAMESPACE, identifier=partner_id)

    async def clear_default_address(self, partner_id: Optional[int] = None) -> None:
        await self.cache.remove(NAMESPACE, identifier=partner_id)

    async def is_default_address(self, address_id: Union[str, int], partner_id: Optional[int] = None) -> bool:
        """Check if an address is the default one."""
        default_id = await self.get_default_address_id(partner_id)
        return default_id is not None and default_id == str(address_id)


# Singleton instance
_default_address_service: Optional[DefaultAddressService] = None


def get_default_address_service() -> DefaultAddressService:
    """Get the default address service singleton."""
    global _default_address_service

    if _default_address_service is None:
        _default_address_service = DefaultAddressService()

    return _default_address_service
