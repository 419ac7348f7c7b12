"""
Region Lookup API Endpoints

Indonesian address reference data for the checkout address form:
- Province / city / district / village hierarchy
- Postal code search
- Reference cache inspection and reset
"""

from fastapi import APIRouter, Query
from typing import List, Optional

from storefront.api.deps import Regions
from storefront.schemas.region import (
    CacheClearResponse,
    CacheInfo,
    City,
    District,
    DistrictPostalCodes,
    PostalCodeResult,
    Province,
    Village,
)

router = APIRouter()


@router.get("/provinces", response_model=List[Province])
async def list_provinces(service: Regions):
    """All provinces."""
    return await service.get_provinces()


@router.get("/cities/{province_id}", response_model=List[City])
async def list_cities(province_id: str, service: Regions):
    """Cities and regencies of a province."""
    return await service.get_cities(province_id)


@router.get("/districts/{city_id}", response_model=List[District])
async def list_districts(city_id: str, service: Regions):
    """Districts of a city or regency."""
    return await service.get_districts(city_id)


@router.get("/villages/{district_id}", response_model=List[Village])
async def list_villages(district_id: str, service: Regions):
    """Villages of a district."""
    return await service.get_villages(district_id)


@router.get("/postal-codes", response_model=List[PostalCodeResult])
async def search_postal_codes(
    service: Regions,
    q: str = Query(..., description="Place name, e.g. 'Menteng'"),
):
    """
    Search postal codes by place name.

    Queries shorter than two characters return an empty list.
    """
    return await service.search_postal_codes(q)


@router.get("/postal-codes/district", response_model=DistrictPostalCodes)
async def postal_codes_for_district(
    service: Regions,
    district: str = Query(..., min_length=2),
    city: Optional[str] = Query(None),
):
    """Postal codes of a district, optionally narrowed by its city."""
    codes = await service.get_postal_codes_for_district(district, city)
    return DistrictPostalCodes(district=district, city=city, postal_codes=codes)


@router.get("/cache", response_model=CacheInfo)
async def get_cache_info(service: Regions):
    """Reference cache entry counts."""
    return CacheInfo(**await service.get_cache_info())


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(service: Regions):
    """Drop all cached region and postal code data."""
    removed = await service.clear_cache()
    return CacheClearResponse(success=True, removed=removed)
