"""
Region Service - Indonesian Administrative Regions & Postal Codes

Provides address reference data for the storefront checkout:
- Province -> city (regency) -> district -> village hierarchy
- Postal code search by place name

Every lookup reads through the tiered reference cache. The region
hierarchy is kept for a week, postal code searches for a day.

Upstream failures raise RegionLookupError; nothing is cached for them.
"""

import logging
import httpx
from pydantic import BaseModel, ValidationError
from typing import Any, Dict, List, Optional, Type

from storefront.config import settings
from storefront.schemas.region import City, District, PostalCodeResult, Province, Village
from storefront.services.reference_cache import TieredCache, get_reference_cache

logger = logging.getLogger(__name__)

MIN_POSTAL_QUERY_LENGTH = 2


class RegionLookupError(Exception):
    """Region or postal code API error."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.message = message
        self.status_code = status_code
        super().__init__(f"Region lookup failed for {url}: {message}")


class RegionService:
    """
    Service for region hierarchy and postal code lookups.

    Usage:
        service = RegionService()

        provinces = await service.get_provinces()
        cities = await service.get_cities("31")
        hits = await service.search_postal_codes("Menteng")
    """

    def __init__(
        self,
        cache: Optional[TieredCache] = None,
        base_url: Optional[str] = None,
        postal_code_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cache = cache or get_reference_cache()
        self.base_url = (base_url or settings.REGION_API_URL).rstrip("/")
        self.postal_code_url = (postal_code_url or settings.POSTAL_CODE_API_URL).rstrip("/")
        self.timeout = timeout or settings.REGION_API_TIMEOUT
        self._transport = transport

    async def _get_json(self, url: str, params: Optional[Dict] = None) -> Any:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers={"Accept": "application/json"})
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Region API error: {e.response.status_code} - {url}")
            raise RegionLookupError(url, str(e), status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"Region API request failed: {url}: {e}")
            raise RegionLookupError(url, str(e)) from e
        except ValueError as e:
            logger.error(f"Region API returned invalid JSON: {url}")
            raise RegionLookupError(url, f"Invalid JSON response: {e}") from e

    async def _load_models(self, url: str, model: Type[BaseModel]) -> List[Dict]:
        """Fetch a JSON list and return it as validated, cacheable dicts."""
        return _validate_items(url, await self._get_json(url), model)

    # ==================== REGION HIERARCHY ====================

    async def get_provinces(self) -> List[Province]:
        """All provinces."""
        data = await self.cache.get_or_load(
            "provinces",
            lambda: self._load_models(f"{self.base_url}/api/provinces.json", Province),
        )
        return [Province(**item) for item in data]

    async def get_cities(self, province_id: str) -> List[City]:
        """Cities and regencies of a province."""
        data = await self.cache.get_or_load(
            "cities",
            lambda: self._load_models(f"{self.base_url}/api/regencies/{province_id}.json", City),
            identifier=province_id,
        )
        return [City(**item) for item in data]

    async def get_districts(self, city_id: str) -> List[District]:
        """Districts of a city or regency."""
        data = await self.cache.get_or_load(
            "districts",
            lambda: self._load_models(f"{self.base_url}/api/districts/{city_id}.json", District),
            identifier=city_id,
        )
        return [District(**item) for item in data]

    async def get_villages(self, district_id: str) -> List[Village]:
        """Villages of a district."""
        data = await self.cache.get_or_load(
            "villages",
            lambda: self._load_models(f"{self.base_url}/api/villages/{district_id}.json", Village),
            identifier=district_id,
        )
        return [Village(**item) for item in data]

    # ==================== POSTAL CODES ====================

    async def search_postal_codes(self, query: str) -> List[PostalCodeResult]:
        """
        Search postal codes by place name.

        Queries shorter than two characters return nothing without a
        request. Empty results are not cached.
        """
        query = (query or "").strip()
        if len(query) < MIN_POSTAL_QUERY_LENGTH:
            return []

        cache_key = query.lower()
        cached = await self.cache.get("postal_codes", cache_key)
        if cached is not None:
            return [PostalCodeResult(**item) for item in cached]

        url = f"{self.postal_code_url}/search"
        body = await self._get_json(url, params={"q": query})
        items = (body.get("data") or []) if isinstance(body, dict) else []
        results = _validate_items(url, items, PostalCodeResult)

        if results:
            await self.cache.set("postal_codes", results, cache_key)

        logger.debug(f"Postal code search {query!r}: {len(results)} results")
        return [PostalCodeResult(**item) for item in results]

    async def get_postal_codes_for_district(self, district_name: str, city_name: Optional[str] = None) -> List[str]:
        """
        Postal codes of a district, trying several name combinations.

        The first query variation with results wins. Returns unique codes in
        result order, or an empty list if no variation matches.
        """
        district_name = district_name.strip()
        city_name = city_name.strip() if city_name else None

        queries = [district_name]
        if city_name:
            queries += [f"{district_name} {city_name}", f"{city_name} {district_name}"]
            if city_name.upper().startswith("KOTA "):
                bare_city = city_name[5:].strip()
                queries += [f"{district_name} {bare_city}", f"{bare_city} {district_name}", bare_city]

        for query in dict.fromkeys(queries):
            results = await self.search_postal_codes(query)
            if results:
                return list(dict.fromkeys(item.postal_code for item in results))

        logger.warning(f"No postal codes found for district {district_name!r} in {city_name!r}")
        return []

    async def validate_postal_code(self, postal_code: str, city_name: Optional[str] = None) -> bool:
        """True if a search for the city (or the code itself) returns the code."""
        results = await self.search_postal_codes(city_name or postal_code)
        return any(item.postal_code == postal_code for item in results)

    # ==================== CACHE ====================

    async def get_cache_info(self) -> dict:
        return await self.cache.get_cache_info()

    async def clear_cache(self) -> int:
        return await self.cache.clear_all()


def _validate_items(url: str, items: Any, model: Type[BaseModel]) -> List[Dict]:
    try:
        return [model.model_validate(item).model_dump() for item in items]
    except (TypeError, ValidationError) as e:
        logger.error(f"Region API returned an unexpected shape: {url}: {e}")
        raise RegionLookupError(url, f"Unexpected response shape: {e}") from e


# Singleton instance
_region_service: Optional[RegionService] = None


def get_region_service() -> RegionService:
    """Get the region service singleton."""
    global _region_service

    if _region_service is None:
        _region_service = RegionService()

    return _region_service
