from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


# ==================== REGION HIERARCHY ====================

class Province(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(coerce_numbers_to_str=True)


class City(BaseModel):
    """Regency / city (kabupaten / kota)."""
    id: str
    province_id: str
    name: str

    model_config = ConfigDict(coerce_numbers_to_str=True)


class District(BaseModel):
    """District (kecamatan)."""
    id: str
    regency_id: str
    name: str

    model_config = ConfigDict(coerce_numbers_to_str=True)


class Village(BaseModel):
    """Village (kelurahan / desa)."""
    id: str
    district_id: str
    name: str

    model_config = ConfigDict(coerce_numbers_to_str=True)


# ==================== POSTAL CODES ====================

class PostalCodeResult(BaseModel):
    """One postal code search hit."""
    village: str = ""
    district: str = ""
    regency: str = ""
    province: str = ""
    postal_code: str = Field(..., description="5-digit postal code")

    model_config = ConfigDict(coerce_numbers_to_str=True)


class DistrictPostalCodes(BaseModel):
    district: str
    city: Optional[str] = None
    postal_codes: List[str] = Field(default_factory=list)


# ==================== CACHE INFO ====================

class CacheInfo(BaseModel):
    memory_size: int
    persistent_keys: int
    total_size: str


class CacheClearResponse(BaseModel):
    success: bool
    removed: int
