from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App Settings
    APP_NAME: str = "Storefront Order Layer"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:8081",  # Expo dev server
        "*",
    ]

    # Odoo backend (JSON-RPC)
    ODOO_URL: str = "http://localhost:8069"
    ODOO_DATABASE: str = "odoo"
    ODOO_USERNAME: str = ""  # API user login
    ODOO_PASSWORD: str = ""  # API user password or API key
    ODOO_TIMEOUT: float = 30.0  # Seconds per JSON-RPC call

    # Durable cache tier
    REDIS_URL: Optional[str] = None  # e.g., "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True

    # Reference cache (regions, postal codes, preferences)
    REFERENCE_CACHE_PREFIX: str = "@location_cache_"
    PREFERENCE_CACHE_PREFIX: str = "@storefront:"
    REFERENCE_CACHE_DEFAULT_TTL: int = 7 * 24 * 3600  # 7 days for region hierarchy
    POSTAL_CODE_CACHE_TTL: int = 24 * 3600  # 1 day for postal codes
    DEFAULT_ADDRESS_TTL: int = 365 * 24 * 3600  # Default address preference

    # Order result sets
    ORDER_RESULT_CACHE_TTL: int = 300  # 5 minutes, matches client gc time
    ORDER_LIST_PAGE_SIZES: list[int] = [5, 10, 20]  # Page sizes used by paged order screens
    ORDER_SIMPLE_LIST_LIMITS: list[int] = [20]  # Limits used by the simple order list
    ORDER_FETCH_RETRIES: int = 1  # Retries of the single-order network fallback

    # Region reference data
    REGION_API_URL: str = "https://www.emsifa.com/api-wilayah-indonesia"
    POSTAL_CODE_API_URL: str = "https://kodepos.vercel.app"
    REGION_API_TIMEOUT: float = 10.0

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('ORDER_LIST_PAGE_SIZES', 'ORDER_SIMPLE_LIST_LIMITS', mode='before')
    @classmethod
    def parse_int_list(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [int(size.strip()) for size in v.split(',') if size.strip()]
        return v

    def ttl_for_namespace(self, namespace: str) -> int:
        """Default reference-cache TTL (seconds) for a namespace."""
        if namespace == "postal_codes":
            return self.POSTAL_CODE_CACHE_TTL
        if namespace == "default_address":
            return self.DEFAULT_ADDRESS_TTL
        return self.REFERENCE_CACHE_DEFAULT_TTL

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
