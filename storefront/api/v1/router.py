from fastapi import APIRouter

from storefront.api.v1.endpoints import (
    # Orders & timeline
    orders,
    activities,
    # Address reference data
    regions,
    address,
)

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Orders ====================
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)
api_router.include_router(
    activities.router,
    prefix="/activities",
    tags=["Activities"]
)

# ==================== Addresses ====================
api_router.include_router(
    regions.router,
    prefix="/regions",
    tags=["Regions"]
)
api_router.include_router(
    address.router,
    prefix="/address",
    tags=["Address"]
)
