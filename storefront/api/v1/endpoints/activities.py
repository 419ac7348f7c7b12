from typing import Optional

from fastapi import APIRouter, Query

from storefront.api.deps import Orders
from storefront.schemas.order import ActivityListResponse


router = APIRouter()


@router.get("", response_model=ActivityListResponse)
async def get_activities(
    service: Orders,
    partner_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=100),
):
    """Activity timeline built from the customer's recent orders, newest first."""
    activities = await service.get_activities(partner_id, limit=limit)
    return ActivityListResponse(items=activities)
