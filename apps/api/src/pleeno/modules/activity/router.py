"""
Activity Feed Router

Endpoints:
- GET /activity-log - Recent activity in the caller's agency
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_current_user, get_tenant_db
from pleeno.core.errors import raise_http_error
from pleeno.modules.activity import service
from pleeno.modules.activity.models import EntityType
from pleeno.modules.activity.schemas import ActivityFeedResponse

router = APIRouter()


@router.get("", response_model=ActivityFeedResponse, summary="Recent Activity")
async def get_activity_feed(
    entity_type: EntityType | None = Query(None, description="Only this kind of entity"),
    limit: int = Query(50, ge=1, le=200, description="Maximum entries to return"),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> ActivityFeedResponse:
    try:
        items = await service.get_feed(db, user.agency_id, entity_type=entity_type, limit=limit)
        return ActivityFeedResponse(items=items)
    except Exception as e:
        raise_http_error(e, "Error loading activity feed")
