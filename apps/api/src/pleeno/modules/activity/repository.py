"""
Activity Log Repository
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.activity.models import ActivityAction, ActivityLog, EntityType
from pleeno.modules.users.models import User


def add(
    db: AsyncSession,
    *,
    agency_id: UUID,
    user_id: UUID | None,
    entity_type: EntityType,
    entity_id: UUID,
    action: ActivityAction,
    description: str,
    details: dict[str, Any] | None = None,
) -> ActivityLog:
    """Stage an entry on the session. The caller's commit persists it."""
    entry = ActivityLog(
        agency_id=agency_id,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        description=description,
        details=details,
    )
    db.add(entry)
    return entry


async def list_recent(
    db: AsyncSession,
    agency_id: UUID,
    *,
    entity_type: EntityType | None = None,
    entity_ids: list[UUID] | None = None,
    since: datetime | None = None,
    search: str | None = None,
    limit: int = 50,
) -> list[tuple[ActivityLog, str | None]]:
    """
    Newest entries first, each with the acting user's name (None for system).

    ``search`` matches the description or the user name, case-insensitively.
    """
    query = (
        select(ActivityLog, User.full_name)
        .outerjoin(User, User.id == ActivityLog.user_id)
        .where(ActivityLog.agency_id == agency_id)
    )
    if entity_type:
        query = query.where(ActivityLog.entity_type == entity_type)
    if entity_ids is not None:
        query = query.where(ActivityLog.entity_id.in_(entity_ids))
    if since is not None:
        query = query.where(ActivityLog.created_at >= since)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(ActivityLog.description.ilike(pattern), User.full_name.ilike(pattern))
        )

    result = await db.execute(query.order_by(ActivityLog.created_at.desc()).limit(limit))
    return [(entry, user_name) for entry, user_name in result.all()]
