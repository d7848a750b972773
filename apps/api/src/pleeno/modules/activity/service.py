"""
Activity Log Service

``log_activity`` is called by the other services inside their own
transaction, so an entry is only persisted when the change it describes is.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.activity import repository
from pleeno.modules.activity.models import ActivityAction, EntityType
from pleeno.modules.activity.schemas import ActivityEntry

logger = logging.getLogger(__name__)

SYSTEM_USER_NAME = "System"
MAX_FEED_LIMIT = 200


def log_activity(
    db: AsyncSession,
    *,
    agency_id: UUID,
    user_id: UUID | None,
    entity_type: EntityType,
    entity_id: UUID,
    action: ActivityAction,
    description: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    """
    Record an activity entry on the current session.

    Args:
        user_id: Acting user, or None for system actions
        metadata: JSON-serialisable details (amounts as strings)
    """
    repository.add(
        db,
        agency_id=agency_id,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        description=description,
        details=metadata,
    )
    logger.debug(f"Activity {entity_type.value}/{action.value} on {entity_id}")


async def get_feed(
    db: AsyncSession,
    agency_id: UUID,
    *,
    entity_type: EntityType | None = None,
    entity_ids: list[UUID] | None = None,
    since: datetime | None = None,
    search: str | None = None,
    limit: int = 50,
) -> list[ActivityEntry]:
    limit = min(max(1, limit), MAX_FEED_LIMIT)
    rows = await repository.list_recent(
        db,
        agency_id,
        entity_type=entity_type,
        entity_ids=entity_ids,
        since=since,
        search=search or None,
        limit=limit,
    )
    return [
        ActivityEntry(
            id=entry.id,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            action=entry.action,
            description=entry.description,
            metadata=entry.details,
            user_id=entry.user_id,
            user_name=user_name or SYSTEM_USER_NAME,
            created_at=entry.created_at,
        )
        for entry, user_name in rows
    ]
