"""Activity feed schemas."""

import enum
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from pleeno.modules.activity.models import ActivityAction, EntityType


class ActivityEntry(BaseModel):
    id: UUID
    entity_type: EntityType
    entity_id: UUID
    action: ActivityAction
    description: str
    metadata: dict[str, Any] | None = None
    user_id: UUID | None
    user_name: str
    created_at: datetime


class ActivityFeedResponse(BaseModel):
    items: list[ActivityEntry]


class ActivityPeriod(str, enum.Enum):
    """Look-back window of an activity feed, in days."""

    LAST_7_DAYS = "7"
    LAST_30_DAYS = "30"
    LAST_60_DAYS = "60"
    LAST_90_DAYS = "90"
    ALL = "all"

    @property
    def days(self) -> int | None:
        return None if self is ActivityPeriod.ALL else int(self.value)
