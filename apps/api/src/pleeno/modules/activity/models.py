"""
Activity Log Models

Append-only audit trail of changes made in an agency. System actions (such
as the overdue job) are recorded with a NULL user.
"""

import enum
import uuid
from typing import Any

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from pleeno.modules.shared import BaseModel, TenantMixin, pg_enum


class EntityType(str, enum.Enum):
    STUDENT = "student"
    ENROLLMENT = "enrollment"
    PAYMENT_PLAN = "payment_plan"
    INSTALLMENT = "installment"
    PAYMENT = "payment"
    COLLEGE = "college"


class ActivityAction(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RECORDED = "recorded"
    MARKED_OVERDUE = "marked_overdue"
    IMPORTED = "imported"
    REMINDER_SENT = "reminder_sent"


class ActivityLog(TenantMixin, BaseModel):
    __tablename__ = "activity_log"
    __table_args__ = (
        Index("ix_activity_log_agency_created", "agency_id", "created_at"),
        Index("ix_activity_log_entity", "entity_type", "entity_id"),
    )

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    entity_type: Mapped[EntityType] = mapped_column(
        pg_enum(EntityType, "activity_entity_type"), nullable=False
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    action: Mapped[ActivityAction] = mapped_column(
        pg_enum(ActivityAction, "activity_action"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    details: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONB, nullable=True)
