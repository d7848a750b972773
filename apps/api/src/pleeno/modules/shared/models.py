"""
Shared Model Bases

Every table gets a UUID primary key and created/updated timestamps from
``BaseModel``. Tenant tables add ``agency_id`` through ``TenantMixin``.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, func
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from pleeno.core.database import Base


def pg_enum(enum_cls: type[enum.Enum], name: str) -> ENUM:
    """Postgres ENUM storing member values (lowercase) rather than names."""
    return ENUM(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])


class BaseModel(Base):
    """Abstract base with id and timestamps."""

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class TenantMixin:
    """Adds the owning agency. ON DELETE CASCADE removes tenant data with the agency."""

    @declared_attr
    def agency_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            ForeignKey("agencies.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
