"""
Agency Repository

Database operations for agencies (tenants).
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.agencies.models import Agency

logger = logging.getLogger(__name__)


class AgencyRepository:
    """Repository for agency database operations."""

    @staticmethod
    async def create(db: AsyncSession, *, name: str, **fields: Any) -> Agency:
        agency = Agency(name=name, **fields)
        db.add(agency)
        await db.flush()
        await db.refresh(agency)
        logger.info(f"Created agency: {agency.id} - {agency.name}")
        return agency

    @staticmethod
    async def get_by_id(db: AsyncSession, agency_id: UUID) -> Agency | None:
        return await db.get(Agency, agency_id)

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Agency | None:
        result = await db.execute(select(Agency).where(Agency.name == name))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(db: AsyncSession) -> list[Agency]:
        """All agencies. Used by background jobs that iterate tenants."""
        result = await db.execute(select(Agency).order_by(Agency.name))
        return list(result.scalars().all())

    @staticmethod
    async def update(db: AsyncSession, agency: Agency, changes: dict[str, Any]) -> Agency:
        for field, value in changes.items():
            setattr(agency, field, value)
        await db.commit()
        await db.refresh(agency)
        return agency
