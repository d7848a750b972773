"""
Agency Service

Reading and updating the caller's own agency settings.
"""

import logging
from datetime import UTC, date, datetime
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.errors import NotFoundError
from pleeno.modules.agencies.models import DEFAULT_TIMEZONE, Agency
from pleeno.modules.agencies.repository import AgencyRepository
from pleeno.modules.agencies.schemas import AgencyUpdate

logger = logging.getLogger(__name__)

NULLABLE_FIELDS = {"contact_email", "contact_phone"}


def agency_local_now(agency: Agency, now: datetime | None = None) -> datetime:
    """Current time in the agency's timezone, falling back to the default zone."""
    now = now or datetime.now(UTC)
    try:
        zone = ZoneInfo(agency.timezone or DEFAULT_TIMEZONE)
    except ZoneInfoNotFoundError:
        logger.warning(f"Unknown timezone '{agency.timezone}' for agency {agency.id}")
        zone = ZoneInfo(DEFAULT_TIMEZONE)
    return now.astimezone(zone)


async def agency_today(
    db: AsyncSession, agency_id: UUID, now: datetime | None = None
) -> date:
    """Today's date on the agency's calendar."""
    agency = await get_agency(db, agency_id)
    return agency_local_now(agency, now).date()


async def get_agency(db: AsyncSession, agency_id: UUID) -> Agency:
    agency = await AgencyRepository.get_by_id(db, agency_id)
    if not agency:
        raise NotFoundError("Agency", agency_id)
    return agency


async def update_agency(db: AsyncSession, agency_id: UUID, data: AgencyUpdate) -> Agency:
    """Apply the provided settings to the agency."""
    agency = await get_agency(db, agency_id)

    # Contact details may be cleared, everything else is required
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    if not changes:
        return agency

    logger.info(f"Updating agency {agency_id} settings: {sorted(changes)}")
    return await AgencyRepository.update(db, agency, changes)
