"""
Agency Settings Router

Endpoints:
- GET /agencies/me - Current agency settings
- PATCH /agencies/me - Update agency settings (admin only)
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_current_user, get_tenant_db, require_admin
from pleeno.core.errors import ServiceError, internal_error, to_http_exception
from pleeno.modules.agencies import service
from pleeno.modules.agencies.schemas import AgencyResponse, AgencyUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=AgencyResponse, summary="Get Agency Settings")
async def get_my_agency(
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> AgencyResponse:
    try:
        agency = await service.get_agency(db, user.agency_id)
        return AgencyResponse.model_validate(agency)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        raise internal_error("Error loading agency", e) from e


@router.patch(
    "/me",
    response_model=AgencyResponse,
    summary="Update Agency Settings",
    description="""
Update the caller's agency. Only provided fields change.

- `timezone` must be an IANA zone name (e.g. `Australia/Brisbane`)
- `overdue_cutoff_time` is the local time after which same-day installments count as overdue

**Access:** Agency admin only
""",
)
async def update_my_agency(
    data: AgencyUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> AgencyResponse:
    try:
        agency = await service.update_agency(db, admin.agency_id, data)
        logger.info(f"Admin {admin.id} updated agency {admin.agency_id}")
        return AgencyResponse.model_validate(agency)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        raise internal_error("Error updating agency", e) from e
