"""
Colleges Router

Endpoints:
- GET /colleges - List colleges (search, sort, pagination)
- POST /colleges - Create college (admin)
- GET /colleges/{id} - College with its branches
- PATCH /colleges/{id} - Update college (admin)
- DELETE /colleges/{id} - Delete college without enrollments (admin)
- GET /colleges/{id}/branches - List branches
- POST /colleges/{id}/branches - Create branch (admin)
- GET|POST /colleges/{id}/contacts, PATCH|DELETE /colleges/{id}/contacts/{contact_id}
- GET|POST /colleges/{id}/notes, PATCH|DELETE /colleges/{id}/notes/{note_id}
- GET /colleges/{id}/activity - Change history (period 7, 30, 60, 90 or all; search)

Branch endpoints addressed by branch id live on ``branches_router``:
- GET /branches/{id}, PATCH /branches/{id} (admin), DELETE /branches/{id} (admin)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_current_user, get_tenant_db, require_admin
from pleeno.core.errors import raise_http_error
from pleeno.modules.activity.schemas import ActivityFeedResponse, ActivityPeriod
from pleeno.modules.colleges import service
from pleeno.modules.colleges.schemas import (
    BranchCreate,
    BranchResponse,
    BranchUpdate,
    CollegeCreate,
    CollegeDetailResponse,
    CollegeListResponse,
    CollegeResponse,
    CollegeUpdate,
    ContactCreate,
    ContactResponse,
    ContactUpdate,
)
from pleeno.modules.shared.schemas import NoteCreate, NoteResponse

logger = logging.getLogger(__name__)

router = APIRouter()
branches_router = APIRouter()


# ============================================
# Colleges
# ============================================


@router.get("", response_model=CollegeListResponse, summary="List Colleges")
async def list_colleges(
    search: str | None = Query(None, min_length=1, max_length=100, description="Name/city/country"),
    sort_by: str = Query("name", description="name, city, created_at, contract_expiration_date"),
    sort_order: str = Query("asc", description="Sort direction (asc/desc)"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> CollegeListResponse:
    try:
        result = await service.list_colleges(
            db,
            user.agency_id,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )
        return CollegeListResponse(
            items=[CollegeResponse.model_validate(c) for c in result["items"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except Exception as e:
        raise_http_error(e, "Error listing colleges")


@router.post(
    "",
    response_model=CollegeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create College",
    responses={409: {"description": "College name already used in this agency"}},
)
async def create_college(
    data: CollegeCreate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> CollegeResponse:
    try:
        college = await service.create_college(db, admin, data)
        return CollegeResponse.model_validate(college)
    except Exception as e:
        raise_http_error(e, "Error creating college")


@router.get("/{college_id}", response_model=CollegeDetailResponse, summary="Get College")
async def get_college(
    college_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> CollegeDetailResponse:
    try:
        college = await service.get_college(db, user.agency_id, college_id)
        return CollegeDetailResponse.model_validate(college)
    except Exception as e:
        raise_http_error(e, "Error loading college")


@router.patch("/{college_id}", response_model=CollegeResponse, summary="Update College")
async def update_college(
    college_id: UUID,
    data: CollegeUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> CollegeResponse:
    try:
        college = await service.update_college(db, admin, college_id, data)
        return CollegeResponse.model_validate(college)
    except Exception as e:
        raise_http_error(e, "Error updating college")


@router.delete(
    "/{college_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete College",
    responses={409: {"description": "College has enrollments"}},
)
async def delete_college(
    college_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> Response:
    try:
        await service.delete_college(db, admin, college_id)
        logger.info(f"Admin {admin.id} deleted college {college_id}")
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        raise_http_error(e, "Error deleting college")


# ============================================
# Branches
# ============================================


@router.get("/{college_id}/branches", response_model=list[BranchResponse], summary="List Branches")
async def list_branches(
    college_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[BranchResponse]:
    try:
        branches = await service.list_branches(db, user.agency_id, college_id)
        return [BranchResponse.model_validate(b) for b in branches]
    except Exception as e:
        raise_http_error(e, "Error listing branches")


@router.post(
    "/{college_id}/branches",
    response_model=BranchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Branch",
    description="Creates a branch. Without `commission_rate_percent` the college default rate is used.",
)
async def create_branch(
    college_id: UUID,
    data: BranchCreate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> BranchResponse:
    try:
        branch = await service.create_branch(db, admin, college_id, data)
        return BranchResponse.model_validate(branch)
    except Exception as e:
        raise_http_error(e, "Error creating branch")


@branches_router.get("/{branch_id}", response_model=BranchResponse, summary="Get Branch")
async def get_branch(
    branch_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> BranchResponse:
    try:
        branch = await service.get_branch(db, user.agency_id, branch_id)
        return BranchResponse.model_validate(branch)
    except Exception as e:
        raise_http_error(e, "Error loading branch")


@branches_router.patch("/{branch_id}", response_model=BranchResponse, summary="Update Branch")
async def update_branch(
    branch_id: UUID,
    data: BranchUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> BranchResponse:
    try:
        branch = await service.update_branch(db, admin, branch_id, data)
        return BranchResponse.model_validate(branch)
    except Exception as e:
        raise_http_error(e, "Error updating branch")


@branches_router.delete(
    "/{branch_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Branch"
)
async def delete_branch(
    branch_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> Response:
    try:
        await service.delete_branch(db, admin, branch_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        raise_http_error(e, "Error deleting branch")


# ============================================
# Contacts
# ============================================


@router.get("/{college_id}/contacts", response_model=list[ContactResponse], summary="List Contacts")
async def list_contacts(
    college_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[ContactResponse]:
    try:
        contacts = await service.list_contacts(db, user.agency_id, college_id)
        return [ContactResponse.model_validate(c) for c in contacts]
    except Exception as e:
        raise_http_error(e, "Error listing contacts")


@router.post(
    "/{college_id}/contacts",
    response_model=ContactResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Contact",
)
async def create_contact(
    college_id: UUID,
    data: ContactCreate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> ContactResponse:
    try:
        contact = await service.create_contact(db, admin, college_id, data)
        return ContactResponse.model_validate(contact)
    except Exception as e:
        raise_http_error(e, "Error creating contact")


@router.patch(
    "/{college_id}/contacts/{contact_id}",
    response_model=ContactResponse,
    summary="Update Contact",
)
async def update_contact(
    college_id: UUID,
    contact_id: UUID,
    data: ContactUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> ContactResponse:
    try:
        contact = await service.update_contact(db, admin, college_id, contact_id, data)
        return ContactResponse.model_validate(contact)
    except Exception as e:
        raise_http_error(e, "Error updating contact")


@router.delete(
    "/{college_id}/contacts/{contact_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Contact",
)
async def delete_contact(
    college_id: UUID,
    contact_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> Response:
    try:
        await service.delete_contact(db, admin, college_id, contact_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        raise_http_error(e, "Error deleting contact")


# ============================================
# Notes
# ============================================


@router.get("/{college_id}/notes", response_model=list[NoteResponse], summary="List College Notes")
async def list_notes(
    college_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[NoteResponse]:
    try:
        return await service.list_notes(db, user.agency_id, college_id)
    except Exception as e:
        raise_http_error(e, "Error listing college notes")


@router.post(
    "/{college_id}/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add College Note",
)
async def create_note(
    college_id: UUID,
    data: NoteCreate,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> NoteResponse:
    try:
        return await service.create_note(db, user, college_id, data.content)
    except Exception as e:
        raise_http_error(e, "Error creating college note")


@router.patch(
    "/{college_id}/notes/{note_id}", response_model=NoteResponse, summary="Edit College Note"
)
async def update_note(
    college_id: UUID,
    note_id: UUID,
    data: NoteCreate,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> NoteResponse:
    try:
        return await service.update_note(db, user, college_id, note_id, data.content)
    except Exception as e:
        raise_http_error(e, "Error updating college note")


@router.delete(
    "/{college_id}/notes/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete College Note",
)
async def delete_note(
    college_id: UUID,
    note_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await service.delete_note(db, user, college_id, note_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        raise_http_error(e, "Error deleting college note")


# ============================================
# Activity
# ============================================


@router.get(
    "/{college_id}/activity", response_model=ActivityFeedResponse, summary="College Activity"
)
async def get_college_activity(
    college_id: UUID,
    period: ActivityPeriod = Query(ActivityPeriod.LAST_30_DAYS, description="Days back, or all"),
    search: str | None = Query(None, max_length=100, description="Description or user name"),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> ActivityFeedResponse:
    """Changes to the college and its branches, contacts and notes, newest first."""
    try:
        items = await service.get_college_activity(
            db, user.agency_id, college_id, period=period, search=search, limit=limit
        )
        return ActivityFeedResponse(items=items)
    except Exception as e:
        raise_http_error(e, "Error loading college activity")
