"""
Enrollments Router

Endpoints:
- GET /enrollments - List enrollments (student, branch, college, status filters)
- POST /enrollments - Create enrollment, or return the existing identical one
- GET /enrollments/{id} - Get enrollment
- PATCH /enrollments/{id} - Update program name, status or offer letter
- POST /enrollments/{id}/offer-letter - Upload and link an offer letter
- GET /enrollments/{id}/offer-letter - Download the linked offer letter
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_current_user, get_tenant_db
from pleeno.core.errors import raise_http_error
from pleeno.modules.enrollments import service
from pleeno.modules.enrollments.models import EnrollmentStatus
from pleeno.modules.enrollments.schemas import (
    EnrollmentCreate,
    EnrollmentCreateResponse,
    EnrollmentDetailResponse,
    EnrollmentListResponse,
    EnrollmentUpdate,
)
from pleeno.modules.students.service import read_upload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=EnrollmentListResponse, summary="List Enrollments")
async def list_enrollments(
    student_id: UUID | None = Query(None),
    branch_id: UUID | None = Query(None),
    college_id: UUID | None = Query(None),
    status_filter: EnrollmentStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> EnrollmentListResponse:
    try:
        result = await service.list_enrollments(
            db,
            user.agency_id,
            student_id=student_id,
            branch_id=branch_id,
            college_id=college_id,
            status=status_filter,
            skip=skip,
            limit=limit,
        )
        return EnrollmentListResponse(
            items=[service.to_detail(e) for e in result["items"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except Exception as e:
        raise_http_error(e, "Error listing enrollments")


@router.post(
    "",
    response_model=EnrollmentCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Enrollment",
    description=(
        "Returns 201 with `created: true` for a new enrollment, or 200 with "
        "`created: false` when the student is already enrolled in this program "
        "at this branch."
    ),
)
async def create_enrollment(
    data: EnrollmentCreate,
    response: Response,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> EnrollmentCreateResponse:
    try:
        enrollment, created = await service.create_enrollment(db, user, data)
        if not created:
            response.status_code = status.HTTP_200_OK
        return EnrollmentCreateResponse(enrollment=service.to_detail(enrollment), created=created)
    except Exception as e:
        raise_http_error(e, "Error creating enrollment")


@router.get("/{enrollment_id}", response_model=EnrollmentDetailResponse, summary="Get Enrollment")
async def get_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> EnrollmentDetailResponse:
    try:
        enrollment = await service.get_enrollment(db, user.agency_id, enrollment_id)
        return service.to_detail(enrollment)
    except Exception as e:
        raise_http_error(e, "Error loading enrollment")


@router.patch(
    "/{enrollment_id}", response_model=EnrollmentDetailResponse, summary="Update Enrollment"
)
async def update_enrollment(
    enrollment_id: UUID,
    data: EnrollmentUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> EnrollmentDetailResponse:
    try:
        enrollment = await service.update_enrollment(db, user, enrollment_id, data)
        return service.to_detail(enrollment)
    except Exception as e:
        raise_http_error(e, "Error updating enrollment")


@router.post(
    "/{enrollment_id}/offer-letter",
    response_model=EnrollmentDetailResponse,
    summary="Attach Offer Letter",
    responses={400: {"description": "Unsupported file type or file too large"}},
)
async def attach_offer_letter(
    enrollment_id: UUID,
    file: UploadFile = File(..., description="PDF, JPEG or PNG"),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> EnrollmentDetailResponse:
    try:
        data = await read_upload(file)
        enrollment = await service.attach_offer_letter(
            db,
            user,
            enrollment_id,
            file_name=file.filename or "",
            content_type=file.content_type,
            data=data,
        )
        return service.to_detail(enrollment)
    except Exception as e:
        raise_http_error(e, "Error attaching offer letter")


@router.get("/{enrollment_id}/offer-letter", summary="Download Offer Letter")
async def download_offer_letter(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> FileResponse:
    try:
        document, path = await service.get_offer_letter(db, user.agency_id, enrollment_id)
        return FileResponse(
            path,
            media_type=document.content_type or "application/octet-stream",
            filename=document.file_name,
        )
    except Exception as e:
        raise_http_error(e, "Error downloading offer letter")
