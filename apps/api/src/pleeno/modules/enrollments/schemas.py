"""Enrollment schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from pleeno.modules.enrollments.models import EnrollmentStatus


class EnrollmentCreate(BaseModel):
    student_id: UUID
    branch_id: UUID
    program_name: str = Field(..., min_length=1, max_length=255)
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    offer_letter_document_id: UUID | None = None


class EnrollmentUpdate(BaseModel):
    program_name: str | None = Field(None, min_length=1, max_length=255)
    status: EnrollmentStatus | None = None
    offer_letter_document_id: UUID | None = None


class EnrollmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    branch_id: UUID
    program_name: str
    status: EnrollmentStatus
    offer_letter_document_id: UUID | None
    created_at: datetime
    updated_at: datetime


class EnrollmentDetailResponse(EnrollmentResponse):
    """Enrollment with the names needed to display it."""

    student_name: str
    branch_name: str
    college_id: UUID
    college_name: str


class EnrollmentCreateResponse(BaseModel):
    """``created`` is False when an identical enrollment already existed."""

    enrollment: EnrollmentDetailResponse
    created: bool


class EnrollmentListResponse(BaseModel):
    items: list[EnrollmentDetailResponse]
    total: int
    skip: int
    limit: int
