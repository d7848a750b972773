"""
Enrollment Service Layer

An enrollment ties a student to a program at a branch. Creating the same
student/branch/program twice returns the existing enrollment instead of
failing, so offer-letter uploads can be retried safely.

An offer letter is stored as a document of the enrolled student and linked
from the enrollment.
"""

import logging
import uuid
from pathlib import Path
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser
from pleeno.core.errors import NotFoundError
from pleeno.modules.activity.models import ActivityAction, EntityType
from pleeno.modules.activity.service import log_activity
from pleeno.modules.colleges import repository as college_repository
from pleeno.modules.enrollments import repository
from pleeno.modules.enrollments.models import Enrollment, EnrollmentStatus
from pleeno.modules.enrollments.schemas import (
    EnrollmentCreate,
    EnrollmentDetailResponse,
    EnrollmentUpdate,
)
from pleeno.modules.students import repository as student_repository
from pleeno.modules.students import service as student_service
from pleeno.modules.students.models import DocumentType, StudentDocument

logger = logging.getLogger(__name__)


def to_detail(enrollment: Enrollment) -> EnrollmentDetailResponse:
    branch = enrollment.branch
    return EnrollmentDetailResponse(
        id=enrollment.id,
        student_id=enrollment.student_id,
        branch_id=enrollment.branch_id,
        program_name=enrollment.program_name,
        status=enrollment.status,
        offer_letter_document_id=enrollment.offer_letter_document_id,
        created_at=enrollment.created_at,
        updated_at=enrollment.updated_at,
        student_name=enrollment.student.full_name,
        branch_name=branch.name,
        college_id=branch.college_id,
        college_name=branch.college.name if branch.college else "",
    )


async def get_enrollment(db: AsyncSession, agency_id: UUID, enrollment_id: UUID) -> Enrollment:
    enrollment = await repository.get(db, agency_id, enrollment_id)
    if not enrollment:
        raise NotFoundError("Enrollment", enrollment_id)
    return enrollment


async def list_enrollments(
    db: AsyncSession,
    agency_id: UUID,
    *,
    student_id: UUID | None = None,
    branch_id: UUID | None = None,
    college_id: UUID | None = None,
    status: EnrollmentStatus | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    enrollments, total = await repository.list_enrollments(
        db,
        agency_id,
        student_id=student_id,
        branch_id=branch_id,
        college_id=college_id,
        status=status,
        skip=skip,
        limit=limit,
    )
    return {"items": enrollments, "total": total, "skip": skip, "limit": limit}


async def create_enrollment(
    db: AsyncSession, actor: CurrentUser, data: EnrollmentCreate
) -> tuple[Enrollment, bool]:
    """
    Create an enrollment, or return the existing identical one.

    Returns:
        Tuple of (enrollment, created)

    Raises:
        NotFoundError: If the student or branch is not in the actor's agency
    """
    student = await student_repository.get_student(db, actor.agency_id, data.student_id)
    if not student:
        raise NotFoundError("Student", data.student_id)

    branch = await college_repository.get_branch(db, actor.agency_id, data.branch_id)
    if not branch:
        raise NotFoundError("Branch", data.branch_id)

    program_name = data.program_name.strip()
    existing = await repository.find_existing(
        db, actor.agency_id, student.id, branch.id, program_name
    )
    if existing:
        logger.info(f"Enrollment {existing.id} already exists, reusing it")
        return existing, False

    enrollment_id = uuid.uuid4()
    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.ENROLLMENT,
        entity_id=enrollment_id,
        action=ActivityAction.CREATED,
        description=f"Enrolled {student.full_name} in {program_name} at {branch.name}",
    )
    enrollment = await repository.create(
        db,
        actor.agency_id,
        id=enrollment_id,
        student_id=student.id,
        branch_id=branch.id,
        program_name=program_name,
        status=data.status,
        offer_letter_document_id=data.offer_letter_document_id,
    )
    logger.info(f"Created enrollment {enrollment_id} in agency {actor.agency_id}")
    return enrollment, True


async def update_enrollment(
    db: AsyncSession, actor: CurrentUser, enrollment_id: UUID, data: EnrollmentUpdate
) -> Enrollment:
    enrollment = await get_enrollment(db, actor.agency_id, enrollment_id)
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field == "offer_letter_document_id"
    }
    if not changes:
        return enrollment

    description = f"Updated enrollment in {enrollment.program_name}"
    if "status" in changes and changes["status"] != enrollment.status:
        description = f"Enrollment in {enrollment.program_name} marked {changes['status'].value}"

    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.ENROLLMENT,
        entity_id=enrollment.id,
        action=ActivityAction.UPDATED,
        description=description,
        metadata={"fields": sorted(changes)},
    )
    return await repository.save(db, enrollment, changes)


async def attach_offer_letter(
    db: AsyncSession,
    actor: CurrentUser,
    enrollment_id: UUID,
    *,
    file_name: str,
    content_type: str | None,
    data: bytes,
) -> Enrollment:
    """
    Store an offer letter for the enrolled student and link it.

    A previously linked letter stays in the student's documents.

    Raises:
        NotFoundError: If the enrollment is not in the actor's agency
        ValidationFailedError: If the file is empty, too large or not an allowed type
    """
    enrollment = await get_enrollment(db, actor.agency_id, enrollment_id)
    document = await student_service.upload_document(
        db,
        actor,
        enrollment.student_id,
        document_type=DocumentType.OFFER_LETTER,
        file_name=file_name,
        content_type=content_type,
        data=data,
    )

    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.ENROLLMENT,
        entity_id=enrollment.id,
        action=ActivityAction.UPDATED,
        description=f"Offer letter attached to enrollment in {enrollment.program_name}",
        metadata={"document_id": str(document.id), "file_name": document.file_name},
    )
    enrollment = await repository.save(
        db, enrollment, {"offer_letter_document_id": document.id}
    )
    logger.info(f"Linked offer letter {document.id} to enrollment {enrollment_id}")
    return enrollment


async def get_offer_letter(
    db: AsyncSession, agency_id: UUID, enrollment_id: UUID
) -> tuple[StudentDocument, Path]:
    enrollment = await get_enrollment(db, agency_id, enrollment_id)
    if enrollment.offer_letter_document_id is None:
        raise NotFoundError("Offer letter")
    return await student_service.get_document_file(
        db, agency_id, enrollment.student_id, enrollment.offer_letter_document_id
    )
