"""
Enrollment Repository

Every query is filtered by agency_id.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.colleges.models import Branch
from pleeno.modules.enrollments.models import Enrollment, EnrollmentStatus


async def create(db: AsyncSession, agency_id: UUID, **fields: Any) -> Enrollment:
    enrollment = Enrollment(agency_id=agency_id, **fields)
    db.add(enrollment)
    await db.commit()
    return await get(db, agency_id, enrollment.id)


async def get(db: AsyncSession, agency_id: UUID, enrollment_id: UUID) -> Enrollment | None:
    result = await db.execute(
        select(Enrollment)
        .where(Enrollment.id == enrollment_id, Enrollment.agency_id == agency_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def find_existing(
    db: AsyncSession, agency_id: UUID, student_id: UUID, branch_id: UUID, program_name: str
) -> Enrollment | None:
    """The enrollment for this student, branch and program, if any (program is case-insensitive)."""
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.agency_id == agency_id,
            Enrollment.student_id == student_id,
            Enrollment.branch_id == branch_id,
            func.lower(Enrollment.program_name) == program_name.lower(),
        )
    )
    return result.unique().scalars().first()


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
) -> tuple[list[Enrollment], int]:
    query = select(Enrollment).where(Enrollment.agency_id == agency_id)

    if student_id:
        query = query.where(Enrollment.student_id == student_id)
    if branch_id:
        query = query.where(Enrollment.branch_id == branch_id)
    if college_id:
        query = query.where(
            Enrollment.branch_id.in_(select(Branch.id).where(Branch.college_id == college_id))
        )
    if status:
        query = query.where(Enrollment.status == status)

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    result = await db.execute(
        query.order_by(Enrollment.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.unique().scalars().all()), total


async def save(db: AsyncSession, enrollment: Enrollment, changes: dict[str, Any]) -> Enrollment:
    for field, value in changes.items():
        setattr(enrollment, field, value)
    await db.commit()
    return await get(db, enrollment.agency_id, enrollment.id)
