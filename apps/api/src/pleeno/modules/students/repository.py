"""
Student Repository

Database operations for students, student notes, documents and the
payment-history query. Every query is filtered by agency_id.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.enrollments.models import Enrollment
from pleeno.modules.payments.models import PaymentPlan
from pleeno.modules.students.models import Student, StudentDocument, StudentNote, VisaStatus
from pleeno.modules.users.models import User

SORTABLE_COLUMNS = {"full_name", "created_at", "updated_at", "visa_status"}


async def save(db: AsyncSession, obj: Any, changes: dict[str, Any] | None = None) -> Any:
    for field, value in (changes or {}).items():
        setattr(obj, field, value)
    await db.commit()
    await db.refresh(obj)
    return obj


async def delete(db: AsyncSession, obj: Any) -> None:
    await db.delete(obj)
    await db.commit()


# ============================================
# Students
# ============================================


def add_student(db: AsyncSession, agency_id: UUID, **fields: Any) -> Student:
    """Stage a student on the session; the caller commits."""
    student = Student(agency_id=agency_id, **fields)
    db.add(student)
    return student


async def get_student(db: AsyncSession, agency_id: UUID, student_id: UUID) -> Student | None:
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.agency_id == agency_id)
    )
    return result.scalar_one_or_none()


async def get_student_by_passport(
    db: AsyncSession, agency_id: UUID, passport_number: str
) -> Student | None:
    result = await db.execute(
        select(Student).where(
            Student.agency_id == agency_id,
            Student.passport_number == passport_number,
        )
    )
    return result.scalar_one_or_none()


async def existing_passports(
    db: AsyncSession, agency_id: UUID, passport_numbers: list[str]
) -> set[str]:
    """Which of the given passport numbers already belong to a student in the agency."""
    if not passport_numbers:
        return set()
    result = await db.execute(
        select(Student.passport_number).where(
            Student.agency_id == agency_id,
            Student.passport_number.in_(passport_numbers),
        )
    )
    return set(result.scalars().all())


async def list_students(
    db: AsyncSession,
    agency_id: UUID,
    *,
    search: str | None = None,
    visa_status: VisaStatus | None = None,
    sort_by: str = "full_name",
    sort_order: str = "asc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Student], int]:
    """
    List students with optional search across name, passport and e-mail.

    Returns:
        Tuple of (students, total count before pagination)
    """
    query = select(Student).where(Student.agency_id == agency_id)

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Student.full_name.ilike(pattern),
                Student.passport_number.ilike(pattern),
                Student.email.ilike(pattern),
            )
        )
    if visa_status:
        query = query.where(Student.visa_status == visa_status)

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    if sort_by not in SORTABLE_COLUMNS:
        sort_by = "full_name"
    sort_column = getattr(Student, sort_by)
    query = query.order_by(desc(sort_column) if sort_order.lower() == "desc" else asc(sort_column))

    result = await db.execute(query.offset(skip).limit(limit))
    return list(result.scalars().all()), total


# ============================================
# Notes
# ============================================


async def create_note(
    db: AsyncSession, agency_id: UUID, student_id: UUID, user_id: UUID, content: str
) -> StudentNote:
    note = StudentNote(agency_id=agency_id, student_id=student_id, user_id=user_id, content=content)
    db.add(note)
    await db.commit()
    await db.refresh(note)
    return note


async def get_note(
    db: AsyncSession, agency_id: UUID, student_id: UUID, note_id: UUID
) -> StudentNote | None:
    result = await db.execute(
        select(StudentNote).where(
            StudentNote.id == note_id,
            StudentNote.student_id == student_id,
            StudentNote.agency_id == agency_id,
        )
    )
    return result.scalar_one_or_none()


async def list_notes(
    db: AsyncSession, agency_id: UUID, student_id: UUID
) -> list[tuple[StudentNote, str | None]]:
    result = await db.execute(
        select(StudentNote, User.full_name)
        .outerjoin(User, User.id == StudentNote.user_id)
        .where(StudentNote.agency_id == agency_id, StudentNote.student_id == student_id)
        .order_by(StudentNote.created_at.desc())
    )
    return [(note, author) for note, author in result.all()]


# ============================================
# Documents
# ============================================


async def create_document(
    db: AsyncSession, agency_id: UUID, student_id: UUID, **fields: Any
) -> StudentDocument:
    document = StudentDocument(agency_id=agency_id, student_id=student_id, **fields)
    db.add(document)
    await db.commit()
    await db.refresh(document)
    return document


async def get_document(
    db: AsyncSession, agency_id: UUID, student_id: UUID, document_id: UUID
) -> StudentDocument | None:
    result = await db.execute(
        select(StudentDocument).where(
            StudentDocument.id == document_id,
            StudentDocument.student_id == student_id,
            StudentDocument.agency_id == agency_id,
        )
    )
    return result.scalar_one_or_none()


async def list_documents(
    db: AsyncSession, agency_id: UUID, student_id: UUID
) -> list[StudentDocument]:
    result = await db.execute(
        select(StudentDocument)
        .where(StudentDocument.agency_id == agency_id, StudentDocument.student_id == student_id)
        .order_by(StudentDocument.created_at.desc())
    )
    return list(result.scalars().all())


# ============================================
# Payment history
# ============================================


async def list_student_plans(
    db: AsyncSession, agency_id: UUID, student_id: UUID
) -> list[PaymentPlan]:
    """All payment plans of a student, oldest first, installments loaded."""
    result = await db.execute(
        select(PaymentPlan)
        .join(Enrollment, Enrollment.id == PaymentPlan.enrollment_id)
        .where(PaymentPlan.agency_id == agency_id, Enrollment.student_id == student_id)
        .order_by(PaymentPlan.start_date, PaymentPlan.created_at)
    )
    return list(result.unique().scalars().all())



async def list_enrollment_ids(db: AsyncSession, agency_id: UUID, student_id: UUID) -> list[UUID]:
    result = await db.execute(
        select(Enrollment.id).where(
            Enrollment.agency_id == agency_id, Enrollment.student_id == student_id
        )
    )
    return list(result.scalars().all())
