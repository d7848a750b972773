"""
College Repository

Database operations for colleges, branches, contacts and college notes.
Every query is filtered by agency_id.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.colleges.models import Branch, College, CollegeContact, CollegeNote
from pleeno.modules.enrollments.models import Enrollment
from pleeno.modules.users.models import User

SORTABLE_COLUMNS = {"name", "city", "created_at", "contract_expiration_date"}


async def save(db: AsyncSession, obj: Any, changes: dict[str, Any] | None = None) -> Any:
    """Apply changes to a loaded row and commit."""
    for field, value in (changes or {}).items():
        setattr(obj, field, value)
    await db.commit()
    await db.refresh(obj)
    return obj


async def delete(db: AsyncSession, obj: Any) -> None:
    await db.delete(obj)
    await db.commit()


# ============================================
# Colleges
# ============================================


async def create_college(db: AsyncSession, agency_id: UUID, **fields: Any) -> College:
    college = College(agency_id=agency_id, **fields)
    db.add(college)
    await db.commit()
    await db.refresh(college)
    return college


async def get_college(db: AsyncSession, agency_id: UUID, college_id: UUID) -> College | None:
    result = await db.execute(
        select(College).where(College.id == college_id, College.agency_id == agency_id)
    )
    return result.scalar_one_or_none()


async def get_college_by_name(db: AsyncSession, agency_id: UUID, name: str) -> College | None:
    """Case-insensitive name lookup within the agency."""
    result = await db.execute(
        select(College).where(
            College.agency_id == agency_id,
            func.lower(College.name) == name.lower(),
        )
    )
    return result.scalar_one_or_none()


async def list_colleges(
    db: AsyncSession,
    agency_id: UUID,
    *,
    search: str | None = None,
    sort_by: str = "name",
    sort_order: str = "asc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[College], int]:
    """
    List colleges with optional search across name, city and country.

    Returns:
        Tuple of (colleges, total count before pagination)
    """
    query = select(College).where(College.agency_id == agency_id)

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                College.name.ilike(pattern),
                College.city.ilike(pattern),
                College.country.ilike(pattern),
            )
        )

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    if sort_by not in SORTABLE_COLUMNS:
        sort_by = "name"
    sort_column = getattr(College, sort_by)
    query = query.order_by(desc(sort_column) if sort_order.lower() == "desc" else asc(sort_column))

    result = await db.execute(query.offset(skip).limit(limit))
    return list(result.scalars().all()), total


# ============================================
# Branches
# ============================================


async def create_branch(
    db: AsyncSession, agency_id: UUID, college_id: UUID, **fields: Any
) -> Branch:
    branch = Branch(agency_id=agency_id, college_id=college_id, **fields)
    db.add(branch)
    await db.commit()
    await db.refresh(branch)
    return branch


async def get_branch(db: AsyncSession, agency_id: UUID, branch_id: UUID) -> Branch | None:
    result = await db.execute(
        select(Branch).where(Branch.id == branch_id, Branch.agency_id == agency_id)
    )
    return result.scalar_one_or_none()


async def list_branches(db: AsyncSession, agency_id: UUID, college_id: UUID) -> list[Branch]:
    result = await db.execute(
        select(Branch)
        .where(Branch.agency_id == agency_id, Branch.college_id == college_id)
        .order_by(Branch.name)
    )
    return list(result.scalars().all())


async def count_branch_enrollments(db: AsyncSession, agency_id: UUID, branch_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Enrollment.id)).where(
            Enrollment.agency_id == agency_id,
            Enrollment.branch_id == branch_id,
        )
    )
    return result.scalar() or 0


async def count_college_enrollments(db: AsyncSession, agency_id: UUID, college_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Enrollment.id))
        .join(Branch, Branch.id == Enrollment.branch_id)
        .where(Enrollment.agency_id == agency_id, Branch.college_id == college_id)
    )
    return result.scalar() or 0


# ============================================
# Contacts
# ============================================


async def create_contact(
    db: AsyncSession, agency_id: UUID, college_id: UUID, **fields: Any
) -> CollegeContact:
    contact = CollegeContact(agency_id=agency_id, college_id=college_id, **fields)
    db.add(contact)
    await db.commit()
    await db.refresh(contact)
    return contact


async def get_contact(
    db: AsyncSession, agency_id: UUID, college_id: UUID, contact_id: UUID
) -> CollegeContact | None:
    result = await db.execute(
        select(CollegeContact).where(
            CollegeContact.id == contact_id,
            CollegeContact.college_id == college_id,
            CollegeContact.agency_id == agency_id,
        )
    )
    return result.scalar_one_or_none()


async def list_contacts(
    db: AsyncSession, agency_id: UUID, college_id: UUID
) -> list[CollegeContact]:
    result = await db.execute(
        select(CollegeContact)
        .where(CollegeContact.agency_id == agency_id, CollegeContact.college_id == college_id)
        .order_by(CollegeContact.name)
    )
    return list(result.scalars().all())


# ============================================
# Notes
# ============================================


async def create_note(
    db: AsyncSession, agency_id: UUID, college_id: UUID, user_id: UUID, content: str
) -> CollegeNote:
    note = CollegeNote(agency_id=agency_id, college_id=college_id, user_id=user_id, content=content)
    db.add(note)
    await db.commit()
    await db.refresh(note)
    return note


async def get_note(
    db: AsyncSession, agency_id: UUID, college_id: UUID, note_id: UUID
) -> CollegeNote | None:
    result = await db.execute(
        select(CollegeNote).where(
            CollegeNote.id == note_id,
            CollegeNote.college_id == college_id,
            CollegeNote.agency_id == agency_id,
        )
    )
    return result.scalar_one_or_none()


async def list_notes(
    db: AsyncSession, agency_id: UUID, college_id: UUID
) -> list[tuple[CollegeNote, str | None]]:
    """Notes newest first, each paired with its author's name."""
    result = await db.execute(
        select(CollegeNote, User.full_name)
        .outerjoin(User, User.id == CollegeNote.user_id)
        .where(CollegeNote.agency_id == agency_id, CollegeNote.college_id == college_id)
        .order_by(CollegeNote.created_at.desc())
    )
    return [(note, author) for note, author in result.all()]
