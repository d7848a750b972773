"""
College Service Layer

Business rules for colleges, their branches, contacts and notes.

1. Colleges:
   - Names are unique per agency (case-insensitive)
   - A college with enrollments cannot be deleted

2. Branches:
   - A branch without its own commission rate takes the college default
     when it is created
   - ``effective_commission_rate`` resolves the rate used for new plans

3. Notes:
   - Any agency user can add notes
   - Only the author or an agency admin can edit or delete a note

4. Activity:
   - Every change to a college or one of its branches, contacts or notes
     is logged against the college
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser
from pleeno.core.errors import ConflictError, ForbiddenError, NotFoundError
from pleeno.modules.activity.models import ActivityAction, EntityType
from pleeno.modules.activity.schemas import ActivityEntry, ActivityPeriod
from pleeno.modules.activity.service import get_feed, log_activity
from pleeno.modules.colleges import repository
from pleeno.modules.colleges.models import Branch, College, CollegeContact, CollegeNote
from pleeno.modules.colleges.schemas import (
    BranchCreate,
    BranchUpdate,
    CollegeCreate,
    CollegeUpdate,
    ContactCreate,
    ContactUpdate,
)
from pleeno.modules.shared.schemas import NoteResponse

logger = logging.getLogger(__name__)

# Fields that must never be cleared by a PATCH
REQUIRED_FIELDS = {"name", "gst_status"}


class DuplicateCollegeError(ConflictError):
    def __init__(self, name: str):
        super().__init__(
            message=f"A college named '{name}' already exists.",
            error_code="DUPLICATE_COLLEGE",
        )


class CollegeInUseError(ConflictError):
    def __init__(self, what: str):
        super().__init__(
            message=f"This {what} has enrollments and cannot be deleted.",
            error_code=f"{what.upper()}_IN_USE",
        )


def _changes(data, required: set[str] = REQUIRED_FIELDS) -> dict:
    return {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field not in required
    }


def effective_commission_rate(branch: Branch) -> Decimal:
    """Commission rate for a branch, falling back to its college default, then 0."""
    if branch.commission_rate_percent is not None:
        return Decimal(branch.commission_rate_percent)
    if branch.college and branch.college.default_commission_rate_percent is not None:
        return Decimal(branch.college.default_commission_rate_percent)
    return Decimal("0")


def _log_college(
    db: AsyncSession,
    actor: CurrentUser,
    college_id: UUID,
    action: ActivityAction,
    description: str,
    subject: str = "college",
    **details: Any,
) -> None:
    """Stage an entry for the college's activity feed; the next commit saves it."""
    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.COLLEGE,
        entity_id=college_id,
        action=action,
        description=description,
        metadata={"subject": subject, **details},
    )


def _changed_fields(obj: Any, changes: dict) -> list[str]:
    return sorted(field for field, value in changes.items() if getattr(obj, field, None) != value)


# ============================================
# Colleges
# ============================================


async def list_colleges(
    db: AsyncSession,
    agency_id: UUID,
    *,
    search: str | None = None,
    sort_by: str = "name",
    sort_order: str = "asc",
    skip: int = 0,
    limit: int = 20,
) -> dict:
    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    colleges, total = await repository.list_colleges(
        db,
        agency_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=skip,
        limit=limit,
    )
    return {"items": colleges, "total": total, "skip": skip, "limit": limit}


async def get_college(db: AsyncSession, agency_id: UUID, college_id: UUID) -> College:
    college = await repository.get_college(db, agency_id, college_id)
    if not college:
        raise NotFoundError("College", college_id)
    return college


async def create_college(db: AsyncSession, actor: CurrentUser, data: CollegeCreate) -> College:
    """
    Create a college in the agency.

    Raises:
        DuplicateCollegeError: If the agency already has a college with this name
    """
    if await repository.get_college_by_name(db, actor.agency_id, data.name):
        raise DuplicateCollegeError(data.name)

    college_id = uuid.uuid4()
    _log_college(db, actor, college_id, ActivityAction.CREATED, f"College {data.name} created")
    college = await repository.create_college(
        db, actor.agency_id, id=college_id, **data.model_dump()
    )
    logger.info(f"Created college {college.id} in agency {actor.agency_id}")
    return college


async def update_college(
    db: AsyncSession, actor: CurrentUser, college_id: UUID, data: CollegeUpdate
) -> College:
    college = await get_college(db, actor.agency_id, college_id)
    changes = _changes(data)

    new_name = changes.get("name")
    if new_name and new_name.lower() != college.name.lower():
        existing = await repository.get_college_by_name(db, actor.agency_id, new_name)
        if existing and existing.id != college.id:
            raise DuplicateCollegeError(new_name)

    fields = _changed_fields(college, changes)
    if fields:
        _log_college(
            db,
            actor,
            college.id,
            ActivityAction.UPDATED,
            f"College details updated: {', '.join(fields)}",
            fields=fields,
        )
    return await repository.save(db, college, changes)


async def delete_college(db: AsyncSession, actor: CurrentUser, college_id: UUID) -> None:
    college = await get_college(db, actor.agency_id, college_id)

    if await repository.count_college_enrollments(db, actor.agency_id, college_id):
        raise CollegeInUseError("college")

    _log_college(db, actor, college.id, ActivityAction.DELETED, f"College {college.name} deleted")
    await repository.delete(db, college)
    logger.info(f"Deleted college {college_id} from agency {actor.agency_id}")


async def get_college_activity(
    db: AsyncSession,
    agency_id: UUID,
    college_id: UUID,
    *,
    period: ActivityPeriod = ActivityPeriod.LAST_30_DAYS,
    search: str | None = None,
    limit: int = 50,
    now: datetime | None = None,
) -> list[ActivityEntry]:
    """
    Changes to the college, its branches, contacts and notes, newest first.

    Entries of a deleted college stay in the log but cannot be listed here.
    """
    await get_college(db, agency_id, college_id)

    since = None
    if period.days is not None:
        since = (now or datetime.now(UTC)) - timedelta(days=period.days)

    return await get_feed(
        db,
        agency_id,
        entity_type=EntityType.COLLEGE,
        entity_ids=[college_id],
        since=since,
        search=search,
        limit=limit,
    )


# ============================================
# Branches
# ============================================


async def list_branches(db: AsyncSession, agency_id: UUID, college_id: UUID) -> list[Branch]:
    await get_college(db, agency_id, college_id)
    return await repository.list_branches(db, agency_id, college_id)


async def get_branch(db: AsyncSession, agency_id: UUID, branch_id: UUID) -> Branch:
    branch = await repository.get_branch(db, agency_id, branch_id)
    if not branch:
        raise NotFoundError("Branch", branch_id)
    return branch


async def create_branch(
    db: AsyncSession, actor: CurrentUser, college_id: UUID, data: BranchCreate
) -> Branch:
    """Create a branch, inheriting the college default rate when none is given."""
    college = await get_college(db, actor.agency_id, college_id)

    fields = data.model_dump()
    if fields["commission_rate_percent"] is None:
        fields["commission_rate_percent"] = college.default_commission_rate_percent

    _log_college(
        db, actor, college.id, ActivityAction.CREATED, f"Branch {data.name} added", "branch"
    )
    branch = await repository.create_branch(db, actor.agency_id, college_id, **fields)
    logger.info(f"Created branch {branch.id} for college {college_id}")
    return branch


async def update_branch(
    db: AsyncSession, actor: CurrentUser, branch_id: UUID, data: BranchUpdate
) -> Branch:
    branch = await get_branch(db, actor.agency_id, branch_id)
    changes = _changes(data, {"name"})

    fields = _changed_fields(branch, changes)
    if fields:
        _log_college(
            db,
            actor,
            branch.college_id,
            ActivityAction.UPDATED,
            f"Branch {branch.name} updated: {', '.join(fields)}",
            "branch",
            branch_id=str(branch.id),
            fields=fields,
        )
    return await repository.save(db, branch, changes)


async def delete_branch(db: AsyncSession, actor: CurrentUser, branch_id: UUID) -> None:
    branch = await get_branch(db, actor.agency_id, branch_id)

    if await repository.count_branch_enrollments(db, actor.agency_id, branch_id):
        raise CollegeInUseError("branch")

    _log_college(
        db,
        actor,
        branch.college_id,
        ActivityAction.DELETED,
        f"Branch {branch.name} deleted",
        "branch",
        branch_id=str(branch.id),
    )
    await repository.delete(db, branch)
    logger.info(f"Deleted branch {branch_id}")


# ============================================
# Contacts
# ============================================


async def list_contacts(
    db: AsyncSession, agency_id: UUID, college_id: UUID
) -> list[CollegeContact]:
    await get_college(db, agency_id, college_id)
    return await repository.list_contacts(db, agency_id, college_id)


async def create_contact(
    db: AsyncSession, actor: CurrentUser, college_id: UUID, data: ContactCreate
) -> CollegeContact:
    await get_college(db, actor.agency_id, college_id)
    _log_college(
        db, actor, college_id, ActivityAction.CREATED, f"Contact {data.name} added", "contact"
    )
    return await repository.create_contact(
        db, actor.agency_id, college_id, **data.model_dump()
    )


async def _get_contact(
    db: AsyncSession, agency_id: UUID, college_id: UUID, contact_id: UUID
) -> CollegeContact:
    contact = await repository.get_contact(db, agency_id, college_id, contact_id)
    if not contact:
        raise NotFoundError("Contact", contact_id)
    return contact


async def update_contact(
    db: AsyncSession,
    actor: CurrentUser,
    college_id: UUID,
    contact_id: UUID,
    data: ContactUpdate,
) -> CollegeContact:
    contact = await _get_contact(db, actor.agency_id, college_id, contact_id)
    changes = _changes(data, {"name"})

    fields = _changed_fields(contact, changes)
    if fields:
        _log_college(
            db,
            actor,
            college_id,
            ActivityAction.UPDATED,
            f"Contact {contact.name} updated: {', '.join(fields)}",
            "contact",
            contact_id=str(contact.id),
            fields=fields,
        )
    return await repository.save(db, contact, changes)


async def delete_contact(
    db: AsyncSession, actor: CurrentUser, college_id: UUID, contact_id: UUID
) -> None:
    contact = await _get_contact(db, actor.agency_id, college_id, contact_id)
    _log_college(
        db,
        actor,
        college_id,
        ActivityAction.DELETED,
        f"Contact {contact.name} removed",
        "contact",
        contact_id=str(contact.id),
    )
    await repository.delete(db, contact)


# ============================================
# Notes
# ============================================


def _note_response(note: CollegeNote, author_name: str | None) -> NoteResponse:
    response = NoteResponse.model_validate(note)
    response.author_name = author_name
    return response


async def list_notes(db: AsyncSession, agency_id: UUID, college_id: UUID) -> list[NoteResponse]:
    await get_college(db, agency_id, college_id)
    rows = await repository.list_notes(db, agency_id, college_id)
    return [_note_response(note, author) for note, author in rows]


async def create_note(
    db: AsyncSession, actor: CurrentUser, college_id: UUID, content: str
) -> NoteResponse:
    await get_college(db, actor.agency_id, college_id)
    _log_college(db, actor, college_id, ActivityAction.CREATED, "Note added", "note")
    note = await repository.create_note(db, actor.agency_id, college_id, actor.id, content)
    return _note_response(note, actor.name)


async def _get_editable_note(
    db: AsyncSession, actor: CurrentUser, college_id: UUID, note_id: UUID
) -> CollegeNote:
    note = await repository.get_note(db, actor.agency_id, college_id, note_id)
    if not note:
        raise NotFoundError("Note", note_id)
    if note.user_id != actor.id and not actor.is_admin:
        raise ForbiddenError("Only the author or an agency admin can change this note.")
    return note


async def update_note(
    db: AsyncSession, actor: CurrentUser, college_id: UUID, note_id: UUID, content: str
) -> NoteResponse:
    note = await _get_editable_note(db, actor, college_id, note_id)
    _log_college(
        db, actor, college_id, ActivityAction.UPDATED, "Note edited", "note", note_id=str(note.id)
    )
    note = await repository.save(db, note, {"content": content})
    return _note_response(note, None)


async def delete_note(
    db: AsyncSession, actor: CurrentUser, college_id: UUID, note_id: UUID
) -> None:
    note = await _get_editable_note(db, actor, college_id, note_id)
    _log_college(
        db, actor, college_id, ActivityAction.DELETED, "Note deleted", "note", note_id=str(note.id)
    )
    await repository.delete(db, note)
