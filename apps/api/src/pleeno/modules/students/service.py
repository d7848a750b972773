"""
Student Service Layer

Business rules for students, their notes and documents, CSV import and
payment history.

1. Students:
   - Passport numbers are unique within an agency
   - Only agency admins can delete students (enforced by the router)

2. Import:
   - Rows are validated with the same schema as POST /students
   - Passports already in the agency, or repeated in the file, are skipped
   - Invalid rows are reported with their row number; valid rows are kept

3. Documents:
   - PDF, JPEG and PNG only, up to MAX_UPLOAD_SIZE_MB
   - Files live under UPLOAD_DIR/<agency_id>/<student_id>/
   - Only the uploader or an agency admin can delete a document

4. Payment history:
   - Outstanding = amounts of installments that are neither paid nor cancelled
"""

import asyncio
import logging
import uuid
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from fastapi import UploadFile
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser
from pleeno.core.config import settings
from pleeno.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from pleeno.modules.activity.models import ActivityAction, EntityType
from pleeno.modules.activity.schemas import ActivityEntry
from pleeno.modules.activity.service import get_feed, log_activity
from pleeno.modules.agencies.service import agency_today
from pleeno.modules.payments.commission import ZERO, percentage, round_money
from pleeno.modules.payments.models import Installment, InstallmentStatus
from pleeno.modules.reports.exporters import (
    ExportFormat,
    export_filename,
    render_csv,
    render_pdf,
)
from pleeno.modules.shared.schemas import NoteResponse
from pleeno.modules.students import repository
from pleeno.modules.students.importer import parse_student_csv
from pleeno.modules.students.models import (
    DocumentType,
    Student,
    StudentDocument,
    StudentNote,
    VisaStatus,
)
from pleeno.modules.students.schemas import (
    HistoryInstallment,
    HistoryPlan,
    ImportRowError,
    PaymentHistoryResponse,
    PaymentHistorySummary,
    StudentCreate,
    StudentImportResult,
    StudentUpdate,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {"full_name", "passport_number"}

ALLOWED_DOCUMENT_TYPES = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
}

UPLOAD_CHUNK_SIZE = 1024 * 1024


class DuplicateStudentError(ConflictError):
    def __init__(self):
        super().__init__(
            message="A student with this passport number already exists in your agency.",
            error_code="DUPLICATE_PASSPORT",
        )


def _changes(data: StudentUpdate) -> dict:
    return {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field not in REQUIRED_FIELDS
    }


# ============================================
# Students
# ============================================


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
) -> dict:
    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    students, total = await repository.list_students(
        db,
        agency_id,
        search=search,
        visa_status=visa_status,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=skip,
        limit=limit,
    )
    return {"items": students, "total": total, "skip": skip, "limit": limit}


async def get_student(db: AsyncSession, agency_id: UUID, student_id: UUID) -> Student:
    student = await repository.get_student(db, agency_id, student_id)
    if not student:
        raise NotFoundError("Student", student_id)
    return student


async def create_student(db: AsyncSession, actor: CurrentUser, data: StudentCreate) -> Student:
    """
    Create a student in the actor's agency.

    Raises:
        DuplicateStudentError: If the passport number is already used in the agency
    """
    if await repository.get_student_by_passport(db, actor.agency_id, data.passport_number):
        raise DuplicateStudentError()

    student = repository.add_student(db, actor.agency_id, **data.model_dump())
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateStudentError() from e

    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.STUDENT,
        entity_id=student.id,
        action=ActivityAction.CREATED,
        description=f"Added student {student.full_name}",
    )
    await db.commit()
    await db.refresh(student)

    logger.info(f"Created student {student.id} in agency {actor.agency_id}")
    return student


async def update_student(
    db: AsyncSession, actor: CurrentUser, student_id: UUID, data: StudentUpdate
) -> Student:
    student = await get_student(db, actor.agency_id, student_id)
    changes = _changes(data)

    new_passport = changes.get("passport_number")
    if new_passport and new_passport != student.passport_number:
        existing = await repository.get_student_by_passport(db, actor.agency_id, new_passport)
        if existing and existing.id != student.id:
            raise DuplicateStudentError()

    if changes:
        log_activity(
            db,
            agency_id=actor.agency_id,
            user_id=actor.id,
            entity_type=EntityType.STUDENT,
            entity_id=student.id,
            action=ActivityAction.UPDATED,
            description=f"Updated student {changes.get('full_name', student.full_name)}",
            metadata={"fields": sorted(changes)},
        )
    return await repository.save(db, student, changes)


async def delete_student(db: AsyncSession, actor: CurrentUser, student_id: UUID) -> None:
    """Delete a student; enrollments, plans, notes and documents go with it."""
    student = await get_student(db, actor.agency_id, student_id)
    documents = await repository.list_documents(db, actor.agency_id, student_id)

    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.STUDENT,
        entity_id=student.id,
        action=ActivityAction.DELETED,
        description=f"Deleted student {student.full_name}",
    )
    await repository.delete(db, student)

    for document in documents:
        await _remove_file(document.file_path)
    logger.info(f"Deleted student {student_id} from agency {actor.agency_id}")


async def import_students(
    db: AsyncSession, actor: CurrentUser, content: bytes
) -> StudentImportResult:
    """
    Create students from CSV content.

    Raises:
        ValidationFailedError: If the file itself cannot be parsed
    """
    rows = parse_student_csv(content)
    result = StudentImportResult()

    valid: list[tuple[int, StudentCreate]] = []
    for row_number, values in rows:
        try:
            valid.append((row_number, StudentCreate(**values)))
        except ValidationError as e:
            message = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            result.errors.append(ImportRowError(row=row_number, message=message))

    existing = await repository.existing_passports(
        db, actor.agency_id, [data.passport_number for _, data in valid]
    )
    seen: set[str] = set()
    for _, data in valid:
        if data.passport_number in existing or data.passport_number in seen:
            result.skipped_duplicates.append(data.passport_number)
            continue
        seen.add(data.passport_number)
        student = repository.add_student(db, actor.agency_id, id=uuid.uuid4(), **data.model_dump())
        log_activity(
            db,
            agency_id=actor.agency_id,
            user_id=actor.id,
            entity_type=EntityType.STUDENT,
            entity_id=student.id,
            action=ActivityAction.IMPORTED,
            description=f"Imported student {student.full_name} from CSV",
        )
        result.created += 1

    if result.created:
        await db.commit()

    logger.info(
        f"Student import in agency {actor.agency_id}: {result.created} created, "
        f"{len(result.skipped_duplicates)} skipped, {len(result.errors)} errors"
    )
    return result


# ============================================
# Notes
# ============================================


def _note_response(note: StudentNote, author_name: str | None) -> NoteResponse:
    response = NoteResponse.model_validate(note)
    response.author_name = author_name
    return response


async def list_notes(db: AsyncSession, agency_id: UUID, student_id: UUID) -> list[NoteResponse]:
    await get_student(db, agency_id, student_id)
    rows = await repository.list_notes(db, agency_id, student_id)
    return [_note_response(note, author) for note, author in rows]


async def create_note(
    db: AsyncSession, actor: CurrentUser, student_id: UUID, content: str
) -> NoteResponse:
    await get_student(db, actor.agency_id, student_id)
    note = await repository.create_note(db, actor.agency_id, student_id, actor.id, content)
    return _note_response(note, actor.name)


async def _get_editable_note(
    db: AsyncSession, actor: CurrentUser, student_id: UUID, note_id: UUID
) -> StudentNote:
    note = await repository.get_note(db, actor.agency_id, student_id, note_id)
    if not note:
        raise NotFoundError("Note", note_id)
    if note.user_id != actor.id and not actor.is_admin:
        raise ForbiddenError("Only the author or an agency admin can change this note.")
    return note


async def update_note(
    db: AsyncSession, actor: CurrentUser, student_id: UUID, note_id: UUID, content: str
) -> NoteResponse:
    note = await _get_editable_note(db, actor, student_id, note_id)
    note = await repository.save(db, note, {"content": content})
    return _note_response(note, None)


async def delete_note(
    db: AsyncSession, actor: CurrentUser, student_id: UUID, note_id: UUID
) -> None:
    note = await _get_editable_note(db, actor, student_id, note_id)
    await repository.delete(db, note)


# ============================================
# Documents
# ============================================


def _upload_root() -> Path:
    return Path(settings.upload_dir)


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def _remove_file(relative_path: str) -> None:
    path = _upload_root() / relative_path
    try:
        await asyncio.to_thread(path.unlink, missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove stored file {relative_path}: {e}")


async def list_documents(
    db: AsyncSession, agency_id: UUID, student_id: UUID
) -> list[StudentDocument]:
    await get_student(db, agency_id, student_id)
    return await repository.list_documents(db, agency_id, student_id)


async def read_upload(file: UploadFile, max_bytes: int | None = None) -> bytes:
    """
    Read an uploaded file in chunks, stopping once it passes the size limit.

    Raises:
        ValidationFailedError: If the file is larger than ``max_bytes``
            (the configured upload limit by default)
    """
    limit = settings.max_upload_size_bytes if max_bytes is None else max_bytes
    buffer = bytearray()
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > limit:
            logger.warning(f"Rejected upload {file.filename!r}: over {limit} bytes")
            raise ValidationFailedError(
                f"Files may be at most {settings.max_upload_size_mb} MB.", "FILE_TOO_LARGE"
            )
    return bytes(buffer)


async def upload_document(
    db: AsyncSession,
    actor: CurrentUser,
    student_id: UUID,
    *,
    document_type: DocumentType,
    file_name: str,
    content_type: str | None,
    data: bytes,
) -> StudentDocument:
    """
    Store an uploaded file and record it against the student.

    Raises:
        ValidationFailedError: If the file is empty, too large or not an allowed type
    """
    await get_student(db, actor.agency_id, student_id)

    extension = ALLOWED_DOCUMENT_TYPES.get(content_type or "")
    if extension is None:
        raise ValidationFailedError(
            "Only PDF, JPEG and PNG files can be uploaded.", "UNSUPPORTED_FILE_TYPE"
        )
    if not data:
        raise ValidationFailedError("The uploaded file is empty.", "EMPTY_FILE")
    if len(data) > settings.max_upload_size_bytes:
        raise ValidationFailedError(
            f"Files may be at most {settings.max_upload_size_mb} MB.", "FILE_TOO_LARGE"
        )

    relative_path = f"{actor.agency_id}/{student_id}/{uuid.uuid4().hex}{extension}"
    await asyncio.to_thread(_write_file, _upload_root() / relative_path, data)

    try:
        document = await repository.create_document(
            db,
            actor.agency_id,
            student_id,
            document_type=document_type,
            file_name=Path(file_name).name or f"document{extension}",
            file_path=relative_path,
            file_size=len(data),
            content_type=content_type,
            uploaded_by=actor.id,
        )
    except Exception:
        await _remove_file(relative_path)
        raise

    logger.info(f"Stored document {document.id} for student {student_id}")
    return document


async def get_document_file(
    db: AsyncSession, agency_id: UUID, student_id: UUID, document_id: UUID
) -> tuple[StudentDocument, Path]:
    """The document row and the absolute path of its stored file."""
    document = await repository.get_document(db, agency_id, student_id, document_id)
    if not document:
        raise NotFoundError("Document", document_id)

    path = _upload_root() / document.file_path
    if not path.is_file():
        logger.error(f"Stored file missing for document {document_id}")
        raise NotFoundError("Document file", document_id)
    return document, path


async def delete_document(
    db: AsyncSession, actor: CurrentUser, student_id: UUID, document_id: UUID
) -> None:
    document = await repository.get_document(db, actor.agency_id, student_id, document_id)
    if not document:
        raise NotFoundError("Document", document_id)
    if document.uploaded_by != actor.id and not actor.is_admin:
        raise ForbiddenError("Only the uploader or an agency admin can delete this document.")

    await repository.delete(db, document)
    await _remove_file(document.file_path)


# ============================================
# Payment history
# ============================================


def _in_range(inst: Installment, date_from: date | None, date_to: date | None) -> bool:
    if date_from is None and date_to is None:
        return True
    due = inst.student_due_date
    if due is None:
        return False
    if date_from and due < date_from:
        return False
    if date_to and due > date_to:
        return False
    return True


def summarize_history(plans: list[HistoryPlan]) -> PaymentHistorySummary:
    """Paid and outstanding totals across every installment in the history."""
    total_paid = ZERO
    total_outstanding = ZERO
    for plan in plans:
        for inst in plan.installments:
            if inst.paid_amount:
                total_paid += Decimal(inst.paid_amount)
            if inst.paid_date is None and inst.status != InstallmentStatus.CANCELLED:
                total_outstanding += Decimal(inst.amount)

    return PaymentHistorySummary(
        total_paid=round_money(total_paid),
        total_outstanding=round_money(total_outstanding),
        percentage_paid=percentage(total_paid, total_paid + total_outstanding),
    )


async def get_payment_history(
    db: AsyncSession,
    agency_id: UUID,
    student_id: UUID,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
) -> PaymentHistoryResponse:
    """
    A student's payment plans with their installments.

    When a date range is given only installments whose student due date
    falls inside it are included, and plans left empty are dropped.
    """
    if date_from and date_to and date_from > date_to:
        raise ValidationFailedError("date_from must be on or before date_to", "INVALID_DATE_RANGE")

    student = await get_student(db, agency_id, student_id)
    plans = await repository.list_student_plans(db, agency_id, student_id)

    history: list[HistoryPlan] = []
    for plan in plans:
        installments = [i for i in plan.installments if _in_range(i, date_from, date_to)]
        if not installments and (date_from or date_to):
            continue
        branch = plan.enrollment.branch
        history.append(
            HistoryPlan(
                payment_plan_id=plan.id,
                college_name=branch.college.name if branch.college else "",
                branch_name=branch.name,
                program_name=plan.enrollment.program_name,
                currency=plan.currency,
                total_amount=plan.total_amount,
                status=plan.status,
                start_date=plan.start_date,
                installments=[HistoryInstallment.model_validate(i) for i in installments],
            )
        )

    return PaymentHistoryResponse(
        student_id=student.id,
        student_name=student.full_name,
        date_from=date_from,
        date_to=date_to,
        plans=history,
        summary=summarize_history(history),
    )


HISTORY_EXPORT_COLUMNS = (
    "college_name",
    "branch_name",
    "program_name",
    "installment_number",
    "amount",
    "student_due_date",
    "status",
    "paid_date",
    "paid_amount",
)


def history_rows(history: PaymentHistoryResponse) -> list[dict]:
    """One export row per installment."""
    return [
        {
            "college_name": plan.college_name,
            "branch_name": plan.branch_name,
            "program_name": plan.program_name,
            "installment_number": (
                "Initial" if inst.is_initial_payment else str(inst.installment_number)
            ),
            "amount": inst.amount,
            "student_due_date": inst.student_due_date,
            "status": inst.status,
            "paid_date": inst.paid_date,
            "paid_amount": inst.paid_amount,
        }
        for plan in history.plans
        for inst in plan.installments
    ]


async def export_payment_history(
    db: AsyncSession,
    agency_id: UUID,
    student_id: UUID,
    export_format: ExportFormat,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
) -> tuple[bytes, str]:
    """
    Render a student's payment history as CSV or PDF.

    Returns:
        Tuple of (file content, download filename)
    """
    history = await get_payment_history(
        db, agency_id, student_id, date_from=date_from, date_to=date_to
    )
    rows = history_rows(history)
    prefix = f"payment_history_{student_id}"

    if export_format == ExportFormat.CSV:
        return render_csv(rows, HISTORY_EXPORT_COLUMNS), export_filename(prefix, "csv")

    period = "All dates"
    if date_from or date_to:
        period = f"{date_from or '...'} to {date_to or '...'}"
    summary = history.summary
    generated = await agency_today(db, agency_id)
    content = await asyncio.to_thread(
        render_pdf,
        f"Payment History: {history.student_name}",
        rows,
        HISTORY_EXPORT_COLUMNS,
        subtitle_lines=[f"Period: {period}", f"Generated: {generated.isoformat()}"],
        summary=[
            ("Total paid", f"{summary.total_paid:.2f}"),
            ("Total outstanding", f"{summary.total_outstanding:.2f}"),
            ("Percentage paid", f"{summary.percentage_paid:.2f}%"),
        ],
    )
    return content, export_filename(prefix, "pdf")


async def get_student_activity(
    db: AsyncSession, agency_id: UUID, student_id: UUID, limit: int = 50
) -> list[ActivityEntry]:
    """Activity on the student and on their enrollments, plans and installments."""
    await get_student(db, agency_id, student_id)
    plans = await repository.list_student_plans(db, agency_id, student_id)
    enrollment_ids = await repository.list_enrollment_ids(db, agency_id, student_id)

    entity_ids = [student_id, *enrollment_ids]
    for plan in plans:
        entity_ids.append(plan.id)
        entity_ids.extend(inst.id for inst in plan.installments)

    return await get_feed(db, agency_id, entity_ids=entity_ids, limit=limit)
