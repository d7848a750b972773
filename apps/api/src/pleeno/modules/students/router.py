"""
Students Router

Endpoints:
- GET /students - List students (search, visa status, pagination)
- POST /students - Create student
- POST /students/import - Bulk create from a CSV upload
- GET /students/{id} - Get student
- PATCH /students/{id} - Update student
- DELETE /students/{id} - Delete student (admin)
- GET|POST /students/{id}/notes, PATCH|DELETE /students/{id}/notes/{note_id}
- GET|POST /students/{id}/documents, GET|DELETE /students/{id}/documents/{doc_id}
- GET /students/{id}/payment-history - Plans and installments with totals
- GET /students/{id}/payment-history/export - CSV or PDF download
- GET /students/{id}/activity - Activity on the student and their plans
"""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_current_user, get_tenant_db, require_admin
from pleeno.core.errors import raise_http_error
from pleeno.core.rate_limit import EXPORT_RATE_LIMIT, enforce_rate_limit
from pleeno.modules.activity.schemas import ActivityFeedResponse
from pleeno.modules.reports.exporters import MEDIA_TYPES, ExportFormat, content_disposition
from pleeno.modules.shared.schemas import NoteCreate, NoteResponse
from pleeno.modules.students import service
from pleeno.modules.students.models import DocumentType, VisaStatus
from pleeno.modules.students.schemas import (
    DocumentResponse,
    PaymentHistoryResponse,
    StudentCreate,
    StudentImportResult,
    StudentListResponse,
    StudentResponse,
    StudentUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Students
# ============================================


@router.get("", response_model=StudentListResponse, summary="List Students")
async def list_students(
    search: str | None = Query(None, min_length=1, max_length=100, description="Name/passport/email"),
    visa_status: VisaStatus | None = Query(None, description="Filter by visa status"),
    sort_by: str = Query("full_name", description="full_name, created_at, updated_at, visa_status"),
    sort_order: str = Query("asc", description="Sort direction (asc/desc)"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> StudentListResponse:
    try:
        result = await service.list_students(
            db,
            user.agency_id,
            search=search,
            visa_status=visa_status,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )
        return StudentListResponse(
            items=[StudentResponse.model_validate(s) for s in result["items"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except Exception as e:
        raise_http_error(e, "Error listing students")


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Student",
    responses={409: {"description": "Passport number already used in this agency"}},
)
async def create_student(
    data: StudentCreate,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> StudentResponse:
    try:
        student = await service.create_student(db, user, data)
        return StudentResponse.model_validate(student)
    except Exception as e:
        raise_http_error(e, "Error creating student")


@router.post(
    "/import",
    response_model=StudentImportResult,
    summary="Import Students from CSV",
    description=(
        "Columns: full_name, passport_number, email, phone, date_of_birth, "
        "nationality, visa_status. Duplicate passports are skipped; invalid "
        "rows are reported by row number."
    ),
)
async def import_students(
    file: UploadFile = File(..., description="CSV file"),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> StudentImportResult:
    try:
        content = await service.read_upload(file)
        return await service.import_students(db, user, content)
    except Exception as e:
        raise_http_error(e, "Error importing students")


@router.get("/{student_id}", response_model=StudentResponse, summary="Get Student")
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> StudentResponse:
    try:
        student = await service.get_student(db, user.agency_id, student_id)
        return StudentResponse.model_validate(student)
    except Exception as e:
        raise_http_error(e, "Error loading student")


@router.patch("/{student_id}", response_model=StudentResponse, summary="Update Student")
async def update_student(
    student_id: UUID,
    data: StudentUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> StudentResponse:
    try:
        student = await service.update_student(db, user, student_id, data)
        return StudentResponse.model_validate(student)
    except Exception as e:
        raise_http_error(e, "Error updating student")


@router.delete(
    "/{student_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Student"
)
async def delete_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> Response:
    try:
        await service.delete_student(db, admin, student_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        raise_http_error(e, "Error deleting student")


# ============================================
# Notes
# ============================================


@router.get("/{student_id}/notes", response_model=list[NoteResponse], summary="List Student Notes")
async def list_notes(
    student_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[NoteResponse]:
    try:
        return await service.list_notes(db, user.agency_id, student_id)
    except Exception as e:
        raise_http_error(e, "Error listing student notes")


@router.post(
    "/{student_id}/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Student Note",
)
async def create_note(
    student_id: UUID,
    data: NoteCreate,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> NoteResponse:
    try:
        return await service.create_note(db, user, student_id, data.content)
    except Exception as e:
        raise_http_error(e, "Error creating student note")


@router.patch(
    "/{student_id}/notes/{note_id}", response_model=NoteResponse, summary="Edit Student Note"
)
async def update_note(
    student_id: UUID,
    note_id: UUID,
    data: NoteCreate,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> NoteResponse:
    try:
        return await service.update_note(db, user, student_id, note_id, data.content)
    except Exception as e:
        raise_http_error(e, "Error updating student note")


@router.delete(
    "/{student_id}/notes/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Student Note",
)
async def delete_note(
    student_id: UUID,
    note_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await service.delete_note(db, user, student_id, note_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        raise_http_error(e, "Error deleting student note")


# ============================================
# Documents
# ============================================


@router.get(
    "/{student_id}/documents", response_model=list[DocumentResponse], summary="List Documents"
)
async def list_documents(
    student_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[DocumentResponse]:
    try:
        documents = await service.list_documents(db, user.agency_id, student_id)
        return [DocumentResponse.model_validate(d) for d in documents]
    except Exception as e:
        raise_http_error(e, "Error listing documents")


@router.post(
    "/{student_id}/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload Document",
    responses={400: {"description": "Unsupported file type or file too large"}},
)
async def upload_document(
    student_id: UUID,
    file: UploadFile = File(..., description="PDF, JPEG or PNG"),
    document_type: DocumentType = Form(DocumentType.OTHER),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> DocumentResponse:
    try:
        data = await service.read_upload(file)
        document = await service.upload_document(
            db,
            user,
            student_id,
            document_type=document_type,
            file_name=file.filename or "",
            content_type=file.content_type,
            data=data,
        )
        return DocumentResponse.model_validate(document)
    except Exception as e:
        raise_http_error(e, "Error uploading document")


@router.get("/{student_id}/documents/{document_id}", summary="Download Document")
async def download_document(
    student_id: UUID,
    document_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> FileResponse:
    try:
        document, path = await service.get_document_file(
            db, user.agency_id, student_id, document_id
        )
        return FileResponse(
            path,
            media_type=document.content_type or "application/octet-stream",
            filename=document.file_name,
        )
    except Exception as e:
        raise_http_error(e, "Error downloading document")


@router.delete(
    "/{student_id}/documents/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Document",
)
async def delete_document(
    student_id: UUID,
    document_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await service.delete_document(db, user, student_id, document_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        raise_http_error(e, "Error deleting document")


# ============================================
# Payment history and activity
# ============================================


@router.get(
    "/{student_id}/payment-history",
    response_model=PaymentHistoryResponse,
    summary="Student Payment History",
)
async def get_payment_history(
    student_id: UUID,
    date_from: date | None = Query(None, description="Earliest student due date"),
    date_to: date | None = Query(None, description="Latest student due date"),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> PaymentHistoryResponse:
    try:
        return await service.get_payment_history(
            db, user.agency_id, student_id, date_from=date_from, date_to=date_to
        )
    except Exception as e:
        raise_http_error(e, "Error loading payment history")


@router.get(
    "/{student_id}/payment-history/export",
    summary="Export Payment History",
    response_class=Response,
    responses={
        200: {"content": {"text/csv": {}, "application/pdf": {}}},
        429: {"description": "Too many exports"},
    },
)
async def export_payment_history(
    student_id: UUID,
    format: ExportFormat = Query(ExportFormat.PDF, description="csv or pdf"),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        limit, window = EXPORT_RATE_LIMIT
        await enforce_rate_limit(f"export:{user.id}", limit, window)

        content, filename = await service.export_payment_history(
            db, user.agency_id, student_id, format, date_from=date_from, date_to=date_to
        )
        logger.info(f"User {user.id} exported payment history for student {student_id}")
        return Response(
            content=content,
            media_type=MEDIA_TYPES[format],
            headers=content_disposition(filename),
        )
    except Exception as e:
        raise_http_error(e, "Error exporting payment history")


@router.get(
    "/{student_id}/activity", response_model=ActivityFeedResponse, summary="Student Activity"
)
async def get_student_activity(
    student_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> ActivityFeedResponse:
    try:
        items = await service.get_student_activity(db, user.agency_id, student_id, limit=limit)
        return ActivityFeedResponse(items=items)
    except Exception as e:
        raise_http_error(e, "Error loading student activity")
