"""
Student Schemas

Pydantic schemas for students, their documents, CSV import results and
payment history.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from pleeno.modules.payments.models import InstallmentStatus, PaymentPlanStatus
from pleeno.modules.students.models import DocumentType, VisaStatus


def _normalize_passport(value: str | None) -> str | None:
    if value is None:
        return value
    return value.strip().upper()


class StudentCreate(BaseModel):
    """
    Request body for POST /students, also used to validate CSV import rows.

    Passport numbers are stored trimmed and upper-cased.
    """

    full_name: str = Field(..., min_length=1, max_length=255)
    passport_number: str = Field(..., min_length=1, max_length=50)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    date_of_birth: date | None = None
    nationality: str | None = Field(None, max_length=100)
    visa_status: VisaStatus | None = None

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("full_name cannot be blank")
        return v

    @field_validator("passport_number")
    @classmethod
    def normalize_passport(cls, v: str) -> str:
        v = _normalize_passport(v)
        if not v:
            raise ValueError("passport_number cannot be blank")
        return v

    @field_validator("date_of_birth")
    @classmethod
    def not_in_future(cls, v: date | None) -> date | None:
        if v is not None and v > date.today():
            raise ValueError("date_of_birth cannot be in the future")
        return v


class StudentUpdate(BaseModel):
    full_name: str | None = Field(None, min_length=1, max_length=255)
    passport_number: str | None = Field(None, min_length=1, max_length=50)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    date_of_birth: date | None = None
    nationality: str | None = Field(None, max_length=100)
    visa_status: VisaStatus | None = None

    @field_validator("passport_number")
    @classmethod
    def normalize_passport(cls, v: str | None) -> str | None:
        return _normalize_passport(v)


class StudentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    passport_number: str
    email: str | None
    phone: str | None
    date_of_birth: date | None
    nationality: str | None
    visa_status: VisaStatus | None
    created_at: datetime
    updated_at: datetime


class StudentListResponse(BaseModel):
    items: list[StudentResponse]
    total: int
    skip: int
    limit: int


class ImportRowError(BaseModel):
    row: int
    message: str


class StudentImportResult(BaseModel):
    """Outcome of POST /students/import. Row numbers count the header as row 1."""

    created: int = 0
    skipped_duplicates: list[str] = []
    errors: list[ImportRowError] = []


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    document_type: DocumentType
    file_name: str
    file_size: int
    content_type: str | None
    uploaded_by: UUID | None
    created_at: datetime


# ============================================
# Payment history
# ============================================


class HistoryInstallment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    installment_number: int
    is_initial_payment: bool
    amount: Decimal
    student_due_date: date | None
    college_due_date: date | None
    status: InstallmentStatus
    paid_date: date | None
    paid_amount: Decimal | None


class HistoryPlan(BaseModel):
    payment_plan_id: UUID
    college_name: str
    branch_name: str
    program_name: str
    currency: str
    total_amount: Decimal
    status: PaymentPlanStatus
    start_date: date
    installments: list[HistoryInstallment]


class PaymentHistorySummary(BaseModel):
    total_paid: Decimal
    total_outstanding: Decimal
    percentage_paid: Decimal


class PaymentHistoryResponse(BaseModel):
    student_id: UUID
    student_name: str
    date_from: date | None = None
    date_to: date | None = None
    plans: list[HistoryPlan]
    summary: PaymentHistorySummary
