"""
Student Models

Students, their notes and uploaded documents.
"""

import enum
import uuid
from datetime import date

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from pleeno.modules.shared import BaseModel, TenantMixin, pg_enum


class VisaStatus(str, enum.Enum):
    IN_PROCESS = "in_process"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"


class DocumentType(str, enum.Enum):
    OFFER_LETTER = "offer_letter"
    PASSPORT = "passport"
    VISA = "visa"
    OTHER = "other"


class Student(TenantMixin, BaseModel):
    """
    A student placed by the agency.

    Passport numbers are unique within an agency; two agencies may hold the
    same student independently.
    """

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("agency_id", "passport_number", name="uq_students_agency_passport"),
        Index("ix_students_agency_full_name", "agency_id", "full_name"),
    )

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    passport_number: Mapped[str] = mapped_column(String(50), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(100), nullable=True)
    visa_status: Mapped[VisaStatus | None] = mapped_column(
        pg_enum(VisaStatus, "visa_status"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, full_name={self.full_name})>"


class StudentNote(TenantMixin, BaseModel):
    __tablename__ = "student_notes"
    __table_args__ = (
        CheckConstraint("char_length(content) <= 2000", name="ck_student_notes_content_length"),
    )

    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)


class StudentDocument(TenantMixin, BaseModel):
    """Metadata for a file stored under UPLOAD_DIR."""

    __tablename__ = "student_documents"

    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type: Mapped[DocumentType] = mapped_column(
        pg_enum(DocumentType, "document_type"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
