"""
Enrollment Models

An enrollment links a student to a program at a college branch. Payment
plans hang off enrollments.
"""

import enum
import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pleeno.modules.colleges.models import Branch
from pleeno.modules.shared import BaseModel, TenantMixin, pg_enum
from pleeno.modules.students.models import Student


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Enrollment(TenantMixin, BaseModel):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint(
            "student_id",
            "branch_id",
            "program_name",
            name="uq_enrollments_student_branch_program",
        ),
    )

    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    branch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("branches.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    program_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[EnrollmentStatus] = mapped_column(
        pg_enum(EnrollmentStatus, "enrollment_status"),
        nullable=False,
        default=EnrollmentStatus.ACTIVE,
    )
    offer_letter_document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("student_documents.id", ondelete="SET NULL"),
        nullable=True,
    )

    student: Mapped[Student] = relationship(Student, lazy="joined")
    branch: Mapped[Branch] = relationship(Branch, lazy="joined")

    def __repr__(self) -> str:
        return f"<Enrollment(id={self.id}, program={self.program_name})>"
