"""
College Models

Colleges are the institutions students enroll in. Each college has one or
more branches (campuses); commission rates are recorded per branch and fall
back to the college default.
"""

import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pleeno.modules.shared import BaseModel, TenantMixin, pg_enum


class GstStatus(str, enum.Enum):
    """Whether the college's fees include GST."""

    INCLUDED = "included"
    EXCLUDED = "excluded"


class College(TenantMixin, BaseModel):
    __tablename__ = "colleges"
    __table_args__ = (
        UniqueConstraint("agency_id", "name", name="uq_colleges_agency_name"),
        CheckConstraint(
            "default_commission_rate_percent IS NULL OR "
            "(default_commission_rate_percent >= 0 AND default_commission_rate_percent <= 100)",
            name="ck_colleges_commission_rate",
        ),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    default_commission_rate_percent: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    gst_status: Mapped[GstStatus] = mapped_column(
        pg_enum(GstStatus, "gst_status"),
        nullable=False,
        default=GstStatus.INCLUDED,
    )
    contract_expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    branches: Mapped[list["Branch"]] = relationship(
        "Branch",
        back_populates="college",
        cascade="all, delete-orphan",
        order_by="Branch.name",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<College(id={self.id}, name={self.name})>"


class Branch(TenantMixin, BaseModel):
    """A campus of a college. Enrollments point at branches."""

    __tablename__ = "branches"
    __table_args__ = (
        CheckConstraint(
            "commission_rate_percent IS NULL OR "
            "(commission_rate_percent >= 0 AND commission_rate_percent <= 100)",
            name="ck_branches_commission_rate",
        ),
    )

    college_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("colleges.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    commission_rate_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    college: Mapped[College] = relationship("College", back_populates="branches", lazy="joined")

    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, name={self.name}, college_id={self.college_id})>"


class CollegeContact(TenantMixin, BaseModel):
    __tablename__ = "college_contacts"

    college_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("colleges.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role_department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)


class CollegeNote(TenantMixin, BaseModel):
    __tablename__ = "college_notes"
    __table_args__ = (
        CheckConstraint("char_length(content) <= 2000", name="ck_college_notes_content_length"),
    )

    college_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("colleges.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
