"""
Payment Models

A payment plan is a student's total fee obligation for an enrollment.
It is split into installments; installment 0 is the optional initial
payment. Money is stored as NUMERIC(12,2), rates as NUMERIC(5,2) percent.
"""

import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pleeno.modules.enrollments.models import Enrollment
from pleeno.modules.shared import BaseModel, TenantMixin, pg_enum

MONEY = Numeric(12, 2)
RATE = Numeric(5, 2)


class PaymentPlanStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentFrequency(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    CUSTOM = "custom"


class InstallmentStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Installments still expecting money
UNPAID_STATUSES = (
    InstallmentStatus.DRAFT,
    InstallmentStatus.PENDING,
    InstallmentStatus.PARTIAL,
    InstallmentStatus.OVERDUE,
)


class PaymentPlan(TenantMixin, BaseModel):
    __tablename__ = "payment_plans"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_payment_plans_total_amount"),
        CheckConstraint(
            "commission_rate_percent >= 0 AND commission_rate_percent <= 100",
            name="ck_payment_plans_commission_rate",
        ),
        CheckConstraint(
            "materials_cost >= 0 AND admin_fees >= 0 AND other_fees >= 0",
            name="ck_payment_plans_fees",
        ),
        CheckConstraint("number_of_installments > 0", name="ck_payment_plans_installments"),
        CheckConstraint("student_lead_time_days >= 0", name="ck_payment_plans_lead_time"),
        Index("ix_payment_plans_agency_status", "agency_id", "status"),
    )

    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AUD")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[PaymentPlanStatus] = mapped_column(
        pg_enum(PaymentPlanStatus, "payment_plan_status"),
        nullable=False,
        default=PaymentPlanStatus.ACTIVE,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Commission
    commission_rate_percent: Mapped[Decimal] = mapped_column(RATE, nullable=False)
    expected_commission: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    earned_commission: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    gst_inclusive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Non-commissionable fees
    materials_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    admin_fees: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    other_fees: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)

    # Schedule
    initial_payment_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    initial_payment_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    initial_payment_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    number_of_installments: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payment_frequency: Mapped[PaymentFrequency] = mapped_column(
        pg_enum(PaymentFrequency, "payment_frequency"),
        nullable=False,
        default=PaymentFrequency.MONTHLY,
    )
    first_college_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    student_lead_time_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    enrollment: Mapped[Enrollment] = relationship(Enrollment, lazy="joined")
    installments: Mapped[list["Installment"]] = relationship(
        "Installment",
        back_populates="payment_plan",
        cascade="all, delete-orphan",
        order_by="Installment.installment_number",
        lazy="selectin",
    )

    @property
    def commissionable_value(self) -> Decimal:
        return max(
            Decimal(self.total_amount)
            - Decimal(self.materials_cost or 0)
            - Decimal(self.admin_fees or 0)
            - Decimal(self.other_fees or 0),
            Decimal("0"),
        )

    def __repr__(self) -> str:
        return f"<PaymentPlan(id={self.id}, total={self.total_amount}, status={self.status.value})>"


class Installment(TenantMixin, BaseModel):
    __tablename__ = "installments"
    __table_args__ = (
        UniqueConstraint(
            "payment_plan_id", "installment_number", name="uq_installments_plan_number"
        ),
        CheckConstraint("amount > 0", name="ck_installments_amount"),
        CheckConstraint("installment_number >= 0", name="ck_installments_number"),
        CheckConstraint(
            "paid_amount IS NULL OR paid_amount >= 0", name="ck_installments_paid_amount"
        ),
        Index("ix_installments_agency_status_due", "agency_id", "status", "student_due_date"),
    )

    payment_plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("payment_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    is_initial_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    generates_commission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    student_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    college_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[InstallmentStatus] = mapped_column(
        pg_enum(InstallmentStatus, "installment_status"),
        nullable=False,
        default=InstallmentStatus.PENDING,
    )
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_amount: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    payment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_notified_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    payment_plan: Mapped[PaymentPlan] = relationship(
        PaymentPlan, back_populates="installments", lazy="noload"
    )

    def __repr__(self) -> str:
        return (
            f"<Installment(id={self.id}, number={self.installment_number}, "
            f"status={self.status.value})>"
        )
