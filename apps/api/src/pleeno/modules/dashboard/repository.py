"""
Dashboard Repository

Aggregate queries behind the dashboard widgets, all scoped to one agency.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.colleges.models import Branch, College
from pleeno.modules.enrollments.models import Enrollment, EnrollmentStatus
from pleeno.modules.payments.models import (
    Installment,
    InstallmentStatus,
    PaymentPlan,
    PaymentPlanStatus,
)
from pleeno.modules.students.models import Student

_OPEN_STATUSES = (InstallmentStatus.PENDING, InstallmentStatus.PARTIAL, InstallmentStatus.OVERDUE)


async def count_active_students(db: AsyncSession, agency_id: UUID) -> int:
    """Students with at least one active enrollment."""
    result = await db.execute(
        select(func.count(distinct(Enrollment.student_id))).where(
            Enrollment.agency_id == agency_id,
            Enrollment.status == EnrollmentStatus.ACTIVE,
        )
    )
    return result.scalar() or 0


async def count_active_plans(db: AsyncSession, agency_id: UUID) -> int:
    result = await db.execute(
        select(func.count(PaymentPlan.id)).where(
            PaymentPlan.agency_id == agency_id,
            PaymentPlan.status == PaymentPlanStatus.ACTIVE,
        )
    )
    return result.scalar() or 0


async def outstanding_amount(db: AsyncSession, agency_id: UUID) -> Decimal:
    """Unpaid balance of open installments on active plans."""
    result = await db.execute(
        select(
            func.coalesce(
                func.sum(Installment.amount - func.coalesce(Installment.paid_amount, 0)), 0
            )
        )
        .join(PaymentPlan, PaymentPlan.id == Installment.payment_plan_id)
        .where(
            Installment.agency_id == agency_id,
            PaymentPlan.status == PaymentPlanStatus.ACTIVE,
            Installment.status.in_(_OPEN_STATUSES),
        )
    )
    return result.scalar() or Decimal("0")


async def earned_commission_total(db: AsyncSession, agency_id: UUID) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(PaymentPlan.earned_commission), 0)).where(
            PaymentPlan.agency_id == agency_id
        )
    )
    return result.scalar() or Decimal("0")


async def collection_totals(db: AsyncSession, agency_id: UUID, today: date) -> dict[str, Any]:
    """
    Amounts due up to today and what was paid against them.

    Cancelled and draft installments are ignored.
    """
    result = await db.execute(
        select(
            func.coalesce(func.sum(Installment.amount), 0).label("due"),
            func.coalesce(func.sum(Installment.paid_amount), 0).label("paid"),
        ).where(
            Installment.agency_id == agency_id,
            Installment.student_due_date <= today,
            Installment.status.not_in([InstallmentStatus.CANCELLED, InstallmentStatus.DRAFT]),
        )
    )
    return dict(result.mappings().one())


async def installment_status_totals(db: AsyncSession, agency_id: UUID) -> list[dict[str, Any]]:
    result = await db.execute(
        select(
            Installment.status.label("status"),
            func.count(Installment.id).label("count"),
            func.coalesce(func.sum(Installment.amount), 0).label("total_amount"),
        )
        .where(Installment.agency_id == agency_id)
        .group_by(Installment.status)
    )
    return [dict(row) for row in result.mappings().all()]


async def overdue_installments(db: AsyncSession, agency_id: UUID) -> list[dict[str, Any]]:
    """Overdue installments with their student and college, oldest first."""
    result = await db.execute(
        select(
            Installment.id.label("id"),
            Installment.payment_plan_id.label("payment_plan_id"),
            Installment.installment_number.label("installment_number"),
            Installment.amount.label("amount"),
            Installment.student_due_date.label("due_date"),
            Student.id.label("student_id"),
            Student.full_name.label("student_name"),
            College.id.label("college_id"),
            College.name.label("college_name"),
            PaymentPlan.currency.label("currency"),
        )
        .join(PaymentPlan, PaymentPlan.id == Installment.payment_plan_id)
        .join(Enrollment, Enrollment.id == PaymentPlan.enrollment_id)
        .join(Student, Student.id == Enrollment.student_id)
        .join(Branch, Branch.id == Enrollment.branch_id)
        .join(College, College.id == Branch.college_id)
        .where(
            Installment.agency_id == agency_id,
            Installment.status == InstallmentStatus.OVERDUE,
        )
        .order_by(Installment.student_due_date, Student.full_name)
    )
    return [dict(row) for row in result.mappings().all()]


async def commission_by_college(
    db: AsyncSession,
    agency_id: UUID,
    *,
    start_from: date | None = None,
    start_to: date | None = None,
) -> list[dict[str, Any]]:
    """Expected and earned commission per college, highest earned first."""
    query = (
        select(
            College.id.label("college_id"),
            College.name.label("college_name"),
            func.count(PaymentPlan.id).label("payment_plan_count"),
            func.coalesce(func.sum(PaymentPlan.expected_commission), 0).label(
                "expected_commission"
            ),
            func.coalesce(func.sum(PaymentPlan.earned_commission), 0).label("earned_commission"),
        )
        .select_from(PaymentPlan)
        .join(Enrollment, Enrollment.id == PaymentPlan.enrollment_id)
        .join(Branch, Branch.id == Enrollment.branch_id)
        .join(College, College.id == Branch.college_id)
        .where(
            PaymentPlan.agency_id == agency_id,
            PaymentPlan.status != PaymentPlanStatus.CANCELLED,
        )
        .group_by(College.id, College.name)
        .order_by(func.sum(PaymentPlan.earned_commission).desc(), College.name)
    )
    if start_from:
        query = query.where(PaymentPlan.start_date >= start_from)
    if start_to:
        query = query.where(PaymentPlan.start_date <= start_to)

    result = await db.execute(query)
    return [dict(row) for row in result.mappings().all()]


async def installments_due_between(
    db: AsyncSession, agency_id: UUID, date_from: date, date_to: date
) -> list[dict[str, Any]]:
    """
    Installments of non-cancelled plans with a student due date in the range.

    Only pending, partial and paid installments are included.
    """
    result = await db.execute(
        select(
            Installment.id.label("id"),
            Installment.amount.label("amount"),
            Installment.paid_amount.label("paid_amount"),
            Installment.status.label("status"),
            Installment.student_due_date.label("due_date"),
            Student.full_name.label("student_name"),
            College.name.label("college_name"),
        )
        .join(PaymentPlan, PaymentPlan.id == Installment.payment_plan_id)
        .join(Enrollment, Enrollment.id == PaymentPlan.enrollment_id)
        .join(Student, Student.id == Enrollment.student_id)
        .join(Branch, Branch.id == Enrollment.branch_id)
        .join(College, College.id == Branch.college_id)
        .where(
            Installment.agency_id == agency_id,
            PaymentPlan.status != PaymentPlanStatus.CANCELLED,
            Installment.student_due_date >= date_from,
            Installment.student_due_date <= date_to,
            Installment.status.in_(
                [InstallmentStatus.PENDING, InstallmentStatus.PARTIAL, InstallmentStatus.PAID]
            ),
        )
        .order_by(Installment.student_due_date, Student.full_name)
    )
    return [dict(row) for row in result.mappings().all()]
