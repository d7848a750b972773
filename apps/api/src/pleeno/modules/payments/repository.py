"""
Payment Repository

Database operations for payment plans and installments. Every query is
filtered by agency_id, except the job queries which scan one agency at a
time on the caller's behalf.
"""

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.colleges.models import Branch
from pleeno.modules.enrollments.models import Enrollment
from pleeno.modules.payments.models import (
    Installment,
    InstallmentStatus,
    PaymentPlan,
    PaymentPlanStatus,
)
from pleeno.modules.students.models import Student

# ============================================
# Payment plans
# ============================================


def add_plan(db: AsyncSession, agency_id: UUID, **fields: Any) -> PaymentPlan:
    """Stage a plan on the session; the caller commits."""
    plan = PaymentPlan(agency_id=agency_id, **fields)
    db.add(plan)
    return plan


def add_installment(
    db: AsyncSession, agency_id: UUID, payment_plan_id: UUID, **fields: Any
) -> Installment:
    installment = Installment(agency_id=agency_id, payment_plan_id=payment_plan_id, **fields)
    db.add(installment)
    return installment


async def get_plan(db: AsyncSession, agency_id: UUID, plan_id: UUID) -> PaymentPlan | None:
    """Load a plan with its enrollment and installments, refreshing any cached copy."""
    result = await db.execute(
        select(PaymentPlan)
        .where(PaymentPlan.id == plan_id, PaymentPlan.agency_id == agency_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def list_plans(
    db: AsyncSession,
    agency_id: UUID,
    *,
    status: PaymentPlanStatus | None = None,
    student_id: UUID | None = None,
    college_id: UUID | None = None,
    branch_id: UUID | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[PaymentPlan], int]:
    """
    List plans, newest first.

    Returns:
        Tuple of (plans, total count before pagination)
    """
    query = (
        select(PaymentPlan)
        .join(Enrollment, Enrollment.id == PaymentPlan.enrollment_id)
        .join(Branch, Branch.id == Enrollment.branch_id)
        .join(Student, Student.id == Enrollment.student_id)
        .where(PaymentPlan.agency_id == agency_id)
    )

    if status:
        query = query.where(PaymentPlan.status == status)
    if student_id:
        query = query.where(Enrollment.student_id == student_id)
    if branch_id:
        query = query.where(Enrollment.branch_id == branch_id)
    if college_id:
        query = query.where(Branch.college_id == college_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(Student.full_name.ilike(pattern), PaymentPlan.reference_number.ilike(pattern))
        )

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    result = await db.execute(
        query.order_by(PaymentPlan.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.unique().scalars().all()), total


# ============================================
# Installments
# ============================================


async def get_installment(
    db: AsyncSession, agency_id: UUID, installment_id: UUID
) -> Installment | None:
    result = await db.execute(
        select(Installment).where(
            Installment.id == installment_id,
            Installment.agency_id == agency_id,
        )
    )
    return result.scalar_one_or_none()


async def list_installments(db: AsyncSession, agency_id: UUID, plan_id: UUID) -> list[Installment]:
    result = await db.execute(
        select(Installment)
        .where(Installment.agency_id == agency_id, Installment.payment_plan_id == plan_id)
        .order_by(Installment.installment_number)
    )
    return list(result.scalars().all())


async def cancel_unpaid_installments(db: AsyncSession, agency_id: UUID, plan_id: UUID) -> int:
    """Mark every installment of the plan without a payment as cancelled. Not committed."""
    result = await db.execute(
        update(Installment)
        .where(
            Installment.agency_id == agency_id,
            Installment.payment_plan_id == plan_id,
            Installment.status.in_(
                [InstallmentStatus.DRAFT, InstallmentStatus.PENDING, InstallmentStatus.OVERDUE]
            ),
        )
        .values(status=InstallmentStatus.CANCELLED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


# ============================================
# Job queries
# ============================================


async def find_overdue_candidates(
    db: AsyncSession, agency_id: UUID, today: date, include_today: bool
) -> list[tuple[Installment, PaymentPlan]]:
    """
    Pending installments of active plans that should now be overdue.

    Args:
        today: The agency's local date
        include_today: Whether installments due today are past the cutoff
    """
    due_condition = Installment.student_due_date < today
    if include_today:
        due_condition = Installment.student_due_date <= today

    result = await db.execute(
        select(Installment, PaymentPlan)
        .join(PaymentPlan, PaymentPlan.id == Installment.payment_plan_id)
        .where(
            Installment.agency_id == agency_id,
            PaymentPlan.status == PaymentPlanStatus.ACTIVE,
            Installment.status == InstallmentStatus.PENDING,
            due_condition,
        )
        .order_by(Installment.student_due_date)
    )
    return [(inst, plan) for inst, plan in result.unique().all()]


async def find_due_soon(
    db: AsyncSession, agency_id: UUID, today: date, until: date
) -> list[tuple[Installment, PaymentPlan]]:
    """Pending installments of active plans due between today and ``until`` inclusive."""
    result = await db.execute(
        select(Installment, PaymentPlan)
        .join(PaymentPlan, PaymentPlan.id == Installment.payment_plan_id)
        .where(
            Installment.agency_id == agency_id,
            PaymentPlan.status == PaymentPlanStatus.ACTIVE,
            Installment.status == InstallmentStatus.PENDING,
            Installment.student_due_date >= today,
            Installment.student_due_date <= until,
        )
        .order_by(Installment.student_due_date)
    )
    return [(inst, plan) for inst, plan in result.unique().all()]
