"""
Report Repository

Read-only aggregate queries. Rows come back as plain mappings keyed by the
column labels so the service can format them for JSON, CSV and PDF alike.
"""

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import Select, and_, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.colleges.models import Branch, College
from pleeno.modules.enrollments.models import Enrollment
from pleeno.modules.payments.models import Installment, InstallmentStatus, PaymentPlan
from pleeno.modules.reports.schemas import PaymentPlanReportFilters, SortDirection
from pleeno.modules.students.models import Student

_paid_total = (
    select(func.coalesce(func.sum(Installment.paid_amount), 0))
    .where(Installment.payment_plan_id == PaymentPlan.id, Installment.paid_date.is_not(None))
    .correlate(PaymentPlan)
    .scalar_subquery()
)

_commission_paid_total = (
    select(func.coalesce(func.sum(Installment.paid_amount), 0))
    .where(
        Installment.payment_plan_id == PaymentPlan.id,
        Installment.paid_date.is_not(None),
        Installment.generates_commission.is_(True),
    )
    .correlate(PaymentPlan)
    .scalar_subquery()
)

PAYMENT_PLAN_SORT_COLUMNS = {
    "student_name": Student.full_name,
    "college_name": College.name,
    "branch_name": Branch.name,
    "program_name": Enrollment.program_name,
    "total_amount": PaymentPlan.total_amount,
    "expected_commission": PaymentPlan.expected_commission,
    "earned_commission": PaymentPlan.earned_commission,
    "status": PaymentPlan.status,
    "start_date": PaymentPlan.start_date,
    "contract_expiration_date": College.contract_expiration_date,
    "created_at": PaymentPlan.created_at,
}


def _payment_plans_query(agency_id: UUID, filters: PaymentPlanReportFilters) -> Select:
    query = (
        select(
            PaymentPlan.id.label("id"),
            PaymentPlan.reference_number.label("reference_number"),
            Student.id.label("student_id"),
            Student.full_name.label("student_name"),
            College.id.label("college_id"),
            College.name.label("college_name"),
            Branch.id.label("branch_id"),
            Branch.name.label("branch_name"),
            Branch.city.label("branch_city"),
            Enrollment.program_name.label("program_name"),
            PaymentPlan.total_amount.label("total_amount"),
            PaymentPlan.currency.label("currency"),
            PaymentPlan.commission_rate_percent.label("commission_rate_percent"),
            PaymentPlan.expected_commission.label("expected_commission"),
            PaymentPlan.earned_commission.label("earned_commission"),
            PaymentPlan.status.label("status"),
            PaymentPlan.start_date.label("start_date"),
            College.contract_expiration_date.label("contract_expiration_date"),
            _paid_total.label("total_paid"),
        )
        .select_from(PaymentPlan)
        .join(Enrollment, Enrollment.id == PaymentPlan.enrollment_id)
        .join(Student, Student.id == Enrollment.student_id)
        .join(Branch, Branch.id == Enrollment.branch_id)
        .join(College, College.id == Branch.college_id)
        .where(PaymentPlan.agency_id == agency_id)
    )

    if filters.college_ids:
        query = query.where(College.id.in_(filters.college_ids))
    if filters.branch_ids:
        query = query.where(Branch.id.in_(filters.branch_ids))
    if filters.student_ids:
        query = query.where(Student.id.in_(filters.student_ids))
    if filters.statuses:
        query = query.where(PaymentPlan.status.in_(filters.statuses))
    if filters.date_from:
        query = query.where(PaymentPlan.start_date >= filters.date_from)
    if filters.date_to:
        query = query.where(PaymentPlan.start_date <= filters.date_to)
    if filters.contract_expiration_from:
        query = query.where(College.contract_expiration_date >= filters.contract_expiration_from)
    if filters.contract_expiration_to:
        query = query.where(College.contract_expiration_date <= filters.contract_expiration_to)

    return query


async def payment_plan_rows(
    db: AsyncSession,
    agency_id: UUID,
    filters: PaymentPlanReportFilters,
    *,
    sort_by: str = "created_at",
    sort_direction: SortDirection = SortDirection.DESC,
    offset: int = 0,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Report rows; ``limit=None`` returns every matching row (exports)."""
    sort_column = PAYMENT_PLAN_SORT_COLUMNS.get(sort_by, PaymentPlan.created_at)
    order = sort_column.asc() if sort_direction == SortDirection.ASC else sort_column.desc()

    query = _payment_plans_query(agency_id, filters).order_by(order, PaymentPlan.id).offset(offset)
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return [dict(row) for row in result.mappings().all()]


async def payment_plan_totals(
    db: AsyncSession, agency_id: UUID, filters: PaymentPlanReportFilters
) -> dict[str, Any]:
    """Row count and money totals over every row matching the filters."""
    sub = _payment_plans_query(agency_id, filters).subquery()
    result = await db.execute(
        select(
            func.count().label("total_count"),
            func.coalesce(func.sum(sub.c.total_amount), 0).label("total_plan_amount"),
            func.coalesce(func.sum(sub.c.total_paid), 0).label("total_paid_amount"),
            func.coalesce(func.sum(sub.c.expected_commission), 0).label(
                "total_expected_commission"
            ),
            func.coalesce(func.sum(sub.c.earned_commission), 0).label("total_earned_commission"),
        )
    )
    return dict(result.mappings().one())


# ============================================
# Commissions
# ============================================

_branch_rate = func.coalesce(
    Branch.commission_rate_percent, College.default_commission_rate_percent, 0
)


async def commission_rows(
    db: AsyncSession,
    agency_id: UUID,
    *,
    date_from: date,
    date_to: date,
    today: date,
    city: str | None = None,
) -> list[dict[str, Any]]:
    """
    One row per branch with installments due in the date range.

    - total_paid: paid amounts of paid installments
    - earned_commission: paid amounts of commission-generating installments
      times the branch rate
    - outstanding_commission: amounts of overdue unpaid commission-generating
      installments times the branch rate
    """
    is_paid = Installment.paid_date.is_not(None)
    earns = Installment.generates_commission.is_(True)
    is_outstanding = and_(
        Installment.paid_date.is_(None),
        Installment.student_due_date < today,
        earns,
        Installment.status.not_in([InstallmentStatus.CANCELLED, InstallmentStatus.DRAFT]),
    )

    query = (
        select(
            College.id.label("college_id"),
            College.name.label("college_name"),
            Branch.id.label("branch_id"),
            Branch.name.label("branch_name"),
            Branch.city.label("branch_city"),
            _branch_rate.label("commission_rate_percent"),
            func.count(distinct(PaymentPlan.id)).label("plan_count"),
            func.count(distinct(Enrollment.student_id)).label("student_count"),
            func.coalesce(func.sum(Installment.paid_amount).filter(is_paid), 0).label(
                "total_paid"
            ),
            func.coalesce(
                func.sum(Installment.paid_amount * _branch_rate / 100).filter(
                    and_(is_paid, earns)
                ),
                0,
            ).label("earned_commission"),
            func.coalesce(
                func.sum(Installment.amount * _branch_rate / 100).filter(is_outstanding), 0
            ).label("outstanding_commission"),
        )
        .select_from(Installment)
        .join(PaymentPlan, PaymentPlan.id == Installment.payment_plan_id)
        .join(Enrollment, Enrollment.id == PaymentPlan.enrollment_id)
        .join(Branch, Branch.id == Enrollment.branch_id)
        .join(College, College.id == Branch.college_id)
        .where(
            Installment.agency_id == agency_id,
            Installment.student_due_date >= date_from,
            Installment.student_due_date <= date_to,
        )
        .group_by(College.id, Branch.id)
        .order_by(College.name, Branch.name)
    )
    if city:
        query = query.where(Branch.city == city)

    result = await db.execute(query)
    return [dict(row) for row in result.mappings().all()]


async def branch_plan_details(
    db: AsyncSession, agency_id: UUID, branch_ids: list[UUID]
) -> list[dict[str, Any]]:
    """Payment plans of the given branches with their paid totals."""
    if not branch_ids:
        return []

    result = await db.execute(
        select(
            Enrollment.branch_id.label("branch_id"),
            PaymentPlan.id.label("payment_plan_id"),
            Student.id.label("student_id"),
            Student.full_name.label("student_name"),
            PaymentPlan.total_amount.label("total_amount"),
            _paid_total.label("paid_amount"),
            _commission_paid_total.label("commission_paid_amount"),
        )
        .select_from(PaymentPlan)
        .join(Enrollment, Enrollment.id == PaymentPlan.enrollment_id)
        .join(Student, Student.id == Enrollment.student_id)
        .where(PaymentPlan.agency_id == agency_id, Enrollment.branch_id.in_(branch_ids))
        .order_by(Student.full_name)
    )
    return [dict(row) for row in result.mappings().all()]
