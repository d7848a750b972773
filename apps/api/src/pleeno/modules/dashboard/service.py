"""
Dashboard Service

Figures for the agency dashboard. Dates are taken in the agency's timezone
so "today" matches what the overdue job uses.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.errors import NotFoundError
from pleeno.modules.agencies.models import Agency
from pleeno.modules.agencies.repository import AgencyRepository
from pleeno.modules.agencies.service import agency_local_now
from pleeno.modules.dashboard import repository
from pleeno.modules.dashboard.schemas import (
    CashFlowBucket,
    CashFlowGrouping,
    CashFlowInstallment,
    CashFlowProjectionResponse,
    CollegeCommission,
    CommissionByCollegeResponse,
    CommissionPeriod,
    DueSoonPayment,
    DueSoonResponse,
    KpiResponse,
    OverduePayment,
    OverduePaymentsResponse,
    PaymentStatusSummaryResponse,
    StatusTotal,
)
from pleeno.modules.payments import repository as payments_repository
from pleeno.modules.payments.commission import ZERO, percentage, round_money
from pleeno.modules.payments.models import InstallmentStatus
from pleeno.modules.reports.exporters import (
    ExportFormat,
    export_filename,
    format_cell,
    render_csv,
    render_pdf,
)

logger = logging.getLogger(__name__)


async def _get_agency(db: AsyncSession, agency_id: UUID) -> Agency:
    agency = await AgencyRepository.get_by_id(db, agency_id)
    if not agency:
        raise NotFoundError("Agency", agency_id)
    return agency


def _local_today(agency: Agency) -> date:
    return agency_local_now(agency).date()


def _sum(values: Iterable[Any]) -> Decimal:
    return round_money(sum((Decimal(v) for v in values), ZERO))


def period_range(period: CommissionPeriod, today: date) -> tuple[date | None, date | None]:
    """First and last day of the calendar period containing ``today``."""
    if period == CommissionPeriod.YEAR:
        start, months = date(today.year, 1, 1), 12
    elif period == CommissionPeriod.QUARTER:
        start, months = date(today.year, 3 * ((today.month - 1) // 3) + 1, 1), 3
    elif period == CommissionPeriod.MONTH:
        start, months = date(today.year, today.month, 1), 1
    else:
        return None, None
    return start, start + relativedelta(months=months) - timedelta(days=1)


async def get_kpis(db: AsyncSession, agency_id: UUID) -> KpiResponse:
    """
    Headline numbers.

    collection_rate is the share of money due up to today that has been paid.
    """
    agency = await _get_agency(db, agency_id)
    collection = await repository.collection_totals(db, agency_id, _local_today(agency))

    return KpiResponse(
        active_students=await repository.count_active_students(db, agency_id),
        active_payment_plans=await repository.count_active_plans(db, agency_id),
        outstanding_amount=round_money(await repository.outstanding_amount(db, agency_id)),
        earned_commission=round_money(await repository.earned_commission_total(db, agency_id)),
        collection_rate=percentage(collection["paid"], collection["due"]),
        currency=agency.currency,
    )


def build_status_summary(rows: list[dict[str, Any]]) -> PaymentStatusSummaryResponse:
    """One entry per installment status, zero-filled, in lifecycle order."""
    by_status = {row["status"]: row for row in rows}
    statuses = [
        StatusTotal(
            status=status,
            count=by_status.get(status, {}).get("count", 0),
            total_amount=round_money(by_status.get(status, {}).get("total_amount", 0)),
        )
        for status in InstallmentStatus
    ]
    return PaymentStatusSummaryResponse(
        statuses=statuses,
        total_count=sum(s.count for s in statuses),
        total_amount=_sum(s.total_amount for s in statuses),
    )


async def get_payment_status_summary(
    db: AsyncSession, agency_id: UUID
) -> PaymentStatusSummaryResponse:
    rows = await repository.installment_status_totals(db, agency_id)
    return build_status_summary(rows)


async def get_overdue_payments(db: AsyncSession, agency_id: UUID) -> OverduePaymentsResponse:
    agency = await _get_agency(db, agency_id)
    today = _local_today(agency)
    rows = await repository.overdue_installments(db, agency_id)

    payments = [
        OverduePayment(**row, days_overdue=max((today - row["due_date"]).days, 0))
        for row in rows
    ]
    return OverduePaymentsResponse(
        overdue_payments=payments,
        total_count=len(payments),
        total_amount=_sum(p.amount for p in payments),
    )


async def get_due_soon(db: AsyncSession, agency_id: UUID) -> DueSoonResponse:
    """Pending installments due between today and the agency's threshold."""
    agency = await _get_agency(db, agency_id)
    today = _local_today(agency)
    threshold = agency.due_soon_threshold_days
    pairs = await payments_repository.find_due_soon(
        db, agency_id, today, today + timedelta(days=threshold)
    )

    due_soon = []
    for installment, plan in pairs:
        enrollment = plan.enrollment
        due_soon.append(
            DueSoonPayment(
                id=installment.id,
                payment_plan_id=plan.id,
                installment_number=installment.installment_number,
                student_id=enrollment.student_id,
                student_name=enrollment.student.full_name,
                college_name=enrollment.branch.college.name,
                program_name=enrollment.program_name,
                amount=installment.amount,
                currency=plan.currency,
                due_date=installment.student_due_date,
                days_until_due=(installment.student_due_date - today).days,
            )
        )

    return DueSoonResponse(
        due_soon=due_soon,
        threshold_days=threshold,
        total_count=len(due_soon),
        total_amount=_sum(p.amount for p in due_soon),
    )


async def get_commission_by_college(
    db: AsyncSession, agency_id: UUID, period: CommissionPeriod = CommissionPeriod.ALL
) -> CommissionByCollegeResponse:
    """Expected vs earned commission per college for plans starting in the period."""
    start_from, start_to = None, None
    if period != CommissionPeriod.ALL:
        agency = await _get_agency(db, agency_id)
        start_from, start_to = period_range(period, _local_today(agency))

    rows = await repository.commission_by_college(
        db, agency_id, start_from=start_from, start_to=start_to
    )
    colleges = []
    for row in rows:
        expected = round_money(row["expected_commission"])
        earned = round_money(row["earned_commission"])
        colleges.append(
            CollegeCommission(
                college_id=row["college_id"],
                college_name=row["college_name"],
                payment_plan_count=row["payment_plan_count"],
                expected_commission=expected,
                earned_commission=earned,
                outstanding_commission=max(expected - earned, ZERO),
            )
        )
    return CommissionByCollegeResponse(period=period, colleges=colleges)


# ============================================
# Cash flow projection
# ============================================

CASH_FLOW_EXPORT_COLUMNS = ["date_bucket", "paid_amount", "expected_amount", "installment_count"]


def bucket_start(day: date, group_by: CashFlowGrouping) -> date:
    """First day of the bucket holding ``day``; weeks start on Monday."""
    if group_by == CashFlowGrouping.WEEK:
        return day - timedelta(days=day.weekday())
    if group_by == CashFlowGrouping.MONTH:
        return day.replace(day=1)
    return day


def _next_bucket(start: date, group_by: CashFlowGrouping) -> date:
    if group_by == CashFlowGrouping.WEEK:
        return start + timedelta(weeks=1)
    if group_by == CashFlowGrouping.MONTH:
        return start + relativedelta(months=1)
    return start + timedelta(days=1)


def _split_paid(row: dict[str, Any]) -> tuple[Decimal, Decimal]:
    """(paid, still expected) for one installment row."""
    amount = Decimal(row["amount"])
    if row["status"] == InstallmentStatus.PAID:
        paid = Decimal(row["paid_amount"]) if row["paid_amount"] is not None else amount
        return round_money(paid), ZERO
    paid = Decimal(row["paid_amount"] or 0)
    return round_money(paid), round_money(max(amount - paid, ZERO))


def build_cash_flow(
    rows: list[dict[str, Any]],
    date_from: date,
    date_to: date,
    group_by: CashFlowGrouping,
    currency: str,
) -> CashFlowProjectionResponse:
    """
    Group installment rows into consecutive buckets covering the range.

    Every bucket between ``date_from`` and ``date_to`` is present, empty ones
    with zero amounts, so charts get a continuous axis.
    """
    buckets: dict[date, CashFlowBucket] = {}
    start = bucket_start(date_from, group_by)
    while start <= date_to:
        buckets[start] = CashFlowBucket(
            date_bucket=start,
            paid_amount=ZERO,
            expected_amount=ZERO,
            installment_count=0,
            installments=[],
        )
        start = _next_bucket(start, group_by)

    for row in rows:
        bucket = buckets.get(bucket_start(row["due_date"], group_by))
        if bucket is None:
            continue
        paid, expected = _split_paid(row)
        bucket.paid_amount += paid
        bucket.expected_amount += expected
        bucket.installment_count += 1
        bucket.installments.append(
            CashFlowInstallment(
                id=row["id"],
                student_name=row["student_name"],
                college_name=row["college_name"],
                amount=round_money(row["amount"]),
                status=row["status"],
                due_date=row["due_date"],
            )
        )

    ordered = list(buckets.values())
    return CashFlowProjectionResponse(
        date_from=date_from,
        date_to=date_to,
        group_by=group_by,
        currency=currency,
        total_paid=_sum(b.paid_amount for b in ordered),
        total_expected=_sum(b.expected_amount for b in ordered),
        buckets=ordered,
    )


async def get_cash_flow_projection(
    db: AsyncSession,
    agency_id: UUID,
    *,
    days: int = 90,
    group_by: CashFlowGrouping = CashFlowGrouping.WEEK,
) -> CashFlowProjectionResponse:
    """Money received and still expected from today over the next ``days`` days."""
    agency = await _get_agency(db, agency_id)
    date_from = _local_today(agency)
    date_to = date_from + timedelta(days=days)
    rows = await repository.installments_due_between(db, agency_id, date_from, date_to)
    return build_cash_flow(rows, date_from, date_to, group_by, agency.currency)


async def export_cash_flow_projection(
    db: AsyncSession,
    agency_id: UUID,
    export_format: ExportFormat,
    *,
    days: int = 90,
    group_by: CashFlowGrouping = CashFlowGrouping.WEEK,
) -> tuple[bytes, str]:
    """
    The projection's buckets as CSV or PDF.

    Returns:
        Tuple of (file content, attachment filename)
    """
    projection = await get_cash_flow_projection(db, agency_id, days=days, group_by=group_by)
    rows = [
        bucket.model_dump(include=set(CASH_FLOW_EXPORT_COLUMNS)) for bucket in projection.buckets
    ]

    if export_format == ExportFormat.CSV:
        content = render_csv(rows, CASH_FLOW_EXPORT_COLUMNS)
    else:
        content = await asyncio.to_thread(
            render_pdf,
            "Cash Flow Projection",
            rows,
            CASH_FLOW_EXPORT_COLUMNS,
            subtitle_lines=[
                f"{projection.date_from.isoformat()} to {projection.date_to.isoformat()}",
                f"Grouped by {projection.group_by.value}, amounts in {projection.currency}",
            ],
            summary=[
                ("Received", format_cell("amount", projection.total_paid)),
                ("Expected", format_cell("amount", projection.total_expected)),
            ],
        )
    return content, export_filename("cash_flow_projection", export_format.value)
