"""
Report Service

Payment plan and commission reports, as JSON or exported to CSV/PDF.
"""

import asyncio
import logging
import math
from collections import defaultdict
from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser
from pleeno.core.errors import ValidationFailedError
from pleeno.modules.agencies.service import agency_today
from pleeno.modules.payments.commission import (
    calculate_installment_commission,
    round_money,
    to_decimal,
)
from pleeno.modules.reports import repository
from pleeno.modules.reports.exporters import (
    ExportFormat,
    export_filename,
    format_cell,
    render_csv,
    render_pdf,
)
from pleeno.modules.reports.schemas import (
    CommissionPlanDetail,
    CommissionReportResponse,
    CommissionReportRow,
    CommissionsSummary,
    ContractStatus,
    PaymentPlanReportFilters,
    PaymentPlanReportResponse,
    PaymentPlanReportRow,
    PaymentPlanReportSummary,
    ReportPagination,
    SortDirection,
)

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 30

PAYMENT_PLAN_EXPORT_COLUMNS = (
    "student_name",
    "college_name",
    "branch_name",
    "program_name",
    "total_amount",
    "currency",
    "commission_rate_percent",
    "expected_commission",
    "earned_commission",
    "total_paid",
    "status",
    "start_date",
    "contract_expiration_date",
)

# Columns an export may ask for
PAYMENT_PLAN_EXPORTABLE = frozenset(PaymentPlanReportRow.model_fields) - {
    "id",
    "student_id",
    "college_id",
    "branch_id",
}

COMMISSION_EXPORT_COLUMNS = (
    "college_name",
    "branch_name",
    "branch_city",
    "commission_rate_percent",
    "plan_count",
    "student_count",
    "total_paid",
    "earned_commission",
    "outstanding_commission",
)


def contract_status(
    expiration_date: date | None, today: date
) -> tuple[int | None, ContractStatus | None]:
    """Days until the contract expires and its status; (None, None) without a date."""
    if expiration_date is None:
        return None, None
    days = (expiration_date - today).days
    if days < 0:
        return days, ContractStatus.EXPIRED
    if days <= EXPIRING_SOON_DAYS:
        return days, ContractStatus.EXPIRING_SOON
    return days, ContractStatus.ACTIVE


def to_report_row(row: dict[str, Any], today: date) -> PaymentPlanReportRow:
    days, status = contract_status(row.get("contract_expiration_date"), today)
    total_paid = round_money(row.get("total_paid"))
    return PaymentPlanReportRow(
        **{
            **row,
            "total_paid": total_paid,
            "total_remaining": max(round_money(row["total_amount"]) - total_paid, to_decimal(0)),
            "days_until_contract_expiration": days,
            "contract_status": status,
        }
    )


def resolve_export_columns(columns: Sequence[str] | None) -> list[str]:
    """
    Columns to export, in the requested order.

    Raises:
        ValidationFailedError: If an unknown column is requested
    """
    if not columns:
        return list(PAYMENT_PLAN_EXPORT_COLUMNS)

    unknown = [c for c in columns if c not in PAYMENT_PLAN_EXPORTABLE]
    if unknown:
        raise ValidationFailedError(
            f"Unknown export columns: {', '.join(unknown)}", error_code="INVALID_COLUMNS"
        )
    # keep order, drop repeats
    return list(dict.fromkeys(columns))


def _check_sort(sort_by: str) -> None:
    if sort_by not in repository.PAYMENT_PLAN_SORT_COLUMNS:
        raise ValidationFailedError(
            f"Cannot sort by '{sort_by}'", error_code="INVALID_SORT_COLUMN"
        )


def _filter_lines(filters: PaymentPlanReportFilters) -> list[str]:
    lines = []
    if filters.date_from or filters.date_to:
        lines.append(
            f"Start date: {format_cell('date', filters.date_from) or 'any'}"
            f" to {format_cell('date', filters.date_to) or 'any'}"
        )
    if filters.statuses:
        lines.append("Status: " + ", ".join(s.value for s in filters.statuses))
    if filters.contract_expiration_from or filters.contract_expiration_to:
        lines.append(
            f"Contract expiration: {format_cell('date', filters.contract_expiration_from) or 'any'}"
            f" to {format_cell('date', filters.contract_expiration_to) or 'any'}"
        )
    return lines


# ============================================
# Payment plans report
# ============================================


async def get_payment_plans_report(
    db: AsyncSession,
    agency_id: UUID,
    filters: PaymentPlanReportFilters,
    *,
    sort_by: str = "created_at",
    sort_direction: SortDirection = SortDirection.DESC,
    page: int = 1,
    page_size: int = 25,
) -> PaymentPlanReportResponse:
    """
    Payment plans matching the filters, one page at a time.

    The summary covers every matching plan, not just the current page.
    """
    _check_sort(sort_by)

    rows = await repository.payment_plan_rows(
        db,
        agency_id,
        filters,
        sort_by=sort_by,
        sort_direction=sort_direction,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    totals = await repository.payment_plan_totals(db, agency_id, filters)

    today = await agency_today(db, agency_id)
    total_count = totals["total_count"]
    return PaymentPlanReportResponse(
        data=[to_report_row(row, today) for row in rows],
        pagination=ReportPagination(
            page=page,
            page_size=page_size,
            total_count=total_count,
            total_pages=math.ceil(total_count / page_size) if total_count else 0,
        ),
        summary=PaymentPlanReportSummary(
            total_plan_amount=round_money(totals["total_plan_amount"]),
            total_paid_amount=round_money(totals["total_paid_amount"]),
            total_expected_commission=round_money(totals["total_expected_commission"]),
            total_earned_commission=round_money(totals["total_earned_commission"]),
        ),
    )


async def export_payment_plans_report(
    db: AsyncSession,
    user: CurrentUser,
    filters: PaymentPlanReportFilters,
    export_format: ExportFormat,
    *,
    columns: Sequence[str] | None = None,
    sort_by: str = "created_at",
    sort_direction: SortDirection = SortDirection.DESC,
) -> tuple[bytes, str]:
    """
    Every plan matching the filters as CSV or PDF.

    Returns:
        Tuple of (file content, attachment filename)
    """
    _check_sort(sort_by)
    export_columns = resolve_export_columns(columns)

    rows = await repository.payment_plan_rows(
        db, user.agency_id, filters, sort_by=sort_by, sort_direction=sort_direction
    )
    today = await agency_today(db, user.agency_id)
    report_rows = [to_report_row(row, today).model_dump() for row in rows]

    if export_format == ExportFormat.CSV:
        content = render_csv(report_rows, export_columns)
    else:
        totals = await repository.payment_plan_totals(db, user.agency_id, filters)
        content = await asyncio.to_thread(
            render_pdf,
            "Payment Plans Report",
            report_rows,
            export_columns,
            subtitle_lines=[f"Generated {today.isoformat()}", *_filter_lines(filters)],
            summary=[
                ("Plans", str(totals["total_count"])),
                ("Total amount", format_cell("amount", totals["total_plan_amount"])),
                ("Total paid", format_cell("amount", totals["total_paid_amount"])),
                (
                    "Expected commission",
                    format_cell("commission", totals["total_expected_commission"]),
                ),
                ("Earned commission", format_cell("commission", totals["total_earned_commission"])),
            ],
        )

    logger.info(
        f"Payment plans report exported as {export_format.value} by user {user.id} "
        f"(agency {user.agency_id}, {len(report_rows)} rows)"
    )
    return content, export_filename("payment_plans_report", export_format.value)


# ============================================
# Commissions report
# ============================================


def _check_date_range(date_from: date, date_to: date) -> None:
    if date_from > date_to:
        raise ValidationFailedError(
            "date_from must be before or equal to date_to", error_code="INVALID_DATE_RANGE"
        )


def build_commission_rows(
    branch_rows: list[dict[str, Any]], plan_rows: list[dict[str, Any]]
) -> list[CommissionReportRow]:
    """Attach drill-down plans to their branch rows and round the totals."""
    plans_by_branch: dict[UUID, list[dict[str, Any]]] = defaultdict(list)
    for plan in plan_rows:
        plans_by_branch[plan["branch_id"]].append(plan)

    report = []
    for row in branch_rows:
        rate = to_decimal(row["commission_rate_percent"])
        details = [
            CommissionPlanDetail(
                payment_plan_id=plan["payment_plan_id"],
                student_id=plan["student_id"],
                student_name=plan["student_name"],
                total_amount=round_money(plan["total_amount"]),
                paid_amount=round_money(plan["paid_amount"]),
                commission_earned=calculate_installment_commission(
                    to_decimal(plan["commission_paid_amount"]), rate
                ),
            )
            for plan in plans_by_branch.get(row["branch_id"], [])
        ]
        report.append(
            CommissionReportRow(
                college_id=row["college_id"],
                college_name=row["college_name"],
                branch_id=row["branch_id"],
                branch_name=row["branch_name"],
                branch_city=row["branch_city"],
                commission_rate_percent=rate,
                plan_count=row["plan_count"],
                student_count=row["student_count"],
                total_paid=round_money(row["total_paid"]),
                earned_commission=round_money(row["earned_commission"]),
                outstanding_commission=round_money(row["outstanding_commission"]),
                payment_plans=details,
            )
        )
    return report


def summarize_commissions(rows: list[CommissionReportRow]) -> CommissionsSummary:
    return CommissionsSummary(
        total_paid=round_money(sum((r.total_paid for r in rows), to_decimal(0))),
        total_earned=round_money(sum((r.earned_commission for r in rows), to_decimal(0))),
        total_outstanding=round_money(
            sum((r.outstanding_commission for r in rows), to_decimal(0))
        ),
    )


async def get_commissions_report(
    db: AsyncSession,
    agency_id: UUID,
    *,
    date_from: date,
    date_to: date,
    city: str | None = None,
) -> CommissionReportResponse:
    """
    Commission per college branch for installments due in the date range.

    Raises:
        ValidationFailedError: If date_from is after date_to
    """
    _check_date_range(date_from, date_to)

    today = await agency_today(db, agency_id)
    branch_rows = await repository.commission_rows(
        db, agency_id, date_from=date_from, date_to=date_to, today=today, city=city
    )
    plan_rows = await repository.branch_plan_details(
        db, agency_id, [row["branch_id"] for row in branch_rows]
    )
    rows = build_commission_rows(branch_rows, plan_rows)

    return CommissionReportResponse(
        date_from=date_from,
        date_to=date_to,
        city=city,
        data=rows,
        summary=summarize_commissions(rows),
    )


async def export_commissions_report(
    db: AsyncSession,
    user: CurrentUser,
    export_format: ExportFormat,
    *,
    date_from: date,
    date_to: date,
    city: str | None = None,
) -> tuple[bytes, str]:
    report = await get_commissions_report(
        db, user.agency_id, date_from=date_from, date_to=date_to, city=city
    )
    rows = [row.model_dump(exclude={"payment_plans"}) for row in report.data]

    if export_format == ExportFormat.CSV:
        content = render_csv(rows, COMMISSION_EXPORT_COLUMNS)
    else:
        subtitle = [f"Installments due {date_from.isoformat()} to {date_to.isoformat()}"]
        if city:
            subtitle.append(f"City: {city}")
        content = await asyncio.to_thread(
            render_pdf,
            "Commission Report",
            rows,
            COMMISSION_EXPORT_COLUMNS,
            subtitle_lines=subtitle,
            summary=[
                ("Total paid", format_cell("amount", report.summary.total_paid)),
                ("Earned commission", format_cell("commission", report.summary.total_earned)),
                (
                    "Outstanding commission",
                    format_cell("commission", report.summary.total_outstanding),
                ),
            ],
        )

    logger.info(
        f"Commission report exported as {export_format.value} by user {user.id} "
        f"(agency {user.agency_id}, {len(rows)} branches)"
    )
    return content, export_filename("commission_report", export_format.value)
