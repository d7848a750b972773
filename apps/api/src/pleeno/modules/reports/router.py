"""
Reports Router

Endpoints:
- GET /reports/payment-plans - Filtered, sorted, paginated plans with totals
- GET /reports/payment-plans/export - Same filters as CSV or PDF
- GET /reports/commissions - Commission per college branch for a date range
- GET /reports/commissions/export - Commission report as CSV or PDF
"""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_current_user, get_tenant_db
from pleeno.core.errors import ValidationFailedError, raise_http_error, to_http_exception
from pleeno.core.rate_limit import EXPORT_RATE_LIMIT, enforce_rate_limit
from pleeno.modules.payments.models import PaymentPlanStatus
from pleeno.modules.reports import service
from pleeno.modules.reports.exporters import MEDIA_TYPES, ExportFormat, content_disposition
from pleeno.modules.reports.schemas import (
    CommissionReportResponse,
    PaymentPlanReportFilters,
    PaymentPlanReportResponse,
    SortDirection,
)

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_RESPONSES = {
    200: {"content": {"text/csv": {}, "application/pdf": {}}},
    429: {"description": "Too many exports"},
}


def payment_plan_filters(
    college_id: list[UUID] | None = Query(None, description="Repeat to filter several"),
    branch_id: list[UUID] | None = Query(None),
    student_id: list[UUID] | None = Query(None),
    status: list[PaymentPlanStatus] | None = Query(None),
    date_from: date | None = Query(None, description="Plan start date from"),
    date_to: date | None = Query(None, description="Plan start date to"),
    contract_expiration_from: date | None = Query(None),
    contract_expiration_to: date | None = Query(None),
) -> PaymentPlanReportFilters:
    try:
        return PaymentPlanReportFilters(
            college_ids=college_id or [],
            branch_ids=branch_id or [],
            student_ids=student_id or [],
            statuses=status or [],
            date_from=date_from,
            date_to=date_to,
            contract_expiration_from=contract_expiration_from,
            contract_expiration_to=contract_expiration_to,
        )
    except ValidationError as e:
        message = e.errors()[0]["msg"].removeprefix("Value error, ")
        raise to_http_exception(
            ValidationFailedError(message, error_code="INVALID_DATE_RANGE")
        ) from e


async def _limit_exports(user: CurrentUser) -> None:
    limit, window = EXPORT_RATE_LIMIT
    await enforce_rate_limit(f"export:{user.id}", limit, window)


# ============================================
# Payment plans
# ============================================


@router.get(
    "/payment-plans", response_model=PaymentPlanReportResponse, summary="Payment Plans Report"
)
async def payment_plans_report(
    filters: PaymentPlanReportFilters = Depends(payment_plan_filters),
    sort_by: str = Query("created_at"),
    sort_direction: SortDirection = Query(SortDirection.DESC),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> PaymentPlanReportResponse:
    try:
        return await service.get_payment_plans_report(
            db,
            user.agency_id,
            filters,
            sort_by=sort_by,
            sort_direction=sort_direction,
            page=page,
            page_size=page_size,
        )
    except Exception as e:
        raise_http_error(e, "Error generating payment plans report")


@router.get(
    "/payment-plans/export",
    summary="Export Payment Plans Report",
    response_class=Response,
    responses=EXPORT_RESPONSES,
)
async def export_payment_plans_report(
    format: ExportFormat = Query(ExportFormat.CSV, description="csv or pdf"),
    columns: list[str] | None = Query(None, description="Columns to include, in order"),
    filters: PaymentPlanReportFilters = Depends(payment_plan_filters),
    sort_by: str = Query("created_at"),
    sort_direction: SortDirection = Query(SortDirection.DESC),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await _limit_exports(user)
        # accept both ?columns=a&columns=b and ?columns=a,b
        requested = [c.strip() for value in columns or [] for c in value.split(",") if c.strip()]
        content, filename = await service.export_payment_plans_report(
            db,
            user,
            filters,
            format,
            columns=requested,
            sort_by=sort_by,
            sort_direction=sort_direction,
        )
        return Response(
            content=content, media_type=MEDIA_TYPES[format], headers=content_disposition(filename)
        )
    except Exception as e:
        raise_http_error(e, "Error exporting payment plans report")


# ============================================
# Commissions
# ============================================


@router.get(
    "/commissions", response_model=CommissionReportResponse, summary="Commission Report"
)
async def commissions_report(
    date_from: date = Query(..., description="Installment due date from"),
    date_to: date = Query(..., description="Installment due date to"),
    city: str | None = Query(None, max_length=100),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> CommissionReportResponse:
    try:
        return await service.get_commissions_report(
            db, user.agency_id, date_from=date_from, date_to=date_to, city=city
        )
    except Exception as e:
        raise_http_error(e, "Error generating commission report")


@router.get(
    "/commissions/export",
    summary="Export Commission Report",
    response_class=Response,
    responses=EXPORT_RESPONSES,
)
async def export_commissions_report(
    date_from: date = Query(...),
    date_to: date = Query(...),
    city: str | None = Query(None, max_length=100),
    format: ExportFormat = Query(ExportFormat.CSV, description="csv or pdf"),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await _limit_exports(user)
        content, filename = await service.export_commissions_report(
            db, user, format, date_from=date_from, date_to=date_to, city=city
        )
        return Response(
            content=content, media_type=MEDIA_TYPES[format], headers=content_disposition(filename)
        )
    except Exception as e:
        raise_http_error(e, "Error exporting commission report")
