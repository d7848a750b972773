"""
Dashboard Router

Endpoints:
- GET /dashboard/kpis - Headline numbers
- GET /dashboard/payment-status-summary - Installment count and amount per status
- GET /dashboard/overdue-payments - Overdue installments with days overdue
- GET /dashboard/due-soon - Pending installments due within the agency threshold
- GET /dashboard/commission-by-college - Expected vs earned commission per college
- GET /dashboard/cash-flow-projection - Received and expected money by day, week or month
- GET /dashboard/cash-flow-projection/export - Same projection as CSV or PDF
"""

import logging

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_current_user, get_tenant_db
from pleeno.core.errors import raise_http_error
from pleeno.core.rate_limit import EXPORT_RATE_LIMIT, enforce_rate_limit
from pleeno.modules.dashboard import service
from pleeno.modules.dashboard.schemas import (
    CashFlowGrouping,
    CashFlowProjectionResponse,
    CommissionByCollegeResponse,
    CommissionPeriod,
    DueSoonResponse,
    KpiResponse,
    OverduePaymentsResponse,
    PaymentStatusSummaryResponse,
)
from pleeno.modules.reports.exporters import MEDIA_TYPES, ExportFormat, content_disposition

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/kpis", response_model=KpiResponse, summary="Dashboard KPIs")
async def get_kpis(
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> KpiResponse:
    try:
        return await service.get_kpis(db, user.agency_id)
    except Exception as e:
        raise_http_error(e, "Error loading KPIs")


@router.get(
    "/payment-status-summary",
    response_model=PaymentStatusSummaryResponse,
    summary="Payment Status Summary",
)
async def get_payment_status_summary(
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> PaymentStatusSummaryResponse:
    try:
        return await service.get_payment_status_summary(db, user.agency_id)
    except Exception as e:
        raise_http_error(e, "Error loading payment status summary")


@router.get(
    "/overdue-payments", response_model=OverduePaymentsResponse, summary="Overdue Payments"
)
async def get_overdue_payments(
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> OverduePaymentsResponse:
    try:
        return await service.get_overdue_payments(db, user.agency_id)
    except Exception as e:
        raise_http_error(e, "Error loading overdue payments")


@router.get("/due-soon", response_model=DueSoonResponse, summary="Payments Due Soon")
async def get_due_soon(
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> DueSoonResponse:
    try:
        return await service.get_due_soon(db, user.agency_id)
    except Exception as e:
        raise_http_error(e, "Error loading due-soon payments")


@router.get(
    "/commission-by-college",
    response_model=CommissionByCollegeResponse,
    summary="Commission by College",
)
async def get_commission_by_college(
    period: CommissionPeriod = Query(CommissionPeriod.ALL),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> CommissionByCollegeResponse:
    try:
        return await service.get_commission_by_college(db, user.agency_id, period)
    except Exception as e:
        raise_http_error(e, "Error loading commission by college")


@router.get(
    "/cash-flow-projection",
    response_model=CashFlowProjectionResponse,
    summary="Cash Flow Projection",
)
async def get_cash_flow_projection(
    days: int = Query(90, ge=1, le=365, description="Days ahead of today"),
    group_by: CashFlowGrouping = Query(CashFlowGrouping.WEEK),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> CashFlowProjectionResponse:
    try:
        return await service.get_cash_flow_projection(
            db, user.agency_id, days=days, group_by=group_by
        )
    except Exception as e:
        raise_http_error(e, "Error loading cash flow projection")


@router.get(
    "/cash-flow-projection/export",
    summary="Export Cash Flow Projection",
    response_class=Response,
    responses={
        200: {"content": {"text/csv": {}, "application/pdf": {}}},
        429: {"description": "Too many exports"},
    },
)
async def export_cash_flow_projection(
    format: ExportFormat = Query(ExportFormat.CSV, description="csv or pdf"),
    days: int = Query(90, ge=1, le=365),
    group_by: CashFlowGrouping = Query(CashFlowGrouping.WEEK),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        limit, window = EXPORT_RATE_LIMIT
        await enforce_rate_limit(f"export:{user.id}", limit, window)
        content, filename = await service.export_cash_flow_projection(
            db, user.agency_id, format, days=days, group_by=group_by
        )
        return Response(
            content=content, media_type=MEDIA_TYPES[format], headers=content_disposition(filename)
        )
    except Exception as e:
        raise_http_error(e, "Error exporting cash flow projection")
