"""
Payments Router

Endpoints:
- GET /payment-plans - List plans (status, student, college, branch filters)
- POST /payment-plans - Create plan with installments
- POST /payment-plans/generate-installments - Preview a schedule, nothing saved
- GET /payment-plans/{id} - Plan with installments and progress
- PATCH /payment-plans/{id} - Update notes, reference, status or commission inputs
- GET /payment-plans/{id}/installments - Installments of a plan

Installment endpoints live on ``installments_router``:
- POST /installments/{id}/record-payment - Record a payment
- POST /installments/{id}/send-reminder - E-mail the student about an overdue installment
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_current_user, get_tenant_db
from pleeno.core.errors import raise_http_error
from pleeno.modules.payments import service
from pleeno.modules.payments.models import PaymentPlanStatus
from pleeno.modules.payments.schemas import (
    GenerateInstallmentsRequest,
    GenerateInstallmentsResponse,
    InstallmentResponse,
    OverdueReminderResponse,
    PaymentPlanCreate,
    PaymentPlanDetailResponse,
    PaymentPlanListResponse,
    PaymentPlanUpdate,
    PreviewInstallment,
    RecordPaymentRequest,
    RecordPaymentResponse,
    ScheduleSummaryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()
installments_router = APIRouter()


@router.get("", response_model=PaymentPlanListResponse, summary="List Payment Plans")
async def list_payment_plans(
    status_filter: PaymentPlanStatus | None = Query(None, alias="status"),
    student_id: UUID | None = Query(None),
    college_id: UUID | None = Query(None),
    branch_id: UUID | None = Query(None),
    search: str | None = Query(None, min_length=1, max_length=100, description="Student/reference"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> PaymentPlanListResponse:
    try:
        result = await service.list_plans(
            db,
            user.agency_id,
            status=status_filter,
            student_id=student_id,
            college_id=college_id,
            branch_id=branch_id,
            search=search,
            skip=skip,
            limit=limit,
        )
        return PaymentPlanListResponse(
            items=[service.to_summary(p) for p in result["items"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except Exception as e:
        raise_http_error(e, "Error listing payment plans")


@router.post(
    "",
    response_model=PaymentPlanDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Payment Plan",
    description=(
        "Creates a plan and its installments. Omit `installments` to generate "
        "them from the schedule fields."
    ),
)
async def create_payment_plan(
    data: PaymentPlanCreate,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> PaymentPlanDetailResponse:
    try:
        plan = await service.create_plan(db, user, data)
        return service.to_detail(plan)
    except Exception as e:
        raise_http_error(e, "Error creating payment plan")


@router.post(
    "/generate-installments",
    response_model=GenerateInstallmentsResponse,
    summary="Preview Installments",
)
async def generate_installments(
    data: GenerateInstallmentsRequest,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> GenerateInstallmentsResponse:
    try:
        schedule = await service.preview_installments(db, user.agency_id, data)
        return GenerateInstallmentsResponse(
            installments=[PreviewInstallment.model_validate(i) for i in schedule.installments],
            summary=ScheduleSummaryResponse.model_validate(schedule.summary),
        )
    except Exception as e:
        raise_http_error(e, "Error generating installments")


@router.get("/{plan_id}", response_model=PaymentPlanDetailResponse, summary="Get Payment Plan")
async def get_payment_plan(
    plan_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> PaymentPlanDetailResponse:
    try:
        plan = await service.get_plan(db, user.agency_id, plan_id)
        return service.to_detail(plan)
    except Exception as e:
        raise_http_error(e, "Error loading payment plan")


@router.patch("/{plan_id}", response_model=PaymentPlanDetailResponse, summary="Update Payment Plan")
async def update_payment_plan(
    plan_id: UUID,
    data: PaymentPlanUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> PaymentPlanDetailResponse:
    try:
        plan = await service.update_plan(db, user, plan_id, data)
        return service.to_detail(plan)
    except Exception as e:
        raise_http_error(e, "Error updating payment plan")


@router.get(
    "/{plan_id}/installments",
    response_model=list[InstallmentResponse],
    summary="List Installments",
)
async def list_installments(
    plan_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[InstallmentResponse]:
    try:
        installments = await service.list_installments(db, user.agency_id, plan_id)
        return [InstallmentResponse.model_validate(i) for i in installments]
    except Exception as e:
        raise_http_error(e, "Error listing installments")


@installments_router.post(
    "/{installment_id}/record-payment",
    response_model=RecordPaymentResponse,
    summary="Record Payment",
    responses={400: {"description": "Overpayment, future date or cancelled installment"}},
)
async def record_payment(
    installment_id: UUID,
    data: RecordPaymentRequest,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> RecordPaymentResponse:
    try:
        installment, plan = await service.record_payment(db, user, installment_id, data)
        return RecordPaymentResponse(
            installment=InstallmentResponse.model_validate(installment),
            payment_plan_id=plan.id,
            payment_plan_status=plan.status,
            earned_commission=plan.earned_commission,
        )
    except Exception as e:
        raise_http_error(e, "Error recording payment")


@installments_router.post(
    "/{installment_id}/send-reminder",
    response_model=OverdueReminderResponse,
    summary="Send Overdue Reminder",
    responses={
        400: {"description": "Installment not overdue or student without e-mail"},
        502: {"description": "E-mail could not be sent"},
    },
)
async def send_overdue_reminder(
    installment_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user: CurrentUser = Depends(get_current_user),
) -> OverdueReminderResponse:
    try:
        return await service.send_overdue_reminder(db, user, installment_id)
    except Exception as e:
        raise_http_error(e, "Error sending overdue reminder")
