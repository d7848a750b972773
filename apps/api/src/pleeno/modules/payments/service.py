"""
Payment Service Layer

Business rules for payment plans and installments.

1. Creating a plan:
   - The enrollment must belong to the agency
   - Commission rate defaults to the branch rate (then the college default)
   - Currency defaults to the agency currency
   - Installments are taken from the request or generated from the schedule,
     and must sum to the commissionable value (within one cent)
   - Installments start pending; an initial payment marked as paid starts paid

2. Recording a payment:
   - Cancelled installments and installments of cancelled plans cannot be paid
   - The payment date cannot be after today in the agency timezone
   - The amount may be at most 110% of the installment amount
   - paid >= amount marks the installment paid, otherwise partial
   - The plan completes once every non-cancelled installment is paid
   - Earned commission = paid so far / commissionable value * expected commission

3. Updating a plan:
   - Cancelling cancels every installment without a payment
   - A new total, rate or GST flag recomputes the expected commission

4. Overdue reminders sent by staff:
   - Only overdue installments with a student e-mail can be reminded
   - At most one reminder per installment per agency-local day, shared
     with the scheduled reminders
"""

import logging
import uuid
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser
from pleeno.core.email import send_payment_overdue
from pleeno.core.errors import NotFoundError, ServiceError, ValidationFailedError
from pleeno.modules.activity.models import ActivityAction, EntityType
from pleeno.modules.activity.service import log_activity
from pleeno.modules.agencies.models import DEFAULT_CURRENCY
from pleeno.modules.agencies.repository import AgencyRepository
from pleeno.modules.agencies.service import agency_local_now, agency_today
from pleeno.modules.colleges import repository as college_repository
from pleeno.modules.colleges.service import effective_commission_rate
from pleeno.modules.enrollments import repository as enrollment_repository
from pleeno.modules.payments import repository
from pleeno.modules.payments.commission import (
    ZERO,
    calculate_earned_commission,
    calculate_plan_commission,
    percentage,
    round_money,
)
from pleeno.modules.payments.models import (
    Installment,
    InstallmentStatus,
    PaymentPlan,
    PaymentPlanStatus,
)
from pleeno.modules.payments.schedule import (
    Schedule,
    ScheduledInstallment,
    ScheduleError,
    generate_installments,
)
from pleeno.modules.payments.schemas import (
    GenerateInstallmentsRequest,
    InstallmentInput,
    InstallmentResponse,
    OverdueReminderResponse,
    PaymentPlanCreate,
    PaymentPlanDetailResponse,
    PaymentPlanResponse,
    PaymentPlanSummary,
    PaymentPlanUpdate,
    PlanProgress,
    RecordPaymentRequest,
    ScheduleInput,
)

logger = logging.getLogger(__name__)

MAX_OVERPAYMENT_RATIO = Decimal("1.10")
SUM_TOLERANCE = Decimal("0.01")
PAID_STATUSES = (InstallmentStatus.PAID, InstallmentStatus.PARTIAL)


# ============================================
# Helpers
# ============================================


def _schedule(data: ScheduleInput, commission_rate_percent: Decimal) -> Schedule:
    try:
        return generate_installments(
            total_course_value=data.total_amount,
            commission_rate_percent=commission_rate_percent,
            number_of_installments=data.number_of_installments,
            payment_frequency=data.payment_frequency,
            first_college_due_date=data.first_college_due_date,
            student_lead_time_days=data.student_lead_time_days,
            initial_payment_amount=data.initial_payment_amount,
            initial_payment_due_date=data.initial_payment_due_date,
            initial_payment_paid=data.initial_payment_paid,
            materials_cost=data.materials_cost,
            admin_fees=data.admin_fees,
            other_fees=data.other_fees,
            gst_inclusive=data.gst_inclusive,
        )
    except ScheduleError as e:
        raise ValidationFailedError(str(e), "INVALID_SCHEDULE") from e


def _paid_total(installments: list[Installment]) -> Decimal:
    return round_money(
        sum(
            (Decimal(i.paid_amount or 0) for i in installments if i.status in PAID_STATUSES),
            ZERO,
        )
    )


def _commission_paid_total(installments: list[Installment]) -> Decimal:
    return round_money(
        sum(
            (
                Decimal(i.paid_amount or 0)
                for i in installments
                if i.status in PAID_STATUSES and i.generates_commission
            ),
            ZERO,
        )
    )


def recompute_earned_commission(plan: PaymentPlan) -> Decimal:
    return calculate_earned_commission(
        plan.commissionable_value,
        plan.expected_commission,
        _commission_paid_total(plan.installments),
    )


def plan_progress(plan: PaymentPlan) -> PlanProgress:
    active = [i for i in plan.installments if i.status != InstallmentStatus.CANCELLED]
    total_paid = _paid_total(active)
    return PlanProgress(
        total_paid=total_paid,
        installments_paid=sum(1 for i in active if i.status == InstallmentStatus.PAID),
        installments_total=len(active),
        percentage_paid=percentage(total_paid, plan.commissionable_value),
    )


def to_summary(plan: PaymentPlan) -> PaymentPlanSummary:
    enrollment = plan.enrollment
    branch = enrollment.branch
    return PaymentPlanSummary(
        **PaymentPlanResponse.model_validate(plan).model_dump(),
        student_id=enrollment.student_id,
        student_name=enrollment.student.full_name,
        college_name=branch.college.name if branch.college else "",
        branch_name=branch.name,
        program_name=enrollment.program_name,
    )


def to_detail(plan: PaymentPlan) -> PaymentPlanDetailResponse:
    return PaymentPlanDetailResponse(
        **to_summary(plan).model_dump(),
        installments=[InstallmentResponse.model_validate(i) for i in plan.installments],
        progress=plan_progress(plan),
    )


def _check_installment_sum(installments: list[InstallmentInput], commissionable: Decimal) -> None:
    total = sum((i.amount for i in installments), ZERO)
    if abs(total - commissionable) > SUM_TOLERANCE:
        raise ValidationFailedError(
            f"Installment amounts add up to {total:.2f} but the commissionable value "
            f"is {commissionable:.2f}.",
            "INSTALLMENT_SUM_MISMATCH",
        )


# ============================================
# Schedule preview
# ============================================


async def preview_installments(
    db: AsyncSession, agency_id: UUID, data: GenerateInstallmentsRequest
) -> Schedule:
    """Generate an installment schedule without saving anything."""
    rate = data.commission_rate_percent
    if rate is None and data.branch_id:
        branch = await college_repository.get_branch(db, agency_id, data.branch_id)
        if not branch:
            raise NotFoundError("Branch", data.branch_id)
        rate = effective_commission_rate(branch)
    return _schedule(data, rate if rate is not None else ZERO)


# ============================================
# Payment plans
# ============================================


async def get_plan(db: AsyncSession, agency_id: UUID, plan_id: UUID) -> PaymentPlan:
    plan = await repository.get_plan(db, agency_id, plan_id)
    if not plan:
        raise NotFoundError("Payment plan", plan_id)
    return plan


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
) -> dict:
    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    plans, total = await repository.list_plans(
        db,
        agency_id,
        status=status,
        student_id=student_id,
        college_id=college_id,
        branch_id=branch_id,
        search=search,
        skip=skip,
        limit=limit,
    )
    return {"items": plans, "total": total, "skip": skip, "limit": limit}


async def create_plan(
    db: AsyncSession, actor: CurrentUser, data: PaymentPlanCreate
) -> PaymentPlan:
    """
    Create a payment plan with its installments.

    Raises:
        NotFoundError: If the enrollment is not in the actor's agency
        ValidationFailedError: If the schedule is invalid or explicit
            installments do not add up to the commissionable value
    """
    enrollment = await enrollment_repository.get(db, actor.agency_id, data.enrollment_id)
    if not enrollment:
        raise NotFoundError("Enrollment", data.enrollment_id)

    rate = data.commission_rate_percent
    if rate is None:
        rate = effective_commission_rate(enrollment.branch)

    currency = data.currency
    if not currency:
        agency = await AgencyRepository.get_by_id(db, actor.agency_id)
        currency = agency.currency if agency else DEFAULT_CURRENCY

    schedule = _schedule(data, rate)
    summary = schedule.summary

    if data.installments is not None:
        _check_installment_sum(data.installments, summary.commissionable_value)
        planned = [
            ScheduledInstallment(
                installment_number=i.installment_number,
                amount=i.amount,
                student_due_date=i.student_due_date,
                college_due_date=i.college_due_date,
                is_initial_payment=i.is_initial_payment,
                generates_commission=i.generates_commission,
                status=(
                    InstallmentStatus.PAID
                    if i.is_initial_payment and data.initial_payment_paid
                    else InstallmentStatus.PENDING
                ),
            )
            for i in data.installments
        ]
    else:
        planned = schedule.installments

    plan_id = uuid.uuid4()
    plan = repository.add_plan(
        db,
        actor.agency_id,
        id=plan_id,
        enrollment_id=enrollment.id,
        total_amount=round_money(data.total_amount),
        currency=currency,
        start_date=data.start_date,
        status=PaymentPlanStatus.ACTIVE,
        notes=data.notes,
        reference_number=data.reference_number,
        commission_rate_percent=rate,
        expected_commission=summary.expected_commission,
        earned_commission=ZERO,
        gst_inclusive=data.gst_inclusive,
        materials_cost=round_money(data.materials_cost),
        admin_fees=round_money(data.admin_fees),
        other_fees=round_money(data.other_fees),
        initial_payment_amount=summary.initial_payment,
        initial_payment_due_date=data.initial_payment_due_date,
        initial_payment_paid=data.initial_payment_paid,
        number_of_installments=data.number_of_installments,
        payment_frequency=data.payment_frequency,
        first_college_due_date=data.first_college_due_date,
        student_lead_time_days=data.student_lead_time_days,
    )

    paid_on_creation = ZERO
    for item in planned:
        paid = item.status == InstallmentStatus.PAID
        repository.add_installment(
            db,
            actor.agency_id,
            plan_id,
            installment_number=item.installment_number,
            is_initial_payment=item.is_initial_payment,
            amount=item.amount,
            generates_commission=item.generates_commission,
            student_due_date=item.student_due_date,
            college_due_date=item.college_due_date,
            status=InstallmentStatus.PAID if paid else InstallmentStatus.PENDING,
            paid_date=(item.college_due_date or data.start_date) if paid else None,
            paid_amount=item.amount if paid else None,
        )
        if paid and item.generates_commission:
            paid_on_creation += item.amount

    plan.earned_commission = calculate_earned_commission(
        summary.commissionable_value, summary.expected_commission, paid_on_creation
    )

    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.PAYMENT_PLAN,
        entity_id=plan_id,
        action=ActivityAction.CREATED,
        description=(
            f"Created payment plan of {currency} {plan.total_amount:.2f} for "
            f"{enrollment.student.full_name} ({enrollment.program_name})"
        ),
        metadata={
            "enrollment_id": str(enrollment.id),
            "total_amount": str(plan.total_amount),
            "expected_commission": str(summary.expected_commission),
            "installments": len(planned),
        },
    )
    await db.commit()

    logger.info(f"Created payment plan {plan_id} with {len(planned)} installments")
    return await get_plan(db, actor.agency_id, plan_id)


async def update_plan(
    db: AsyncSession, actor: CurrentUser, plan_id: UUID, data: PaymentPlanUpdate
) -> PaymentPlan:
    plan = await get_plan(db, actor.agency_id, plan_id)
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in {"notes", "reference_number"}
    }
    if not changes:
        return plan

    cancelling = (
        changes.get("status") == PaymentPlanStatus.CANCELLED
        and plan.status != PaymentPlanStatus.CANCELLED
    )

    for field, value in changes.items():
        setattr(plan, field, value)

    if {"total_amount", "commission_rate_percent", "gst_inclusive"} & changes.keys():
        plan.expected_commission = calculate_plan_commission(
            plan.commissionable_value, plan.commission_rate_percent, plan.gst_inclusive
        )
        plan.earned_commission = recompute_earned_commission(plan)

    cancelled_count = 0
    if cancelling:
        cancelled_count = await repository.cancel_unpaid_installments(
            db, actor.agency_id, plan.id
        )

    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.PAYMENT_PLAN,
        entity_id=plan.id,
        action=ActivityAction.UPDATED,
        description=(
            f"Cancelled payment plan ({cancelled_count} installments cancelled)"
            if cancelling
            else "Updated payment plan"
        ),
        metadata={"fields": sorted(changes)},
    )
    await db.commit()
    return await get_plan(db, actor.agency_id, plan.id)


async def list_installments(
    db: AsyncSession, agency_id: UUID, plan_id: UUID
) -> list[Installment]:
    await get_plan(db, agency_id, plan_id)
    return await repository.list_installments(db, agency_id, plan_id)


# ============================================
# Payments
# ============================================


async def record_payment(
    db: AsyncSession, actor: CurrentUser, installment_id: UUID, data: RecordPaymentRequest
) -> tuple[Installment, PaymentPlan]:
    """
    Record a payment against an installment.

    Returns:
        Tuple of (updated installment, updated plan)

    Raises:
        NotFoundError: If the installment is not in the actor's agency
        ValidationFailedError: If the installment or plan is cancelled, the
            payment date is after today in the agency's timezone, or the
            amount exceeds 110% of the installment
    """
    found = await repository.get_installment(db, actor.agency_id, installment_id)
    if not found:
        raise NotFoundError("Installment", installment_id)

    plan = await get_plan(db, actor.agency_id, found.payment_plan_id)
    installment = next(i for i in plan.installments if i.id == found.id)

    if installment.status == InstallmentStatus.CANCELLED:
        raise ValidationFailedError(
            "Cannot record a payment on a cancelled installment.", "INSTALLMENT_CANCELLED"
        )
    if plan.status == PaymentPlanStatus.CANCELLED:
        raise ValidationFailedError(
            "Cannot record a payment on a cancelled payment plan.", "PAYMENT_PLAN_CANCELLED"
        )
    if data.paid_date > await agency_today(db, actor.agency_id):
        raise ValidationFailedError(
            "Payment date cannot be in the future.", "PAYMENT_DATE_IN_FUTURE"
        )

    amount = Decimal(installment.amount)
    max_allowed = round_money(amount * MAX_OVERPAYMENT_RATIO)
    if data.paid_amount > max_allowed:
        raise ValidationFailedError(
            f"Payment amount cannot exceed {max_allowed:.2f} (110% of installment amount).",
            "OVERPAYMENT",
        )

    old_status = installment.status
    installment.paid_date = data.paid_date
    installment.paid_amount = round_money(data.paid_amount)
    installment.payment_notes = data.notes
    installment.status = (
        InstallmentStatus.PAID if data.paid_amount >= amount else InstallmentStatus.PARTIAL
    )

    remaining = [i for i in plan.installments if i.status != InstallmentStatus.CANCELLED]
    completed = bool(remaining) and all(i.status == InstallmentStatus.PAID for i in remaining)
    if completed:
        plan.status = PaymentPlanStatus.COMPLETED
    plan.earned_commission = recompute_earned_commission(plan)

    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.INSTALLMENT,
        entity_id=installment.id,
        action=ActivityAction.RECORDED,
        description=(
            f"Recorded payment of {plan.currency} {installment.paid_amount:.2f} "
            f"for installment #{installment.installment_number}"
        ),
        metadata={
            "payment_plan_id": str(plan.id),
            "installment_number": installment.installment_number,
            "paid_date": data.paid_date.isoformat(),
            "paid_amount": str(installment.paid_amount),
            "old_status": old_status.value,
            "new_status": installment.status.value,
            "payment_plan_completed": completed,
            "earned_commission": str(plan.earned_commission),
        },
    )
    await db.commit()

    logger.info(
        f"Recorded payment on installment {installment.id} "
        f"({old_status.value} -> {installment.status.value})"
    )
    return installment, plan


# ============================================
# Reminders
# ============================================


async def send_overdue_reminder(
    db: AsyncSession, actor: CurrentUser, installment_id: UUID
) -> OverdueReminderResponse:
    """
    E-mail the student about an overdue installment now.

    Returns ``sent=False`` without e-mailing when the installment was already
    notified today in the agency's timezone.

    Raises:
        NotFoundError: If the installment is not in the actor's agency
        ValidationFailedError: If the installment is not overdue or the
            student has no e-mail address
        ServiceError: 502 EMAIL_FAILED if the e-mail could not be sent
    """
    found = await repository.get_installment(db, actor.agency_id, installment_id)
    if not found:
        raise NotFoundError("Installment", installment_id)
    if found.status != InstallmentStatus.OVERDUE:
        raise ValidationFailedError(
            "Only overdue installments can be reminded.", "INSTALLMENT_NOT_OVERDUE"
        )

    plan = await get_plan(db, actor.agency_id, found.payment_plan_id)
    installment = next(i for i in plan.installments if i.id == found.id)
    student = plan.enrollment.student
    if not student.email:
        raise ValidationFailedError("The student has no e-mail address.", "NO_STUDENT_EMAIL")

    agency = await AgencyRepository.get_by_id(db, actor.agency_id)
    if not agency:
        raise NotFoundError("Agency", actor.agency_id)
    today = agency_local_now(agency).date()

    if installment.last_notified_date == today:
        return OverdueReminderResponse(
            installment_id=installment.id,
            sent=False,
            sent_to=student.email,
            last_notified_date=today,
            message="A reminder was already sent today.",
        )

    sent = await send_payment_overdue(
        to_email=student.email,
        student_name=student.full_name,
        agency_name=agency.name,
        amount=installment.amount,
        currency=plan.currency,
        due_date=installment.student_due_date,
        program_name=plan.enrollment.program_name,
    )
    if not sent:
        logger.error(f"Overdue reminder for installment {installment.id} was not sent")
        raise ServiceError("The reminder e-mail could not be sent.", "EMAIL_FAILED", 502)

    installment.last_notified_date = today
    log_activity(
        db,
        agency_id=actor.agency_id,
        user_id=actor.id,
        entity_type=EntityType.INSTALLMENT,
        entity_id=installment.id,
        action=ActivityAction.REMINDER_SENT,
        description=(
            f"Overdue reminder for installment #{installment.installment_number} "
            f"sent to {student.full_name}"
        ),
        metadata={"payment_plan_id": str(plan.id), "sent_to": student.email},
    )
    await db.commit()

    logger.info(f"Sent overdue reminder for installment {installment.id}")
    return OverdueReminderResponse(
        installment_id=installment.id,
        sent=True,
        sent_to=student.email,
        last_notified_date=today,
        message="Reminder sent.",
    )
