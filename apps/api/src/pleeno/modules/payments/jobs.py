"""
Installment Background Jobs

Scheduled tasks for the installment lifecycle:
1. Mark pending installments overdue once their student due date has passed
2. E-mail students about installments falling due soon

Both jobs walk every agency and work in the agency's own timezone:
- An installment due today only becomes overdue after the agency's
  overdue cutoff time (17:00 by default).
- Reminders go out for installments due within the agency's due-soon
  threshold, at most once per installment per day.

Design Principles:
- Jobs are idempotent (safe to run multiple times)
- Jobs handle their own database sessions, one per agency
- Individual installment failures are logged and don't stop the job
- Email failures don't roll back status changes
"""

import logging
from datetime import UTC, date, datetime, timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from pleeno.core.database import async_session_maker, set_tenant_context
from pleeno.core.email import send_payment_due_soon, send_payment_overdue
from pleeno.core.scheduler import register_job
from pleeno.modules.activity.models import ActivityAction, EntityType
from pleeno.modules.activity.service import log_activity
from pleeno.modules.agencies.models import Agency
from pleeno.modules.agencies.repository import AgencyRepository
from pleeno.modules.agencies.service import agency_local_now
from pleeno.modules.payments import repository
from pleeno.modules.payments.models import Installment, InstallmentStatus, PaymentPlan

logger = logging.getLogger(__name__)

# Job IDs for registration and manual triggering
JOB_ID_MARK_OVERDUE = "installments_mark_overdue"
JOB_ID_DUE_SOON_REMINDERS = "installments_send_due_soon_reminders"


def is_past_cutoff(agency: Agency, local_now: datetime) -> bool:
    """Whether installments due today count as overdue yet."""
    return local_now.time() >= agency.overdue_cutoff_time


async def _notify_overdue(installment: Installment, plan: PaymentPlan, agency: Agency) -> bool:
    student = plan.enrollment.student
    if not student.email:
        return False
    return await send_payment_overdue(
        to_email=student.email,
        student_name=student.full_name,
        agency_name=agency.name,
        amount=installment.amount,
        currency=plan.currency,
        due_date=installment.student_due_date,
        program_name=plan.enrollment.program_name,
    )


async def _mark_agency_overdue(agency: Agency, now: datetime) -> dict[str, Any]:
    local_now = agency_local_now(agency, now)
    today = local_now.date()
    include_today = is_past_cutoff(agency, local_now)

    result: dict[str, Any] = {"agency_id": str(agency.id), "marked": 0, "emailed": 0, "errors": 0}

    async with async_session_maker() as db:
        await set_tenant_context(db, agency.id)
        candidates = await repository.find_overdue_candidates(db, agency.id, today, include_today)
        if not candidates:
            return result

        for installment, plan in candidates:
            installment.status = InstallmentStatus.OVERDUE
            log_activity(
                db,
                agency_id=agency.id,
                user_id=None,
                entity_type=EntityType.INSTALLMENT,
                entity_id=installment.id,
                action=ActivityAction.MARKED_OVERDUE,
                description=(
                    f"Installment {installment.installment_number} of "
                    f"{plan.enrollment.student.full_name} marked overdue"
                ),
                metadata={
                    "payment_plan_id": str(plan.id),
                    "amount": str(installment.amount),
                    "student_due_date": installment.student_due_date.isoformat(),
                },
            )
        await db.commit()
        result["marked"] = len(candidates)
        logger.info(f"Marked {len(candidates)} installments overdue for agency {agency.id}")

    for installment, plan in candidates:
        try:
            if await _notify_overdue(installment, plan, agency):
                result["emailed"] += 1
        except Exception as e:
            logger.error(
                f"Error sending overdue notice for installment {installment.id}: {e}",
                exc_info=True,
            )
            result["errors"] += 1

    return result


async def mark_overdue_installments(now: datetime | None = None) -> dict[str, Any]:
    """
    Mark pending installments of active plans as overdue.

    An installment is overdue when its student due date is before the
    agency's local today, or is today and the local time is past the
    agency's cutoff. Already overdue installments are not selected again.

    Returns:
        Dict with job execution summary including:
        - executed_at: When the job ran
        - agencies: Per-agency results
        - total_marked: Installments moved to overdue
        - total_errors: Number of processing errors
    """
    now = now or datetime.now(UTC)
    logger.info(f"Starting overdue installment job at {now.isoformat()}")

    results: dict[str, Any] = {
        "executed_at": now.isoformat(),
        "agencies": [],
        "total_marked": 0,
        "total_errors": 0,
    }

    async with async_session_maker() as db:
        agencies = await AgencyRepository.list_all(db)

    for agency in agencies:
        try:
            agency_result = await _mark_agency_overdue(agency, now)
        except Exception as e:
            logger.error(f"Error running overdue job for agency {agency.id}: {e}", exc_info=True)
            agency_result = {"agency_id": str(agency.id), "marked": 0, "errors": 1}
        results["agencies"].append(agency_result)
        results["total_marked"] += agency_result["marked"]
        results["total_errors"] += agency_result["errors"]

    logger.info(
        f"Overdue installment job completed. "
        f"Marked: {results['total_marked']}, Errors: {results['total_errors']}"
    )
    return results


async def _remind_agency(agency: Agency, today: date) -> dict[str, Any]:
    until = today + timedelta(days=agency.due_soon_threshold_days)
    result: dict[str, Any] = {"agency_id": str(agency.id), "sent": 0, "skipped": 0, "errors": 0}

    async with async_session_maker() as db:
        await set_tenant_context(db, agency.id)
        due_soon = await repository.find_due_soon(db, agency.id, today, until)

        for installment, plan in due_soon:
            student = plan.enrollment.student
            if installment.last_notified_date == today or not student.email:
                result["skipped"] += 1
                continue

            try:
                sent = await send_payment_due_soon(
                    to_email=student.email,
                    student_name=student.full_name,
                    agency_name=agency.name,
                    amount=installment.amount,
                    currency=plan.currency,
                    due_date=installment.student_due_date,
                    program_name=plan.enrollment.program_name,
                )
            except Exception as e:
                logger.error(
                    f"Error sending reminder for installment {installment.id}: {e}", exc_info=True
                )
                result["errors"] += 1
                continue

            if not sent:
                logger.error(f"Failed to send due-soon reminder for installment {installment.id}")
                result["errors"] += 1
                continue

            installment.last_notified_date = today
            result["sent"] += 1

        if result["sent"]:
            await db.commit()

    return result


async def send_due_soon_reminders(now: datetime | None = None) -> dict[str, Any]:
    """
    E-mail students whose pending installments are due within the agency's
    due-soon threshold.

    ``last_notified_date`` makes the job idempotent: an installment gets at
    most one reminder per agency-local day.

    Returns:
        Dict with job execution summary including:
        - executed_at: When the job ran
        - agencies: Per-agency results
        - total_sent: Reminders sent
        - total_errors: Number of processing errors
    """
    now = now or datetime.now(UTC)
    logger.info(f"Starting due-soon reminder job at {now.isoformat()}")

    results: dict[str, Any] = {
        "executed_at": now.isoformat(),
        "agencies": [],
        "total_sent": 0,
        "total_errors": 0,
    }

    async with async_session_maker() as db:
        agencies = await AgencyRepository.list_all(db)

    for agency in agencies:
        today = agency_local_now(agency, now).date()
        try:
            agency_result = await _remind_agency(agency, today)
        except Exception as e:
            logger.error(f"Error running reminder job for agency {agency.id}: {e}", exc_info=True)
            agency_result = {"agency_id": str(agency.id), "sent": 0, "errors": 1}
        results["agencies"].append(agency_result)
        results["total_sent"] += agency_result["sent"]
        results["total_errors"] += agency_result["errors"]

    logger.info(
        f"Due-soon reminder job completed. "
        f"Sent: {results['total_sent']}, Errors: {results['total_errors']}"
    )
    return results


def register_payment_jobs() -> None:
    """
    Register installment jobs with the scheduler.

    Call this during application startup before starting the scheduler.
    Both jobs run hourly so each agency is handled soon after its local
    cutoff, whatever its timezone.
    """
    register_job(
        job_id=JOB_ID_MARK_OVERDUE,
        func=mark_overdue_installments,
        trigger=IntervalTrigger(hours=1),
        description="Mark unpaid installments past their due date as overdue",
    )
    register_job(
        job_id=JOB_ID_DUE_SOON_REMINDERS,
        func=send_due_soon_reminders,
        trigger=IntervalTrigger(hours=1),
        description="E-mail students about installments due soon",
    )
    logger.info("Installment jobs registered")
