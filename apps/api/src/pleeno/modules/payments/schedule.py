"""
Installment Schedule Generation

Splits a payment plan's commissionable value into an optional initial
payment plus N installments.

Rules:
- The initial payment (if > 0) is installment 0, due on its own date for
  both the student and the college.
- The remainder is split into N equal amounts, rounded down to the cent;
  leftover cents go to the last installment so the amounts always sum to
  the commissionable value exactly.
- College due dates step 1 month (monthly) or 3 months (quarterly) from
  the first college due date, clamped to month end. Custom schedules
  leave dates empty for the user to fill in.
- The student is asked to pay ``student_lead_time_days`` before the
  college due date.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from pleeno.modules.payments.commission import (
    ZERO,
    calculate_commissionable_value,
    calculate_plan_commission,
    floor_money,
    round_money,
    to_decimal,
)
from pleeno.modules.payments.models import InstallmentStatus, PaymentFrequency

MONTHS_PER_STEP = {
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.QUARTERLY: 3,
}


class ScheduleError(ValueError):
    """Raised when a schedule cannot be generated from the given inputs."""


@dataclass
class ScheduledInstallment:
    installment_number: int
    amount: Decimal
    student_due_date: date | None
    college_due_date: date | None
    is_initial_payment: bool = False
    generates_commission: bool = True
    status: InstallmentStatus = InstallmentStatus.DRAFT


@dataclass
class ScheduleSummary:
    total_course_value: Decimal
    commissionable_value: Decimal
    expected_commission: Decimal
    initial_payment: Decimal
    total_installments: int
    amount_per_installment: Decimal


@dataclass
class Schedule:
    installments: list[ScheduledInstallment] = field(default_factory=list)
    summary: ScheduleSummary | None = None


def college_due_dates(first_due_date: date, count: int, frequency: PaymentFrequency) -> list[date]:
    """Due dates for ``count`` installments starting at ``first_due_date``."""
    months = MONTHS_PER_STEP.get(frequency)
    if months is None:
        raise ScheduleError(f"No automatic due dates for {frequency.value} frequency")
    return [first_due_date + relativedelta(months=months * i) for i in range(count)]


def student_due_date(college_due_date: date, lead_time_days: int) -> date:
    return college_due_date - timedelta(days=lead_time_days)


def split_amount(total: Decimal, count: int) -> list[Decimal]:
    """
    Split ``total`` into ``count`` cent amounts summing exactly to ``total``.

    >>> split_amount(Decimal("100.00"), 3)
    [Decimal('33.33'), Decimal('33.33'), Decimal('33.34')]
    """
    if count <= 0:
        raise ScheduleError("Number of installments must be positive")
    if to_decimal(total) * 100 < count:
        raise ScheduleError(
            f"{total} cannot be split into {count} installments of at least one cent"
        )
    base = floor_money(to_decimal(total) / count)
    amounts = [base] * count
    amounts[-1] = round_money(to_decimal(total) - base * (count - 1))
    return amounts


def generate_installments(
    *,
    total_course_value: Decimal,
    commission_rate_percent: Decimal,
    number_of_installments: int,
    payment_frequency: PaymentFrequency,
    first_college_due_date: date | None = None,
    student_lead_time_days: int = 0,
    initial_payment_amount: Decimal = Decimal("0"),
    initial_payment_due_date: date | None = None,
    initial_payment_paid: bool = False,
    materials_cost: Decimal = Decimal("0"),
    admin_fees: Decimal = Decimal("0"),
    other_fees: Decimal = Decimal("0"),
    gst_inclusive: bool = False,
) -> Schedule:
    """
    Build the installment schedule and its summary. Nothing is persisted.

    Raises:
        ScheduleError: If nothing is commissionable, the initial payment
            exceeds the commissionable value, the remainder is less than
            one cent per installment, or a dated frequency has no first
            college due date
    """
    commissionable = calculate_commissionable_value(
        total_course_value, materials_cost, admin_fees, other_fees
    )
    expected_commission = calculate_plan_commission(
        commissionable, commission_rate_percent, gst_inclusive
    )
    if commissionable <= 0:
        raise ScheduleError("Commissionable value must be greater than zero")
    initial = round_money(initial_payment_amount)

    remaining = commissionable - initial
    if remaining < 0:
        raise ScheduleError("Initial payment amount cannot exceed commissionable value")

    installments: list[ScheduledInstallment] = []

    if initial > 0:
        installments.append(
            ScheduledInstallment(
                installment_number=0,
                amount=initial,
                student_due_date=initial_payment_due_date,
                college_due_date=initial_payment_due_date,
                is_initial_payment=True,
                status=InstallmentStatus.PAID if initial_payment_paid else InstallmentStatus.DRAFT,
            )
        )

    # An initial payment covering everything leaves no regular installments
    amounts = split_amount(remaining, number_of_installments) if remaining > 0 else []

    if not amounts:
        due_dates: list[date | None] = []
    elif payment_frequency == PaymentFrequency.CUSTOM:
        due_dates = [None] * number_of_installments
    else:
        if first_college_due_date is None:
            raise ScheduleError("first_college_due_date is required for dated schedules")
        due_dates = list(
            college_due_dates(first_college_due_date, number_of_installments, payment_frequency)
        )

    for number, (amount, college_due) in enumerate(zip(amounts, due_dates, strict=True), start=1):
        installments.append(
            ScheduledInstallment(
                installment_number=number,
                amount=amount,
                college_due_date=college_due,
                student_due_date=(
                    student_due_date(college_due, student_lead_time_days) if college_due else None
                ),
            )
        )

    summary = ScheduleSummary(
        total_course_value=round_money(total_course_value),
        commissionable_value=commissionable,
        expected_commission=expected_commission,
        initial_payment=initial,
        total_installments=len(installments),
        amount_per_installment=amounts[0] if amounts else ZERO,
    )
    return Schedule(installments=installments, summary=summary)
