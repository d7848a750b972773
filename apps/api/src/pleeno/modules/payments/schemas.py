"""
Payment Schemas

Pydantic schemas for payment plans, installments, schedule previews and
payment recording.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pleeno.modules.payments.models import (
    InstallmentStatus,
    PaymentFrequency,
    PaymentPlanStatus,
)

MONEY_FIELD = {"ge": 0, "max_digits": 12, "decimal_places": 2}


class ScheduleInput(BaseModel):
    """Fields that determine how a plan is split into installments."""

    total_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    commission_rate_percent: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    gst_inclusive: bool = False
    materials_cost: Decimal = Field(Decimal("0"), **MONEY_FIELD)
    admin_fees: Decimal = Field(Decimal("0"), **MONEY_FIELD)
    other_fees: Decimal = Field(Decimal("0"), **MONEY_FIELD)
    initial_payment_amount: Decimal = Field(Decimal("0"), **MONEY_FIELD)
    initial_payment_due_date: date | None = None
    initial_payment_paid: bool = False
    number_of_installments: int = Field(..., ge=1, le=120)
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    first_college_due_date: date | None = None
    student_lead_time_days: int = Field(0, ge=0, le=365)

    @model_validator(mode="after")
    def check_schedule(self):
        if self.initial_payment_amount > 0 and self.initial_payment_due_date is None:
            raise ValueError("initial_payment_due_date is required when an initial payment is set")
        if self.payment_frequency != PaymentFrequency.CUSTOM and not self.first_college_due_date:
            raise ValueError("first_college_due_date is required unless payment_frequency is custom")
        return self


class GenerateInstallmentsRequest(ScheduleInput):
    """
    Request body for POST /payment-plans/generate-installments.

    Without ``commission_rate_percent`` the rate of ``branch_id`` is used.
    """

    branch_id: UUID | None = None


class InstallmentInput(BaseModel):
    """An installment supplied explicitly when creating a plan."""

    installment_number: int = Field(..., ge=0)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    student_due_date: date | None = None
    college_due_date: date | None = None
    is_initial_payment: bool = False
    generates_commission: bool = True


class PaymentPlanCreate(ScheduleInput):
    """
    Request body for POST /payment-plans.

    ``installments`` may be omitted, in which case they are generated from
    the schedule fields. When given they must sum to the commissionable value.
    """

    enrollment_id: UUID
    start_date: date
    currency: str | None = Field(None, min_length=3, max_length=3)
    notes: str | None = Field(None, max_length=10000)
    reference_number: str | None = Field(None, max_length=100)
    installments: list[InstallmentInput] | None = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str | None) -> str | None:
        return v.upper() if v else v

    @field_validator("installments")
    @classmethod
    def unique_numbers(cls, v: list[InstallmentInput] | None) -> list[InstallmentInput] | None:
        if v is not None:
            if not v:
                raise ValueError("installments cannot be an empty list")
            numbers = [i.installment_number for i in v]
            if len(numbers) != len(set(numbers)):
                raise ValueError("installment numbers must be unique")
        return v


class PaymentPlanUpdate(BaseModel):
    """
    Request body for PATCH /payment-plans/{id}.

    Changing ``total_amount`` or ``commission_rate_percent`` recomputes the
    expected commission; installments are left as they are. Setting status to
    cancelled cancels every unpaid installment.
    """

    notes: str | None = Field(None, max_length=10000)
    reference_number: str | None = Field(None, max_length=100)
    status: PaymentPlanStatus | None = None
    total_amount: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    commission_rate_percent: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    gst_inclusive: bool | None = None


class RecordPaymentRequest(BaseModel):
    """``paid_date`` may not be later than today in the agency's timezone."""

    paid_date: date
    paid_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    notes: str | None = Field(None, max_length=500)


# ============================================
# Responses
# ============================================


class InstallmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payment_plan_id: UUID
    installment_number: int
    is_initial_payment: bool
    amount: Decimal
    generates_commission: bool
    student_due_date: date | None
    college_due_date: date | None
    status: InstallmentStatus
    paid_date: date | None
    paid_amount: Decimal | None
    payment_notes: str | None


class PreviewInstallment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    installment_number: int
    amount: Decimal
    student_due_date: date | None
    college_due_date: date | None
    is_initial_payment: bool
    generates_commission: bool
    status: InstallmentStatus


class ScheduleSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_course_value: Decimal
    commissionable_value: Decimal
    expected_commission: Decimal
    initial_payment: Decimal
    total_installments: int
    amount_per_installment: Decimal


class GenerateInstallmentsResponse(BaseModel):
    installments: list[PreviewInstallment]
    summary: ScheduleSummaryResponse


class PlanProgress(BaseModel):
    total_paid: Decimal
    installments_paid: int
    installments_total: int
    percentage_paid: Decimal


class PaymentPlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    enrollment_id: UUID
    total_amount: Decimal
    currency: str
    start_date: date
    status: PaymentPlanStatus
    notes: str | None
    reference_number: str | None
    commission_rate_percent: Decimal
    expected_commission: Decimal
    earned_commission: Decimal
    gst_inclusive: bool
    materials_cost: Decimal
    admin_fees: Decimal
    other_fees: Decimal
    commissionable_value: Decimal
    initial_payment_amount: Decimal
    initial_payment_due_date: date | None
    initial_payment_paid: bool
    number_of_installments: int
    payment_frequency: PaymentFrequency
    first_college_due_date: date | None
    student_lead_time_days: int
    created_at: datetime
    updated_at: datetime


class PaymentPlanSummary(PaymentPlanResponse):
    """List row: plan plus who and where."""

    student_id: UUID
    student_name: str
    college_name: str
    branch_name: str
    program_name: str


class PaymentPlanDetailResponse(PaymentPlanSummary):
    installments: list[InstallmentResponse]
    progress: PlanProgress


class PaymentPlanListResponse(BaseModel):
    items: list[PaymentPlanSummary]
    total: int
    skip: int
    limit: int


class RecordPaymentResponse(BaseModel):
    installment: InstallmentResponse
    payment_plan_id: UUID
    payment_plan_status: PaymentPlanStatus
    earned_commission: Decimal


class OverdueReminderResponse(BaseModel):
    installment_id: UUID
    sent: bool
    sent_to: str | None = None
    last_notified_date: date | None = None
    message: str
