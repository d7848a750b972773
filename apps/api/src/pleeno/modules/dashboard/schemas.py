"""
Dashboard Schemas
"""

import enum
from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from pleeno.modules.payments.models import InstallmentStatus


class CommissionPeriod(str, enum.Enum):
    ALL = "all"
    YEAR = "year"
    QUARTER = "quarter"
    MONTH = "month"


class KpiResponse(BaseModel):
    active_students: int
    active_payment_plans: int
    outstanding_amount: Decimal
    earned_commission: Decimal
    collection_rate: Decimal
    currency: str


class StatusTotal(BaseModel):
    status: InstallmentStatus
    count: int
    total_amount: Decimal


class PaymentStatusSummaryResponse(BaseModel):
    statuses: list[StatusTotal]
    total_count: int
    total_amount: Decimal


class OverduePayment(BaseModel):
    id: UUID
    payment_plan_id: UUID
    installment_number: int
    student_id: UUID
    student_name: str
    college_id: UUID
    college_name: str
    amount: Decimal
    currency: str
    due_date: date
    days_overdue: int


class OverduePaymentsResponse(BaseModel):
    overdue_payments: list[OverduePayment]
    total_count: int
    total_amount: Decimal


class DueSoonPayment(BaseModel):
    id: UUID
    payment_plan_id: UUID
    installment_number: int
    student_id: UUID
    student_name: str
    college_name: str
    program_name: str
    amount: Decimal
    currency: str
    due_date: date
    days_until_due: int


class DueSoonResponse(BaseModel):
    due_soon: list[DueSoonPayment]
    threshold_days: int
    total_count: int
    total_amount: Decimal


class CollegeCommission(BaseModel):
    college_id: UUID
    college_name: str
    payment_plan_count: int
    expected_commission: Decimal
    earned_commission: Decimal
    outstanding_commission: Decimal


class CommissionByCollegeResponse(BaseModel):
    period: CommissionPeriod
    colleges: list[CollegeCommission]


class CashFlowGrouping(str, enum.Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class CashFlowInstallment(BaseModel):
    id: UUID
    student_name: str
    college_name: str
    amount: Decimal
    status: InstallmentStatus
    due_date: date


class CashFlowBucket(BaseModel):
    """Installments due in one day, week (starting Monday) or month."""

    date_bucket: date
    paid_amount: Decimal
    expected_amount: Decimal
    installment_count: int
    installments: list[CashFlowInstallment]


class CashFlowProjectionResponse(BaseModel):
    date_from: date
    date_to: date
    group_by: CashFlowGrouping
    currency: str
    total_paid: Decimal
    total_expected: Decimal
    buckets: list[CashFlowBucket]
