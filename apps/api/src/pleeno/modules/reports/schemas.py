"""
Report Schemas
"""

import enum
from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from pleeno.modules.payments.models import PaymentPlanStatus


class ContractStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class PaymentPlanReportFilters(BaseModel):
    """Filters shared by the payment plans report and its export."""

    college_ids: list[UUID] = Field(default_factory=list)
    branch_ids: list[UUID] = Field(default_factory=list)
    student_ids: list[UUID] = Field(default_factory=list)
    statuses: list[PaymentPlanStatus] = Field(default_factory=list)
    date_from: date | None = Field(None, description="Plan start date, inclusive")
    date_to: date | None = None
    contract_expiration_from: date | None = None
    contract_expiration_to: date | None = None

    @model_validator(mode="after")
    def check_ranges(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be before or equal to date_to")
        if (
            self.contract_expiration_from
            and self.contract_expiration_to
            and self.contract_expiration_from > self.contract_expiration_to
        ):
            raise ValueError(
                "contract_expiration_from must be before or equal to contract_expiration_to"
            )
        return self


class PaymentPlanReportRow(BaseModel):
    id: UUID
    reference_number: str | None
    student_id: UUID
    student_name: str
    college_id: UUID
    college_name: str
    branch_id: UUID
    branch_name: str
    branch_city: str | None = None
    program_name: str
    total_amount: Decimal
    currency: str
    commission_rate_percent: Decimal
    expected_commission: Decimal
    earned_commission: Decimal
    total_paid: Decimal
    total_remaining: Decimal
    status: PaymentPlanStatus
    start_date: date
    contract_expiration_date: date | None
    days_until_contract_expiration: int | None
    contract_status: ContractStatus | None


class ReportPagination(BaseModel):
    page: int
    page_size: int
    total_count: int
    total_pages: int


class PaymentPlanReportSummary(BaseModel):
    total_plan_amount: Decimal
    total_paid_amount: Decimal
    total_expected_commission: Decimal
    total_earned_commission: Decimal


class PaymentPlanReportResponse(BaseModel):
    data: list[PaymentPlanReportRow]
    pagination: ReportPagination
    summary: PaymentPlanReportSummary


# ============================================
# Commissions
# ============================================


class CommissionPlanDetail(BaseModel):
    """Drill-down row: one payment plan under a branch."""

    payment_plan_id: UUID
    student_id: UUID
    student_name: str
    total_amount: Decimal
    paid_amount: Decimal
    commission_earned: Decimal


class CommissionReportRow(BaseModel):
    college_id: UUID
    college_name: str
    branch_id: UUID
    branch_name: str
    branch_city: str | None
    commission_rate_percent: Decimal
    plan_count: int
    student_count: int
    total_paid: Decimal
    earned_commission: Decimal
    outstanding_commission: Decimal
    payment_plans: list[CommissionPlanDetail] = Field(default_factory=list)


class CommissionsSummary(BaseModel):
    total_paid: Decimal
    total_earned: Decimal
    total_outstanding: Decimal


class CommissionReportResponse(BaseModel):
    date_from: date
    date_to: date
    city: str | None
    data: list[CommissionReportRow]
    summary: CommissionsSummary
