"""
Fixtures for payment tests.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from pleeno.modules.payments.models import InstallmentStatus, PaymentPlanStatus


def _installment(number: int, amount: str, **overrides):
    values = {
        "id": uuid4(),
        "installment_number": number,
        "amount": Decimal(amount),
        "status": InstallmentStatus.PENDING,
        "paid_amount": None,
        "paid_date": None,
        "payment_notes": None,
        "generates_commission": True,
        "is_initial_payment": number == 0,
        "student_due_date": date(2025, 1, 1),
        "college_due_date": date(2025, 1, 8),
        "last_notified_date": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def sample_enrollment():
    """Enrollment with a branch that has its own commission rate."""
    college = SimpleNamespace(
        id=uuid4(), name="Sydney Business College", default_commission_rate_percent=Decimal("12")
    )
    branch = SimpleNamespace(
        id=uuid4(), name="CBD Campus", college=college, commission_rate_percent=Decimal("15")
    )
    student = SimpleNamespace(id=uuid4(), full_name="Maria Santos", email="maria@example.com")
    return SimpleNamespace(
        id=uuid4(),
        student_id=student.id,
        student=student,
        branch=branch,
        branch_id=branch.id,
        program_name="Diploma of Business",
    )


@pytest.fixture
def sample_plan(sample_enrollment):
    """Active plan of 1000.00 at 10% with two installments of 500.00."""
    plan = MagicMock()
    plan.id = uuid4()
    plan.status = PaymentPlanStatus.ACTIVE
    plan.currency = "AUD"
    plan.total_amount = Decimal("1000.00")
    plan.commissionable_value = Decimal("1000.00")
    plan.expected_commission = Decimal("100.00")
    plan.earned_commission = Decimal("0.00")
    plan.enrollment = sample_enrollment
    plan.installments = [_installment(1, "500.00"), _installment(2, "500.00")]
    for installment in plan.installments:
        installment.payment_plan_id = plan.id
    return plan


@pytest.fixture
def make_installment():
    """Factory for installment stand-ins."""
    return _installment


@pytest.fixture(autouse=True)
def agency_calendar():
    """Fix the agency's local date so payment dates in 2025 are in the past."""
    with patch(
        "pleeno.modules.payments.service.agency_today",
        AsyncMock(return_value=date(2025, 3, 1)),
    ) as mock_today:
        yield mock_today
