"""
Unit tests for installment schedule generation.
"""

from datetime import date
from decimal import Decimal

import pytest

from pleeno.modules.payments.models import InstallmentStatus, PaymentFrequency
from pleeno.modules.payments.schedule import (
    ScheduleError,
    college_due_dates,
    generate_installments,
    split_amount,
    student_due_date,
)


class TestSplitAmount:
    def test_leftover_cents_go_to_last(self):
        assert split_amount(Decimal("100.00"), 3) == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]

    def test_even_split(self):
        assert split_amount(Decimal("1200"), 4) == [Decimal("300.00")] * 4

    def test_zero_count_rejected(self):
        with pytest.raises(ScheduleError):
            split_amount(Decimal("100"), 0)

    def test_less_than_a_cent_each_rejected(self):
        with pytest.raises(ScheduleError):
            split_amount(Decimal("0.02"), 3)


class TestDueDates:
    def test_monthly_clamps_to_month_end(self):
        dates = college_due_dates(date(2025, 1, 31), 3, PaymentFrequency.MONTHLY)
        assert dates == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31)]

    def test_quarterly(self):
        dates = college_due_dates(date(2025, 1, 15), 3, PaymentFrequency.QUARTERLY)
        assert dates == [date(2025, 1, 15), date(2025, 4, 15), date(2025, 7, 15)]

    def test_custom_has_no_automatic_dates(self):
        with pytest.raises(ScheduleError):
            college_due_dates(date(2025, 1, 15), 3, PaymentFrequency.CUSTOM)

    def test_student_lead_time(self):
        assert student_due_date(date(2025, 3, 1), 7) == date(2025, 2, 22)


class TestGenerateInstallments:
    def test_with_initial_payment(self):
        schedule = generate_installments(
            total_course_value=Decimal("10000"),
            commission_rate_percent=Decimal("15"),
            number_of_installments=3,
            payment_frequency=PaymentFrequency.MONTHLY,
            first_college_due_date=date(2025, 2, 1),
            student_lead_time_days=7,
            initial_payment_amount=Decimal("1000"),
            initial_payment_due_date=date(2025, 1, 10),
        )

        installments = schedule.installments
        assert len(installments) == 4
        assert installments[0].is_initial_payment is True
        assert installments[0].installment_number == 0
        assert installments[0].amount == Decimal("1000.00")
        assert [i.amount for i in installments[1:]] == [Decimal("3000.00")] * 3
        assert installments[1].college_due_date == date(2025, 2, 1)
        assert installments[1].student_due_date == date(2025, 1, 25)
        assert sum(i.amount for i in installments) == Decimal("10000.00")

        summary = schedule.summary
        assert summary.expected_commission == Decimal("1500.00")
        assert summary.total_installments == 4
        assert summary.amount_per_installment == Decimal("3000.00")

    def test_fees_reduce_commissionable_value(self):
        schedule = generate_installments(
            total_course_value=Decimal("10000"),
            commission_rate_percent=Decimal("10"),
            number_of_installments=2,
            payment_frequency=PaymentFrequency.QUARTERLY,
            first_college_due_date=date(2025, 1, 1),
            materials_cost=Decimal("500"),
            admin_fees=Decimal("300"),
            other_fees=Decimal("200"),
        )

        assert schedule.summary.commissionable_value == Decimal("9000.00")
        assert schedule.summary.expected_commission == Decimal("900.00")
        assert sum(i.amount for i in schedule.installments) == Decimal("9000.00")

    def test_initial_payment_marked_paid(self):
        schedule = generate_installments(
            total_course_value=Decimal("5000"),
            commission_rate_percent=Decimal("10"),
            number_of_installments=1,
            payment_frequency=PaymentFrequency.MONTHLY,
            first_college_due_date=date(2025, 6, 1),
            initial_payment_amount=Decimal("500"),
            initial_payment_due_date=date(2025, 5, 1),
            initial_payment_paid=True,
        )

        assert schedule.installments[0].status == InstallmentStatus.PAID
        assert schedule.installments[1].status == InstallmentStatus.DRAFT

    def test_custom_frequency_leaves_dates_empty(self):
        schedule = generate_installments(
            total_course_value=Decimal("900"),
            commission_rate_percent=Decimal("10"),
            number_of_installments=3,
            payment_frequency=PaymentFrequency.CUSTOM,
        )

        assert all(i.college_due_date is None for i in schedule.installments)
        assert all(i.student_due_date is None for i in schedule.installments)

    def test_initial_payment_above_value_rejected(self):
        with pytest.raises(ScheduleError):
            generate_installments(
                total_course_value=Decimal("1000"),
                commission_rate_percent=Decimal("10"),
                number_of_installments=2,
                payment_frequency=PaymentFrequency.MONTHLY,
                first_college_due_date=date(2025, 1, 1),
                initial_payment_amount=Decimal("1500"),
            )

    def test_dated_schedule_requires_first_due_date(self):
        with pytest.raises(ScheduleError):
            generate_installments(
                total_course_value=Decimal("1000"),
                commission_rate_percent=Decimal("10"),
                number_of_installments=2,
                payment_frequency=PaymentFrequency.MONTHLY,
            )

    def test_initial_payment_covering_everything(self):
        schedule = generate_installments(
            total_course_value=Decimal("1000"),
            commission_rate_percent=Decimal("10"),
            number_of_installments=3,
            payment_frequency=PaymentFrequency.MONTHLY,
            first_college_due_date=date(2025, 2, 1),
            initial_payment_amount=Decimal("1000"),
            initial_payment_due_date=date(2025, 1, 10),
        )

        assert len(schedule.installments) == 1
        assert schedule.installments[0].is_initial_payment is True
        assert schedule.installments[0].amount == Decimal("1000.00")
        assert schedule.summary.total_installments == 1
        assert schedule.summary.amount_per_installment == Decimal("0")

    def test_remainder_below_one_cent_each_rejected(self):
        with pytest.raises(ScheduleError):
            generate_installments(
                total_course_value=Decimal("1000"),
                commission_rate_percent=Decimal("10"),
                number_of_installments=3,
                payment_frequency=PaymentFrequency.MONTHLY,
                first_college_due_date=date(2025, 2, 1),
                initial_payment_amount=Decimal("999.99"),
            )

    def test_every_installment_positive(self):
        schedule = generate_installments(
            total_course_value=Decimal("1000"),
            commission_rate_percent=Decimal("10"),
            number_of_installments=3,
            payment_frequency=PaymentFrequency.MONTHLY,
            first_college_due_date=date(2025, 2, 1),
            initial_payment_amount=Decimal("999.97"),
        )

        assert all(i.amount > 0 for i in schedule.installments)
        assert sum(i.amount for i in schedule.installments) == Decimal("1000.00")

    def test_fees_consuming_whole_value_rejected(self):
        with pytest.raises(ScheduleError):
            generate_installments(
                total_course_value=Decimal("500"),
                commission_rate_percent=Decimal("10"),
                number_of_installments=2,
                payment_frequency=PaymentFrequency.MONTHLY,
                first_college_due_date=date(2025, 2, 1),
                materials_cost=Decimal("500"),
            )
