"""
Unit tests for commission arithmetic.
"""

from decimal import Decimal

from pleeno.modules.payments.commission import (
    calculate_commissionable_value,
    calculate_earned_commission,
    calculate_expected_commission,
    calculate_installment_commission,
    calculate_plan_commission,
    percentage,
    round_money,
)


class TestExpectedCommission:
    def test_basic_rate(self):
        assert calculate_expected_commission(Decimal("10000"), Decimal("15")) == Decimal("1500.00")

    def test_rounds_half_up_to_cents(self):
        assert calculate_expected_commission(Decimal("25750.50"), Decimal("18")) == Decimal(
            "4635.09"
        )

    def test_missing_inputs_give_zero(self):
        assert calculate_expected_commission(None, Decimal("10")) == Decimal("0.00")
        assert calculate_expected_commission(Decimal("100"), None) == Decimal("0.00")

    def test_negative_inputs_give_zero(self):
        assert calculate_expected_commission(Decimal("-100"), Decimal("10")) == Decimal("0.00")
        assert calculate_expected_commission(Decimal("100"), Decimal("-1")) == Decimal("0.00")

    def test_float_inputs_do_not_leak_binary_error(self):
        assert calculate_expected_commission(0.1, 100) == Decimal("0.10")


class TestCommissionableValue:
    def test_fees_are_subtracted(self):
        value = calculate_commissionable_value(
            Decimal("12000"), Decimal("500"), Decimal("250"), Decimal("250")
        )
        assert value == Decimal("11000.00")

    def test_never_below_zero(self):
        assert calculate_commissionable_value(Decimal("100"), Decimal("500")) == Decimal("0.00")

    def test_missing_fees_treated_as_zero(self):
        assert calculate_commissionable_value(Decimal("100")) == Decimal("100.00")


class TestPlanCommission:
    def test_gst_exclusive(self):
        assert calculate_plan_commission(Decimal("11000"), Decimal("10")) == Decimal("1100.00")

    def test_gst_inclusive_removes_gst_first(self):
        # 11000 / 1.10 = 10000
        assert calculate_plan_commission(
            Decimal("11000"), Decimal("10"), gst_inclusive=True
        ) == Decimal("1000.00")


class TestEarnedCommission:
    def test_proportional_to_paid(self):
        earned = calculate_earned_commission(Decimal("10000"), Decimal("1500"), Decimal("2500"))
        assert earned == Decimal("375.00")

    def test_capped_at_expected(self):
        earned = calculate_earned_commission(Decimal("1000"), Decimal("100"), Decimal("1100"))
        assert earned == Decimal("100.00")

    def test_nothing_commissionable(self):
        assert calculate_earned_commission(Decimal("0"), Decimal("100"), Decimal("50")) == Decimal(
            "0.00"
        )

    def test_installment_commission(self):
        assert calculate_installment_commission(Decimal("1000"), Decimal("12.5")) == Decimal(
            "125.00"
        )
        assert calculate_installment_commission(None, Decimal("12.5")) == Decimal("0.00")


class TestHelpers:
    def test_round_money(self):
        assert round_money("2.675") == Decimal("2.68")
        assert round_money(None) == Decimal("0.00")

    def test_percentage(self):
        assert percentage(Decimal("1"), Decimal("3")) == Decimal("33.33")
        assert percentage(Decimal("5"), Decimal("0")) == Decimal("0.00")
