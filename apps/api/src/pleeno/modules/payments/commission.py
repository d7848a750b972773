"""
Commission Arithmetic

Pure functions used by payment plans, reports and the dashboard. All
results are Decimals rounded half-up to cents. Rates are percentages
(12.5 means 12.5%).
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from pleeno.core.config import settings

CENTS = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | float | int | str | None) -> Decimal:
    """Convert any numeric input to Decimal without float artefacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Decimal | float | int | str | None) -> Decimal:
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def floor_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_DOWN)


def calculate_expected_commission(
    total_amount: Decimal | float | None,
    commission_rate_percent: Decimal | float | None,
) -> Decimal:
    """
    Commission on an amount at a percentage rate.

    Returns 0 when either input is missing or negative.

    >>> calculate_expected_commission(Decimal("25750.50"), Decimal("18"))
    Decimal('4635.09')
    """
    if total_amount is None or commission_rate_percent is None:
        return ZERO.quantize(CENTS)

    total = to_decimal(total_amount)
    rate = to_decimal(commission_rate_percent)
    if total < 0 or rate < 0:
        return ZERO.quantize(CENTS)

    return round_money(total * rate / HUNDRED)


def calculate_commissionable_value(
    total_amount: Decimal | float,
    materials_cost: Decimal | float | None = None,
    admin_fees: Decimal | float | None = None,
    other_fees: Decimal | float | None = None,
) -> Decimal:
    """Course value minus non-commissionable fees, never below zero."""
    value = (
        to_decimal(total_amount)
        - to_decimal(materials_cost)
        - to_decimal(admin_fees)
        - to_decimal(other_fees)
    )
    return round_money(max(value, ZERO))


def calculate_plan_commission(
    commissionable_value: Decimal | float,
    commission_rate_percent: Decimal | float,
    gst_inclusive: bool = False,
) -> Decimal:
    """
    Expected commission for a plan.

    GST-inclusive amounts have GST removed before the rate is applied.
    """
    base = to_decimal(commissionable_value)
    if gst_inclusive:
        base = base / (Decimal("1") + to_decimal(settings.gst_rate))
    return calculate_expected_commission(base, commission_rate_percent)


def calculate_earned_commission(
    commissionable_value: Decimal | float,
    expected_commission: Decimal | float,
    paid_sum: Decimal | float,
) -> Decimal:
    """
    Share of expected commission earned so far:
    paid_sum / commissionable_value * expected, capped at expected.
    """
    commissionable = to_decimal(commissionable_value)
    if commissionable <= 0:
        return ZERO.quantize(CENTS)
    earned = to_decimal(paid_sum) / commissionable * to_decimal(expected_commission)
    return round_money(min(earned, to_decimal(expected_commission)))


def calculate_installment_commission(
    paid_amount: Decimal | float | None,
    commission_rate_percent: Decimal | float | None,
) -> Decimal:
    """Commission earned on a single payment."""
    return calculate_expected_commission(paid_amount or ZERO, commission_rate_percent)


def percentage(part: Decimal | float, whole: Decimal | float) -> Decimal:
    """part / whole as a percentage rounded to 2 places; 0 when whole is 0."""
    whole_dec = to_decimal(whole)
    if whole_dec == 0:
        return ZERO.quantize(CENTS)
    return round_money(to_decimal(part) / whole_dec * HUNDRED)
