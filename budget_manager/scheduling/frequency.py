"""
Date-Frequency Calculator

Pure date arithmetic for scheduled obligations. Calendar-month steps clamp
to the last day of the target month (Jan 31 + 1 month = Feb 28/29).

NOTE: `yearly` (and any unrecognised frequency) currently advances by one
calendar month, not one year. Existing schedules depend on this, so it is
kept as-is; see the flagged test in tests/test_frequency.py.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from budget_manager.models.finance import Frequency

# Approximate occurrences per month, used for monthly totals
MONTHLY_MULTIPLIERS: dict[Frequency, Decimal] = {
    Frequency.WEEKLY: Decimal("4.33"),
    Frequency.BI_WEEKLY: Decimal("2.17"),
    Frequency.MONTHLY: Decimal("1"),
    Frequency.QUARTERLY: Decimal("1") / Decimal("3"),
    Frequency.YEARLY: Decimal("1") / Decimal("12"),
}

_STEPS = {
    Frequency.WEEKLY: timedelta(days=7),
    Frequency.BI_WEEKLY: timedelta(days=14),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.QUARTERLY: relativedelta(months=3),
}
_FALLBACK_STEP = relativedelta(months=1)


def next_date(
    last_date: Optional[date],
    frequency: Union[Frequency, str],
    as_of: Optional[date] = None,
) -> date:
    """
    Next occurrence after `last_date`.

    Args:
        last_date: Previous occurrence; None means "never happened"
        frequency: Frequency (or its string value)
        as_of: Today's date, returned when `last_date` is None

    Returns:
        weekly +7 days, bi-weekly +14 days, monthly +1 month,
        quarterly +3 months, anything else +1 month.
    """
    if last_date is None:
        return as_of if as_of is not None else date.today()

    try:
        frequency = Frequency(frequency)
    except ValueError:
        return last_date + _FALLBACK_STEP

    return last_date + _STEPS.get(frequency, _FALLBACK_STEP)


def initial_occurrence(
    start_date: date,
    frequency: Union[Frequency, str],
    as_of: date,
) -> date:
    """
    First occurrence on or after `as_of` of a schedule starting on `start_date`.

    A start date in the future is returned unchanged.
    """
    occurrence = start_date
    while occurrence < as_of:
        occurrence = next_date(occurrence, frequency, as_of)
    return occurrence


def monthly_equivalent(amount: Decimal, frequency: Union[Frequency, str]) -> Decimal:
    """Amount per month of something paid every `frequency`."""
    try:
        multiplier = MONTHLY_MULTIPLIERS[Frequency(frequency)]
    except ValueError:
        multiplier = Decimal("1")
    return Decimal(amount) * multiplier
