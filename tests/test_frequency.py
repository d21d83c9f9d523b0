"""
Tests for the date-frequency calculator.

All dates are fixed; nothing here depends on the clock.
"""

import pytest
from datetime import date
from decimal import Decimal

from budget_manager.models.finance import Frequency
from budget_manager.scheduling import initial_occurrence, monthly_equivalent, next_date


class TestNextDate:
    """Tests for next_date."""

    def test_weekly_adds_seven_days(self):
        assert next_date(date(2025, 10, 1), Frequency.WEEKLY) == date(2025, 10, 8)

    def test_bi_weekly_adds_fourteen_days(self):
        assert next_date(date(2025, 12, 25), Frequency.BI_WEEKLY) == date(2026, 1, 8)

    def test_monthly_adds_one_calendar_month(self):
        assert next_date(date(2025, 10, 1), Frequency.MONTHLY) == date(2025, 11, 1)

    def test_monthly_clamps_to_end_of_month(self):
        """Test Jan 31 + 1 month lands on the last day of February."""
        assert next_date(date(2025, 1, 31), Frequency.MONTHLY) == date(2025, 2, 28)
        assert next_date(date(2024, 1, 31), Frequency.MONTHLY) == date(2024, 2, 29)

    def test_quarterly_adds_three_months(self):
        assert next_date(date(2025, 11, 15), Frequency.QUARTERLY) == date(2026, 2, 15)

    def test_accepts_string_frequency(self):
        assert next_date(date(2025, 10, 1), "weekly") == date(2025, 10, 8)

    def test_yearly_advances_one_month(self):
        """
        Flagged behaviour: yearly currently falls back to +1 month.

        Stored schedules were produced with this step, so it is pinned here
        rather than silently corrected.
        """
        assert next_date(date(2025, 10, 1), Frequency.YEARLY) == date(2025, 11, 1)

    def test_unknown_frequency_falls_back_to_one_month(self):
        assert next_date(date(2025, 10, 1), "fortnightly") == date(2025, 11, 1)

    def test_missing_last_date_returns_as_of(self):
        """An obligation that never ran is due on the injected date."""
        assert next_date(None, Frequency.MONTHLY, as_of=date(2025, 10, 5)) == date(2025, 10, 5)


class TestInitialOccurrence:
    """Tests for catching a start date up to today."""

    def test_future_start_date_unchanged(self):
        result = initial_occurrence(date(2025, 12, 1), Frequency.MONTHLY, date(2025, 10, 1))
        assert result == date(2025, 12, 1)

    def test_past_start_date_caught_up(self):
        result = initial_occurrence(date(2025, 9, 1), Frequency.WEEKLY, date(2025, 9, 20))
        assert result == date(2025, 9, 22)

    def test_start_on_as_of_is_due_immediately(self):
        result = initial_occurrence(date(2025, 10, 1), Frequency.MONTHLY, date(2025, 10, 1))
        assert result == date(2025, 10, 1)


class TestMonthlyEquivalent:
    """Tests for monthly_equivalent."""

    @pytest.mark.parametrize("frequency,expected", [
        (Frequency.WEEKLY, Decimal("433.00")),
        (Frequency.BI_WEEKLY, Decimal("217.00")),
        (Frequency.MONTHLY, Decimal("100")),
    ])
    def test_multipliers(self, frequency, expected):
        assert monthly_equivalent(Decimal("100"), frequency) == expected

    def test_quarterly_is_a_third(self):
        assert round(monthly_equivalent(Decimal("300"), Frequency.QUARTERLY), 2) == Decimal("100.00")

    def test_yearly_is_a_twelfth(self):
        assert round(monthly_equivalent(Decimal("1200"), Frequency.YEARLY), 2) == Decimal("100.00")
