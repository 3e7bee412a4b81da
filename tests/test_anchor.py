"""
Tests for anchor resolution and calendar arithmetic.
"""

import pytest
from datetime import date

from recurring_ledger.models.recurrence import Frequency
from recurring_ledger.recurrence.anchor import (
    add_months,
    align_to_weekday,
    clipped_date,
    days_in_month,
    month_index,
    resolve_anchor,
    sunday_weekday,
)


class TestCalendarArithmetic:
    """Tests for the month and weekday helpers."""

    def test_days_in_month_handles_leap_years(self):
        """Test February length in leap and non-leap years."""
        assert days_in_month(2023, 2) == 28
        assert days_in_month(2024, 2) == 29
        assert days_in_month(2026, 4) == 30

    def test_add_months_crosses_year_boundaries(self):
        """Test shifting months forward and backward across years."""
        assert add_months(2026, 11, 3) == (2027, 2)
        assert add_months(2026, 1, -1) == (2025, 12)
        assert add_months(2026, 6, 0) == (2026, 6)
        assert add_months(2026, 3, -27) == (2023, 12)

    def test_month_index_difference(self):
        """Test that month_index differences are whole-month distances."""
        assert month_index(date(2027, 2, 28)) - month_index(date(2026, 11, 1)) == 3

    def test_clipped_date(self):
        """Test clipping a day to the month's length."""
        assert clipped_date(2026, 4, 31) == date(2026, 4, 30)
        assert clipped_date(2023, 2, 30) == date(2023, 2, 28)
        assert clipped_date(2024, 2, 31) == date(2024, 2, 29)
        assert clipped_date(2026, 1, 15) == date(2026, 1, 15)

    def test_sunday_weekday_convention(self):
        """Test that Sunday is 0 and Saturday is 6."""
        assert sunday_weekday(date(2026, 1, 4)) == 0  # Sunday
        assert sunday_weekday(date(2026, 1, 5)) == 1  # Monday
        assert sunday_weekday(date(2026, 1, 10)) == 6  # Saturday

    def test_align_to_weekday(self):
        """Test advancing to the next matching weekday."""
        assert align_to_weekday(date(2026, 1, 1), 1) == date(2026, 1, 5)
        assert align_to_weekday(date(2026, 1, 5), 1) == date(2026, 1, 5)
        assert align_to_weekday(date(2026, 1, 6), 1) == date(2026, 1, 12)


class TestResolveAnchor:
    """Tests for resolve_anchor."""

    def test_weekly_advances_to_target_weekday(self):
        """Test a Thursday valid_from resolving to the following Monday."""
        assert resolve_anchor(date(2026, 1, 1), Frequency.WEEKLY, 1) == date(2026, 1, 5)

    def test_weekly_on_target_weekday_is_unchanged(self):
        """Test that a valid_from already on the weekday is kept."""
        assert resolve_anchor(date(2026, 1, 5), Frequency.WEEKLY, 1) == date(2026, 1, 5)

    def test_weekly_sunday_target(self):
        """Test the Sunday (0) target."""
        assert resolve_anchor(date(2026, 1, 5), Frequency.WEEKLY, 0) == date(2026, 1, 11)

    def test_monthly_same_month_when_day_not_passed(self):
        """Test that the anchor day later in the month stays in that month."""
        assert resolve_anchor(date(2026, 1, 10), Frequency.MONTHLY, 15) == date(2026, 1, 15)

    def test_monthly_on_anchor_day(self):
        """Test that valid_from on the anchor day is itself the first occurrence."""
        assert resolve_anchor(date(2026, 1, 15), Frequency.MONTHLY, 15) == date(2026, 1, 15)

    def test_monthly_rolls_to_next_month(self):
        """Test that a passed anchor day moves to the next month."""
        assert resolve_anchor(date(2026, 1, 20), Frequency.MONTHLY, 15) == date(2026, 2, 15)

    def test_monthly_rolls_over_year_end(self):
        """Test rolling from December into January."""
        assert resolve_anchor(date(2026, 12, 20), Frequency.MONTHLY, 5) == date(2027, 1, 5)

    def test_monthly_clips_to_short_month(self):
        """Test anchor 31 in February."""
        assert resolve_anchor(date(2026, 2, 3), Frequency.MONTHLY, 31) == date(2026, 2, 28)
        assert resolve_anchor(date(2026, 1, 31), Frequency.MONTHLY, 30) == date(2026, 2, 28)

    def test_accepts_frequency_value(self):
        """Test that the plain string value is accepted."""
        assert resolve_anchor(date(2026, 1, 1), "weekly", 1) == date(2026, 1, 5)

    @pytest.mark.parametrize("frequency,target", [
        (Frequency.WEEKLY, 7),
        (Frequency.WEEKLY, -1),
        (Frequency.MONTHLY, 0),
        (Frequency.MONTHLY, 32),
    ])
    def test_out_of_range_target_rejected(self, frequency, target):
        """Test that targets outside the frequency's range raise."""
        with pytest.raises(ValueError):
            resolve_anchor(date(2026, 1, 1), frequency, target)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
