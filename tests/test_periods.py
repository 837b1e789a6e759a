"""Tests for the period selector."""

from datetime import date, datetime, timedelta

import pytest

from foretrack.analytics.periods import current_budget_period, resolve_period
from foretrack.models.analytics import TimeRange
from foretrack.models.transaction import BudgetPeriod


NOW = datetime(2024, 3, 31, 15, 30)


class TestResolvePeriod:

    def test_week(self):
        periods = resolve_period(TimeRange.WEEK, NOW)
        assert periods.current.start == date(2024, 3, 24)
        assert periods.current.end == date(2024, 3, 31)

    def test_month_is_calendar_aware(self):
        periods = resolve_period(TimeRange.MONTH, NOW)
        # 31 March minus one month clamps to the end of February
        assert periods.current.start == date(2024, 2, 29)

    def test_quarter(self):
        periods = resolve_period("quarter", NOW)
        assert periods.current.start == date(2023, 12, 31)

    def test_year(self):
        periods = resolve_period(TimeRange.YEAR, NOW)
        assert periods.current.start == date(2023, 3, 31)

    def test_unknown_range_rejected(self):
        with pytest.raises(ValueError):
            resolve_period("decade", NOW)

    @pytest.mark.parametrize("time_range", list(TimeRange))
    def test_previous_window_is_adjacent_and_equally_long(self, time_range):
        periods = resolve_period(time_range, NOW)
        assert periods.previous.end == periods.current.start - timedelta(days=1)
        assert periods.previous.days == periods.current.days

    def test_reference_is_kept(self):
        assert resolve_period(TimeRange.WEEK, NOW).reference == NOW


class TestCurrentBudgetPeriod:

    def test_weekly_starts_monday(self):
        window = current_budget_period(BudgetPeriod.WEEKLY, date(2024, 3, 14))  # Thursday
        assert window.start == date(2024, 3, 11)
        assert window.end == date(2024, 3, 14)

    def test_monthly(self):
        window = current_budget_period(BudgetPeriod.MONTHLY, date(2024, 3, 14))
        assert window.start == date(2024, 3, 1)

    def test_quarterly(self):
        window = current_budget_period(BudgetPeriod.QUARTERLY, date(2024, 8, 20))
        assert window.start == date(2024, 7, 1)

    def test_yearly(self):
        window = current_budget_period(BudgetPeriod.YEARLY, date(2024, 8, 20))
        assert window.start == date(2024, 1, 1)

    def test_first_day_of_period_is_one_day_window(self):
        window = current_budget_period(BudgetPeriod.MONTHLY, date(2024, 3, 1))
        assert window.days == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
