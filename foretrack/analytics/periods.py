"""
Period Selector

Maps a named range to concrete date windows. Subtraction is calendar
aware (dateutil's relativedelta), so "one month back" from 31 March
lands on the last day of February rather than a fixed 30 days earlier.
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from foretrack.models.analytics import DateWindow, PeriodWindows, TimeRange
from foretrack.models.transaction import BudgetPeriod


RANGE_OFFSETS: dict[TimeRange, relativedelta] = {
    TimeRange.WEEK: relativedelta(days=7),
    TimeRange.MONTH: relativedelta(months=1),
    TimeRange.QUARTER: relativedelta(months=3),
    TimeRange.YEAR: relativedelta(years=1),
}


def resolve_period(
    time_range: Union[TimeRange, str],
    now: Optional[datetime] = None,
) -> PeriodWindows:
    """
    Resolve a named range against a reference instant.

    The current window runs from `now - offset` to `now`, both days
    included. The previous window covers the same number of days and
    ends the day before the current one starts, so the two never overlap.
    """
    time_range = TimeRange(time_range)
    now = now or datetime.now()

    end = now.date()
    start = (now - RANGE_OFFSETS[time_range]).date()
    current = DateWindow(start=start, end=end)

    previous_end = start - timedelta(days=1)
    previous_start = previous_end - (end - start)
    previous = DateWindow(start=previous_start, end=previous_end)

    return PeriodWindows(
        time_range=time_range,
        reference=now,
        current=current,
        previous=previous,
    )


def current_budget_period(period: BudgetPeriod, today: Optional[date] = None) -> DateWindow:
    """
    Calendar period a budget is measured against, up to and including today.

    Weeks start on Monday.
    """
    today = today or date.today()

    if period == BudgetPeriod.WEEKLY:
        start = today - timedelta(days=today.weekday())
    elif period == BudgetPeriod.MONTHLY:
        start = today.replace(day=1)
    elif period == BudgetPeriod.QUARTERLY:
        first_month = 3 * ((today.month - 1) // 3) + 1
        start = today.replace(month=first_month, day=1)
    else:
        start = today.replace(month=1, day=1)

    return DateWindow(start=start, end=today)
