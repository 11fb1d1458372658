"""
Tests for reporting windows and business days.
"""

from datetime import date, timedelta

import pytest

from worklog_pulse.models import ReportingWindow
from worklog_pulse.workdays import (
    WindowEndPolicy,
    WindowStartPolicy,
    business_days,
    fetch_range,
    last_day_of_month,
    reporting_window,
    window_end,
    window_start,
)


def test_window_end_excludes_today_except_on_friday():
    assert window_end(date(2024, 6, 5)) == date(2024, 6, 4)
    assert window_end(date(2024, 6, 7)) == date(2024, 6, 7)
    assert window_end(date(2024, 6, 7), WindowEndPolicy.MONTH_END) == date(2024, 6, 30)


def test_month_start_policy():
    assert window_start(date(2024, 6, 5)) == date(2024, 6, 1)


@pytest.mark.parametrize(
    "today, expected",
    [
        (date(2024, 6, 25), date(2024, 6, 1)),
        (date(2024, 6, 5), date(2024, 5, 26)),
        (date(2024, 1, 4), date(2024, 1, 1)),
    ],
)
def test_rolling_start_is_clipped(today, expected):
    assert window_start(today, WindowStartPolicy.ROLLING, lookback_days=10) == expected


def test_first_of_month_on_monday_gives_empty_window():
    window = reporting_window(date(2024, 7, 1))

    assert window.is_empty
    assert business_days(window, []) == []


def test_start_after_end_is_empty():
    assert business_days(ReportingWindow(date(2024, 6, 10), date(2024, 6, 3)), []) == []


def test_business_days_skip_weekends_and_holidays():
    window = ReportingWindow(date(2024, 4, 29), date(2024, 5, 10))
    holidays = [date(2024, 5, 1), date(2024, 5, 6), date(2024, 5, 4)]

    assert business_days(window, holidays) == [
        date(2024, 4, 29),
        date(2024, 4, 30),
        date(2024, 5, 2),
        date(2024, 5, 3),
        date(2024, 5, 7),
        date(2024, 5, 8),
        date(2024, 5, 9),
        date(2024, 5, 10),
    ]


@pytest.mark.parametrize(
    "start, end",
    [
        (date(2024, 1, 1), date(2024, 1, 31)),
        (date(2024, 2, 20), date(2024, 3, 10)),
        (date(2024, 12, 20), date(2025, 1, 6)),
    ],
)
def test_business_days_are_exactly_the_non_holiday_weekdays(start, end):
    holidays = [date(2024, 1, 1), date(2024, 3, 1), date(2024, 12, 25), date(2024, 12, 28)]
    days = business_days(ReportingWindow(start, end), holidays)

    expected = []
    current = start
    while current <= end:
        if current.weekday() < 5 and current not in holidays:
            expected.append(current)
        current += timedelta(days=1)

    assert days == expected


def test_fetch_range_reaches_month_end():
    window = ReportingWindow(date(2024, 6, 1), date(2024, 6, 4))

    assert fetch_range(window, date(2024, 6, 5)) == ReportingWindow(date(2024, 6, 1), date(2024, 6, 30))


def test_last_day_of_month_handles_leap_years():
    assert last_day_of_month(date(2024, 2, 10)) == date(2024, 2, 29)
    assert last_day_of_month(date(2023, 12, 31)) == date(2023, 12, 31)
