"""Reporting window and business day helpers."""

from __future__ import annotations

from collections.abc import Collection
from datetime import date, timedelta
from enum import Enum
from typing import List

from .models import ReportingWindow

FRIDAY = 4


class WindowStartPolicy(str, Enum):
    MONTH_START = "month_start"
    ROLLING = "rolling"


class WindowEndPolicy(str, Enum):
    TODAY = "today"
    MONTH_END = "month_end"


def first_day_of_month(day: date) -> date:
    return day.replace(day=1)


def last_day_of_month(day: date) -> date:
    next_month = (day.replace(day=1) + timedelta(days=32)).replace(day=1)
    return next_month - timedelta(days=1)


def window_start(
    today: date,
    policy: WindowStartPolicy = WindowStartPolicy.MONTH_START,
    lookback_days: int = 10,
) -> date:
    month_start = first_day_of_month(today)
    if policy is WindowStartPolicy.MONTH_START:
        return month_start
    jan_first = date(today.year, 1, 1)
    return min(max(jan_first, today - timedelta(days=lookback_days)), month_start)


def window_end(today: date, policy: WindowEndPolicy = WindowEndPolicy.TODAY) -> date:
    if policy is WindowEndPolicy.MONTH_END:
        return last_day_of_month(today)
    # Today only counts as a completed day on Fridays.
    if today.weekday() != FRIDAY:
        return today - timedelta(days=1)
    return today


def reporting_window(
    today: date,
    start_policy: WindowStartPolicy = WindowStartPolicy.MONTH_START,
    end_policy: WindowEndPolicy = WindowEndPolicy.TODAY,
    lookback_days: int = 10,
) -> ReportingWindow:
    return ReportingWindow(
        start=window_start(today, start_policy, lookback_days),
        end=window_end(today, end_policy),
    )


def fetch_range(window: ReportingWindow, today: date) -> ReportingWindow:
    """Range requested from the time tracker: window start to the end of this month."""

    return ReportingWindow(start=window.start, end=max(window.end, last_day_of_month(today)))


def is_business_day(day: date, holidays: Collection[date]) -> bool:
    return day.weekday() < 5 and day not in holidays


def business_days(window: ReportingWindow, holidays: Collection[date]) -> List[date]:
    """Return Mon-Fri dates of ``window`` (inclusive) that are not holidays."""

    holiday_set = set(holidays)
    days: List[date] = []
    current = window.start
    while current <= window.end:
        if is_business_day(current, holiday_set):
            days.append(current)
        current += timedelta(days=1)
    return days


__all__ = [
    "WindowStartPolicy",
    "WindowEndPolicy",
    "first_day_of_month",
    "last_day_of_month",
    "window_start",
    "window_end",
    "reporting_window",
    "fetch_range",
    "is_business_day",
    "business_days",
]
