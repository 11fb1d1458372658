"""Reconcile logged work against the business days of a reporting window."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterable
from datetime import date
from typing import Dict, Optional

from .models import ReportingWindow, UserAttendance, UserIdentity, WorkLogRecord
from .workdays import business_days

SECONDS_PER_HOUR = 3600


def seconds_to_hours(seconds: int | float) -> float:
    return seconds / SECONDS_PER_HOUR


def aggregate_hours(records: Iterable[WorkLogRecord], window: ReportingWindow) -> Dict[date, float]:
    """Sum logged hours per day for records inside ``window``."""

    totals: Dict[date, float] = defaultdict(float)
    for record in records:
        if window.contains(record.day):
            totals[record.day] += record.hours
    return dict(totals)


def reconcile(
    identity: Optional[UserIdentity],
    records: Iterable[WorkLogRecord],
    window: ReportingWindow,
    holidays: Collection[date],
    minimum_hours: float = 0.0,
) -> Optional[UserAttendance]:
    """Return the business days of ``window`` lacking ``minimum_hours``.

    A day with records totalling exactly ``minimum_hours`` is satisfied. With a
    zero threshold any record counts. ``None`` is returned when the user could
    not be resolved so the caller can skip them.
    """

    if identity is None:
        return None

    hours = aggregate_hours(records, window)
    missing = [
        day
        for day in business_days(window, holidays)
        if day not in hours or hours[day] < minimum_hours
    ]
    return UserAttendance(identity=identity, missing_days=missing)


__all__ = ["aggregate_hours", "reconcile", "seconds_to_hours"]
