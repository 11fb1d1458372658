"""Select birthdays and anniversaries that fall in the current week."""

from __future__ import annotations

import calendar
import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import List, Union

from .models import Celebration, CelebrationWindow, Person

logger = logging.getLogger(__name__)

ANNUAL_DATE = re.compile(r"^(\d{1,2})-(\d{1,2})(?:-\d{2,4})?$")


@dataclass(slots=True, frozen=True)
class ParsedDate:
    value: date


@dataclass(slots=True, frozen=True)
class DateParseError:
    raw: str
    reason: str


ParseResult = Union[ParsedDate, DateParseError]


def parse_annual_date(raw: str, year: int) -> ParseResult:
    """Parse ``DD-MM`` or ``DD-MM-YYYY`` into a date of ``year``."""

    match = ANNUAL_DATE.match(raw.strip())
    if not match:
        return DateParseError(raw=raw, reason="expected DD-MM or DD-MM-YYYY")
    day, month = int(match.group(1)), int(match.group(2))
    try:
        return ParsedDate(date(year, month, day))
    except ValueError as exc:
        return DateParseError(raw=raw, reason=str(exc))


def celebration_window(today: date) -> CelebrationWindow:
    monday = today - timedelta(days=today.weekday())
    sunday = monday + timedelta(days=6)
    return CelebrationWindow(
        start=datetime.combine(monday, time.min),
        end=datetime.combine(sunday, time.max),
    )


def format_event(kind: str, day: date) -> str:
    return f"{kind} on {day:%d} {calendar.month_name[day.month]}"


def celebrations_this_week(roster: Iterable[Person], today: date) -> List[Celebration]:
    window = celebration_window(today)
    result: List[Celebration] = []
    for person in roster:
        events: List[str] = []
        for kind, values in person.events.items():
            for raw in values:
                parsed = parse_annual_date(raw, today.year)
                if isinstance(parsed, DateParseError):
                    logger.debug("Ignoring %s %s for %s: %s", kind, raw, person.email, parsed.reason)
                    continue
                if window.contains(parsed.value):
                    events.append(format_event(kind, parsed.value))
        if events:
            result.append(Celebration(email=person.email, events=events))
    return result


def render_celebrations(celebrations: Iterable[Celebration]) -> str:
    return ", ".join(f"{item.email} - {', '.join(item.events)}" for item in celebrations)


# region Roster loading
def person_from_record(record: dict) -> Person | None:
    email = record.get("email")
    if not isinstance(email, str) or not email.strip():
        logger.warning("Skipping roster entry without an email: %s", record)
        return None

    events: dict[str, tuple[str, ...]] = {}
    for key, value in record.items():
        if key == "email":
            continue
        if isinstance(value, str):
            events[key] = (value,)
        elif isinstance(value, list) and all(isinstance(item, str) for item in value):
            events[key] = tuple(value)
        else:
            logger.warning("Ignoring roster field %r for %s: not a date or list of dates", key, email)
    return Person(email=email.strip(), events=events)


def load_roster(path: Path) -> List[Person]:
    with path.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of people")

    roster: List[Person] = []
    for record in data:
        if not isinstance(record, dict):
            logger.warning("Skipping roster entry that is not an object: %r", record)
            continue
        person = person_from_record(record)
        if person is not None:
            roster.append(person)
    return roster


# endregion


__all__ = [
    "ParsedDate",
    "DateParseError",
    "parse_annual_date",
    "celebration_window",
    "format_event",
    "celebrations_this_week",
    "render_celebrations",
    "person_from_record",
    "load_roster",
]
