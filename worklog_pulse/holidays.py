"""Public holiday calendar with the moving Easter holidays."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

CALENDAR_ORACLE_URL = "https://psdox.com/calendar/api"
EASTER_TAG = re.compile(r"<grigorin>([\d.]+)</grigorin>")

# (month, day) of the single-day holidays observed every year.
FIXED_HOLIDAYS = [
    (1, 1),
    (3, 3),
    (5, 1),
    (5, 6),
    (5, 24),
    (9, 6),
    (9, 22),
    (11, 1),
]

CHRISTMAS_DAYS = [(12, 24), (12, 25), (12, 26)]

# Extra December days keyed by the weekday of Dec 24 (Monday == 0).
CHRISTMAS_SUBSTITUTES = {
    6: [27],
    3: [28],
    4: [27, 28],
    5: [27, 28],
}

KNOWN_EASTER_DATES = {
    2023: date(2023, 4, 16),
    2024: date(2024, 5, 5),
    2025: date(2025, 4, 20),
    2026: date(2026, 4, 12),
    2027: date(2027, 5, 2),
    2028: date(2028, 4, 16),
    2029: date(2029, 4, 8),
    2030: date(2030, 4, 28),
    2031: date(2031, 4, 13),
    2032: date(2032, 5, 2),
    2033: date(2033, 4, 24),
    2034: date(2034, 4, 9),
    2035: date(2035, 4, 29),
}


def orthodox_easter(year: int) -> date:
    """Return the fallback Easter Sunday for ``year``."""

    if year in KNOWN_EASTER_DATES:
        return KNOWN_EASTER_DATES[year]
    # Meeus' Julian algorithm shifted onto the Gregorian calendar.
    a, b, c = year % 4, year % 7, year % 19
    d = (19 * c + 15) % 30
    e = (2 * a + 4 * b - d + 34) % 7
    month, day = divmod(d + e + 114, 31)
    julian = date(year, month, day + 1)
    return julian + timedelta(days=year // 100 - year // 400 - 2)


def parse_oracle_response(body: str) -> Optional[date]:
    """Extract the ``DD.MM.YYYY`` Easter date from the oracle's markup."""

    match = EASTER_TAG.search(body)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), "%d.%m.%Y").date()
    except ValueError:
        return None


class EasterOracle:
    """Looks up Easter Sunday online, falling back to a known date."""

    def __init__(
        self,
        base_url: str = CALENDAR_ORACLE_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, year: int) -> date:
        fallback = orthodox_easter(year)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(f"{self._base_url}/{year}")
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Easter lookup for %s failed (%s); using %s", year, exc, fallback)
            return fallback

        easter = parse_oracle_response(response.text)
        if easter is None or easter.year != year:
            logger.warning("Easter lookup for %s returned no usable date; using %s", year, fallback)
            return fallback
        return easter


def weekend_substitutes(holidays: List[date]) -> List[date]:
    extra: List[date] = []
    for holiday in holidays:
        if holiday.weekday() == 5:
            extra.append(holiday + timedelta(days=2))
        elif holiday.weekday() == 6:
            extra.append(holiday + timedelta(days=1))
    return extra


def compute_holidays(year: int, easter_sunday: date) -> List[date]:
    """Return the sorted, de-duplicated public holidays of ``year``."""

    holidays = [date(year, month, day) for month, day in FIXED_HOLIDAYS]
    holidays.append(easter_sunday - timedelta(days=2))
    holidays.append(easter_sunday + timedelta(days=1))
    holidays.extend(weekend_substitutes(holidays))

    holidays.extend(date(year, month, day) for month, day in CHRISTMAS_DAYS)
    christmas_eve = date(year, 12, 24)
    for day in CHRISTMAS_SUBSTITUTES.get(christmas_eve.weekday(), []):
        holidays.append(date(year, 12, day))

    return sorted(set(holidays))


EasterLookup = Callable[[int], Awaitable[date]]


class HolidayCalendar:
    """Computes holidays once per year and keeps only the latest year cached."""

    def __init__(self, easter_lookup: EasterLookup) -> None:
        self._easter_lookup = easter_lookup
        self._cache: Dict[int, List[date]] = {}

    @property
    def cached_years(self) -> List[int]:
        return sorted(self._cache)

    async def holidays_for_year(self, year: int) -> List[date]:
        cached = self._cache.get(year)
        if cached is not None:
            return list(cached)

        easter = await self._easter_lookup(year)
        holidays = compute_holidays(year, easter)
        if self._cache and year > max(self._cache):
            logger.info("New year %s observed; dropping cached holidays", year)
            self._cache.clear()
        self._cache[year] = holidays
        return list(holidays)

    async def holidays_between(self, start: date, end: date) -> List[date]:
        """Return holidays for every year touched by ``start..end``."""

        result: List[date] = []
        for year in range(start.year, end.year + 1):
            result.extend(await self.holidays_for_year(year))
        return result

    def invalidate(self) -> None:
        self._cache.clear()


__all__ = [
    "CALENDAR_ORACLE_URL",
    "EasterOracle",
    "HolidayCalendar",
    "compute_holidays",
    "orthodox_easter",
    "parse_oracle_response",
    "weekend_substitutes",
]
