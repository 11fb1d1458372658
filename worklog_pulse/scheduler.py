"""Daily wall-clock triggers driven by an asyncio loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import List, Optional

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@dataclass(slots=True, frozen=True)
class DailyTrigger:
    """Fires at ``at`` on each weekday listed in ``weekdays`` (Monday == 0)."""

    at: time
    weekdays: frozenset[int]

    @classmethod
    def parse(cls, at: str, days: str) -> "DailyTrigger":
        try:
            parsed = datetime.strptime(at.strip(), "%H:%M").time()
        except ValueError as exc:
            raise ValueError(f"time must be HH:MM, got {at!r}") from exc

        weekdays = set()
        for token in days.split(","):
            token = token.strip().lower()
            if not token:
                continue
            if "-" in token:
                first, _, last = token.partition("-")
                start, end = _weekday_index(first), _weekday_index(last)
                if start > end:
                    raise ValueError(f"weekday range {token!r} runs backwards")
                weekdays.update(range(start, end + 1))
            else:
                weekdays.add(_weekday_index(token))
        if not weekdays:
            raise ValueError("at least one weekday is required")
        return cls(at=parsed, weekdays=frozenset(weekdays))

    def next_after(self, now: datetime) -> datetime:
        """Return the first firing moment strictly after ``now``."""

        for offset in range(8):
            day = now.date() + timedelta(days=offset)
            if day.weekday() not in self.weekdays:
                continue
            candidate = datetime.combine(day, self.at, tzinfo=now.tzinfo)
            if candidate > now:
                return candidate
        raise AssertionError("unreachable: a weekday always matches within 8 days")

    def describe(self) -> str:
        days = ",".join(WEEKDAY_NAMES[index] for index in sorted(self.weekdays))
        return f"{days} at {self.at:%H:%M}"


def _weekday_index(token: str) -> int:
    try:
        return WEEKDAY_NAMES.index(token.strip().lower()[:3])
    except ValueError as exc:
        raise ValueError(f"unknown weekday {token!r}") from exc


JobCoroutine = Callable[[], Awaitable[None]]


@dataclass(slots=True)
class ScheduledJob:
    name: str
    trigger: DailyTrigger
    run: JobCoroutine


class Scheduler:
    """Runs each job at its trigger times until stopped."""

    def __init__(
        self,
        jobs: List[ScheduledJob],
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.jobs = jobs
        self._clock = clock
        self._sleep = sleep
        self._tasks: List[asyncio.Task] = []

    def start(self) -> None:
        for job in self.jobs:
            logger.info("Scheduling %s: %s", job.name, job.trigger.describe())
            self._tasks.append(asyncio.create_task(self._loop(job), name=f"schedule:{job.name}"))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    def next_run(self, job: ScheduledJob, now: Optional[datetime] = None) -> datetime:
        return job.trigger.next_after(now or self._clock())

    async def _loop(self, job: ScheduledJob) -> None:
        last_due: Optional[datetime] = None
        while True:
            now = self._clock()
            # An early wake-up must not fire the same slot twice.
            due = job.trigger.next_after(max(now, last_due) if last_due else now)
            await self._sleep(max((due - now).total_seconds(), 0))
            last_due = due
            logger.info("Trigger fired for %s", job.name)
            await job.run()


__all__ = ["DailyTrigger", "ScheduledJob", "Scheduler", "WEEKDAY_NAMES"]
