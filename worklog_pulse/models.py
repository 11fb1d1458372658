"""Dataclasses representing Worklog Pulse domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(slots=True)
class UserIdentity:
    email: str
    account_id: str
    display_name: str
    avatar: str | None = None


@dataclass(slots=True)
class WorkLogRecord:
    day: date
    hours: float
    description: str = ""


@dataclass(slots=True, frozen=True)
class ReportingWindow:
    start: date
    end: date

    @property
    def is_empty(self) -> bool:
        return self.start > self.end

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(slots=True)
class UserAttendance:
    identity: UserIdentity
    missing_days: list[date] = field(default_factory=list)

    @property
    def missing_count(self) -> int:
        return len(self.missing_days)


@dataclass(slots=True)
class LeaderboardEntry:
    identity: str
    missing_count: int


@dataclass(slots=True)
class LeaderboardGroup:
    rank: int
    missing_count: int
    members: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Person:
    email: str
    events: dict[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class CelebrationWindow:
    start: datetime
    end: datetime

    def contains(self, day: date) -> bool:
        moment = datetime.combine(day, datetime.min.time())
        return self.start <= moment <= self.end


@dataclass(slots=True)
class Celebration:
    email: str
    events: list[str] = field(default_factory=list)


__all__ = [
    "UserIdentity",
    "WorkLogRecord",
    "ReportingWindow",
    "UserAttendance",
    "LeaderboardEntry",
    "LeaderboardGroup",
    "Person",
    "CelebrationWindow",
    "Celebration",
]
