"""Core orchestration logic for Worklog Pulse."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .attendance import reconcile
from .celebrations import celebrations_this_week, load_roster, render_celebrations
from .config import Settings
from .enrichment import Enricher, EnrichmentError
from .holidays import HolidayCalendar
from .leaderboard import build_leaderboard, leaderboard_entries, render_leaderboard
from .messages import (
    NO_CELEBRATIONS_MESSAGE,
    reminder_message,
    rewrite_email_domain,
    substitute_mentions,
)
from .models import Celebration, LeaderboardGroup, ReportingWindow, UserAttendance
from .slack_client import SlackApiError, SlackClient
from .tempo_client import TempoApiError, TempoClient
from .workdays import business_days, fetch_range, reporting_window

logger = logging.getLogger(__name__)


class RunInProgressError(RuntimeError):
    """Raised when a job is triggered while its previous run is still active."""

    def __init__(self, job: str) -> None:
        super().__init__(f"{job} is already running")
        self.job = job


class RunGuard:
    """Allows one run at a time; a second trigger is rejected, not queued."""

    def __init__(self, job: str) -> None:
        self.job = job
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        if self._lock.locked():
            raise RunInProgressError(self.job)
        async with self._lock:
            yield


# region Reminders
@dataclass(slots=True)
class ReminderReport:
    ran_at: datetime
    window: ReportingWindow
    holidays: List[date]
    business_days: List[date]
    attendances: List[UserAttendance] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    leaderboard: List[LeaderboardGroup] = field(default_factory=list)
    leaderboard_text: str = ""
    messages_sent: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ran_at": self.ran_at.isoformat(),
            "window": {"start": self.window.start.isoformat(), "end": self.window.end.isoformat()},
            "business_days": [day.isoformat() for day in self.business_days],
            "attendance": [
                {
                    "email": item.identity.email,
                    "display_name": item.identity.display_name,
                    "missing_days": [day.isoformat() for day in item.missing_days],
                }
                for item in self.attendances
            ],
            "skipped": dict(self.skipped),
            "messages_sent": self.messages_sent,
        }

    def leaderboard_dict(self) -> Dict[str, Any]:
        return {
            "ran_at": self.ran_at.isoformat(),
            "groups": [
                {"rank": group.rank, "missing_count": group.missing_count, "members": list(group.members)}
                for group in self.leaderboard
            ],
            "text": self.leaderboard_text,
        }


class ReminderService:
    """Finds users with unlogged business days, DMs them and posts the leaderboard."""

    def __init__(
        self,
        settings: Settings,
        calendar: HolidayCalendar,
        tempo: TempoClient,
        slack: SlackClient,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.settings = settings
        self.calendar = calendar
        self.tempo = tempo
        self.slack = slack
        self._today = today
        self.guard = RunGuard("reminders")
        self.last_report: Optional[ReminderReport] = None

    def window_for(self, today: date) -> ReportingWindow:
        return reporting_window(
            today,
            self.settings.window_start_policy,
            self.settings.window_end_policy,
            self.settings.rolling_lookback_days,
        )

    async def _check_user(
        self,
        email: str,
        window: ReportingWindow,
        span: ReportingWindow,
        holidays: List[date],
    ) -> UserAttendance | str:
        """Return the user's attendance, or the reason they were skipped."""

        try:
            identity = await self.tempo.find_user(email)
        except TempoApiError as exc:
            logger.warning("Jira lookup failed for %s: %s", email, exc)
            return "user lookup failed"
        if identity is None:
            logger.info("No Jira user for %s; skipping", email)
            return "user not found"

        try:
            records = await self.tempo.fetch_worklogs(identity.account_id, span.start, span.end)
        except TempoApiError as exc:
            logger.warning("Tempo fetch failed for %s: %s", email, exc)
            return "work log fetch failed"

        attendance = reconcile(identity, records, window, holidays, self.settings.minimum_hours)
        if attendance is None:
            return "user not found"
        logger.debug("%s has %s not logged day(s)", email, attendance.missing_count)
        return attendance

    async def _slack_id(self, email: str) -> Optional[str]:
        try:
            return await self.slack.lookup_user_id(email)
        except SlackApiError as exc:
            logger.warning("Slack lookup failed for %s: %s", email, exc)
            return None

    async def run(self, today: Optional[date] = None) -> ReminderReport:
        async with self.guard.hold():
            return await self._run(today or self._today())

    async def _run(self, today: date) -> ReminderReport:
        settings = self.settings
        window = self.window_for(today)
        span = fetch_range(window, today)
        holidays = await self.calendar.holidays_between(window.start, span.end)
        report = ReminderReport(
            ran_at=datetime.now(),
            window=window,
            holidays=holidays,
            business_days=business_days(window, holidays),
        )
        logger.info(
            "Checking %s user(s) for %s..%s (%s business days)",
            len(settings.emails),
            window.start,
            window.end,
            len(report.business_days),
        )

        if settings.parallel_users:
            outcomes = await asyncio.gather(
                *(self._check_user(email, window, span, holidays) for email in settings.emails)
            )
        else:
            outcomes = [await self._check_user(email, window, span, holidays) for email in settings.emails]

        slack_ids: Dict[str, str] = {}
        for email, outcome in zip(settings.emails, outcomes):
            if isinstance(outcome, str):
                report.skipped[email] = outcome
                continue
            report.attendances.append(outcome)
            if not outcome.missing_days:
                continue

            slack_id = await self._slack_id(outcome.identity.email)
            if slack_id is None:
                report.skipped[email] = "slack user not found"
                continue
            slack_ids[outcome.identity.email] = slack_id
            text = reminder_message(outcome.identity.display_name, outcome.missing_days)
            if await self._post(slack_id, text):
                report.messages_sent += 1

        if settings.enable_winners:
            await self._leaderboard(report, slack_ids)

        self.last_report = report
        return report

    async def _post(self, channel: str, text: str) -> bool:
        if self.settings.test_mode:
            logger.info("TEST_MODE: would send to %s: %s", channel, text)
            return False
        try:
            await self.slack.post_message(channel, text)
        except SlackApiError as exc:
            logger.error("Failed to post to %s: %s", channel, exc)
            return False
        return True

    async def _leaderboard(self, report: ReminderReport, slack_ids: Dict[str, str]) -> None:
        settings = self.settings
        qualifying = [item for item in report.attendances if item.identity.email in slack_ids]
        report.leaderboard = build_leaderboard(leaderboard_entries(qualifying), settings.winners_min_days)
        if not report.leaderboard:
            logger.info("No leaderboard entries this run")
            return

        report.leaderboard_text = render_leaderboard(report.leaderboard)
        channel = settings.slack_channel_id
        if not channel:
            logger.warning("ENABLE_WINNERS is set but SLACK_CHANNEL_ID is missing; leaderboard not posted")
            return

        if not settings.test_mode:
            for group in report.leaderboard:
                for email in group.members:
                    try:
                        await self.slack.invite_to_channel(slack_ids[email], channel)
                    except SlackApiError as exc:
                        logger.warning("Could not invite %s to %s: %s", email, channel, exc)

        await self._post(channel, substitute_mentions(report.leaderboard_text, slack_ids))


# endregion


# region Celebrations
@dataclass(slots=True)
class CelebrationReport:
    ran_at: datetime
    celebrations: List[Celebration]
    message: str
    posted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ran_at": self.ran_at.isoformat(),
            "celebrations": [{"email": item.email, "events": list(item.events)} for item in self.celebrations],
            "message": self.message,
            "posted": self.posted,
        }


def fallback_celebration_message(celebrations: List[Celebration]) -> str:
    if not celebrations:
        return NO_CELEBRATIONS_MESSAGE
    lines = [f"• {item.email} - {', '.join(item.events)}" for item in celebrations]
    return ":tada: Celebrations this week:\n" + "\n".join(lines)


class BirthdayService:
    """Posts this week's birthdays and anniversaries to the team channel."""

    def __init__(
        self,
        settings: Settings,
        slack: SlackClient,
        enricher: Optional[Enricher] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.settings = settings
        self.slack = slack
        self.enricher = enricher
        self._today = today
        self.guard = RunGuard("birthdays")
        self.last_report: Optional[CelebrationReport] = None

    async def run(self, today: Optional[date] = None) -> Optional[CelebrationReport]:
        async with self.guard.hold():
            return await self._run(today or self._today())

    async def _compose(self, celebrations: List[Celebration], now: datetime) -> tuple[str, List[str]]:
        emails = [item.email for item in celebrations]
        if self.enricher is None:
            return fallback_celebration_message(celebrations), emails
        try:
            enriched = await self.enricher.celebration_message(
                render_celebrations(celebrations), now, self.settings.birthday_msg_instructions
            )
        except EnrichmentError as exc:
            logger.warning("Celebration enrichment failed, using plain message: %s", exc)
            return fallback_celebration_message(celebrations), emails
        return enriched.message, enriched.emails

    async def _run(self, today: date) -> Optional[CelebrationReport]:
        path = self.settings.birthdays_path
        if not path.exists():
            logger.info("Birthdays file %s not found; nothing to do", path)
            return None

        roster = load_roster(path)
        celebrations = celebrations_this_week(roster, today)
        logger.info("%s person(s) celebrating this week", len(celebrations))

        now = datetime.combine(today, datetime.now().time())
        message, emails = await self._compose(celebrations, now)

        slack_ids: Dict[str, str] = {}
        for email in emails:
            lookup = rewrite_email_domain(email, self.settings.email_domain_rewrite)
            try:
                slack_id = await self.slack.lookup_user_id(lookup)
            except SlackApiError as exc:
                logger.warning("Slack lookup failed for %s: %s", lookup, exc)
                continue
            if slack_id:
                slack_ids[email] = slack_id
        message = substitute_mentions(message, slack_ids)

        report = CelebrationReport(ran_at=datetime.now(), celebrations=celebrations, message=message)
        channel = self.settings.slack_channel_id_birthdays
        if self.settings.test_mode or not channel:
            logger.info("Celebration message not posted (test mode or no channel): %s", message)
        else:
            try:
                await self.slack.post_message(channel, message)
                report.posted = True
            except SlackApiError as exc:
                logger.error("Failed to post celebration message: %s", exc)

        self.last_report = report
        return report


# endregion


# region Job bookkeeping
@dataclass(slots=True)
class JobState:
    name: str
    status: str = "online"
    last_run: Optional[datetime] = None


class JobRunner:
    """Runs jobs by name, recording their outcome for the status page."""

    def __init__(self, jobs: Dict[str, Callable[[], Awaitable[Any]]], guards: Dict[str, RunGuard]) -> None:
        self._jobs = jobs
        self._guards = guards
        self.states = {name: JobState(name) for name in jobs}

    def is_running(self, name: str) -> bool:
        return self._guards[name].running

    async def run_job(self, name: str) -> bool:
        """Run ``name`` unless it is already running; return whether it ran."""

        state = self.states[name]
        if self.is_running(name):
            logger.warning("%s run skipped: previous run still in progress", name)
            return False
        logger.info("Starting %s run", name)
        state.last_run = datetime.now()
        try:
            await self._jobs[name]()
        except RunInProgressError:
            logger.warning("%s run skipped: previous run still in progress", name)
            return False
        except Exception as exc:  # noqa: BLE001
            logger.exception("%s run failed", name)
            state.status = f"failed: {exc}"
            return True
        state.status = "online"
        logger.info("%s run finished", name)
        return True

    def ensure_idle(self, name: str) -> None:
        if self.is_running(name):
            raise RunInProgressError(name)


# endregion


__all__ = [
    "RunInProgressError",
    "RunGuard",
    "ReminderReport",
    "ReminderService",
    "CelebrationReport",
    "BirthdayService",
    "JobState",
    "JobRunner",
    "fallback_celebration_message",
]
