"""Wires settings into the clients and services shared by the API, MCP server and CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .config import Settings
from .db import Database
from .encryption import FeedbackCipher
from .enrichment import Enricher
from .feedback import FeedbackBot
from .holidays import EasterOracle, HolidayCalendar
from .scheduler import ScheduledJob, Scheduler
from .service import BirthdayService, JobRunner, ReminderService
from .slack_client import SlackClient
from .tempo_client import TempoClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Components:
    settings: Settings
    calendar: HolidayCalendar
    tempo: TempoClient
    slack: SlackClient
    reminders: ReminderService
    birthdays: BirthdayService
    runner: JobRunner
    scheduler: Scheduler
    enricher: Optional[Enricher] = None
    feedback_bot: Optional[FeedbackBot] = None
    started_at: Optional[datetime] = None

    async def run_all(self) -> None:
        for name in self.runner.states:
            await self.runner.run_job(name)

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.slack.close()
        await self.tempo.close()


def build_components(settings: Settings) -> Components:
    calendar = HolidayCalendar(EasterOracle(settings.calendar_oracle_url).fetch)
    tempo = TempoClient(
        settings.jira_base_url,
        settings.jira_email,
        settings.jira_api_token,
        settings.tempo_api_token,
        tempo_base_url=settings.tempo_base_url,
    )
    slack = SlackClient(settings.slack_bot_token)

    enricher: Optional[Enricher] = None
    if settings.openai_api_key:
        enricher = Enricher(settings.openai_api_key, model=settings.openai_model)
    else:
        logger.info("OPENAI_API_KEY not set; messages will not be enriched")

    reminders = ReminderService(settings, calendar, tempo, slack)
    birthdays = BirthdayService(settings, slack, enricher)
    runner = JobRunner(
        {"reminders": reminders.run, "birthdays": birthdays.run},
        {"reminders": reminders.guard, "birthdays": birthdays.guard},
    )
    scheduler = Scheduler(
        [
            ScheduledJob("reminders", settings.reminder_trigger, lambda: runner.run_job("reminders")),
            ScheduledJob("birthdays", settings.birthday_trigger, lambda: runner.run_job("birthdays")),
        ]
    )

    feedback_bot: Optional[FeedbackBot] = None
    if settings.encryption_key:
        feedback_bot = FeedbackBot(
            Database(settings.database_path),
            FeedbackCipher(settings.encryption_key),
            slack,
            settings.manager_password,
            enricher=enricher,
            ttl_seconds=settings.feedback_ttl_seconds,
            admin_email=settings.admin_email,
        )
    else:
        logger.warning("ENCRYPTION_KEY not set; feedback bot disabled")

    return Components(
        settings=settings,
        calendar=calendar,
        tempo=tempo,
        slack=slack,
        reminders=reminders,
        birthdays=birthdays,
        runner=runner,
        scheduler=scheduler,
        enricher=enricher,
        feedback_bot=feedback_bot,
    )


__all__ = ["Components", "build_components"]
