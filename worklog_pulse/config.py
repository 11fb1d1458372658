"""Configuration helpers for Worklog Pulse."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .encryption import is_valid_key
from .holidays import CALENDAR_ORACLE_URL
from .scheduler import DailyTrigger
from .tempo_client import TEMPO_API_BASE
from .workdays import WindowEndPolicy, WindowStartPolicy

TRUTHY = {"1", "true", "yes", "y", "on"}


@dataclass(slots=True)
class Settings:
    """Runtime configuration values loaded from environment variables."""

    slack_bot_token: str
    jira_base_url: str
    jira_email: str
    jira_api_token: str
    tempo_api_token: str
    tempo_base_url: str = TEMPO_API_BASE
    emails: list[str] = field(default_factory=list)
    slack_channel_id: Optional[str] = None
    slack_channel_id_birthdays: Optional[str] = None
    enable_winners: bool = False
    winners_min_days: int = 1
    minimum_hours: float = 0.0
    window_start_policy: WindowStartPolicy = WindowStartPolicy.MONTH_START
    window_end_policy: WindowEndPolicy = WindowEndPolicy.TODAY
    rolling_lookback_days: int = 10
    parallel_users: bool = False
    reminder_trigger: DailyTrigger = field(default_factory=lambda: DailyTrigger.parse("16:00", "mon,tue,wed,thu,fri"))
    birthday_trigger: DailyTrigger = field(default_factory=lambda: DailyTrigger.parse("09:00", "mon"))
    birthdays_path: Path = Path("birthdays.json")
    birthday_msg_instructions: str = ""
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4-turbo"
    calendar_oracle_url: str = CALENDAR_ORACLE_URL
    database_path: Path = Path("feedback.db")
    encryption_key: Optional[str] = None
    manager_password: Optional[str] = None
    admin_email: Optional[str] = None
    feedback_ttl_seconds: int = 600
    email_domain_rewrite: Optional[tuple[str, str]] = None
    api_key: Optional[str] = None
    test_mode: bool = False
    debug: bool = False
    log_level: str = "info"
    port: int = 8000


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in TRUTHY


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {value!r}") from exc


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {value!r}") from exc


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"{name} must be configured")
    return value


def _parse_rewrite(value: Optional[str]) -> Optional[tuple[str, str]]:
    if not value:
        return None
    old, sep, new = value.partition(":")
    if not sep or not old:
        raise RuntimeError("EMAIL_DOMAIN_REWRITE must look like 'old:new'")
    return old, new


def _validate_encryption_key(key: Optional[str]) -> Optional[str]:
    if not key:
        return None
    if not is_valid_key(key):
        raise RuntimeError("ENCRYPTION_KEY must be a url-safe base64 encoded 32-byte Fernet key")
    return key


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from the environment, optionally from a specific file."""

    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
        load_dotenv(".env.local", override=True)

    minimum_hours = _float_env("MINIMUM_HOURS", 0.0)
    if minimum_hours < 0:
        raise RuntimeError("MINIMUM_HOURS must not be negative")

    winners_min_days = _int_env("WINNERS_MIN_DAYS", 1)
    if winners_min_days < 0:
        raise RuntimeError("WINNERS_MIN_DAYS must not be negative")

    try:
        start_policy = WindowStartPolicy(os.getenv("WINDOW_START_POLICY", "month_start").strip().lower())
        end_policy = WindowEndPolicy(os.getenv("WINDOW_END_POLICY", "today").strip().lower())
    except ValueError as exc:
        raise RuntimeError(f"Invalid reporting window policy: {exc}") from exc

    try:
        reminder_trigger = DailyTrigger.parse(
            os.getenv("REMINDER_TIME", "16:00"), os.getenv("REMINDER_DAYS", "mon,tue,wed,thu,fri")
        )
        birthday_trigger = DailyTrigger.parse(os.getenv("BIRTHDAY_TIME", "09:00"), os.getenv("BIRTHDAY_DAYS", "mon"))
    except ValueError as exc:
        raise RuntimeError(f"Invalid schedule: {exc}") from exc

    emails = [email.strip() for email in os.getenv("EMAIL_LIST", "").split(",") if email.strip()]

    return Settings(
        slack_bot_token=_require("SLACK_BOT_TOKEN"),
        jira_base_url=_require("JIRA_BASE_URL"),
        jira_email=_require("JIRA_EMAIL"),
        jira_api_token=_require("JIRA_API_TOKEN"),
        tempo_api_token=_require("TEMPO_API_TOKEN"),
        tempo_base_url=os.getenv("TEMPO_BASE_URL", TEMPO_API_BASE),
        emails=emails,
        slack_channel_id=os.getenv("SLACK_CHANNEL_ID") or None,
        slack_channel_id_birthdays=os.getenv("SLACK_CHANNEL_ID_BIRTHDAYS") or None,
        enable_winners=_bool_env("ENABLE_WINNERS"),
        winners_min_days=winners_min_days,
        minimum_hours=minimum_hours,
        window_start_policy=start_policy,
        window_end_policy=end_policy,
        rolling_lookback_days=_int_env("ROLLING_LOOKBACK_DAYS", 10),
        parallel_users=_bool_env("PARALLEL_USERS"),
        reminder_trigger=reminder_trigger,
        birthday_trigger=birthday_trigger,
        birthdays_path=Path(os.getenv("BIRTHDAYS_PATH", "birthdays.json")).expanduser(),
        birthday_msg_instructions=os.getenv("BIRTHDAY_MSG_INSTRUCTIONS", ""),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4-turbo"),
        calendar_oracle_url=os.getenv("CALENDAR_ORACLE_URL", CALENDAR_ORACLE_URL),
        database_path=Path(os.getenv("DATABASE_PATH", "feedback.db")).expanduser(),
        encryption_key=_validate_encryption_key(os.getenv("ENCRYPTION_KEY")),
        manager_password=os.getenv("MANAGER_PASSWORD") or None,
        admin_email=os.getenv("ADMIN_EMAIL") or None,
        feedback_ttl_seconds=_int_env("FEEDBACK_TTL_SECONDS", 600),
        email_domain_rewrite=_parse_rewrite(os.getenv("EMAIL_DOMAIN_REWRITE")),
        api_key=os.getenv("API_KEY") or None,
        test_mode=_bool_env("TEST_MODE"),
        debug=_bool_env("DEBUG"),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        port=_int_env("PORT", 8000),
    )


__all__ = ["Settings", "load_settings"]
