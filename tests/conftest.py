from datetime import date
from typing import Any

import pytest

from worklog_pulse.config import Settings
from worklog_pulse.models import UserIdentity, WorkLogRecord
from worklog_pulse.slack_client import SlackApiError
from worklog_pulse.tempo_client import TempoApiError


class FakeTempo:
    def __init__(self):
        self.users: dict[str, UserIdentity] = {}
        self.worklogs: dict[str, list[WorkLogRecord]] = {}
        self.failing_accounts: set[str] = set()
        self.requests: list[tuple[str, date, date]] = []

    def add_user(self, email: str, account_id: str, display_name: str, days: list[date], hours: float = 8.0):
        self.users[email] = UserIdentity(email=email, account_id=account_id, display_name=display_name)
        self.worklogs[account_id] = [WorkLogRecord(day=day, hours=hours) for day in days]

    async def find_user(self, email: str) -> UserIdentity | None:
        return self.users.get(email)

    async def fetch_worklogs(self, account_id: str, start: date, end: date) -> list[WorkLogRecord]:
        self.requests.append((account_id, start, end))
        if account_id in self.failing_accounts:
            raise TempoApiError("worklogs.user", "HTTP 500")
        return list(self.worklogs.get(account_id, []))

    async def close(self) -> None:
        return None


class FakeSlack:
    def __init__(self):
        self.ids: dict[str, str] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.posted: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.invited: list[tuple[str, str]] = []
        self.history: list[dict[str, Any]] = []
        self.fail_deletes = False
        self.bot_id = "UBOT"
        self._ts = 0

    def add_user(self, user_id: str, email: str):
        self.ids[email] = user_id
        self.users[user_id] = {"id": user_id, "profile": {"email": email}}

    async def lookup_user_id(self, email: str) -> str | None:
        return self.ids.get(email)

    async def bot_user_id(self) -> str | None:
        return self.bot_id

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        return self.users.get(user_id)

    async def post_message(self, channel: str, text: str, *, markdown_block: bool = False) -> dict[str, Any]:
        self.posted.append((channel, text))
        self._ts += 1
        return {"ok": True, "channel": channel, "ts": f"100.{self._ts}"}

    async def delete_message(self, channel: str, ts: str) -> None:
        if self.fail_deletes:
            raise SlackApiError("chat.delete", "cant_delete_message")
        self.deleted.append((channel, ts))

    async def fetch_history(self, channel: str, limit: int = 200) -> list[dict[str, Any]]:
        return list(self.history)

    async def invite_to_channel(self, user_id: str, channel: str) -> bool:
        self.invited.append((user_id, channel))
        return True

    async def close(self) -> None:
        return None


def make_settings(**overrides) -> Settings:
    values = {
        "slack_bot_token": "xoxb-test",
        "jira_base_url": "https://example.atlassian.net",
        "jira_email": "bot@example.com",
        "jira_api_token": "jira-token",
        "tempo_api_token": "tempo-token",
    }
    values.update(overrides)
    return Settings(**values)


async def no_holiday_easter(year: int) -> date:
    return date(year, 4, 12)


@pytest.fixture
def fake_tempo():
    return FakeTempo()


@pytest.fixture
def fake_slack():
    return FakeSlack()


@pytest.fixture
def settings_factory():
    return make_settings
