import asyncio
import json
from datetime import date

import httpx
import pytest

from worklog_pulse.holidays import HolidayCalendar
from worklog_pulse.service import BirthdayService, JobRunner, ReminderService, RunInProgressError
from worklog_pulse.tempo_client import TempoClient

# Wednesday; the default window is 2024-06-01..2024-06-04.
TODAY = date(2024, 6, 5)


async def easter(year: int) -> date:
    return date(year, 5, 5)


def make_service(settings, fake_tempo, fake_slack) -> ReminderService:
    return ReminderService(settings, HolidayCalendar(easter), fake_tempo, fake_slack, today=lambda: TODAY)


@pytest.mark.asyncio
async def test_reminders_are_sent_for_missing_days(settings_factory, fake_tempo, fake_slack):
    fake_tempo.add_user("ana@example.com", "acc-ana", "Ana", [date(2024, 6, 3)])
    fake_tempo.add_user("bo@example.com", "acc-bo", "Bo", [date(2024, 6, 3), date(2024, 6, 4)])
    fake_slack.add_user("UANA", "ana@example.com")
    settings = settings_factory(emails=["ana@example.com", "bo@example.com"])

    report = await make_service(settings, fake_tempo, fake_slack).run()

    assert report.business_days == [date(2024, 6, 3), date(2024, 6, 4)]
    assert fake_slack.posted == [
        ("UANA", "Hello Ana, please log your time for the following days: `2024-06-04`"),
    ]
    assert report.messages_sent == 1
    assert fake_tempo.requests[0] == ("acc-ana", date(2024, 6, 1), date(2024, 6, 30))


@pytest.mark.asyncio
async def test_unresolved_and_failing_users_are_skipped(settings_factory, fake_tempo, fake_slack):
    fake_tempo.add_user("ana@example.com", "acc-ana", "Ana", [])
    fake_tempo.add_user("bo@example.com", "acc-bo", "Bo", [])
    fake_tempo.failing_accounts.add("acc-bo")
    fake_slack.add_user("UANA", "ana@example.com")
    settings = settings_factory(emails=["ghost@example.com", "bo@example.com", "ana@example.com"])

    report = await make_service(settings, fake_tempo, fake_slack).run()

    assert report.skipped == {"ghost@example.com": "user not found", "bo@example.com": "work log fetch failed"}
    assert [item.identity.email for item in report.attendances] == ["ana@example.com"]
    assert [channel for channel, _ in fake_slack.posted] == ["UANA"]


@pytest.mark.asyncio
async def test_test_mode_sends_nothing(settings_factory, fake_tempo, fake_slack):
    fake_tempo.add_user("ana@example.com", "acc-ana", "Ana", [])
    fake_slack.add_user("UANA", "ana@example.com")
    settings = settings_factory(
        emails=["ana@example.com"], test_mode=True, enable_winners=True, slack_channel_id="C1"
    )

    report = await make_service(settings, fake_tempo, fake_slack).run()

    assert fake_slack.posted == []
    assert fake_slack.invited == []
    assert report.attendances[0].missing_count == 2
    assert report.leaderboard[0].members == ["ana@example.com"]


@pytest.mark.asyncio
async def test_leaderboard_is_posted_with_mentions(settings_factory, fake_tempo, fake_slack):
    fake_tempo.add_user("ana@example.com", "acc-ana", "Ana", [])
    fake_tempo.add_user("bo@example.com", "acc-bo", "Bo", [])
    fake_tempo.add_user("cy@example.com", "acc-cy", "Cy", [date(2024, 6, 3)])
    for user_id, email in (("UANA", "ana@example.com"), ("UBO", "bo@example.com"), ("UCY", "cy@example.com")):
        fake_slack.add_user(user_id, email)
    settings = settings_factory(
        emails=["ana@example.com", "bo@example.com", "cy@example.com"],
        enable_winners=True,
        slack_channel_id="C1",
        parallel_users=True,
    )

    report = await make_service(settings, fake_tempo, fake_slack).run()

    assert [(group.rank, group.missing_count) for group in report.leaderboard] == [(1, 2), (2, 1)]
    channel, text = fake_slack.posted[-1]
    assert channel == "C1"
    assert text == (
        "1 PLACE (2 not logged days) :first_place_medal:\n <@UANA>, <@UBO>"
        "\n\n2 PLACE (1 not logged days) :second_place_medal:\n <@UCY>"
    )
    assert sorted(fake_slack.invited) == [("UANA", "C1"), ("UBO", "C1"), ("UCY", "C1")]


@pytest.mark.asyncio
async def test_overlapping_run_is_rejected(settings_factory, fake_tempo, fake_slack):
    release = asyncio.Event()
    started = asyncio.Event()

    class SlowTempo(type(fake_tempo)):
        async def find_user(self, email):
            started.set()
            await release.wait()
            return None

    service = make_service(settings_factory(emails=["ana@example.com"]), SlowTempo(), fake_slack)
    runner = JobRunner({"reminders": service.run}, {"reminders": service.guard})

    first = asyncio.create_task(service.run())
    await started.wait()

    with pytest.raises(RunInProgressError):
        await service.run()
    with pytest.raises(RunInProgressError):
        runner.ensure_idle("reminders")
    assert await runner.run_job("reminders") is False
    assert runner.states["reminders"].last_run is None

    release.set()
    report = await first
    assert report.skipped == {"ana@example.com": "user not found"}
    runner.ensure_idle("reminders")
    assert await runner.run_job("reminders") is True
    assert runner.states["reminders"].last_run is not None


@pytest.mark.asyncio
async def test_job_runner_records_failures(fake_slack):
    async def broken():
        raise RuntimeError("tempo down")

    class Guard:
        running = False

    runner = JobRunner({"reminders": broken}, {"reminders": Guard()})
    ran = await runner.run_job("reminders")

    assert runner.states["reminders"].status == "failed: tempo down"
    assert runner.states["reminders"].last_run is not None
    assert ran is True


@pytest.mark.asyncio
async def test_birthdays_posted_with_mentions(settings_factory, fake_slack, tmp_path):
    roster = tmp_path / "birthdays.json"
    roster.write_text(json.dumps([{"email": "ana@old.example", "birthday": "24-12-1990"}]), encoding="utf-8")
    fake_slack.add_user("UANA", "ana@new.example")
    settings = settings_factory(
        birthdays_path=roster,
        slack_channel_id_birthdays="CB",
        email_domain_rewrite=("old.example", "new.example"),
    )

    report = await BirthdayService(settings, fake_slack, today=lambda: date(2024, 12, 23)).run()

    assert report.posted is True
    assert fake_slack.posted == [("CB", ":tada: Celebrations this week:\n• <@UANA> - birthday on 24 December")]


@pytest.mark.asyncio
async def test_birthdays_without_roster_do_nothing(settings_factory, fake_slack, tmp_path):
    settings = settings_factory(birthdays_path=tmp_path / "missing.json", slack_channel_id_birthdays="CB")

    assert await BirthdayService(settings, fake_slack).run() is None
    assert fake_slack.posted == []


@pytest.mark.asyncio
async def test_quiet_week_message(settings_factory, fake_slack, tmp_path):
    roster = tmp_path / "birthdays.json"
    roster.write_text(json.dumps([{"email": "ana@example.com", "birthday": "01-01"}]), encoding="utf-8")
    settings = settings_factory(birthdays_path=roster, slack_channel_id_birthdays="CB")

    report = await BirthdayService(settings, fake_slack, today=lambda: date(2024, 6, 5)).run()

    assert report.celebrations == []
    assert fake_slack.posted[0][1].startswith("No birthdays or anniversaries this week")


@pytest.mark.asyncio
@pytest.mark.parametrize("parallel", [False, True])
async def test_malformed_jira_answer_skips_only_that_user(settings_factory, fake_slack, parallel):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/rest/api/3/user/search":
            if request.url.params["query"] == "bad@example.com":
                return httpx.Response(200, json=[{"displayName": "No Account"}])
            return httpx.Response(200, json=[{"accountId": "acc-ok", "displayName": "Ok"}])
        return httpx.Response(200, json={"results": []})

    tempo = TempoClient(
        "https://example.atlassian.net", "bot@example.com", "t", "t", transport=httpx.MockTransport(handler)
    )
    fake_slack.add_user("UOK", "ok@example.com")
    settings = settings_factory(emails=["bad@example.com", "ok@example.com"], parallel_users=parallel)

    report = await make_service(settings, tempo, fake_slack).run()
    await tempo.close()

    assert report.skipped == {"bad@example.com": "user lookup failed"}
    assert fake_slack.posted == [
        ("UOK", "Hello Ok, please log your time for the following days: `2024-06-03`, `2024-06-04`"),
    ]
