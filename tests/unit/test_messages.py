from datetime import date

from worklog_pulse.leaderboard import build_leaderboard, render_leaderboard
from worklog_pulse.messages import reminder_message, rewrite_email_domain, substitute_mentions
from worklog_pulse.models import LeaderboardEntry
from worklog_pulse.service import fallback_celebration_message


def test_reminder_message_lists_days():
    text = reminder_message("Ana", [date(2024, 6, 4), date(2024, 6, 6)])

    assert text == "Hello Ana, please log your time for the following days: `2024-06-04`, `2024-06-06`"


def test_substitute_mentions_handles_wrapped_and_bare_emails():
    text = "1 PLACE\n <ana@example.com>, bo@example.com"

    assert substitute_mentions(text, {"ana@example.com": "U1", "bo@example.com": "U2"}) == "1 PLACE\n <@U1>, <@U2>"


def test_rewrite_email_domain():
    assert rewrite_email_domain("ana@old.example", ("old.example", "new.example")) == "ana@new.example"
    assert rewrite_email_domain("ana@old.example", None) == "ana@old.example"


def test_fallback_celebration_message_for_quiet_week():
    assert fallback_celebration_message([]).startswith("No birthdays or anniversaries")


def test_substitute_mentions_keeps_overlapping_emails_apart():
    groups = build_leaderboard([LeaderboardEntry("joann@corp.com", 3), LeaderboardEntry("ann@corp.com", 1)])
    text = render_leaderboard(groups)

    first, second = substitute_mentions(text, {"ann@corp.com": "UA", "joann@corp.com": "UJ"}).split("\n\n")

    assert first.endswith(" <@UJ>")
    assert second.endswith(" <@UA>")


def test_substitute_mentions_bare_overlapping_emails():
    text = "Thanks joann@corp.com and ann@corp.com."

    result = substitute_mentions(text, {"ann@corp.com": "UA", "joann@corp.com": "UJ"})

    assert result == "Thanks <@UJ> and <@UA>."


def test_substitute_mentions_leaves_unknown_tokens():
    assert substitute_mentions("<zed@corp.com> and <ann@corp.com>", {"ann@corp.com": "UA"}) == "<zed@corp.com> and <@UA>"
