"""Message texts sent to Slack and to the language model."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime

NO_CELEBRATIONS_MESSAGE = (
    "No birthdays or anniversaries this week. Keep up the great work, team! :sparkles:"
)

CELEBRATION_SYSTEM_PROMPT = 'Respond ONLY in strict valid JSON format { "message": "...", "emails": [...] }.'
EMAIL_TOKEN = re.compile(r"<([^<>@\s]+@[^<>\s]+)>")


def reminder_message(display_name: str, missing_days: Iterable[date]) -> str:
    days = ", ".join(f"`{day.isoformat()}`" for day in missing_days)
    return f"Hello {display_name}, please log your time for the following days: {days}"


def substitute_mentions(text: str, slack_ids: Mapping[str, str]) -> str:
    """Replace ``<email>`` tokens (or bare emails) with Slack ``<@ID>`` mentions."""

    def token(match: re.Match) -> str:
        slack_id = slack_ids.get(match.group(1))
        return f"<@{slack_id}>" if slack_id else match.group(0)

    text = EMAIL_TOKEN.sub(token, text)
    # Longest first so an address that ends another one cannot split it.
    for email in sorted(slack_ids, key=len, reverse=True):
        mention = f"<@{slack_ids[email]}>"
        pattern = re.compile(rf"(?<![\w.+-]){re.escape(email)}(?![\w-]|\.\w)")
        text = pattern.sub(lambda _: mention, text)
    return text


def rewrite_email_domain(email: str, rewrite: tuple[str, str] | None) -> str:
    if not rewrite:
        return email
    old, new = rewrite
    return email.replace(old, new)


def describe_now(now: datetime) -> str:
    return now.strftime("%A, %B %d, %Y at %H:%M")


def celebration_prompt(summary: str, now: datetime, instructions: str = "") -> str:
    return f"""I will provide a celebration message containing peoples details such as birthdays, anniversaries, hiring dates and others.
Your task is to:
- Current date and time is {describe_now(now)}.
- Replace peoples names with their emails and include the dates and days of the week for each person mentioned.
- Format the message well so that it is clearly visible who, when and what is celebrating.
- Additional instructions: {instructions}
- This message will be directly sent to the team. So make it final - no placeholders.
Here is the message: {summary}"""


def no_celebrations_prompt(now: datetime, instructions: str = "") -> str:
    return f"""We don't have any birthdays to celebrate this week.
- Make a nice message to the team to keep the spirits high!
- Current date and time is {describe_now(now)}.
- Do not return emails in the response.
- This message will be directly sent to the team. So make it final - no placeholders.
- Additional instructions: {instructions}"""


def feedback_summary_prompt(feedback_text: str) -> str:
    return f"""I'll give you list of employee feedback for some people.
- Summarize the feedback for every person separately.
- Add some conclusions for each person separately.
- Add some short goals to become better employee as well, based on the feedback.
- Return the response formatted as a plain slack message.
- Do not use other text formatting other than * for bold, and _ for italic.
- Do not use emojis.
Here is the feedback: {feedback_text}"""


__all__ = [
    "NO_CELEBRATIONS_MESSAGE",
    "CELEBRATION_SYSTEM_PROMPT",
    "reminder_message",
    "substitute_mentions",
    "rewrite_email_domain",
    "celebration_prompt",
    "no_celebrations_prompt",
    "feedback_summary_prompt",
]
