"""Slack direct-message bot that stores and retrieves confidential peer feedback."""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from .db import Database
from .encryption import FeedbackCipher, FeedbackCipherError
from .enrichment import Enricher, EnrichmentError
from .slack_client import SlackApiError, SlackClient

logger = logging.getLogger(__name__)

HELP_TEXT = """Hello! :wave: I'm here to help you manage feedback. Here's what I can do:
1️⃣ *Submit Feedback*:
   - Share feedback about someone confidentially.
   - *Format*: `@recipient your feedback`
   - *Example*: `@john_doe Great job on the project!`

2️⃣ *Retrieve Feedback (Managers Only)*:
   - View feedback submitted for one or more people.
   - *Format*: `Pass: <password>, Feedback for @recipient1, @recipient2`

3️⃣ *Help*:
   - Get this help message anytime.
   - *Command*: `help`

:bulb: _Note: All messages sent to me are confidential and will be deleted after processing._"""

UNRECOGNIZED_TEXT = (
    "Unrecognized message format.\n"
    "If you want to share your feedback about someone, use the format: @recipient your feedback message.\n"
    "If you want to retrieve feedback for someone, use the format: Pass: <password>, Feedback for @person, @person..."
)

MENTION = re.compile(r"<?@([A-Za-z0-9_.]+)(?:\|[^>]*)?>?")
SUBMIT = re.compile(r"^<?@([A-Za-z0-9_.]+)(?:\|[^>]*)?>?\s+(.+)$", re.DOTALL)
RETRIEVE = re.compile(r"^pass:\s*([^\s,]+)(.*)$", re.IGNORECASE | re.DOTALL)


# region Commands
@dataclass(slots=True, frozen=True)
class HelpCommand:
    pass


@dataclass(slots=True, frozen=True)
class DeleteAllCommand:
    pass


@dataclass(slots=True, frozen=True)
class SubmitCommand:
    recipient_id: str
    feedback: str


@dataclass(slots=True, frozen=True)
class RetrieveCommand:
    password: str
    recipient_ids: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class InvalidCommand:
    reason: str


Command = Union[HelpCommand, DeleteAllCommand, SubmitCommand, RetrieveCommand, InvalidCommand]


def parse_command(text: str) -> Command:
    text = text.strip()
    if text.lower() == "help":
        return HelpCommand()
    if text.lower().startswith("delete all messages"):
        return DeleteAllCommand()

    retrieve = RETRIEVE.match(text)
    if retrieve:
        recipients = tuple(MENTION.findall(retrieve.group(2)))
        if not recipients:
            return InvalidCommand("Invalid format. Please include `Pass: <password>` followed by `@person` mentions.")
        return RetrieveCommand(password=retrieve.group(1), recipient_ids=recipients)

    submit = SUBMIT.match(text)
    if submit:
        feedback = submit.group(2).strip()
        if not feedback:
            return InvalidCommand("Please include feedback after the recipient's name.")
        return SubmitCommand(recipient_id=submit.group(1), feedback=feedback)

    return InvalidCommand(UNRECOGNIZED_TEXT)


# endregion


class FeedbackBot:
    """Handles ``message`` events from the bot's direct-message channel."""

    def __init__(
        self,
        database: Database,
        cipher: FeedbackCipher,
        slack: SlackClient,
        manager_password: Optional[str],
        enricher: Optional[Enricher] = None,
        ttl_seconds: float = 600,
        admin_email: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.database = database
        self.cipher = cipher
        self.slack = slack
        self.manager_password = manager_password
        self.enricher = enricher
        self.ttl_seconds = ttl_seconds
        self.admin_email = admin_email
        self._sleep = sleep
        self._pending: set[asyncio.Task] = set()
        self._bot_id: Optional[str] = None

    async def _bot_user_id(self) -> Optional[str]:
        if self._bot_id is None:
            try:
                self._bot_id = await self.slack.bot_user_id()
            except SlackApiError as exc:
                logger.warning("Could not resolve the bot user id: %s", exc)
        return self._bot_id

    async def handle_event(self, event: Dict[str, Any]) -> None:
        if not event or event.get("subtype") == "bot_message" or event.get("bot_id") or not event.get("text"):
            return
        # The bot's own replies arrive as plain user messages in the same channel.
        if event.get("user") and event.get("user") == await self._bot_user_id():
            return

        command = parse_command(event["text"])
        try:
            if isinstance(command, HelpCommand):
                await self._respond(event, HELP_TEXT)
            elif isinstance(command, DeleteAllCommand):
                await self._delete_all(event)
            elif isinstance(command, SubmitCommand):
                await self._submit(event, command)
            elif isinstance(command, RetrieveCommand):
                await self._retrieve(event, command)
            else:
                await self._respond(event, command.reason)
        except (SlackApiError, FeedbackCipherError, sqlite3.Error):
            logger.exception("Failed to handle feedback event in %s", event.get("channel"))

    async def _respond(self, event: Dict[str, Any], text: str) -> Dict[str, Any]:
        return await self.slack.post_message(event["channel"], text, markdown_block=True)

    async def _delete_all(self, event: Dict[str, Any]) -> None:
        for message in await self.slack.fetch_history(event["channel"]):
            try:
                await self.slack.delete_message(event["channel"], message["ts"])
            except SlackApiError as exc:
                logger.warning("Error deleting message %s: %s", message.get("ts"), exc)

    async def _submit(self, event: Dict[str, Any], command: SubmitCommand) -> None:
        author = await self.slack.get_user(event.get("user", ""))
        recipient = await self.slack.get_user(command.recipient_id)
        if not author or not recipient:
            await self._respond(event, "Recipient not found. Please use the format: `@recipient your feedback`.")
            return

        self.database.record_feedback(
            {
                "date": datetime.now(timezone.utc).isoformat(),
                "author_email": author.get("profile", {}).get("email", ""),
                "author_slack_id": author["id"],
                "recipient_email": recipient.get("profile", {}).get("email", ""),
                "recipient_slack_id": recipient["id"],
                "feedback": self.cipher.encrypt(command.feedback),
            }
        )
        await self._respond(
            event,
            f"Your feedback for <@{recipient['id']}> has been saved securely and will remain confidential. Thank you!",
        )
        await self.slack.delete_message(event["channel"], event["ts"])

    def collect_feedback(self, recipient_ids: tuple[str, ...]) -> str:
        rows = self.database.get_feedback_for(recipient_ids)
        by_recipient: Dict[str, List[str]] = {recipient: [] for recipient in recipient_ids}
        for row in rows:
            by_recipient[row["recipient_slack_id"]].append(self.cipher.decrypt(row["feedback"]))

        text = f"*NOTE: This message will self delete after {int(self.ttl_seconds // 60)} minutes.*\n\n"
        for recipient, items in by_recipient.items():
            if not items:
                text += f"No feedback found for <@{recipient}>.\n"
            else:
                bullets = "\n".join(f"• {item}" for item in items)
                text += f"Feedback for <@{recipient}>:\n{bullets}\n\n"
        return text

    async def _retrieve(self, event: Dict[str, Any], command: RetrieveCommand) -> None:
        if not self.manager_password or command.password != self.manager_password:
            await self._respond(event, "Invalid password. Access denied.")
            return

        text = self.collect_feedback(command.recipient_ids)
        if self.enricher is not None:
            try:
                summary = await self.enricher.feedback_summary(text)
                text += f"\n\n*Here is a summary:*\n{summary}"
            except EnrichmentError as exc:
                logger.warning("Feedback summary failed: %s", exc)

        response = await self._respond(event, text.strip())
        task = asyncio.create_task(self._expire(event, response))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _expire(self, event: Dict[str, Any], response: Dict[str, Any]) -> None:
        await self._sleep(self.ttl_seconds)
        targets = [(event["channel"], event["ts"])]
        if response.get("ts"):
            targets.append((response.get("channel", event["channel"]), response["ts"]))
        for channel, ts in targets:
            try:
                await self.slack.delete_message(channel, ts)
            except SlackApiError as exc:
                logger.error("Error deleting feedback message %s: %s", ts, exc)
                await self._report_delete_failure(event, exc)

    async def _report_delete_failure(self, event: Dict[str, Any], exc: SlackApiError) -> None:
        contact = "an administrator"
        if self.admin_email:
            try:
                admin_id = await self.slack.lookup_user_id(self.admin_email)
            except SlackApiError:
                admin_id = None
            if admin_id:
                contact = f"<@{admin_id}>"
        try:
            await self._respond(event, f"Error deleting messages, please contact {contact}: {exc.error}")
        except SlackApiError:
            logger.exception("Could not report delete failure")

    async def drain(self) -> None:
        """Wait for scheduled deletions; used on shutdown and in tests."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = [
    "FeedbackBot",
    "Command",
    "HelpCommand",
    "DeleteAllCommand",
    "SubmitCommand",
    "RetrieveCommand",
    "InvalidCommand",
    "parse_command",
]
