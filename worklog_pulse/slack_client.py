"""HTTP client for interacting with Slack Web API."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

SLACK_API_BASE = "https://slack.com/api"


class SlackApiError(RuntimeError):
    """Raised when Slack returns an error response."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"Slack API error for {method}: {error}")
        self.method = method
        self.error = error


class SlackClient:
    """Simple async wrapper around Slack Web API endpoints used by Worklog Pulse."""

    def __init__(
        self,
        token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=SLACK_API_BASE,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: Optional[Dict[str, Any]] = None, *, post: bool = False) -> Dict[str, Any]:
        try:
            if post:
                response = await self._client.post(method, data=params or {})
            else:
                response = await self._client.get(method, params=params)
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SlackApiError(method, str(exc) or exc.__class__.__name__) from exc
        if not data.get("ok"):
            raise SlackApiError(method, data.get("error", "unknown_error"))
        return data

    # region Users
    async def lookup_user_id(self, email: str) -> Optional[str]:
        """Return the Slack user id for ``email``; ``None`` when Slack has no such user."""

        try:
            data = await self._call("users.lookupByEmail", {"email": email})
        except SlackApiError as exc:
            if exc.error == "users_not_found":
                return None
            raise
        return data.get("user", {}).get("id")

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            data = await self._call("users.info", {"user": user_id})
        except SlackApiError as exc:
            if exc.error == "user_not_found":
                return None
            raise
        return data.get("user")

    async def bot_user_id(self) -> Optional[str]:
        data = await self._call("auth.test")
        return data.get("user_id")

    # endregion

    # region Messages
    async def post_message(self, channel: str, text: str, *, markdown_block: bool = False) -> Dict[str, Any]:
        params: Dict[str, Any] = {"channel": channel, "text": text}
        if markdown_block:
            params["blocks"] = json.dumps([{"type": "section", "text": {"type": "mrkdwn", "text": text}}])
        data = await self._call("chat.postMessage", params, post=True)
        logger.debug("Posted message to %s", channel)
        return data

    async def delete_message(self, channel: str, ts: str) -> None:
        await self._call("chat.delete", {"channel": channel, "ts": ts}, post=True)

    async def fetch_history(self, channel: str, limit: int = 200) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"channel": channel, "limit": limit}
            if cursor:
                params["cursor"] = cursor
            data = await self._call("conversations.history", params)
            messages.extend(data.get("messages", []))
            if not data.get("has_more"):
                break
            cursor = data.get("response_metadata", {}).get("next_cursor")
            if not cursor:
                break
        return messages

    # endregion

    # region Channels
    async def join_channel(self, channel: str) -> None:
        await self._call("conversations.join", {"channel": channel}, post=True)

    async def channel_members(self, channel: str) -> List[str]:
        members: List[str] = []
        cursor: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"channel": channel, "limit": 1000}
            if cursor:
                params["cursor"] = cursor
            data = await self._call("conversations.members", params)
            members.extend(data.get("members", []))
            cursor = data.get("response_metadata", {}).get("next_cursor")
            if not cursor:
                break
        return members

    async def invite_to_channel(self, user_id: str, channel: str) -> bool:
        """Invite ``user_id`` unless already a member. Returns True when an invite was sent."""

        await self.join_channel(channel)
        if user_id in await self.channel_members(channel):
            return False
        await self._call("conversations.invite", {"channel": channel, "users": user_id}, post=True)
        return True

    # endregion


__all__ = ["SlackClient", "SlackApiError"]
