"""HTTP clients for Jira user search and Tempo work logs."""

from __future__ import annotations

import base64
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import httpx

from .attendance import seconds_to_hours
from .models import UserIdentity, WorkLogRecord

TEMPO_API_BASE = "https://api.tempo.io"
WORKLOG_PAGE_LIMIT = 5000


class TempoApiError(RuntimeError):
    """Raised when Jira or Tempo cannot be reached or answers with an error."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"Time tracking API error for {method}: {error}")
        self.method = method
        self.error = error


class TempoClient:
    """Async wrapper around the Jira and Tempo endpoints used by Worklog Pulse."""

    def __init__(
        self,
        jira_base_url: str,
        jira_email: str,
        jira_api_token: str,
        tempo_api_token: str,
        tempo_base_url: str = TEMPO_API_BASE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        basic = base64.b64encode(f"{jira_email}:{jira_api_token}".encode()).decode()
        self._jira = httpx.AsyncClient(
            base_url=jira_base_url.rstrip("/"),
            headers={"Authorization": f"Basic {basic}", "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self._tempo = httpx.AsyncClient(
            base_url=tempo_base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {tempo_api_token}"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._jira.aclose()
        await self._tempo.aclose()

    async def _get_json(self, client: httpx.AsyncClient, method: str, path: str, params: Dict[str, Any]) -> Any:
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise TempoApiError(method, f"HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise TempoApiError(method, str(exc) or exc.__class__.__name__) from exc

    async def find_user(self, email: str) -> Optional[UserIdentity]:
        """Return the Jira account for ``email`` or ``None`` when there is none."""

        data = await self._get_json(self._jira, "user.search", "/rest/api/3/user/search", {"query": email})
        if not isinstance(data, list):
            raise TempoApiError("user.search", f"expected a list of users, got {type(data).__name__}")
        if not data:
            return None
        user = data[0]
        try:
            return UserIdentity(
                email=user.get("emailAddress") or email,
                account_id=user["accountId"],
                display_name=user.get("displayName") or email,
                avatar=(user.get("avatarUrls") or {}).get("48x48"),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise TempoApiError("user.search", f"malformed user record: {exc!r}") from exc

    async def fetch_worklogs(self, account_id: str, start: date, end: date) -> List[WorkLogRecord]:
        params = {"from": start.isoformat(), "to": end.isoformat(), "limit": WORKLOG_PAGE_LIMIT}
        data = await self._get_json(self._tempo, "worklogs.user", f"/4/worklogs/user/{account_id}", params)
        results = data.get("results", []) if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise TempoApiError("worklogs.user", "expected an object with a results list")
        records: List[WorkLogRecord] = []
        for item in results:
            if not isinstance(item, dict):
                raise TempoApiError("worklogs.user", f"malformed work log: {item!r}")
            try:
                day = datetime.strptime(item["startDate"], "%Y-%m-%d").date()
            except (KeyError, TypeError, ValueError):
                continue
            try:
                hours = seconds_to_hours(float(item.get("timeSpentSeconds") or 0))
            except (TypeError, ValueError) as exc:
                raise TempoApiError("worklogs.user", f"malformed timeSpentSeconds: {exc}") from exc
            records.append(WorkLogRecord(day=day, hours=hours, description=item.get("description") or ""))
        records.sort(key=lambda record: record.day)
        return records


__all__ = ["TempoClient", "TempoApiError"]
