"""MCP server exposing Worklog Pulse data tools."""

from __future__ import annotations

import asyncio
import os
from datetime import date, datetime
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .celebrations import celebrations_this_week, load_roster
from .components import Components, build_components
from .config import load_settings
from .models import ReportingWindow
from .workdays import business_days

mcp = FastMCP("worklog-pulse")

_components: Optional[Components] = None
_run_lock = asyncio.Lock()


def _get_components() -> Components:
    global _components
    if _components is None:
        _components = build_components(load_settings(os.getenv("WORKLOG_PULSE_ENV")))
    return _components


def _ensure_date(day_str: Optional[str] = None) -> date:
    if not day_str:
        return date.today()
    return datetime.strptime(day_str, "%Y-%m-%d").date()


@mcp.tool()
async def get_holidays(year: Optional[int] = None) -> dict:
    """Return the public holidays for ``year`` (defaults to the current year)."""

    year = year or date.today().year
    holidays = await _get_components().calendar.holidays_for_year(year)
    return {"year": year, "holidays": [day.isoformat() for day in holidays]}


@mcp.tool()
async def get_business_days(start: Optional[str] = None, end: Optional[str] = None) -> dict:
    """Return business days between two YYYY-MM-DD dates, or for the current reporting window."""

    components = _get_components()
    if start is None and end is None:
        window = components.reminders.window_for(date.today())
    else:
        window = ReportingWindow(_ensure_date(start), _ensure_date(end))
    holidays = [] if window.is_empty else await components.calendar.holidays_between(window.start, window.end)
    return {
        "start": window.start.isoformat(),
        "end": window.end.isoformat(),
        "business_days": [day.isoformat() for day in business_days(window, holidays)],
    }


@mcp.tool()
async def get_attendance() -> dict:
    """Return the not-logged days found by the latest reminder run."""

    report = _get_components().reminders.last_report
    if report is None:
        return {"attendance": [], "detail": "no reminder run yet"}
    return report.to_dict()


@mcp.tool()
async def get_leaderboard() -> dict:
    """Return the leaderboard computed by the latest reminder run."""

    report = _get_components().reminders.last_report
    if report is None:
        return {"groups": [], "detail": "no reminder run yet"}
    return report.leaderboard_dict()


@mcp.tool()
async def get_celebrations(date: Optional[str] = None) -> dict:
    """Return birthdays and anniversaries in the week containing ``date``."""

    day = _ensure_date(date)
    path = _get_components().settings.birthdays_path
    roster = load_roster(path) if path.exists() else []
    return {
        "date": day.isoformat(),
        "celebrations": [
            {"email": item.email, "events": list(item.events)} for item in celebrations_this_week(roster, day)
        ],
    }


@mcp.tool()
async def run_reminders() -> dict:
    """Run the reminder job now and return its report."""

    components = _get_components()
    async with _run_lock:
        ran = await components.runner.run_job("reminders")
    if not ran:
        return {"status": "skipped: reminders already running", "report": None}
    state = components.runner.states["reminders"]
    report = components.reminders.last_report if state.status == "online" else None
    return {"status": state.status, "report": report.to_dict() if report else None}


__all__ = [
    "mcp",
    "get_holidays",
    "get_business_days",
    "get_attendance",
    "get_leaderboard",
    "get_celebrations",
    "run_reminders",
]
