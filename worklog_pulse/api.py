"""FastAPI application exposing the Worklog Pulse status page, triggers and REST API."""

from __future__ import annotations

import html
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from .celebrations import celebration_window, celebrations_this_week, load_roster
from .components import Components, build_components
from .config import Settings, load_settings
from .models import ReportingWindow
from .service import RunInProgressError
from .workdays import business_days

logger = logging.getLogger(__name__)


def parse_day(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid date format. Use YYYY-MM-DD") from exc


def create_app(settings: Optional[Settings] = None, components: Optional[Components] = None) -> FastAPI:
    if components is None:
        components = build_components(settings or load_settings())
    settings = components.settings

    async def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> None:
        if settings.api_key and x_api_key != settings.api_key:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid api key")

    def get_components() -> Components:
        return components

    app = FastAPI(title="Worklog Pulse API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event() -> None:
        components.started_at = datetime.now()
        if settings.debug:
            logger.info("DEBUG is set; scheduler not started")
            return
        components.scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - io bound
        await components.close()

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    async def status_page(c: Components = Depends(get_components)) -> str:
        return render_status_page(c, await c.calendar.holidays_for_year(date.today().year))

    def _trigger(name: str, background_tasks: BackgroundTasks, c: Components) -> Dict[str, str]:
        try:
            c.runner.ensure_idle(name)
        except RunInProgressError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        background_tasks.add_task(c.runner.run_job, name)
        return {"status": "Cron job triggered manually", "job": name}

    @app.api_route("/runcron", methods=["GET", "POST"], status_code=status.HTTP_202_ACCEPTED)
    async def run_reminders(background_tasks: BackgroundTasks, c: Components = Depends(get_components)) -> Dict[str, str]:
        return _trigger("reminders", background_tasks, c)

    @app.api_route("/runbirthdays", methods=["GET", "POST"], status_code=status.HTTP_202_ACCEPTED)
    async def run_birthdays(background_tasks: BackgroundTasks, c: Components = Depends(get_components)) -> Dict[str, str]:
        return _trigger("birthdays", background_tasks, c)

    @app.get("/api/holidays", dependencies=[Depends(verify_api_key)])
    async def get_holidays(year: Optional[int] = None, c: Components = Depends(get_components)) -> Dict[str, Any]:
        year = year or date.today().year
        holidays = await c.calendar.holidays_for_year(year)
        return {"year": year, "holidays": [day.isoformat() for day in holidays]}

    @app.get("/api/business-days", dependencies=[Depends(verify_api_key)])
    async def get_business_days(
        start: Optional[str] = None,
        end: Optional[str] = None,
        c: Components = Depends(get_components),
    ) -> Dict[str, Any]:
        if start is None and end is None:
            window = c.reminders.window_for(date.today())
        else:
            window = ReportingWindow(parse_day(start), parse_day(end))
        holidays = await c.calendar.holidays_between(window.start, window.end) if not window.is_empty else []
        days = business_days(window, holidays)
        return {
            "start": window.start.isoformat(),
            "end": window.end.isoformat(),
            "business_days": [day.isoformat() for day in days],
        }

    @app.get("/api/attendance", dependencies=[Depends(verify_api_key)])
    async def get_attendance(c: Components = Depends(get_components)) -> Dict[str, Any]:
        report = c.reminders.last_report
        if report is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="no reminder run yet")
        return report.to_dict()

    @app.get("/api/leaderboard", dependencies=[Depends(verify_api_key)])
    async def get_leaderboard(c: Components = Depends(get_components)) -> Dict[str, Any]:
        report = c.reminders.last_report
        if report is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="no reminder run yet")
        return report.leaderboard_dict()

    @app.get("/api/celebrations", dependencies=[Depends(verify_api_key)])
    async def get_celebrations(date_param: Optional[str] = None, c: Components = Depends(get_components)) -> Dict[str, Any]:
        day = parse_day(date_param)
        window = celebration_window(day)
        path = c.settings.birthdays_path
        roster = load_roster(path) if path.exists() else []
        return {
            "week": {"start": window.start.date().isoformat(), "end": window.end.date().isoformat()},
            "celebrations": [
                {"email": item.email, "events": list(item.events)} for item in celebrations_this_week(roster, day)
            ],
        }

    @app.post("/slack/events")
    async def slack_events(
        request: Request,
        background_tasks: BackgroundTasks,
        c: Components = Depends(get_components),
    ) -> Dict[str, Any]:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid JSON body") from exc

        if payload.get("type") == "url_verification":
            return {"challenge": payload.get("challenge")}

        event = payload.get("event") or {}
        if payload.get("type") != "event_callback" or event.get("type") != "message":
            return {"ok": True}
        if c.feedback_bot is None:
            logger.warning("Ignoring Slack message event: feedback bot is disabled")
            return {"ok": True}

        background_tasks.add_task(c.feedback_bot.handle_event, event)
        return {"ok": True}

    return app


def render_status_page(components: Components, holidays: List[date]) -> str:
    settings = components.settings
    started = components.started_at.strftime("%Y-%m-%d %H:%M:%S") if components.started_at else "not started"
    now = datetime.now()

    schedule_rows = "".join(
        "<tr><td>{}</td><td>{}</td><td>{}</td><td>{}</td><td>{}</td></tr>".format(
            html.escape(job.name),
            html.escape(job.trigger.describe()),
            components.scheduler.next_run(job, now).strftime("%Y-%m-%d %H:%M"),
            html.escape(components.runner.states[job.name].status),
            _format_time(components.runner.states[job.name].last_run),
        )
        for job in components.scheduler.jobs
    )
    holiday_items = "".join(f"<li>{day:%A, %d %B %Y}</li>" for day in holidays)

    report = components.reminders.last_report
    if report is None:
        last_run = "<p>No reminder run yet.</p>"
    else:
        last_run = (
            f"<p>Window {report.window.start} to {report.window.end}: "
            f"{len(report.business_days)} business days, {len(report.attendances)} users checked, "
            f"{report.messages_sent} reminders sent, {len(report.skipped)} skipped.</p>"
        )

    return f"""<!DOCTYPE html>
<html>
<head><title>Worklog Pulse</title></head>
<body>
<h1>Worklog Pulse</h1>
<p>Debug: {settings.debug} | Test mode: {settings.test_mode} | Started: {started}</p>
<h2>Schedules</h2>
<table border="1">
<tr><th>Job</th><th>Schedule</th><th>Next run</th><th>Status</th><th>Last run</th></tr>
{schedule_rows}
</table>
<h2>Last reminder run</h2>
{last_run}
<h2>Holidays {now.year}</h2>
<ul>{holiday_items}</ul>
</body>
</html>"""


def _format_time(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "never"


__all__ = ["create_app", "parse_day", "render_status_page"]
