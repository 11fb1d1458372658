"""Entrypoint for running Worklog Pulse via `python -m worklog_pulse.main`."""

from __future__ import annotations

import asyncio
import logging
import os

import uvicorn

from .api import create_app
from .components import build_components
from .config import Settings, load_settings

logger = logging.getLogger("worklog_pulse")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler()],
    )


async def run_once(settings: Settings) -> None:
    components = build_components(settings)
    try:
        await components.run_all()
    finally:
        await components.close()


def run() -> None:
    env_file = os.getenv("WORKLOG_PULSE_ENV")
    settings = load_settings(env_file)
    configure_logging(settings.log_level)

    if settings.debug:
        logger.info("DEBUG is set; running every job once and exiting")
        asyncio.run(run_once(settings))
        return

    app = create_app(settings)
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":  # pragma: no cover
    run()
