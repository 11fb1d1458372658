# Deploy on Replit: Set secrets and run 'uvicorn server:app --host=0.0.0.0 --port=8000'
import logging
import os

from worklog_pulse.api import create_app
from worklog_pulse.config import load_settings
from worklog_pulse.main import configure_logging

settings = load_settings(os.getenv("WORKLOG_PULSE_ENV"))
configure_logging(settings.log_level)
logger = logging.getLogger("worklog_pulse")

app = create_app(settings)
logger.info("Worklog Pulse ready (test mode: %s)", settings.test_mode)

__all__ = ["app"]
