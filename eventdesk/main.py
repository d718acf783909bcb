"""ASGI entry point: ``uvicorn eventdesk.main:app``."""

import logging

from eventdesk.app import create_app
from eventdesk.config import Settings

settings = Settings.from_env()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app(settings)
