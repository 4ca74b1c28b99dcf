"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``; this installs a single
root handler formatted per ``LoggingSettings``.
"""

import json
import logging
from datetime import datetime, timezone

from prismaflow.config import LoggingSettings, get_settings


class JSONFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure the root logger from settings (idempotent)."""
    settings = settings or get_settings().logging

    handler = logging.StreamHandler()
    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_prismaflow", False):
            root.removeHandler(existing)
    handler._prismaflow = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(settings.log_level)
