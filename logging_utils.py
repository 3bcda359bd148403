"""Logging setup for the onboarding bot.

Everything goes to stdout. ``LOG_JSON`` picks between one JSON object per line
and a plain text line. Pipeline code logs snake_case event names and passes
the reaction context (channel, ts, ticket key, ...) through ``extra={...}``;
the JSON formatter promotes those keys to top-level fields.
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any

SERVICE_NAME = "onboarding-jira-bot"
TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Socket Mode and HTTP client chatter that drowns out pipeline events at DEBUG.
NOISY_LOGGERS = ("slack_bolt", "slack_sdk", "urllib3")

_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """Render a record as ``{"time", "level", "logger", "service", "event", ...context}``."""

    def __init__(self, *, service: str = SERVICE_NAME, datefmt: str | None = None) -> None:
        super().__init__(datefmt=datefmt)
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "event": record.getMessage(),
        }
        payload.update(event_context(record))

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info

        return json.dumps(payload, default=str)


def event_context(record: logging.LogRecord) -> dict[str, Any]:
    """Return the fields a caller attached with ``extra={...}``."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


def _resolve_log_level(level_name: str) -> int:
    if not level_name:
        return logging.INFO
    numeric = logging.getLevelName(level_name.upper())
    if isinstance(numeric, int):
        return numeric
    return logging.INFO


def build_logging_config(level_name: str, json_enabled: bool) -> dict[str, Any]:
    level = _resolve_log_level(level_name)
    noisy_level = max(level, logging.INFO)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter, "service": SERVICE_NAME},
            "text": {"format": TEXT_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_enabled else "text",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {name: {"level": noisy_level} for name in NOISY_LOGGERS},
        "root": {"level": level, "handlers": ["console"]},
    }


def configure_logging(level_name: str, json_enabled: bool) -> None:
    """Apply the bot's logging config. Call once at startup; repeat calls replace it."""
    logging.config.dictConfig(build_logging_config(level_name, json_enabled))
