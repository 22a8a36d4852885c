"""STORYLINE — Structured JSON Logging.

Every SDK logger hangs off the ``storyline`` root, which owns the single
stdout handler. Hosts that want the records elsewhere can swap that
handler or attach their own.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Iterable
from storyline.config import settings

ROOT_LOGGER = "storyline"

SDK_FIELDS = (
    "campaign_id",
    "event_type",
    "screen",
    "pending_count",
    "status_code",
    "state",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, carrying the SDK's ``extra=`` fields."""

    def __init__(self, fields: Iterable[str] = SDK_FIELDS):
        super().__init__()
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            {key: getattr(record, key) for key in self.fields if hasattr(record, key)}
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str | None = None) -> logging.Logger:
    """Install the JSON handler on the SDK root logger once and set its level."""
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
    level_name = (level or settings.log_level).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    return root


def get_logger(name: str) -> logging.Logger:
    """Return ``storyline.<name>``; records propagate to the SDK root."""
    configure_logging()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
