import json
import logging
from datetime import datetime, timezone
from typing import Optional

from pos.config import get_settings

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}


def record_extras(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per line, including any ``extra=`` fields."""

    def __init__(self, app_name: Optional[str] = None):
        super().__init__()
        self.app_name = app_name

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.app_name:
            payload["app"] = self.app_name
        payload.update(record_extras(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        extras = record_extras(record)
        if extras:
            text += " " + " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
        return text


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Configure the root logger; arguments override LOG_LEVEL and LOG_JSON."""
    settings = get_settings()
    level_name = (level or settings.LOG_LEVEL).upper()
    if json_output is None:
        json_output = settings.LOG_JSON

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter(settings.APP_NAME) if json_output else TextFormatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)


__all__ = ["JsonFormatter", "TextFormatter", "record_extras", "setup_logging"]
