# api/creatorpay/logging_config.py
import json
import logging
from datetime import datetime, timezone

from .settings import settings


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with a few known ``extra`` fields lifted in."""

    EXTRA_FIELDS = (
        "user_id", "creator_id", "subscription_id", "content_id",
        "reference", "status", "sent", "failed", "skipped",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None, json_lines: bool | None = None) -> None:
    handler = logging.StreamHandler()
    if settings.LOG_JSON if json_lines is None else json_lines:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    root.handlers = [handler]
