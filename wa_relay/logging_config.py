"""JSON logging configuration for the WhatsApp relay."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Iterable

# Client libraries that log every request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "google", "urllib3")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's own creation time."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_data["stack"] = self.formatStack(record.stack_info)

        # Context may carry exceptions or paths
        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", quiet_loggers: Iterable[str] = QUIET_LOGGERS) -> None:
    """Route the root logger to stdout as JSON. Unknown level names fall back to INFO."""
    root_logger = logging.getLogger()
    level_value = getattr(logging, level.upper(), None)
    root_logger.setLevel(level_value if isinstance(level_value, int) else logging.INFO)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"wa_relay.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Carries per-message identifiers (e.g. ``wa_message_id``) into every record's context."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = {**self.extra, **(kwargs.pop("context", None) or {})}
        if context:
            kwargs["extra"] = {**kwargs.get("extra", {}), "context": context}
        return msg, kwargs
