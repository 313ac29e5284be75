"""Structured logging for the messaging core.

The library only emits records through ``get_logger``. A host that wants
JSON output calls ``setup_logging`` once, or sets ``MESSAGING_LOG_LEVEL``
and lets ``MessagingApplication`` do it.
"""

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path

PACKAGE_LOGGER = "messaging_core"

# LogRecord attributes that are not caller-supplied extras
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record. Keys passed via ``extra=`` land under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
        }

        context = {
            key: value for key, value in vars(record).items()
            if key not in _RECORD_FIELDS
        }
        # explicit context=... wins over loose extras
        if isinstance(context.get("context"), dict):
            context.update(context.pop("context"))
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def build_logging_config(log_level: str = "INFO", log_file: str | Path | None = None) -> dict:
    """dictConfig for the package logger: JSON to stderr, plus a rotating file if given."""
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stderr",
        },
    }
    if log_file is not None:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_file),
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 3,
            "formatter": "json",
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JSONFormatter}},
        "handlers": handlers,
        "loggers": {
            PACKAGE_LOGGER: {
                "level": log_level.upper(),
                "handlers": list(handlers),
                "propagate": False,
            },
        },
    }


def setup_logging(log_level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Install JSON handlers on the ``messaging_core`` logger."""
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_level, log_file))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def redact_token(token: str | None) -> str:
    """Shorten a credential for log output."""
    if not token:
        return "<none>"
    return f"{token[:4]}..."
