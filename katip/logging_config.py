# -- logging_config.py (konsol / JSON log; LOG_FORMAT=json|console, LOG_LEVEL) --
import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from typing import Optional

_STANDARD_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "lineno", "funcName", "created",
    "msecs", "relativeCreated", "thread", "threadName", "taskName",
    "processName", "process", "exc_info", "exc_text", "stack_info",
    "message",
}

def get_logging_config(level:Optional[str]=None, fmt:Optional[str]=None)->dict:
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = fmt or os.environ.get("LOG_FORMAT", "console")
    if log_format == "json": formatters = {"default": {"()": "katip.logging_config.JsonFormatter"}}
    else: formatters = {"default": {"format": "[{asctime}] {levelname} {name} {message}", "style": "{"}}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "default", "stream": "ext://sys.stdout"}},
        "root": {"handlers": ["console"], "level": log_level},
        "loggers": {"katip": {"level": log_level}, "sqlalchemy.engine": {"level": "WARNING"}},
    }

def configure_logging(level:Optional[str]=None, fmt:Optional[str]=None)->None:
    logging.config.dictConfig(get_logging_config(level, fmt))

class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, plus any `extra=` fields."""

    def format(self, record:logging.LogRecord)->str:
        entry = {"timestamp": datetime.now(timezone.utc).isoformat(), "level": record.levelname,
                 "logger": record.name, "message": record.getMessage()}
        if record.exc_info: entry["exception"] = self.formatException(record.exc_info)
        extras = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS: continue
            try:
                json.dumps(value); extras[key] = value
            except (TypeError, ValueError):
                extras[key] = str(value)
        if extras: entry["extra"] = extras
        return json.dumps(entry, default=str, ensure_ascii=False)
