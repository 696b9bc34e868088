"""
CacheBox — Logging Setup

Configures the ``cachebox`` logger hierarchy. Modules log through
``logging.getLogger(__name__)`` and attach structured fields via ``extra=``;
the JSON formatter below carries those fields into each line.
"""

import json
import logging
from datetime import UTC, datetime

from ..config.schemas import CacheBoxConfig, LogLevel

ROOT_LOGGER = "cachebox"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = frozenset(
    {
        "args",
        "msg",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "message",
        "asctime",
    }
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON object."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RECORD_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


def setup_logging(
    level: LogLevel | str = LogLevel.INFO,
    json_format: bool = False,
) -> logging.Logger:
    """
    Install a stream handler on the cachebox logger.

    Calling it again replaces the previous handler.

    Args:
        level: Minimum level to emit
        json_format: Emit JSON lines instead of plain text

    Returns:
        The configured cachebox logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(LogLevel(level.upper()).value)
    logger.propagate = False

    return logger


def configure_logging(config: CacheBoxConfig) -> logging.Logger:
    """Apply the logging section of a loaded configuration."""
    return setup_logging(config.log_level, json_format=config.log_json)
