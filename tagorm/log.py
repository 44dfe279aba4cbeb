"""Logging setup for applications embedding tagorm.

Library modules only call `logging.getLogger(__name__)` and never attach
handlers on import. An application wires the `tagorm` logger tree once at
startup with `configure_logging` or `configure_from_settings`.
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict

from .config import LoggingSettings

ROOT_LOGGER = "tagorm"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Formats each record as one JSON object per line.

    The object carries `level`, `logger` and `message`, plus `exc_info` and
    `stack_info` when the record has them.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        entry: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, default=str)


def logging_config(level: str = "INFO", json_logs: bool = False) -> Dict[str, Any]:
    """Build the `dictConfig` mapping for the `tagorm` logger tree.

    Args:
        level: Level name such as `"debug"` or `"INFO"`.
        json_logs: Use `JsonFormatter` instead of the plain text format.

    Returns:
        A configuration mapping accepted by `logging.config.dictConfig`.
    """

    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "text": {"format": TEXT_FORMAT},
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "tagorm": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_logs else "text",
                "level": level,
            }
        },
        "loggers": {
            ROOT_LOGGER: {"handlers": ["tagorm"], "level": level, "propagate": False},
        },
    }


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Attach a stream handler to the `tagorm` logger and set its level.

    Args:
        level: Level name such as `"debug"` or `"INFO"`.
        json_logs: Emit one JSON object per record instead of text lines.
    """

    logging.config.dictConfig(logging_config(level, json_logs))


def configure_from_settings(settings: LoggingSettings) -> None:
    configure_logging(level=settings.level, json_logs=settings.format == "json")


__all__ = ["JsonFormatter", "configure_from_settings", "configure_logging", "logging_config"]
