"""Logging setup shared by the CLI and the foreground gateway.

configure_logging() is called once at startup; modules only ever do
``logger = logging.getLogger(__name__)``.

Usage:
    from model_switch.core.logging_config import configure_logging

    configure_logging(level="DEBUG")

Environment Variables:
    MODEL_SWITCH_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    MODEL_SWITCH_LOG_FORMAT: Output format ("text" or "json")
    MODEL_SWITCH_LOG_FILE: Optional log file path
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Literal

LogFormat = Literal["text", "json"]

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
TEXT_FORMAT_WITH_MS = "%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# The gateway logs every request itself
QUIET_LOGGERS = ("aiohttp.access",)

# Anything on a record beyond these came in through extra=
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_configured = False


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Example:
        {"timestamp": "2026-01-05T14:30:00.123", "level": "INFO",
         "logger": "model_switch.gateway.proxy",
         "message": "[0001] POST /v1/messages -> glm"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def build_formatter(format: LogFormat, include_ms: bool = True) -> logging.Formatter:
    if format == "json":
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT_WITH_MS if include_ms else TEXT_FORMAT, DATE_FORMAT)


def configure_logging(
    level: str | None = None,
    format: LogFormat | None = None,
    file_path: str | None = None,
    include_ms: bool = True,
    force: bool = False,
) -> None:
    """Install handlers on the root logger.

    Only the first call has an effect unless ``force`` is set. Arguments
    take precedence over the MODEL_SWITCH_LOG_* variables.

    Args:
        level: Log level name. Defaults to MODEL_SWITCH_LOG_LEVEL, then INFO.
        format: "text" or "json". Defaults to MODEL_SWITCH_LOG_FORMAT, then text.
        file_path: Also log to this file. Defaults to MODEL_SWITCH_LOG_FILE.
        include_ms: Milliseconds in text timestamps.
        force: Replace an earlier configuration.
    """
    global _configured
    if _configured and not force:
        return

    level_name = (level or os.environ.get("MODEL_SWITCH_LOG_LEVEL") or "INFO").upper()
    log_format = format or os.environ.get("MODEL_SWITCH_LOG_FORMAT") or "text"
    file_path = file_path or os.environ.get("MODEL_SWITCH_LOG_FILE")
    formatter = build_formatter(log_format, include_ms)  # type: ignore[arg-type]

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_path:
        handlers.append(logging.FileHandler(file_path))

    root = logging.getLogger()
    root.setLevel(level_name)
    for old in root.handlers[:]:
        root.removeHandler(old)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if root.level > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
