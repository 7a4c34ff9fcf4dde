"""
Structured JSON Logging.

``StructuredLogger`` wraps a named ``logging.Logger`` whose handlers emit
one JSON object per record:

    {"timestamp": "...", "level": "INFO", "logger_name": "api",
     "message": "GET /api/budgets 200 3.1ms", "extra": {...}}

Handlers are attached once per logger name: stdout always, plus a
rotating file when ``LOG_FILE`` is set.  Level, file name and rotation
come from ``AppConfig`` unless passed explicitly.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO, Union

from app.config import get_config

LogLevel = Union[int, str]
ExtraValue = Union[str, int, float, bool, None]

_RESERVED_ATTRS: frozenset[str] = frozenset(
    logging.LogRecord(
        name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
    ).__dict__.keys()
) | {"message", "asctime", "taskName"}


def _extra_value(value: object) -> ExtraValue:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class JSONFormatter(logging.Formatter):
    """Render a record as a single-line JSON object.

    Fields passed through ``extra=`` keep their JSON scalar type; anything
    else is stringified.  Tracebacks go under ``exception``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra = {
            key: _extra_value(value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


def _resolve_level(level: LogLevel) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _file_handler(
    log_file: str, max_bytes: int, backup_count: int
) -> RotatingFileHandler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )


class StructuredLogger:
    """Injectable JSON logger.

    Services, repositories and the HTTP layer receive one through their
    constructor::

        class BudgetService(BaseService):
            def __init__(self, ..., logger: StructuredLogger) -> None:
                self._logger = logger

    Args:
        name: Logger name; handlers are shared by every instance with it.
        level: Level number or name; ``LOG_LEVEL`` when omitted.
        stream: Console stream, stdout by default.
        log_file: Rotating log file; ``LOG_FILE`` when omitted, console only
            when that is empty.
        max_bytes: Rotation size; ``LOG_MAX_BYTES`` when omitted.
        backup_count: Rotated files kept; ``LOG_BACKUP_COUNT`` when omitted.
    """

    def __init__(
        self,
        name: str = "budget_tracker",
        level: Optional[LogLevel] = None,
        stream: Optional[TextIO] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        settings = get_config()

        resolved_level = _resolve_level(level if level is not None else settings.LOG_LEVEL)
        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(resolved_level)
        self._logger.propagate = False

        if self._logger.handlers:
            return

        formatter = JSONFormatter()
        console = logging.StreamHandler(stream or sys.stdout)
        console.setFormatter(formatter)
        self._logger.addHandler(console)

        target = settings.LOG_FILE if log_file is None else log_file
        if not target:
            return
        try:
            rotating = _file_handler(
                target,
                max_bytes if max_bytes is not None else settings.LOG_MAX_BYTES,
                backup_count if backup_count is not None else settings.LOG_BACKUP_COUNT,
            )
        except OSError as exc:
            self._logger.warning(
                "Log file %s is not writable (%s); logging to console only", target, exc,
            )
            return
        rotating.setFormatter(formatter)
        self._logger.addHandler(rotating)

    @property
    def logger(self) -> logging.Logger:
        """The wrapped ``logging.Logger``."""
        return self._logger

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.critical(msg, *args, **kwargs)


def get_logger(name: str = "budget_tracker") -> StructuredLogger:
    """Logger for *name* with level and files taken from ``AppConfig``."""
    return StructuredLogger(name=name)
