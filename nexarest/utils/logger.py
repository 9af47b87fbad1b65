"""
nexarest Logger
===============

Structured logging for the request layer.

Every record carries a message plus key/value context. ``with_context``
derives a logger that stamps extra pairs onto each record, which is how
the dispatch layer attaches ``method`` and ``path``:

    log = get_logger("nexarest.dispatch").with_context(method="GET", path="/notes")
    log.error("Unhandled error in handler", exc)

Output goes through handlers shared by every ``nexarest.*`` logger, so
``configure_logging()`` (or one ``add_handler``) reroutes the package.
"""

from __future__ import annotations

import logging
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional, TextIO

import orjson


class LogLevel(IntEnum):
    """Severity, numerically compatible with the ``logging`` module."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: Any, default: Optional["LogLevel"] = None) -> "LogLevel":
        """Accept a member, a number (20) or a name ("info", "WARNING")."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and value in cls._value2member_map_:
            return cls(value)
        if isinstance(value, str):
            name = value.strip().upper()
            if name == "WARN":
                name = "WARNING"
            if name in cls.__members__:
                return cls[name]
        return default if default is not None else cls.INFO


@dataclass
class LogRecord:
    """One emitted event."""

    level: LogLevel
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    logger_name: str = "nexarest"

    def traceback_text(self) -> str:
        if self.exception is None:
            return ""
        lines = traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__)
        return "".join(lines).rstrip("\n")

    def to_dict(self) -> Dict[str, Any]:
        """Flat document: fixed fields first, then the context pairs."""
        document: Dict[str, Any] = {
            "time": self.timestamp.isoformat(),
            "level": self.level.name,
            "logger": self.logger_name,
            "message": self.message,
        }
        for key, value in self.context.items():
            document.setdefault(key, value)
        if self.exception is not None:
            document["error"] = {
                "type": type(self.exception).__name__,
                "message": str(self.exception),
                "traceback": self.traceback_text(),
            }
        return document


class LogFormatter:
    def format(self, record: LogRecord) -> str:
        raise NotImplementedError


_LEVEL_COLORS = {
    LogLevel.DEBUG: "\033[36m",
    LogLevel.INFO: "\033[32m",
    LogLevel.WARNING: "\033[33m",
    LogLevel.ERROR: "\033[31m",
    LogLevel.CRITICAL: "\033[35m",
}
_RESET = "\033[0m"


def _pair(key: str, value: Any) -> str:
    text = str(value)
    if not text or any(ch.isspace() for ch in text) or '"' in text:
        text = '"' + text.replace('"', '\\"') + '"'
    return f"{key}={text}"


class TextFormatter(LogFormatter):
    """
    One line per record, context as ``key=value``.

        2024-01-15 10:30:45 INFO  nexarest.router GET /notes 200 method=GET status=200
    """

    def __init__(self, date_format: str = "%Y-%m-%d %H:%M:%S", colors: bool = True) -> None:
        self.date_format = date_format
        self.colors = colors and sys.stderr.isatty()

    def format(self, record: LogRecord) -> str:
        level = record.level.name.ljust(5)
        if self.colors:
            level = f"{_LEVEL_COLORS.get(record.level, '')}{level}{_RESET}"

        parts = [record.timestamp.strftime(self.date_format), level, record.logger_name, record.message]
        parts.extend(_pair(key, value) for key, value in record.context.items())
        line = " ".join(parts)

        if record.exception is not None:
            line = f"{line}\n{record.traceback_text()}"
        return line


class JsonFormatter(LogFormatter):
    """One JSON object per line."""

    def format(self, record: LogRecord) -> str:
        return orjson.dumps(record.to_dict(), default=str).decode("utf-8")


class LogHandler:
    """Filters by level, then ``emit``s."""

    def __init__(self, formatter: Optional[LogFormatter] = None, level: LogLevel = LogLevel.DEBUG) -> None:
        self.formatter = formatter or TextFormatter()
        self.level = level

    def handle(self, record: LogRecord) -> None:
        if record.level >= self.level:
            self.emit(record)

    def emit(self, record: LogRecord) -> None:
        raise NotImplementedError


class StreamHandler(LogHandler):
    """Writes formatted lines to a stream (stderr unless given)."""

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ) -> None:
        super().__init__(formatter, level)
        self.stream = stream

    def emit(self, record: LogRecord) -> None:
        # stderr is looked up per write
        stream = self.stream or sys.stderr
        stream.write(self.formatter.format(record) + "\n")
        stream.flush()


class MemoryHandler(LogHandler):
    """Keeps records in a list. Handy for assertions in tests."""

    def __init__(self, level: LogLevel = LogLevel.DEBUG) -> None:
        super().__init__(level=level)
        self.records: List[LogRecord] = []

    def emit(self, record: LogRecord) -> None:
        self.records.append(record)

    def messages(self, level: Optional[LogLevel] = None) -> List[str]:
        return [r.message for r in self.records if level is None or r.level == level]

    def clear(self) -> None:
        self.records.clear()


class Logger:
    """
    Named logger with bound context.

    Example:
        logger = get_logger("nexarest.crud")
        logger.debug("Entity lookup failed", id="7", error="no such row")
    """

    def __init__(
        self,
        name: str = "nexarest",
        level: LogLevel = LogLevel.INFO,
        handlers: Optional[List[LogHandler]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.name = name
        self.level = level
        self._handlers = handlers if handlers is not None else []
        self._context: Dict[str, Any] = dict(context or {})

    @property
    def handlers(self) -> List[LogHandler]:
        return self._handlers

    def add_handler(self, handler: LogHandler) -> "Logger":
        self._handlers.append(handler)
        return self

    def remove_handler(self, handler: LogHandler) -> "Logger":
        self._handlers.remove(handler)
        return self

    def with_context(self, **context: Any) -> "Logger":
        """Child logger sharing this one's handlers, with extra context."""
        return Logger(self.name, self.level, self._handlers, {**self._context, **context})

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level >= self.level

    def _log(self, level: LogLevel, message: str, exception: Optional[BaseException], context: Dict[str, Any]) -> None:
        if not self.is_enabled_for(level):
            return

        record = LogRecord(
            level=level,
            message=message,
            context={**self._context, **context},
            exception=exception,
            logger_name=self.name,
        )
        for handler in list(self._handlers):
            try:
                handler.handle(record)
            except Exception:
                pass  # logging errors never reach the caller

    def debug(self, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, message, None, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, None, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, None, context)

    def error(self, message: str, exception: Optional[BaseException] = None, **context: Any) -> None:
        self._log(LogLevel.ERROR, message, exception, context)

    def critical(self, message: str, exception: Optional[BaseException] = None, **context: Any) -> None:
        self._log(LogLevel.CRITICAL, message, exception, context)

    def exception(self, message: str, **context: Any) -> None:
        """ERROR with the exception currently being handled."""
        self._log(LogLevel.ERROR, message, sys.exc_info()[1], context)

    def __repr__(self) -> str:
        return f"<Logger {self.name} {self.level.name}>"


_loggers: Dict[str, Logger] = {}
_root_handlers: List[LogHandler] = []
_root_level: Optional[LogLevel] = None


def _default_level() -> LogLevel:
    if _root_level is not None:
        return _root_level
    from nexarest.core.config import get_config
    return LogLevel.parse(get_config().get("log.level"), LogLevel.INFO)


def get_logger(name: str = "nexarest") -> Logger:
    """Return the logger called ``name``, creating it on first use."""
    logger = _loggers.get(name)
    if logger is None:
        if not _root_handlers:
            _root_handlers.append(StreamHandler())
        logger = _loggers[name] = Logger(name, _default_level(), _root_handlers)
    return logger


def configure_logging(level: Optional[Any] = None, format: Optional[str] = None, colors: bool = True) -> Logger:
    """
    Replace the shared handlers with one stderr handler.

    Args:
        level: Name or number; config ``log.level`` when omitted
        format: "text" or "json"; config ``log.format`` when omitted
        colors: Colour the level on a TTY (text only)
    """
    global _root_level
    from nexarest.core.config import get_config

    config = get_config()
    resolved = LogLevel.parse(level if level is not None else config.get("log.level"))
    output = format or config.get("log.format", "text")
    formatter: LogFormatter = JsonFormatter() if output == "json" else TextFormatter(colors=colors)

    _root_handlers.clear()
    _root_handlers.append(StreamHandler(formatter=formatter, level=resolved))
    _root_level = resolved
    for logger in _loggers.values():
        logger.level = resolved

    return get_logger("nexarest")
