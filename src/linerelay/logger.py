"""
Relay logging - a thin key=value front end over the ``linerelay`` logger.

Output goes to stdout; stderr is left to the single fatal-error line.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any, Protocol, TextIO


class Level(IntEnum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARN = logging.WARNING
    ERROR = logging.ERROR
    OFF = logging.CRITICAL + 1

    @classmethod
    def parse(cls, name: str) -> Level:
        try:
            return cls[name.strip().upper()]
        except KeyError:
            msg = f"unknown log level: {name!r}"
            raise ValueError(msg) from None

    @classmethod
    def of(cls, levelno: int) -> Level:
        for level in (cls.ERROR, cls.WARN, cls.INFO):
            if levelno >= level:
                return level
        return cls.DEBUG


class FormatterFn(Protocol):
    def __call__(
        self,
        *,
        time: datetime,
        level: Level,
        location: str,
        message: str,
        fields: dict[str, Any],
    ) -> str: ...


_RESET = "\033[0m"
_DIM = "\033[2m"
_LEVEL_STYLE = {
    Level.DEBUG: "\033[35m",
    Level.INFO: "\033[36m",
    Level.WARN: "\033[1;33m",
    Level.ERROR: "\033[1;31m",
}

_use_colors: bool = sys.stdout.isatty()


def _paint(text: str, style: str) -> str:
    return f"{style}{text}{_RESET}" if _use_colors else text


def _tag(level: Level) -> str:
    return _paint(f"[{level.name}]", _LEVEL_STYLE.get(level, ""))


def _pairs(fields: dict[str, Any]) -> str:
    return "".join(
        f" {key}={value!r}" if isinstance(value, (str, bytes)) else f" {key}={value}"
        for key, value in fields.items()
    )


class formatters:
    @staticmethod
    def verbose(
        *,
        time: datetime,
        level: Level,
        location: str,
        message: str,
        fields: dict[str, Any],
    ) -> str:
        stamp = _paint(time.isoformat(sep=" ", timespec="milliseconds"), _DIM)
        return f"{stamp} {_tag(level)} {location} {message}{_pairs(fields)}"

    @staticmethod
    def compact(
        *,
        time: datetime,
        level: Level,
        location: str,
        message: str,
        fields: dict[str, Any],
    ) -> str:
        del location
        stamp = _paint(time.strftime("%H:%M:%S"), _DIM)
        return f"{stamp} {_tag(level)} {message}{_pairs(fields)}"

    @staticmethod
    def minimal(
        *,
        time: datetime,
        level: Level,
        location: str,
        message: str,
        fields: dict[str, Any],
    ) -> str:
        # Just the message: relayed lines print exactly as clients see them.
        del time, level, location, fields
        return message

    @classmethod
    def named(cls, name: str) -> FormatterFn:
        match name:
            case "verbose":
                return cls.verbose
            case "compact":
                return cls.compact
            case "minimal":
                return cls.minimal
            case _:
                msg = f"unknown log format: {name!r}"
                raise ValueError(msg)


_formatter: FormatterFn = formatters.compact


class _RelayFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return _formatter(
            time=datetime.fromtimestamp(record.created),
            level=Level.of(record.levelno),
            location=f"{record.name}:{record.funcName}:{record.lineno}",
            message=record.getMessage(),
            fields=getattr(record, "fields", {}),
        )


_logger = logging.getLogger("linerelay")
_logger.setLevel(Level.INFO)
_logger.propagate = False

_handler = logging.StreamHandler(sys.stdout)
_handler.setFormatter(_RelayFormatter())
_logger.addHandler(_handler)


def set_level(level: Level) -> None:
    _logger.setLevel(level)


def set_formatter(fn: FormatterFn) -> None:
    global _formatter
    _formatter = fn


def set_colors(enabled: bool) -> None:
    global _use_colors
    _use_colors = enabled


def set_stream(stream: TextIO) -> None:
    _handler.setStream(stream)


def _log(level: Level, msg: str, fields: dict[str, Any]) -> None:
    # stacklevel 3 skips _log and the public wrapper, so location names the caller.
    _logger.log(level, msg, extra={"fields": fields}, stacklevel=3)


def debug(msg: str, **fields: Any) -> None:
    _log(Level.DEBUG, msg, fields)


def info(msg: str, **fields: Any) -> None:
    _log(Level.INFO, msg, fields)


def warn(msg: str, **fields: Any) -> None:
    _log(Level.WARN, msg, fields)


def error(msg: str, **fields: Any) -> None:
    _log(Level.ERROR, msg, fields)
