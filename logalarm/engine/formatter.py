"""Markdown-safe rendering of a log event into alarm text."""

from __future__ import annotations

import traceback
from typing import Any

from logalarm.events import LogEvent

UNKNOWN = "Unknown"


def as_exception(candidate: Any) -> BaseException | None:
    if isinstance(candidate, BaseException):
        return candidate
    # logging-style exc_info tuple
    if (
        isinstance(candidate, tuple)
        and len(candidate) == 3
        and isinstance(candidate[1], BaseException)
    ):
        return candidate[1]
    return None


def exception_origin(event: LogEvent) -> tuple[str, str]:
    """Return ``(file, line)`` of the innermost frame of the attached exception."""
    exc = as_exception(event.context.get("exception"))
    if exc is None or exc.__traceback__ is None:
        return UNKNOWN, UNKNOWN

    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return UNKNOWN, UNKNOWN
    last = frames[-1]
    return last.filename or UNKNOWN, str(last.lineno) if last.lineno else UNKNOWN


def format_alarm_message(event: LogEvent) -> str:
    log_file, log_line = exception_origin(event)
    # Labels use spaces, underscores would turn into italics in chat markup.
    return "\n".join(
        [
            f"LOG LEVEL: {event.level}",
            f"LOG MESSAGE: {event.message}",
            f"LOG FILE: {log_file}",
            f"LOG LINE: {log_line}",
        ]
    )
