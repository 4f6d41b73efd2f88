"""Signature strategies grouping occurrences of "the same" error."""

from __future__ import annotations

import hashlib
from typing import Callable

from logalarm.engine.formatter import as_exception, exception_origin
from logalarm.events import LogEvent

Signer = Callable[[LogEvent, str], str]


def message_signature(event: LogEvent, formatted: str) -> str:
    """MD5 of the formatted alarm text; any text difference is a new signature."""
    return hashlib.md5(formatted.encode("utf-8")).hexdigest()


def exception_site_signature(event: LogEvent, formatted: str) -> str:
    """Group by level, exception type and file, ignoring line and message."""
    exc = as_exception(event.context.get("exception"))
    if exc is None:
        return message_signature(event, formatted)

    log_file, _ = exception_origin(event)
    exc_type = f"{type(exc).__module__}.{type(exc).__qualname__}"
    payload = "|".join([event.level, exc_type, log_file])
    return hashlib.md5(payload.encode("utf-8")).hexdigest()
