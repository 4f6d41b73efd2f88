"""Decides whether a log event is alarm-worthy."""

from __future__ import annotations

from logalarm.config import AlarmConfig
from logalarm.events import LogEvent


def contains_specific_string(message: str, specific_string: str) -> bool:
    # Empty means "match every message".
    if not specific_string:
        return True
    return specific_string in message


def should_consider(event: LogEvent, config: AlarmConfig) -> bool:
    if event.level not in config.levels:
        return False
    return contains_specific_string(event.message, config.specific_string)
