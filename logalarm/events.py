"""Immutable log event consumed by the alarm engine."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


@dataclass(frozen=True, slots=True)
class LogEvent:
    """A single leveled log message with optional structured context."""

    level: str
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)
    occurred_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", MappingProxyType(dict(self.context)))

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "LogEvent":
        context: dict[str, Any] = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        }
        if record.exc_info and record.exc_info[1] is not None:
            context.setdefault("exception", record.exc_info[1])

        return cls(
            level=record.levelname.lower(),
            message=record.getMessage(),
            context=context,
            occurred_at=record.created,
        )
