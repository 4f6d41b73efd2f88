"""Bridge from the stdlib ``logging`` module into the alarm pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from logalarm.engine.handler import LogAlarmHandler
from logalarm.events import LogEvent

# The engine's own loggers; feeding them back would let a failing transport
# raise alarms about itself.
INTERNAL_LOGGER_PREFIX = "logalarm"


class AlarmLogHandler(logging.Handler):
    """Forwards every emitted record to ``LogAlarmHandler.handle``.

    Inside a running event loop the pipeline is scheduled as a task. From
    other threads it is submitted to ``loop`` when one is given, otherwise
    it runs to completion on a private loop.
    """

    def __init__(
        self,
        alarm_handler: LogAlarmHandler,
        loop: asyncio.AbstractEventLoop | None = None,
        level: int = logging.NOTSET,
    ):
        super().__init__(level=level)
        self.alarm_handler = alarm_handler
        self.loop = loop
        self._pending: set[Any] = set()

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == INTERNAL_LOGGER_PREFIX or name.startswith(
            f"{INTERNAL_LOGGER_PREFIX}."
        ):
            return False
        return bool(super().filter(record))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent.from_record(record)
            self._schedule(self._run(record, event))
        except Exception:
            self.handleError(record)

    async def _run(self, record: logging.LogRecord, event: LogEvent) -> None:
        try:
            await self.alarm_handler.handle(event)
        except Exception:
            self.handleError(record)

    def _schedule(self, coro: Any) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None:
            task = running.create_task(coro)
        elif self.loop is not None and not self.loop.is_closed():
            task = asyncio.run_coroutine_threadsafe(coro, self.loop)
        else:
            asyncio.run(coro)
            return

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for pipeline runs scheduled on the current loop."""
        tasks = [t for t in list(self._pending) if isinstance(t, asyncio.Task)]
        if tasks:
            await asyncio.gather(*tasks)


def install_log_alarm(
    alarm_handler: LogAlarmHandler,
    logger: logging.Logger | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> AlarmLogHandler | None:
    """Attach the bridge to ``logger`` (root by default) if alarms are enabled."""
    if not alarm_handler.config.enabled:
        return None

    target = logger or logging.getLogger()
    bridge = AlarmLogHandler(alarm_handler, loop=loop)
    target.addHandler(bridge)
    return bridge
