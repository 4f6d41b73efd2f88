"""Alarm pipeline: filter, count, decide, notify."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import httpx

from logalarm.alerting.manager import (
    DispatchResult,
    NotificationDispatcher,
    build_notification_text,
)
from logalarm.alerting.transports import build_http_client, default_transports
from logalarm.cache.base import SignatureCache
from logalarm.config import AlarmConfig
from logalarm.engine.decider import AlarmDecider, Verdict
from logalarm.engine.filter import should_consider
from logalarm.engine.formatter import format_alarm_message
from logalarm.engine.signature import Signer, message_signature
from logalarm.engine.window import WindowCounter
from logalarm.events import LogEvent
from logalarm.metrics import AlarmMetrics, default_metrics

logger = logging.getLogger(__name__)


class OutcomeStatus(StrEnum):
    DISABLED = "disabled"
    FILTERED = "filtered"
    SUPPRESSED = "suppressed"
    FIRED = "fired"


@dataclass(slots=True)
class AlarmOutcome:
    """What the pipeline did with one event."""

    status: OutcomeStatus
    signature: str | None = None
    count: int = 0
    verdict: Verdict | None = None
    results: list[DispatchResult] = field(default_factory=list)


@dataclass(slots=True)
class _SignatureLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class LogAlarmHandler:
    """Turns log events into throttled notifications.

    All state lives in ``cache``; several handlers (or processes) pointed at
    the same store share windows and cooldowns. With
    ``serialize_signatures=True`` the count/decide/notify sequence for a
    signature runs under an ``asyncio.Lock``, which removes lost updates and
    double fires inside one event loop but not across processes. A lock is
    dropped as soon as no event for its signature holds or awaits it.
    """

    def __init__(
        self,
        config: AlarmConfig,
        cache: SignatureCache,
        *,
        dispatcher: NotificationDispatcher | None = None,
        signer: Signer = message_signature,
        metrics: AlarmMetrics | None = None,
        clock: Any = time.time,
        serialize_signatures: bool = False,
    ):
        self.config = config
        self.cache = cache
        self.metrics = metrics or default_metrics()
        self.http_client: httpx.AsyncClient | None = None
        if dispatcher is None:
            self.http_client = build_http_client(config)
            dispatcher = NotificationDispatcher(
                transports=default_transports(self.http_client), metrics=self.metrics
            )
        self.dispatcher = dispatcher
        self.signer = signer
        self.clock = clock
        self.window = WindowCounter(cache, key_prefix=config.cache_key_prefix)
        self.decider = AlarmDecider(cache, key_prefix=config.cache_key_prefix)
        self.serialize_signatures = serialize_signatures
        self._locks: dict[str, _SignatureLock] = {}

    async def aclose(self) -> None:
        """Close the HTTP client owned by the default dispatcher."""
        if self.http_client is not None:
            await self.http_client.aclose()

    @asynccontextmanager
    async def _serialized(self, signature: str):
        entry = self._locks.get(signature)
        if entry is None:
            entry = self._locks[signature] = _SignatureLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[signature]

    async def handle(self, event: LogEvent, now: float | None = None) -> AlarmOutcome:
        if not self.config.enabled:
            return self._finish(AlarmOutcome(OutcomeStatus.DISABLED))

        if not should_consider(event, self.config):
            return self._finish(AlarmOutcome(OutcomeStatus.FILTERED))

        now_ts = float(now if now is not None else self.clock())
        formatted = format_alarm_message(event)
        signature = self.signer(event, formatted)

        if self.serialize_signatures:
            async with self._serialized(signature):
                outcome = await self._evaluate(signature, formatted, now_ts)
        else:
            outcome = await self._evaluate(signature, formatted, now_ts)
        return self._finish(outcome)

    async def _evaluate(
        self, signature: str, formatted: str, now: float
    ) -> AlarmOutcome:
        config = self.config
        count = await self.window.record_and_count(
            signature, now, config.log_time_frame
        )
        verdict = await self.decider.decide(
            signature,
            count,
            config.log_per_time_frame,
            now,
            config.delay_between_alarms,
        )

        if not verdict.fired:
            logger.debug(
                f"LogAlarm suppressed {signature} ({verdict.reason}, count={count})"
            )
            return AlarmOutcome(
                OutcomeStatus.SUPPRESSED, signature=signature, count=count, verdict=verdict
            )

        logger.info(f"LogAlarm firing for {signature} after {count} occurrences")
        results = await self.dispatcher.dispatch(
            build_notification_text(formatted, config), config
        )
        await self.decider.mark_notified(signature, now, config.delay_between_alarms)
        return AlarmOutcome(
            OutcomeStatus.FIRED,
            signature=signature,
            count=count,
            verdict=verdict,
            results=results,
        )

    def _finish(self, outcome: AlarmOutcome) -> AlarmOutcome:
        self.metrics.record_outcome(outcome.status)
        return outcome
