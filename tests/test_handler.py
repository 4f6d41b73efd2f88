"""Tests for the end-to-end alarm pipeline."""

import asyncio

import httpx
import pytest
from prometheus_client import CollectorRegistry

from logalarm.alerting.manager import DispatchStatus, NotificationDispatcher
from logalarm.cache.memory import InMemorySignatureCache
from logalarm.cache.redis import RedisSignatureCache
from logalarm.config import AlarmConfig
from logalarm.engine.handler import LogAlarmHandler, OutcomeStatus
from logalarm.engine.signature import exception_site_signature
from logalarm.events import LogEvent
from logalarm.metrics import AlarmMetrics


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingTransport:
    name = "recording"

    def __init__(self):
        self.messages = []

    def is_configured(self, config):
        return True

    async def send(self, message, config):
        self.messages.append(message)


class YieldingCache(InMemorySignatureCache):
    """Suspends between reading and returning, opening the race window."""

    async def get(self, key):
        value = await super().get(key)
        await asyncio.sleep(0)
        return value


def build_handler(config=None, cache_cls=InMemorySignatureCache, **kwargs):
    clock = FakeClock()
    registry = CollectorRegistry()
    metrics = AlarmMetrics(registry=registry)
    transport = RecordingTransport()
    config = config or AlarmConfig(
        levels="error",
        log_time_frame=1,
        log_per_time_frame=3,
        delay_between_alarms=5,
    )
    handler = LogAlarmHandler(
        config,
        cache_cls(clock=clock),
        dispatcher=NotificationDispatcher(transports=[transport], metrics=metrics),
        metrics=metrics,
        clock=clock,
        **kwargs,
    )
    return handler, clock, transport, registry


async def _at(handler, clock, t, event):
    clock.now = t
    return await handler.handle(event)


@pytest.mark.asyncio
async def test_burst_fires_once_and_respects_cooldown():
    handler, clock, transport, registry = build_handler()
    event = LogEvent("error", "DB down")

    outcomes = [await _at(handler, clock, t, event) for t in (0, 10, 20, 40, 70)]

    assert [o.count for o in outcomes] == [1, 2, 3, 4, 4]
    assert [o.status for o in outcomes] == [
        OutcomeStatus.SUPPRESSED,
        OutcomeStatus.SUPPRESSED,
        OutcomeStatus.FIRED,
        OutcomeStatus.SUPPRESSED,
        OutcomeStatus.SUPPRESSED,
    ]
    assert outcomes[3].verdict.reason == "cooldown_active"
    assert len(transport.messages) == 1

    # Window emptied by TTL; refill it just after the cooldown ends.
    later = [await _at(handler, clock, t, event) for t in (318, 319, 320)]
    assert [o.count for o in later] == [1, 2, 3]
    assert later[-1].status is OutcomeStatus.FIRED
    assert len(transport.messages) == 2

    assert registry.get_sample_value(
        "log_alarm_events_total", {"outcome": "fired"}
    ) == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_no_refire_before_cooldown_even_with_full_window():
    handler, clock, transport, _ = build_handler()
    event = LogEvent("error", "DB down")

    for t in range(0, 300, 10):
        await _at(handler, clock, t, event)

    assert len(transport.messages) == 1
    outcome = await _at(handler, clock, 320, event)
    assert outcome.status is OutcomeStatus.FIRED


@pytest.mark.asyncio
async def test_notification_text_has_header_and_formatted_body():
    handler, clock, transport, _ = build_handler()
    event = LogEvent("error", "DB down")

    for t in (0, 1, 2):
        await _at(handler, clock, t, event)

    assert transport.messages == [
        "The error occurred 3 times in the last 1 minutes:\n\n"
        "LOG LEVEL: error\nLOG MESSAGE: DB down\n"
        "LOG FILE: Unknown\nLOG LINE: Unknown"
    ]


@pytest.mark.asyncio
async def test_notification_message_override_replaces_body():
    config = AlarmConfig(
        log_per_time_frame=1, notification_message="Check the database cluster"
    )
    handler, clock, transport, _ = build_handler(config)

    await _at(handler, clock, 0, LogEvent("error", "DB down"))

    assert transport.messages[0].endswith("\n\nCheck the database cluster")


@pytest.mark.asyncio
async def test_filtered_and_disabled_events_leave_no_state():
    handler, clock, transport, registry = build_handler()

    outcome = await _at(handler, clock, 0, LogEvent("info", "hello"))
    assert outcome.status is OutcomeStatus.FILTERED
    assert len(handler.cache) == 0

    disabled, clock, _, _ = build_handler(AlarmConfig(enabled=False))
    outcome = await _at(disabled, clock, 0, LogEvent("error", "DB down"))
    assert outcome.status is OutcomeStatus.DISABLED
    assert len(disabled.cache) == 0
    assert registry.get_sample_value(
        "log_alarm_events_total", {"outcome": "filtered"}
    ) == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_distinct_messages_have_independent_windows():
    handler, clock, transport, _ = build_handler()

    for t in (0, 1):
        await _at(handler, clock, t, LogEvent("error", "DB down"))
        await _at(handler, clock, t, LogEvent("error", "Cache down"))

    assert transport.messages == []


@pytest.mark.asyncio
async def test_custom_signer_groups_differing_messages():
    handler, clock, transport, _ = build_handler(signer=exception_site_signature)

    def failing(n):
        try:
            raise ConnectionError(f"attempt {n}")
        except ConnectionError as exc:
            return exc

    for n in range(3):
        await _at(
            handler,
            clock,
            n,
            LogEvent("error", f"attempt {n}", context={"exception": failing(n)}),
        )

    assert len(transport.messages) == 1


@pytest.mark.asyncio
async def test_failed_transport_still_arms_cooldown():
    class BrokenTransport(RecordingTransport):
        name = "broken"

        async def send(self, message, config):
            raise RuntimeError("smtp unreachable")

    handler, clock, _, _ = build_handler(AlarmConfig(log_per_time_frame=1))
    handler.dispatcher.transports = [BrokenTransport()]

    first = await _at(handler, clock, 0, LogEvent("error", "DB down"))
    second = await _at(handler, clock, 1, LogEvent("error", "DB down"))

    assert first.status is OutcomeStatus.FIRED
    assert first.results[0].status is DispatchStatus.FAILED
    assert second.verdict.reason == "cooldown_active"


@pytest.mark.asyncio
async def test_concurrent_events_lose_window_updates_without_serialization():
    config = AlarmConfig(log_per_time_frame=100)
    handler, clock, _, _ = build_handler(config, cache_cls=YieldingCache)
    event = LogEvent("error", "DB down")

    outcomes = await asyncio.gather(*(handler.handle(event) for _ in range(5)))

    stored = await handler.window.cache.get(handler.window.key(outcomes[0].signature))
    assert [o.count for o in outcomes] == [1, 1, 1, 1, 1]
    assert len(stored) == 1


@pytest.mark.asyncio
async def test_concurrent_events_can_double_fire_without_serialization():
    config = AlarmConfig(log_per_time_frame=1, delay_between_alarms=5)
    handler, clock, transport, _ = build_handler(config, cache_cls=YieldingCache)
    event = LogEvent("error", "DB down")

    outcomes = await asyncio.gather(handler.handle(event), handler.handle(event))

    assert [o.status for o in outcomes] == [OutcomeStatus.FIRED, OutcomeStatus.FIRED]
    assert len(transport.messages) == 2


@pytest.mark.asyncio
async def test_serialized_signatures_close_both_races():
    config = AlarmConfig(log_per_time_frame=1, delay_between_alarms=5)
    handler, clock, transport, _ = build_handler(
        config, cache_cls=YieldingCache, serialize_signatures=True
    )
    event = LogEvent("error", "DB down")

    outcomes = await asyncio.gather(*(handler.handle(event) for _ in range(5)))

    assert sorted(o.count for o in outcomes) == [1, 2, 3, 4, 5]
    assert [o.status for o in outcomes].count(OutcomeStatus.FIRED) == 1
    assert len(transport.messages) == 1


@pytest.mark.asyncio
async def test_serialized_locks_are_released_after_the_burst():
    config = AlarmConfig(log_per_time_frame=1000)
    handler, _, _, _ = build_handler(
        config, cache_cls=YieldingCache, serialize_signatures=True
    )
    events = [LogEvent("error", f"DB down #{i % 50}") for i in range(200)]

    await asyncio.gather(*(handler.handle(event) for event in events))

    assert handler._locks == {}


@pytest.mark.asyncio
async def test_default_dispatcher_shares_one_http_client():
    config = AlarmConfig(http_timeout_seconds=4.0)
    handler = LogAlarmHandler(
        config,
        InMemorySignatureCache(),
        metrics=AlarmMetrics(registry=CollectorRegistry()),
    )

    http_transports = [
        t for t in handler.dispatcher.transports if hasattr(t, "client")
    ]
    assert len(http_transports) == 3
    assert all(t.client is handler.http_client for t in http_transports)
    assert handler.http_client.timeout == httpx.Timeout(4.0)

    await handler.aclose()
    assert handler.http_client.is_closed


@pytest.mark.asyncio
async def test_store_errors_reach_the_caller():
    metrics = AlarmMetrics(registry=CollectorRegistry())
    handler = LogAlarmHandler(
        AlarmConfig(log_per_time_frame=2),
        RedisSignatureCache(),
        dispatcher=NotificationDispatcher(transports=[], metrics=metrics),
        metrics=metrics,
    )

    with pytest.raises(ValueError):
        await handler.handle(LogEvent("error", "DB down"))
