"""Fan-out of alarm notifications to independent transports."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum

from logalarm.alerting.transports import AlarmTransport, default_transports
from logalarm.config import AlarmConfig
from logalarm.metrics import AlarmMetrics, default_metrics
from otel_init import get_tracer

logger = logging.getLogger(__name__)


class DispatchStatus(StrEnum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class DispatchResult:
    """Per-transport outcome of a single dispatch."""

    transport: str
    status: DispatchStatus
    error: str | None = None


def build_notification_text(formatted_message: str, config: AlarmConfig) -> str:
    body = config.notification_message or formatted_message
    return (
        f"The error occurred {config.log_per_time_frame} times in the last "
        f"{config.log_time_frame} minutes:\n\n{body}"
    )


class NotificationDispatcher:
    """Sends one message through every configured transport concurrently.

    Unconfigured transports are skipped, failing ones are logged and
    counted; ``dispatch`` itself never raises.
    """

    def __init__(
        self,
        transports: list[AlarmTransport] | None = None,
        metrics: AlarmMetrics | None = None,
        tracer_name: str = "logalarm.alerting.manager",
    ):
        self.transports = transports if transports is not None else default_transports()
        self.metrics = metrics or default_metrics()
        self.tracer = get_tracer(tracer_name)

    def register(self, transport: AlarmTransport) -> None:
        self.transports.append(transport)

    async def _send_one(
        self, transport: AlarmTransport, message: str, config: AlarmConfig
    ) -> DispatchResult:
        if not transport.is_configured(config):
            return DispatchResult(transport.name, DispatchStatus.SKIPPED)

        with self.tracer.start_as_current_span(
            f"log_alarm.transport.{transport.name}"
        ) as span:
            try:
                await transport.send(message, config)
            except Exception as exc:
                span.set_attribute("log_alarm.transport.error", str(exc))
                logger.warning(f"LogAlarm {transport.name} notification failed: {exc}")
                return DispatchResult(
                    transport.name, DispatchStatus.FAILED, error=str(exc)
                )
        return DispatchResult(transport.name, DispatchStatus.SENT)

    async def dispatch(self, message: str, config: AlarmConfig) -> list[DispatchResult]:
        with self.tracer.start_as_current_span("log_alarm.dispatch") as span:
            span.set_attribute("log_alarm.transports", len(self.transports))
            results = await asyncio.gather(
                *(self._send_one(t, message, config) for t in self.transports)
            )

        for result in results:
            self.metrics.record_transport(result.transport, result.status)
        return list(results)
