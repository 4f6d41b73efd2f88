"""Threshold and cooldown gating for alarm notifications."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from logalarm.cache.base import SignatureCache


class AlarmDecision(StrEnum):
    FIRE = "fire"
    SUPPRESSED = "suppressed"


@dataclass(frozen=True, slots=True)
class Verdict:
    """Decision plus the rule that produced it."""

    decision: AlarmDecision
    reason: str

    @property
    def fired(self) -> bool:
        return self.decision is AlarmDecision.FIRE


BELOW_THRESHOLD = Verdict(AlarmDecision.SUPPRESSED, "below_threshold")
COOLDOWN_ACTIVE = Verdict(AlarmDecision.SUPPRESSED, "cooldown_active")
THRESHOLD_REACHED = Verdict(AlarmDecision.FIRE, "threshold_reached")


class AlarmDecider:
    """Fires once the count reaches the threshold and no cooldown is running.

    Transitions are driven only by count and time: a marker written by
    ``mark_notified`` suppresses the signature until it is older than the
    cooldown (or its TTL removes it). Checking and writing the marker are
    separate calls, so two concurrent deciders can both fire.
    """

    def __init__(self, cache: SignatureCache, key_prefix: str = "log_alarm"):
        self.cache = cache
        self.key_prefix = key_prefix

    def key(self, signature: str) -> str:
        return f"{self.key_prefix}:cooldown:{signature}"

    async def last_notified_at(self, signature: str) -> float | None:
        raw = await self.cache.get(self.key(signature))
        if raw is None:
            return None
        try:
            return float(raw)
        except (TypeError, ValueError):
            return None

    async def decide(
        self,
        signature: str,
        count: int,
        threshold: int,
        now: float,
        cooldown_minutes: int,
    ) -> Verdict:
        if count < threshold:
            return BELOW_THRESHOLD

        last_notified = await self.last_notified_at(signature)
        if last_notified is None or now - last_notified >= cooldown_minutes * 60:
            return THRESHOLD_REACHED
        return COOLDOWN_ACTIVE

    async def mark_notified(
        self, signature: str, now: float, cooldown_minutes: int
    ) -> None:
        if cooldown_minutes <= 0:
            return
        await self.cache.put(self.key(signature), float(now), cooldown_minutes * 60)
