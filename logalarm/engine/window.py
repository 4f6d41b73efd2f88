"""Per-signature sliding window of recent occurrences."""

from __future__ import annotations

from typing import Any

from logalarm.cache.base import SignatureCache


class WindowCounter:
    """Records occurrences and reports how many fall inside the window.

    Every call re-reads the window from the cache, appends, prunes and
    writes it back with a TTL equal to the window, so an idle signature
    expires exactly when all of its entries would have been pruned.
    The read-modify-write is not atomic: concurrent callers for the same
    signature can overwrite each other's append.
    """

    def __init__(self, cache: SignatureCache, key_prefix: str = "log_alarm"):
        self.cache = cache
        self.key_prefix = key_prefix

    def key(self, signature: str) -> str:
        return f"{self.key_prefix}:window:{signature}"

    @staticmethod
    def _coerce(raw: Any) -> list[float]:
        if not isinstance(raw, list):
            return []
        timestamps = []
        for item in raw:
            try:
                timestamps.append(float(item))
            except (TypeError, ValueError):
                continue
        return timestamps

    async def record_and_count(
        self, signature: str, now: float, window_minutes: int
    ) -> int:
        key = self.key(signature)
        window_seconds = window_minutes * 60

        timestamps = self._coerce(await self.cache.get(key))
        timestamps.append(float(now))

        cutoff = now - window_seconds
        timestamps = [ts for ts in timestamps if ts >= cutoff]

        await self.cache.put(key, timestamps, window_seconds)
        return len(timestamps)
