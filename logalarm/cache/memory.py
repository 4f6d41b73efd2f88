"""In-process signature cache with lazy TTL expiry."""

from __future__ import annotations

import copy
import time
from typing import Any


class InMemorySignatureCache:
    """Dictionary-backed store for single-process hosts and tests."""

    def __init__(self, clock: Any = time.time):
        self.clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if float(self.clock()) >= expires_at:
            del self._entries[key]
            return None
        return copy.deepcopy(value)

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            self._entries.pop(key, None)
            return
        expires_at = float(self.clock()) + ttl_seconds
        self._entries[key] = (copy.deepcopy(value), expires_at)

    def __len__(self) -> int:
        return len(self._entries)
