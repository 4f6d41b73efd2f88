"""Expiring key-value store interface shared by windows and cooldown markers."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SignatureCache(Protocol):
    """Async get / put-with-TTL store.

    Values are JSON-compatible: a list of epoch-second floats (occurrence
    windows) or a single float (cooldown markers). Absent or expired keys
    read back as ``None``.
    """

    async def get(self, key: str) -> Any | None:  # pragma: no cover - interface
        ...

    async def put(
        self, key: str, value: Any, ttl_seconds: int
    ) -> None:  # pragma: no cover - interface
        ...
