"""Async Redis backend for occurrence windows and cooldown markers."""

from __future__ import annotations

import json
from typing import Any

from redis.asyncio import Redis


class RedisSignatureCache:
    """JSON-over-Redis store shareable by every process of a deployment."""

    def __init__(self, url: str | None = None, client: Any | None = None):
        self.url = url
        self.client = client
        self.connected = client is not None

    async def connect(self) -> None:
        if self.client is None:
            if not self.url:
                raise ValueError("redis url is required to connect")
            self.client = Redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        self.connected = True

    async def disconnect(self) -> None:
        if self.client is not None:
            await self.client.aclose()
        self.connected = False

    async def _require_client(self) -> Any:
        if self.client is None:
            await self.connect()
        return self.client

    async def get(self, key: str) -> Any | None:
        client = await self._require_client()
        payload = await client.get(key)
        if not payload:
            return None
        if isinstance(payload, bytes):
            payload = payload.decode()
        try:
            return json.loads(payload)
        except ValueError:
            return None

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        client = await self._require_client()
        if ttl_seconds <= 0:
            await client.delete(key)
            return
        await client.set(
            key, json.dumps(value, separators=(",", ":")), ex=int(ttl_seconds)
        )
