"""Pick a signature cache backend from configuration."""

from __future__ import annotations

from logalarm.cache.base import SignatureCache
from logalarm.cache.memory import InMemorySignatureCache
from logalarm.cache.redis import RedisSignatureCache
from logalarm.config import AlarmConfig


def build_cache(config: AlarmConfig) -> SignatureCache:
    """Redis when a URL is configured, otherwise an in-process store.

    The Redis backend connects on first use unless ``connect()`` ran earlier.
    """
    if config.redis_url:
        return RedisSignatureCache(url=config.redis_url)
    return InMemorySignatureCache()
