"""
Store-backed key/value cache for the Cacher service.
"""

from typing import Dict, Optional

from shared.errors import InvalidTTLError, KeyNotFoundError, PartialWriteError, StoreAccessException
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.pool import StorePool


class StoreCache:
    """Key/value cache whose entries live only in the store.

    Nothing is memoised locally: every ``get`` and ``set`` is exactly one
    remote command on a pooled connection, and expiry is left to the store.
    """

    def __init__(self, pool: StorePool, metrics: Optional[MetricsCollector] = None):
        self.pool = pool
        self.metrics = metrics
        self.logger = get_logger("cacher.cache.store")

    async def get(self, key: str) -> str:
        """Return the value for ``key``; raises ``KeyNotFoundError`` when absent."""
        async with self.pool.connection("GET") as conn:
            value = await conn.get(key)

        if value is None:
            self._count("cache_misses_total")
            self.logger.debug("Cache miss", key=key)
            raise KeyNotFoundError(key)

        self._count("cache_hits_total")
        self.logger.debug("Cache hit", key=key)
        return value

    async def set(self, key: str, value: str, ttl_seconds: int):
        """Store ``value`` under ``key`` for ``ttl_seconds`` whole seconds."""
        if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds <= 0:
            raise InvalidTTLError(ttl_seconds)

        async with self.pool.connection("SET") as conn:
            await conn.set(key, value, ex=ttl_seconds)

        self.logger.debug("Cached value", key=key, ttl=ttl_seconds)

    async def set_many(self, entries: Dict[str, str], ttl_seconds: int):
        """Set each entry in order, one command per key.

        There is no transaction: when a set fails, the keys before it stay
        written and ``PartialWriteError`` reports which ones.
        """
        applied = []
        for key, value in entries.items():
            try:
                await self.set(key, value, ttl_seconds)
            except StoreAccessException as e:
                if not applied:
                    raise
                raise PartialWriteError("SET", applied, key, e) from e
            applied.append(key)

    def _count(self, metric_name: str):
        if self.metrics:
            self.metrics.increment_counter(metric_name)
