"""
Store-backed FIFO queue for the Queuer service.
"""

from typing import Iterable, Optional

from shared.errors import PartialWriteError, QueueEmptyError, StoreAccessException
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.pool import StorePool


class StoreQueue:
    """FIFO queue stored as a list: RPUSH onto the tail, LPOP off the head."""

    def __init__(self, name: str, pool: StorePool, metrics: Optional[MetricsCollector] = None):
        self.name = name
        self.pool = pool
        self.metrics = metrics
        self.logger = get_logger("queuer.queue.store")

    async def push(self, value: str):
        """Append ``value`` to the tail of the queue."""
        async with self.pool.connection("RPUSH") as conn:
            length = await conn.rpush(self.name, value)

        if self.metrics:
            self.metrics.increment_counter("queue_pushed_total")
        self.logger.debug("Pushed value", queue=self.name, length=length)

    async def push_many(self, values: Iterable[str]):
        """Push values in order, one command each.

        Earlier pushes are not rolled back when a later one fails;
        ``PartialWriteError`` lists what made it into the queue.
        """
        applied = []
        for value in values:
            try:
                await self.push(value)
            except StoreAccessException as e:
                if not applied:
                    raise
                raise PartialWriteError("RPUSH", applied, value, e) from e
            applied.append(value)

    async def pop(self) -> str:
        """Remove and return the head of the queue; raises ``QueueEmptyError`` when empty."""
        try:
            async with self.pool.connection("LPOP") as conn:
                value = await conn.lpop(self.name)
        except StoreAccessException:
            self._count_pop("error")
            raise

        if value is None:
            self._count_pop("empty")
            raise QueueEmptyError(self.name)

        self._count_pop("ok")
        return value

    def _count_pop(self, outcome: str):
        if self.metrics:
            self.metrics.increment_counter("queue_pops_total", outcome=outcome)
