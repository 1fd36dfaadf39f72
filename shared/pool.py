"""
Bounded connection pool for the external store.

Every command-issuing operation borrows one connection for the duration of
a single remote call::

    async with pool.connection("GET") as conn:
        value = await conn.get(key)

The borrowed connection is returned on every exit path. Store exceptions
raised inside the block are translated to the Access Layer taxonomy, and a
connection that failed at the transport level is closed instead of being
handed to the next caller.

When all ``size`` connections are checked out, ``acquire`` waits for a
release rather than failing the request. ``acquire_timeout`` bounds that
wait; past it the caller gets ``PoolExhaustedError``.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Dict, Optional, Set

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from shared.errors import (
    DialFailedError,
    PoolClosedError,
    PoolExhaustedError,
    StoreCommandError,
    StoreConnectionError,
)
from shared.logging import get_logger
from shared.metrics import MetricsCollector

Dialer = Callable[[], Awaitable[Any]]


async def dial_store(store_url: str, single_connection: bool = False) -> redis.Redis:
    """Open and verify one client for the store."""
    client = redis.from_url(
        store_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        single_connection_client=single_connection,
    )
    try:
        await client.ping()
    except BaseException:
        await client.aclose()
        raise
    return client


class StorePool:
    """A fixed-size pool of store connections shared by concurrent handlers."""

    def __init__(
        self,
        store_url: str,
        size: int = 10,
        acquire_timeout: Optional[float] = None,
        dialer: Optional[Dialer] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self.store_url = store_url
        self.size = size
        self.acquire_timeout = acquire_timeout
        self.metrics = metrics
        self.logger = get_logger("shared.pool")
        self._dialer = dialer or (lambda: dial_store(store_url, single_connection=True))
        self._slots = asyncio.Semaphore(size)
        self._idle: Deque[Any] = deque()
        self._in_use: Set[int] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> Dict[str, Any]:
        """Current pool occupancy."""
        return {
            "size": self.size,
            "open": len(self._idle) + len(self._in_use),
            "idle": len(self._idle),
            "in_use": len(self._in_use),
            "closed": self._closed,
        }

    async def start(self):
        """Dial one connection up front so an unreachable store fails at startup."""
        conn = await self.acquire()
        await self.release(conn)
        self.logger.info("Store pool started", address=self.store_url, size=self.size)

    async def acquire(self) -> Any:
        """Check out a connection, waiting while the pool is saturated."""
        if self._closed:
            raise PoolClosedError()

        try:
            if self.acquire_timeout is None:
                await self._slots.acquire()
            else:
                await asyncio.wait_for(self._slots.acquire(), self.acquire_timeout)
        except asyncio.TimeoutError:
            self.logger.warning("Store pool exhausted", size=self.size, timeout=self.acquire_timeout)
            raise PoolExhaustedError(self.size, self.acquire_timeout)

        if self._closed:
            self._slots.release()
            raise PoolClosedError()

        try:
            conn = self._idle.popleft() if self._idle else await self._dial()
        except BaseException:
            self._slots.release()
            raise

        self._in_use.add(id(conn))
        self._report_usage()
        return conn

    async def release(self, conn: Any, discard: bool = False):
        """Return a connection; closes it instead when discarded or the pool is drained."""
        if id(conn) not in self._in_use:
            raise ValueError("connection does not belong to this pool or was already released")

        self._in_use.discard(id(conn))
        try:
            if discard or self._closed:
                await self._close(conn)
            else:
                self._idle.append(conn)
        finally:
            self._slots.release()
            self._report_usage()

    @asynccontextmanager
    async def connection(self, command: str = "PING") -> AsyncIterator[Any]:
        """Scoped acquire/release with store error translation.

        ``command`` names the remote command issued inside the block; it labels
        metrics and translated errors.
        """
        conn = await self.acquire()
        discard = False
        outcome = "error"
        try:
            yield conn
            outcome = "ok"
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            discard = True
            raise StoreConnectionError(f"Store connection lost during {command}: {e}", {"command": command}) from e
        except RedisError as e:
            raise StoreCommandError(command, str(e)) from e
        except StoreConnectionError:
            discard = True
            raise
        finally:
            if self.metrics:
                self.metrics.record_store_command(command, outcome)
            await self.release(conn, discard=discard)

    async def ping(self) -> bool:
        """Round-trip a PING through a pooled connection."""
        async with self.connection() as conn:
            return bool(await conn.ping())

    async def drain(self):
        """Close idle connections and refuse new acquisitions.

        Connections still checked out are closed as their holders release them.
        """
        if self._closed:
            return
        self._closed = True
        while self._idle:
            await self._close(self._idle.popleft())
        self.logger.info("Store pool drained", in_use=len(self._in_use))

    async def _dial(self) -> Any:
        try:
            conn = await self._dialer()
        except (RedisError, OSError) as e:
            self.logger.error("Failed to dial store", address=self.store_url, error=str(e))
            raise DialFailedError(self.store_url, str(e)) from e
        self.logger.debug("Dialed store connection", open=len(self._idle) + len(self._in_use) + 1)
        return conn

    async def _close(self, conn: Any):
        try:
            await conn.aclose()
        except (RedisError, OSError) as e:
            self.logger.warning("Error closing store connection", error=str(e))

    def _report_usage(self):
        if self.metrics:
            self.metrics.set_gauge("store_pool_in_use", len(self._in_use))
