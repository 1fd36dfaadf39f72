"""
Test helper functions and fakes for the Store Access Layer.

``InMemoryStore`` stands in for the external store in unit and integration
tests. ``InMemoryStore.connect`` has the same shape as the pool's dialer, and
the connections it returns expose the subset of ``redis.asyncio.Redis`` the
services call. Failures can be injected per command.
"""

import asyncio
import time
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from redis.exceptions import ConnectionError as RedisConnectionError


class InMemoryStore:
    """Shared state behind any number of fake connections."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self.values: Dict[str, Tuple[str, Optional[float]]] = {}
        self.lists: Dict[str, Deque[str]] = defaultdict(deque)
        self.subscribers: Dict[str, List["FakePubSub"]] = defaultdict(list)
        self.ttls: Dict[str, int] = {}
        self.events: List[Tuple[str, ...]] = []
        self.unreachable = False
        self.dial_count = 0
        self.open_connections = 0
        self.max_open_connections = 0
        self._failures: Dict[str, List[Optional[Exception]]] = defaultdict(list)

    async def connect(self) -> "FakeStoreConnection":
        """Dial a new fake connection."""
        if self.unreachable:
            raise RedisConnectionError("Error connecting to fake store: connection refused")
        self.dial_count += 1
        self.open_connections += 1
        self.max_open_connections = max(self.max_open_connections, self.open_connections)
        return FakeStoreConnection(self)

    def fail_next(self, command: str, error: Exception, times: int = 1, after: int = 0):
        """Make ``times`` calls of ``command`` raise ``error``, once ``after`` calls have succeeded."""
        self._failures[command.upper()].extend([None] * after + [error] * times)

    def expire(self, key: str):
        """Force a key to expire now."""
        if key in self.values:
            value, _ = self.values[key]
            self.values[key] = (value, time.monotonic() - 1)

    async def _run(self, command: str):
        if self.latency:
            await asyncio.sleep(self.latency)
        pending = self._failures.get(command)
        if pending:
            error = pending.pop(0)
            if error is not None:
                raise error


class FakeStoreConnection:
    """One fake client connection bound to an ``InMemoryStore``."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.closed = False

    async def ping(self) -> bool:
        await self._command("PING")
        return True

    async def get(self, key: str) -> Optional[str]:
        await self._command("GET")
        entry = self.store.values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self.store.values[key]
            return None
        return value

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        await self._command("SET")
        expires_at = time.monotonic() + ex if ex else None
        self.store.values[key] = (value, expires_at)
        if ex:
            self.store.ttls[key] = ex
        return True

    async def rpush(self, name: str, *values: str) -> int:
        await self._command("RPUSH")
        self.store.lists[name].extend(values)
        return len(self.store.lists[name])

    async def lpop(self, name: str) -> Optional[str]:
        await self._command("LPOP")
        queue = self.store.lists.get(name)
        if not queue:
            return None
        return queue.popleft()

    async def publish(self, channel: str, message: str) -> int:
        await self._command("PUBLISH")
        receivers = list(self.store.subscribers.get(channel, []))
        for pubsub in receivers:
            pubsub.deliver(channel, message)
        self.store.events.append(("publish", channel, message))
        return len(receivers)

    def pubsub(self) -> "FakePubSub":
        return FakePubSub(self)

    async def aclose(self):
        if not self.closed:
            self.closed = True
            self.store.open_connections -= 1
            self.store.events.append(("close",))

    async def _command(self, command: str):
        if self.closed:
            raise RedisConnectionError("Connection closed by client")
        await self.store._run(command)


class FakePubSub:
    """Subscriber side of a fake connection."""

    def __init__(self, connection: FakeStoreConnection):
        self.connection = connection
        self.store = connection.store
        self.channels: List[str] = []
        self.closed = False
        self._inbox: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()

    def deliver(self, channel: str, data: str):
        self._inbox.put_nowait({"type": "message", "pattern": None, "channel": channel, "data": data})

    async def subscribe(self, *channels: str):
        await self.connection._command("SUBSCRIBE")
        for channel in channels:
            self.channels.append(channel)
            self.store.subscribers[channel].append(self)
            self.store.events.append(("subscribe", channel))
            self._inbox.put_nowait({"type": "subscribe", "pattern": None, "channel": channel, "data": 1})

    async def unsubscribe(self, *channels: str):
        await self.connection._command("UNSUBSCRIBE")
        for channel in channels or list(self.channels):
            if channel in self.channels:
                self.channels.remove(channel)
            if self in self.store.subscribers.get(channel, []):
                self.store.subscribers[channel].remove(self)
            self.store.events.append(("unsubscribe", channel))

    async def get_message(self, ignore_subscribe_messages: bool = False, timeout: Optional[float] = 0.0):
        await self.connection._command("RECEIVE")
        deadline = time.monotonic() + (timeout or 0.0)
        while True:
            remaining = max(deadline - time.monotonic(), 0.0)
            try:
                message = await asyncio.wait_for(self._inbox.get(), remaining or 0.001)
            except asyncio.TimeoutError:
                return None
            if ignore_subscribe_messages and message["type"] in ("subscribe", "unsubscribe"):
                continue
            return message

    async def aclose(self):
        if not self.closed:
            self.closed = True
            for channel in list(self.channels):
                if self in self.store.subscribers.get(channel, []):
                    self.store.subscribers[channel].remove(self)
            self.store.events.append(("pubsub_close",))


class CollectingSink:
    """Sink that records every message forwarded to it."""

    def __init__(self):
        self.messages: List[str] = []
        self.received = asyncio.Event()

    def __call__(self, message: str):
        self.messages.append(message)
        self.received.set()
