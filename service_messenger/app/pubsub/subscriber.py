"""
Subscriber loop for the Messenger.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from redis.exceptions import RedisError

from shared.errors import StoreAccessException
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..shutdown import ShutdownSignal
from .messages import is_self_authored

Sink = Callable[[str], Union[None, Awaitable[None]]]
Dialer = Callable[[], Awaitable[Any]]

STORE_FAILURES = (RedisError, OSError, StoreAccessException)


class SubscriberState(str, Enum):
    """Lifecycle of a subscriber loop. STOPPED and FAILED are terminal."""

    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    RECEIVING = "receiving"
    STOPPED = "stopped"
    FAILED = "failed"


class SubscriberLoop:
    """Receives channel messages on a dedicated connection until shut down.

    The shutdown signal is checked before every receive, and each receive
    waits at most ``receive_timeout`` seconds, so a closed signal is noticed
    within one timeout. On shutdown the loop unsubscribes before closing its
    connection. Connection, subscribe and receive failures end the loop in
    FAILED; there is no reconnection.
    """

    def __init__(
        self,
        channel: str,
        user_id: str,
        sink: Sink,
        shutdown: ShutdownSignal,
        dialer: Dialer,
        receive_timeout: float = 1.0,
        metrics: Optional[MetricsCollector] = None,
    ):
        if receive_timeout <= 0:
            raise ValueError("receive_timeout must be positive")
        self.channel = channel
        self.user_id = user_id
        self.sink = sink
        self.shutdown = shutdown
        self.receive_timeout = receive_timeout
        self.metrics = metrics
        self.logger = get_logger("messenger.pubsub.subscriber")
        self.state = SubscriberState.CONNECTING
        self.delivered = 0
        self.suppressed = 0
        self.error: Optional[BaseException] = None
        self._dialer = dialer
        self._client: Any = None
        self._pubsub: Any = None

    async def run(self) -> SubscriberState:
        """Run until the shutdown signal closes or the connection fails."""
        self._enter(SubscriberState.CONNECTING)
        try:
            self._client = await self._dialer()
        except STORE_FAILURES as e:
            return self._fail("Failed to create subscriber connection", e)

        self._pubsub = self._client.pubsub()
        try:
            await self._pubsub.subscribe(self.channel)
        except STORE_FAILURES as e:
            await self._close_connection()
            return self._fail(f"Failed to subscribe to channel {self.channel}", e)
        self._enter(SubscriberState.SUBSCRIBED)

        try:
            return await self._receive()
        except asyncio.CancelledError:
            await self._unsubscribe_and_close()
            self._enter(SubscriberState.STOPPED)
            raise

    async def _receive(self) -> SubscriberState:
        self._enter(SubscriberState.RECEIVING)
        while not self.shutdown.closed:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self.receive_timeout
                )
            except STORE_FAILURES as e:
                await self._close_connection()
                return self._fail("Error while receiving from channel", e)

            # None means the receive timed out
            if message is None or message.get("type") != "message":
                continue

            await self._forward(message["data"])

        await self._unsubscribe_and_close()
        self._enter(SubscriberState.STOPPED)
        return self.state

    async def _forward(self, data: Any):
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else str(data)
        if is_self_authored(self.user_id, text):
            self.suppressed += 1
            self._count("suppressed")
            return

        try:
            result = self.sink(text)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            self.logger.error("Error forwarding message to sink", channel=self.channel, error=str(e))
            self._count("sink_error")
            return

        self.delivered += 1
        self._count("delivered")

    async def _unsubscribe_and_close(self):
        # Unsubscribe first so the store stops routing to this connection
        try:
            await self._pubsub.unsubscribe(self.channel)
        except STORE_FAILURES as e:
            self.logger.warning("Failed to unsubscribe", channel=self.channel, error=str(e))
        await self._close_connection()

    async def _close_connection(self):
        for resource in (self._pubsub, self._client):
            if resource is None:
                continue
            try:
                await resource.aclose()
            except STORE_FAILURES as e:
                self.logger.warning("Error closing subscriber connection", error=str(e))
        self._pubsub = None
        self._client = None

    def _fail(self, message: str, error: BaseException) -> SubscriberState:
        self.error = error
        self.logger.error(message, channel=self.channel, error=str(error))
        self._enter(SubscriberState.FAILED)
        return self.state

    def _enter(self, state: SubscriberState):
        self.state = state
        self.logger.debug("Subscriber state", channel=self.channel, state=state.value)

    def _count(self, outcome: str):
        if self.metrics:
            self.metrics.increment_counter("messages_received_total", outcome=outcome)
