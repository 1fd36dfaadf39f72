"""
Publisher for the Messenger.
"""

from typing import Any, Awaitable, Callable, Optional

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from shared.errors import DialFailedError, StoreAccessException, StoreCommandError, StoreConnectionError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .messages import tag_message

Dialer = Callable[[], Awaitable[Any]]


class Publisher:
    """Publishes tagged lines on one dedicated store connection."""

    def __init__(
        self,
        channel: str,
        user_id: str,
        dialer: Dialer,
        address: str = "store",
        metrics: Optional[MetricsCollector] = None,
    ):
        self.channel = channel
        self.user_id = user_id
        self.address = address
        self.metrics = metrics
        self.logger = get_logger("messenger.pubsub.publisher")
        self._dialer = dialer
        self._client: Any = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def start(self):
        """Dial the publishing connection."""
        try:
            self._client = await self._dialer()
        except StoreAccessException:
            raise
        except (RedisError, OSError) as e:
            self.logger.error("Failed to create store client for publish", error=str(e))
            raise DialFailedError(self.address, str(e)) from e
        self.logger.info("Publisher connected", channel=self.channel)

    async def publish(self, text: str) -> int:
        """Tag ``text`` with the local user and publish it; returns the receiver count."""
        if self._client is None:
            raise StoreConnectionError("Publisher not started", code="PUBLISHER_NOT_STARTED")

        message = tag_message(self.user_id, text)
        try:
            receivers = await self._client.publish(self.channel, message)
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            raise StoreConnectionError(f"Store connection lost during PUBLISH: {e}", {"command": "PUBLISH"}) from e
        except RedisError as e:
            raise StoreCommandError("PUBLISH", str(e)) from e

        if self.metrics:
            self.metrics.increment_counter("messages_published_total")
        self.logger.debug("Published message", channel=self.channel, receivers=receivers)
        return receivers

    async def close(self):
        """Close the publishing connection."""
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            self.logger.warning("Error closing publisher connection", error=str(e))
        self.logger.info("Publisher closed", channel=self.channel)
