"""
Messenger CLI for the Store Access Layer.

Publishes each line of standard input to the configured channel and prints
messages from other users as they arrive. Configured entirely through the
environment (REDIS_ADDR, CHANNEL_NAME, USER_ID); there are no flags.
"""

import asyncio
import sys
from typing import Any, Awaitable, Callable, Optional, TextIO

from shared.config import MessengerConfig, load_config
from shared.errors import ConfigurationError, InputExhausted, StoreCommandError, StoreConnectionError
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from shared.pool import dial_store

from .input import LineReader
from .pubsub.publisher import Publisher
from .pubsub.subscriber import SubscriberLoop, SubscriberState
from .shutdown import ShutdownSignal

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


class MessengerService:
    """Runs the publisher inline with input and the subscriber loop as a task."""

    def __init__(
        self,
        config: Optional[MessengerConfig] = None,
        dialer: Optional[Callable[[], Awaitable[Any]]] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or load_config(MessengerConfig)
        # stdout carries the conversation, so logs go to stderr
        configure_logging("messenger", self.config.log_level, stream=sys.stderr)
        self.logger = get_logger("messenger.service")
        self.metrics = metrics or get_metrics_collector("messenger")
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout

        # The publisher pins its one connection; the subscriber's PubSub reuses the
        # connection its client released after the dial-time PING.
        publisher_dialer = dialer or (lambda: dial_store(self.config.store_url, single_connection=True))
        subscriber_dialer = dialer or (lambda: dial_store(self.config.store_url))
        self.shutdown = ShutdownSignal()
        self.subscriber = SubscriberLoop(
            channel=self.config.channel_name,
            user_id=self.config.user_id,
            sink=self.display,
            shutdown=self.shutdown,
            dialer=subscriber_dialer,
            receive_timeout=self.config.receive_timeout,
            metrics=self.metrics,
        )
        self.publisher = Publisher(
            channel=self.config.channel_name,
            user_id=self.config.user_id,
            dialer=publisher_dialer,
            address=self.config.store_url,
            metrics=self.metrics,
        )

    def display(self, message: str):
        """Print an incoming message."""
        print(message, file=self.stdout, flush=True)

    async def run(self) -> int:
        """Chat until input runs out; returns the process exit code."""
        watcher = asyncio.create_task(self.subscriber.run(), name="messenger-subscriber")
        exit_code = EXIT_FAILURE
        try:
            try:
                await self.publisher.start()
            except StoreConnectionError as e:
                self.logger.error("Failed to create store client for publish", code=e.code, error=e.message)
                return exit_code
            exit_code = await self._publish_input(LineReader(self.stdin))
            return exit_code
        finally:
            await self._stop(watcher)

    async def _publish_input(self, reader: LineReader) -> int:
        while True:
            try:
                line = await reader.readline()
            except InputExhausted as e:
                if e.is_eof:
                    self.logger.info("End of input, shutting down")
                    return EXIT_OK
                self.logger.error("Error encountered when reading line from input", error=e.details.get("cause"))
                return EXIT_FAILURE

            try:
                await self.publisher.publish(line)
            except StoreCommandError as e:
                self.logger.error("Publish rejected by store", error=e.message)
            except StoreConnectionError as e:
                self.logger.error("Lost publisher connection", error=e.message)
                return EXIT_FAILURE

    async def _stop(self, watcher: "asyncio.Task[SubscriberState]"):
        self.shutdown.close()
        try:
            state = await watcher
        finally:
            await self.publisher.close()
        self.logger.info(
            "Messenger stopped",
            subscriber_state=state.value,
            delivered=self.subscriber.delivered,
            suppressed=self.subscriber.suppressed
        )


def main():
    """Console entry point."""
    try:
        service = MessengerService()
    except ConfigurationError as e:
        configure_logging("messenger", stream=sys.stderr)
        get_logger("messenger.main").error("Invalid configuration", error=e.message, details=e.details)
        sys.exit(EXIT_CONFIG)

    try:
        exit_code = asyncio.run(service.run())
    except KeyboardInterrupt:
        exit_code = EXIT_INTERRUPTED
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
