"""
Queuer service for the Store Access Layer.
"""

import sys
from typing import Optional

from fastapi import Request
from fastapi.responses import PlainTextResponse

from shared.base_service import BaseService
from shared.config import QueuerConfig, load_config
from shared.errors import ConfigurationError, StoreConnectionError
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector
from shared.payloads import decode_string_list
from shared.pool import StorePool

from .queue.store_queue import StoreQueue


class QueuerService(BaseService):
    """Queuer service implementation."""

    def __init__(
        self,
        config: Optional[QueuerConfig] = None,
        pool: Optional[StorePool] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        super().__init__("queuer", config or load_config(QueuerConfig), pool=pool, metrics=metrics)

        self.queue = StoreQueue(self.config.queue_name, self.pool, metrics=self.metrics)

        self._setup_queuer_routes()
        self.app.state.queuer_service = self

    def _setup_queuer_routes(self):
        """Set up queuer-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "queuer",
                "message": "Store Access Layer - Queuer Service",
                "version": "1.0.0",
                "capabilities": ["push", "pop"],
                "queue": self.queue.name
            }

        @self.app.get("/pop", response_class=PlainTextResponse)
        async def pop_value():
            """Pop the oldest value; every failed pop answers 400 with the failure's code."""
            self.logger.info("Popping first value off queue", queue=self.queue.name)
            try:
                value = await self.queue.pop()
            except StoreConnectionError as e:
                e.status_code = 400
                raise
            return f"{value}\n"

        @self.app.post("/push", response_class=PlainTextResponse)
        async def push_values(request: Request):
            """Push every element of a JSON array, in order."""
            values = decode_string_list(await request.body())
            self.logger.info("Received push request", count=len(values), queue=self.queue.name)

            await self.queue.push_many(values)
            return "".join(f"{v} pushed\n" for v in values)


def create_app():
    """Create queuer service application."""
    service = QueuerService()
    return service.app


def main():
    """Console entry point: configuration problems exit before serving."""
    try:
        service = QueuerService()
    except ConfigurationError as e:
        configure_logging("queuer")
        get_logger("queuer.main").error("Invalid configuration", error=e.message, details=e.details)
        sys.exit(2)
    service.run()


if __name__ == "__main__":
    main()
