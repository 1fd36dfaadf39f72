"""
Cacher service for the Store Access Layer.
"""

import sys
from typing import List, Optional

from fastapi import Query, Request
from fastapi.responses import PlainTextResponse

from shared.base_service import BaseService
from shared.config import CacherConfig, load_config
from shared.errors import ConfigurationError, KeyNotFoundError
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector
from shared.payloads import decode_string_map
from shared.pool import StorePool

from .cache.store_cache import StoreCache


class CacherService(BaseService):
    """Cacher service implementation."""

    def __init__(
        self,
        config: Optional[CacherConfig] = None,
        pool: Optional[StorePool] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        super().__init__("cacher", config or load_config(CacherConfig), pool=pool, metrics=metrics)

        self.cache = StoreCache(self.pool, metrics=self.metrics)

        self._setup_cacher_routes()
        self.app.state.cacher_service = self

    def _setup_cacher_routes(self):
        """Set up cacher-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "cacher",
                "message": "Store Access Layer - Cacher Service",
                "version": "1.0.0",
                "capabilities": ["get", "set"],
                "default_ttl_seconds": self.config.cache_ttl_seconds
            }

        @self.app.get("/get", response_class=PlainTextResponse)
        async def get_values(key: List[str] = Query(default=[], description="Keys to look up")):
            """Look up each requested key, one line per key in query order."""
            self.logger.info("Getting values", keys=key)
            lines = []
            for k in key:
                try:
                    value = await self.cache.get(k)
                except KeyNotFoundError:
                    lines.append(f"{k} not found\n")
                    continue
                lines.append(f"{k} = {value}\n")
            return "".join(lines)

        @self.app.post("/set", response_class=PlainTextResponse)
        async def set_values(request: Request):
            """Set every key of a JSON object, one line per key."""
            entries = decode_string_map(await request.body())
            self.logger.info("Received set request", keys=list(entries))

            await self.cache.set_many(entries, self.config.cache_ttl_seconds)
            return "".join(f"{k} set to {v}\n" for k, v in entries.items())


def create_app():
    """Create cacher service application."""
    service = CacherService()
    return service.app


def main():
    """Console entry point: configuration problems exit before serving."""
    try:
        service = CacherService()
    except ConfigurationError as e:
        configure_logging("cacher")
        get_logger("cacher.main").error("Invalid configuration", error=e.message, details=e.details)
        sys.exit(2)
    service.run()


if __name__ == "__main__":
    main()
