"""
Structured logging for the Store Access Layer.

Every process calls ``configure_logging`` once at startup. Log lines are JSON
objects carrying the process's service name, an ISO-8601 UTC timestamp, the
level, the component logger name and, while an HTTP request is being
handled, its ``request_id``.
"""

import logging
import sys
import uuid
from typing import Any, Dict, List, Optional, TextIO

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, get_contextvars, merge_contextvars
from structlog.types import Processor


def configure_logging(service_name: str, log_level: str = "info", stream: Optional[TextIO] = None) -> None:
    """Route structlog through the stdlib root logger as JSON lines on ``stream`` (stdout by default)."""
    processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        merge_contextvars,
        ServiceStamp(service_name),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        # Loggers are created before configuration in several constructors
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )


class ServiceStamp:
    """Processor that tags each event with the service that emitted it."""

    def __init__(self, service_name: str):
        self.service_name = service_name

    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", self.service_name)
        return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id (generated when missing) to the current context."""
    request_id = request_id or str(uuid.uuid4())
    bind_contextvars(request_id=request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return get_contextvars().get("request_id")


def clear_context():
    clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger named ``<service>.<component>`` or ``shared.<module>``."""
    return structlog.get_logger(name)
