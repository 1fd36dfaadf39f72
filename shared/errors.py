"""
Shared error handling for the Store Access Layer.
"""

from typing import Dict, Any, List, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class StoreAccessException(Exception):
    """Base exception for Store Access Layer services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(StoreAccessException):
    """Missing or invalid configuration at startup."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class StoreConnectionError(StoreAccessException):
    """The store could not be reached or no connection was available."""

    status_code = 503

    def __init__(self, message: str = "Store connection failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "STORE_CONNECTION_ERROR"):
        super().__init__(code, message, details)


class DialFailedError(StoreConnectionError):
    """Opening a new connection to the store failed."""

    def __init__(self, address: str, reason: str):
        super().__init__(
            f"Failed to connect to store at {address}: {reason}",
            {"address": address},
            code="DIAL_FAILED"
        )


class PoolExhaustedError(StoreConnectionError):
    """No pooled connection became available within the acquire timeout."""

    def __init__(self, size: int, timeout: Optional[float]):
        super().__init__(
            "Connection pool exhausted",
            {"pool_size": size, "timeout_seconds": timeout},
            code="POOL_EXHAUSTED"
        )


class PoolClosedError(StoreConnectionError):
    """The pool was drained and accepts no further acquisitions."""

    def __init__(self):
        super().__init__("Connection pool is closed", code="POOL_CLOSED")


class StoreCommandError(StoreAccessException):
    """The store rejected a command."""

    def __init__(self, command: str, message: str = "Store command failed",
                 details: Optional[Dict[str, Any]] = None, code: str = "STORE_COMMAND_ERROR"):
        details = dict(details or {})
        details.setdefault("command", command)
        self.command = command
        super().__init__(code, message, details)


class PartialWriteError(StoreCommandError):
    """A multi-item write stopped part way; earlier items stay applied."""

    def __init__(self, command: str, applied: List[str], failed: str, cause: StoreAccessException):
        self.applied = list(applied)
        self.failed = failed
        self.cause = cause
        super().__init__(
            command,
            f"Write stopped at {failed!r} after {len(applied)} applied: {cause.message}",
            {"applied": self.applied, "failed": failed, "cause": cause.code},
            code="PARTIAL_WRITE"
        )
        self.status_code = cause.status_code


class ProtocolDecodingError(StoreAccessException):
    """A request body could not be decoded into the expected shape."""

    def __init__(self, message: str = "Malformed request body", details: Optional[Dict[str, Any]] = None,
                 code: str = "PROTOCOL_DECODING_ERROR"):
        super().__init__(code, message, details)


class InvalidTTLError(ProtocolDecodingError):
    """Cache TTLs are whole, positive seconds."""

    def __init__(self, ttl: Any):
        super().__init__(
            f"TTL must be a positive whole number of seconds, got {ttl!r}",
            {"ttl": repr(ttl)},
            code="INVALID_TTL"
        )


class KeyNotFoundError(StoreAccessException):
    """The requested cache key does not exist (or has expired)."""

    status_code = 404

    def __init__(self, key: str):
        self.key = key
        super().__init__("KEY_NOT_FOUND", f"Key {key!r} not found", {"key": key})


class QueueEmptyError(StoreAccessException):
    """Pop found nothing to return."""

    def __init__(self, queue_name: str):
        self.queue_name = queue_name
        super().__init__("QUEUE_EMPTY", f"Queue {queue_name!r} is empty", {"queue": queue_name})


class InputExhausted(StoreAccessException):
    """Local input ended (EOF) or could not be read."""

    def __init__(self, message: str = "End of input", cause: Optional[BaseException] = None):
        self.cause = cause
        details = {"cause": str(cause)} if cause else {}
        super().__init__("INPUT_EXHAUSTED", message, details)

    @property
    def is_eof(self) -> bool:
        return self.cause is None
