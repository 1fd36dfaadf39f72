"""
Request body decoding for the HTTP services.

Bodies are decoded by hand rather than through pydantic request models so a
malformed body maps onto ``ProtocolDecodingError`` (HTTP 400) and handling
stops at the first problem.
"""

import json
from typing import Any, Dict, List

from shared.errors import ProtocolDecodingError


def _load_json(body: bytes) -> Any:
    if not body or not body.strip():
        raise ProtocolDecodingError("Request contained no body")
    try:
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolDecodingError("Error unmarshaling json payload", {"error": str(e)}) from e


def decode_string_map(body: bytes) -> Dict[str, str]:
    """Decode a JSON object whose values are all strings."""
    payload = _load_json(body)
    if not isinstance(payload, dict):
        raise ProtocolDecodingError(
            "Expected a JSON object of key/value strings",
            {"received": type(payload).__name__}
        )
    bad_keys = [key for key, value in payload.items() if not isinstance(value, str)]
    if bad_keys:
        raise ProtocolDecodingError("All values must be strings", {"keys": bad_keys})
    return payload


def decode_string_list(body: bytes) -> List[str]:
    """Decode a JSON array of strings."""
    payload = _load_json(body)
    if not isinstance(payload, list):
        raise ProtocolDecodingError(
            "Expected a JSON array of strings",
            {"received": type(payload).__name__}
        )
    bad_positions = [index for index, value in enumerate(payload) if not isinstance(value, str)]
    if bad_positions:
        raise ProtocolDecodingError("All elements must be strings", {"positions": bad_positions})
    return payload
