"""
Wire codecs for websocket frames.

Text frames carry JSON, binary frames carry MessagePack. Both decode to a
dict; anything else is a DecodeError, which the transport ignores.
"""

import json
from enum import StrEnum
from typing import Any

import msgpack


class WireFormat(StrEnum):
    JSON = "json"
    MSGPACK = "msgpack"


class DecodeError(Exception):
    """Error raised when an inbound frame cannot be decoded."""


# Size limits to prevent resource exhaustion from malicious payloads.
# Inbound messages are tiny ({"type": "choice", "value": 3}).
MAX_BUFFER_LEN = 4 * 1024
MAX_STR_LEN = 1024
MAX_BIN_LEN = 1024
MAX_ARRAY_LEN = 64
MAX_MAP_LEN = 16
MAX_EXT_LEN = 64


def encode_json(data: dict[str, Any]) -> str:
    return json.dumps(data, separators=(",", ":"))


def encode_msgpack(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data)


def _ensure_dict(result: object) -> dict[str, Any]:
    if not isinstance(result, dict):
        raise DecodeError(f"expected object, got {type(result).__name__}")
    return result


def decode_json(data: str) -> dict[str, Any]:
    """
    Decode a JSON text frame to a dict.

    Raises DecodeError if the text is invalid, not an object, or too large.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} chars (max {MAX_BUFFER_LEN})")
    try:
        result = json.loads(data)
    except (json.JSONDecodeError, RecursionError) as e:
        raise DecodeError(f"failed to decode JSON data: {e}") from e
    return _ensure_dict(result)


def decode_msgpack(data: bytes) -> dict[str, Any]:
    """
    Decode MessagePack bytes to a dict.

    Raises DecodeError if data is invalid, not a map, or exceeds size limits.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e
    return _ensure_dict(result)
