"""Codecs turning structured values into stored JSON text."""

import base64
import json
from typing import Any, Protocol, runtime_checkable

from auth_state.exceptions import CodecError


@runtime_checkable
class Codec(Protocol):
    """Deterministic, lossless encode/decode pair for stored values."""

    def encode(self, value: Any) -> str:
        """Encode a value to JSON text."""
        ...

    def decode(self, data: str) -> Any:
        """Decode JSON text back to a value."""
        ...


class BufferJSONCodec:
    """JSON codec that preserves binary values.

    ``bytes`` values are written as ``{"type": "Buffer", "data": "<base64>"}``
    and restored on decode, matching the buffer encoding used by the
    messaging protocol library whose key material this store persists.
    """

    def encode(self, value: Any) -> str:
        """Encode a value, converting bytes to tagged buffer objects."""
        try:
            return json.dumps(value, default=self._default, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise CodecError(f"Cannot encode value: {e}") from e

    def decode(self, data: str) -> Any:
        """Decode JSON text, restoring tagged buffer objects to bytes."""
        try:
            return json.loads(data, object_hook=self._object_hook)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Cannot decode value: {e}") from e

    @staticmethod
    def _default(value: Any) -> Any:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return {
                "type": "Buffer",
                "data": base64.b64encode(bytes(value)).decode("ascii"),
            }
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

    @staticmethod
    def _object_hook(obj: dict[str, Any]) -> Any:
        if obj.get("type") == "Buffer" and len(obj) == 2:
            data = obj.get("data")
            if isinstance(data, str):
                return base64.b64decode(data, validate=True)
            if isinstance(data, list):
                # Node's default Buffer.toJSON shape: list of byte values
                return bytes(data)
        return obj
