"""
State Serializer - Converts State snapshots to and from bytes.

The encoding is UTF-8 JSON. Values outside plain JSON are wrapped in a
tagged object so that every value in the model round-trips exactly:

    value model          encoded as
    -----------          ----------
    None, bool, int,     native JSON
    float, str
    list                 JSON array
    dict (str keys)      JSON object
    tuple                {"__type__": "tuple", "items": [...]}
    dict (other keys)    {"__type__": "dict", "items": [[key, value], ...]}
    bytes                {"__type__": "bytes", "data": "<base64>"}
    Blob                 {"__type__": "blob", "tag": "...", "data": "<base64>"}

Anything else raises StateSerializationError instead of being coerced.
"""

import base64
import binascii
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from agentgraph.graph.errors import StateSerializationError
from agentgraph.graph.state import State

FORMAT_NAME = "agentgraph.state"
FORMAT_VERSION = 1
TYPE_KEY = "__type__"


@dataclass(frozen=True)
class Blob:
    """Opaque binary payload with a caller-defined tag (e.g. a MIME type)."""

    tag: str
    data: bytes


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def encode_value(value: Any) -> Any:
    """Convert a state value into its JSON-compatible tagged form."""
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, list):
        return [encode_value(v) for v in value]
    if isinstance(value, tuple):
        return {TYPE_KEY: "tuple", "items": [encode_value(v) for v in value]}
    if isinstance(value, dict):
        if all(isinstance(k, str) for k in value) and TYPE_KEY not in value:
            return {k: encode_value(v) for k, v in value.items()}
        return {
            TYPE_KEY: "dict",
            "items": [[encode_value(k), encode_value(v)] for k, v in value.items()],
        }
    if isinstance(value, bytes):
        return {TYPE_KEY: "bytes", "data": _b64(value)}
    if isinstance(value, Blob):
        return {TYPE_KEY: "blob", "tag": value.tag, "data": _b64(value.data)}
    raise StateSerializationError(
        f"Value of type {type(value).__name__} is not serializable",
        details={"type": type(value).__name__},
    )


def decode_value(raw: Any) -> Any:
    """Inverse of encode_value."""
    if isinstance(raw, list):
        return [decode_value(v) for v in raw]
    if not isinstance(raw, dict):
        return raw
    if TYPE_KEY not in raw:
        return {k: decode_value(v) for k, v in raw.items()}

    kind = raw[TYPE_KEY]
    try:
        if kind == "tuple":
            return tuple(decode_value(v) for v in raw["items"])
        if kind == "dict":
            return {_hashable(decode_value(k)): decode_value(v) for k, v in raw["items"]}
        if kind == "bytes":
            return _unb64(raw["data"])
        if kind == "blob":
            return Blob(tag=raw["tag"], data=_unb64(raw["data"]))
    except (KeyError, TypeError, ValueError, binascii.Error) as e:
        raise StateSerializationError(f"Corrupt '{kind}' entry: {e}") from e
    raise StateSerializationError(f"Unknown value tag: {kind!r}")


def _hashable(key: Any) -> Any:
    if isinstance(key, list):
        raise StateSerializationError("Mapping keys must be hashable")
    return key


class StateSerializer:
    """
    Byte contract for checkpoints.

    Example:
        serializer = StateSerializer()
        data = serializer.serialize(state)
        restored = serializer.deserialize(data)
        assert restored == state and restored.version == state.version
    """

    def serialize(self, state: State) -> bytes:
        """Encode a state snapshot (values, key order and version) as bytes."""
        payload = {
            "format": FORMAT_NAME,
            "format_version": FORMAT_VERSION,
            "version": state.version,
            "values": {key: encode_value(value) for key, value in state.items()},
        }
        return json.dumps(payload, ensure_ascii=False).encode("utf-8")

    def deserialize(self, data: bytes) -> State:
        """Decode bytes produced by serialize() back into a State."""
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StateSerializationError(f"Invalid state payload: {e}") from e

        if not isinstance(payload, dict) or payload.get("format") != FORMAT_NAME:
            raise StateSerializationError("Payload is not a serialized state")
        if payload.get("format_version") != FORMAT_VERSION:
            raise StateSerializationError(
                f"Unsupported state format version: {payload.get('format_version')}"
            )

        values = payload.get("values", {})
        return State(
            {key: decode_value(value) for key, value in values.items()},
            version=int(payload.get("version", 0)),
        )

    def state_of(self, data: Mapping[str, Any], version: int = 0) -> State:
        """Build a State from a raw mapping, checking it fits the value model."""
        for value in data.values():
            encode_value(value)
        return State(data, version=version)

    def clone(self, state: State) -> State:
        """Deep copy of a state via a serialization round trip."""
        return self.deserialize(self.serialize(state))
