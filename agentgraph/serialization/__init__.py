"""State byte codec used for checkpoints."""

from agentgraph.serialization.state_serializer import (
    Blob,
    StateSerializer,
    decode_value,
    encode_value,
)

__all__ = ["Blob", "StateSerializer", "encode_value", "decode_value"]
