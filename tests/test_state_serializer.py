"""Tests for the state byte codec."""

import json

import pytest

from agentgraph.graph.errors import StateSerializationError
from agentgraph.graph.state import State
from agentgraph.serialization import Blob, StateSerializer


@pytest.fixture
def serializer():
    return StateSerializer()


def test_round_trip_preserves_values_order_and_version(serializer):
    state = State(
        {
            "z": None,
            "flag": True,
            "count": 3,
            "ratio": 0.5,
            "text": "héllo",
            "items": [1, [2, 3]],
            "pair": (1, "two"),
            "nested": {"inner": {"deep": [None]}},
            "by_int": {1: "one", (2, 3): "tuple key"},
            "raw": b"\x00\xff",
            "image": Blob(tag="image/png", data=b"\x89PNG"),
        },
        version=7,
    )

    restored = serializer.deserialize(serializer.serialize(state))

    assert restored == state
    assert restored.version == 7
    assert list(restored) == list(state)
    assert isinstance(restored["pair"], tuple)
    assert isinstance(restored["items"], list)
    assert restored["image"] == Blob(tag="image/png", data=b"\x89PNG")


def test_dict_with_reserved_key_round_trips(serializer):
    state = State({"meta": {"__type__": "user data", "x": 1}})

    assert serializer.deserialize(serializer.serialize(state)) == state


def test_unsupported_value_raises(serializer):
    with pytest.raises(StateSerializationError):
        serializer.serialize(State({"s": {1, 2}}))

    with pytest.raises(StateSerializationError):
        serializer.serialize(State({"obj": object()}))


def test_rejects_foreign_payload(serializer):
    with pytest.raises(StateSerializationError):
        serializer.deserialize(b"not json")

    with pytest.raises(StateSerializationError):
        serializer.deserialize(json.dumps({"values": {}}).encode())


def test_rejects_unknown_format_version(serializer):
    payload = json.loads(serializer.serialize(State({"a": 1})))
    payload["format_version"] = 99

    with pytest.raises(StateSerializationError):
        serializer.deserialize(json.dumps(payload).encode())


def test_rejects_unknown_tag(serializer):
    payload = json.loads(serializer.serialize(State({"a": 1})))
    payload["values"]["a"] = {"__type__": "mystery"}

    with pytest.raises(StateSerializationError):
        serializer.deserialize(json.dumps(payload).encode())


def test_state_of_checks_value_model(serializer):
    state = serializer.state_of({"a": [1, 2]}, version=3)
    assert state["a"] == [1, 2]
    assert state.version == 3

    with pytest.raises(StateSerializationError):
        serializer.state_of({"bad": object()})


def test_clone_is_deep(serializer):
    original = State({"items": [{"n": 1}]}, version=2)

    clone = serializer.clone(original)
    clone["items"][0]["n"] = 99

    assert original["items"][0]["n"] == 1
    assert clone.version == 2
