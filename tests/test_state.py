"""Tests for StateStore merging, reducers and snapshot immutability."""

import pytest

from agentgraph.graph.errors import ReducerMismatch, StateSchemaError
from agentgraph.graph.state import (
    MergeStrategy,
    Reducer,
    State,
    StateStore,
    StateUpdate,
)


def test_replace_is_default_and_bumps_version():
    store = StateStore(initial={"a": 1})
    assert store.version == 0

    state = store.merge([("a", 2), ("b", "x")])

    assert state["a"] == 2
    assert state["b"] == "x"
    assert state.version == 1
    assert store.reducer_for("b") == Reducer.replace()


def test_append_accepts_single_values_and_sequences():
    store = StateStore(schema={"messages": Reducer.append()})

    store.merge([("messages", "hi")])
    state = store.merge([("messages", ["a", "b"]), ("messages", ("c",))])

    assert state["messages"] == ["hi", "a", "b", "c"]
    assert state.version == 2


@pytest.mark.parametrize(
    ("seed", "expected"),
    [
        ("hello", ["hello", "x"]),
        ({"role": "user"}, [{"role": "user"}, "x"]),
        (("a", "b"), ["a", "b", "x"]),
        (None, ["x"]),
    ],
)
def test_append_keeps_scalar_seed_as_one_item(seed, expected):
    store = StateStore(schema={"messages": Reducer.append()}, initial={"messages": seed})

    state = store.merge([("messages", "x")])

    assert state["messages"] == expected


def test_custom_reducer_receives_none_on_first_write():
    seen = []

    def total(current, new):
        seen.append(current)
        return (current or 0) + new

    store = StateStore(schema={"count": Reducer.custom(total)})
    store.merge([("count", 2)])
    state = store.merge([("count", 3)])

    assert seen == [None, 2]
    assert state["count"] == 5


def test_custom_reducer_requires_function():
    with pytest.raises(ValueError):
        Reducer(MergeStrategy.CUSTOM)


def test_earlier_snapshots_are_never_mutated():
    store = StateStore(schema={"log": Reducer.append()}, initial={"log": ["start"]})
    first = store.snapshot()

    store.merge([("log", "next")])

    assert first["log"] == ["start"]
    assert first.version == 0
    assert store.snapshot()["log"] == ["start", "next"]


def test_state_is_read_only():
    state = State({"a": 1})

    with pytest.raises(TypeError):
        state["a"] = 2  # type: ignore[index]


def test_batch_applies_in_arrival_order():
    store = StateStore()
    state = store.merge([StateUpdate("k", "first", "n1"), StateUpdate("k", "second", "n2")])

    assert state["k"] == "second"


def test_failed_merge_leaves_state_untouched():
    def reject(current, new):
        raise ValueError("incompatible")

    store = StateStore(schema={"bad": Reducer.custom(reject)}, initial={"a": 1})

    with pytest.raises(ReducerMismatch) as exc_info:
        store.merge([("a", 2), StateUpdate("bad", 1, "writer")])

    assert exc_info.value.key == "bad"
    assert exc_info.value.source == "writer"
    assert store.version == 0
    assert store.snapshot()["a"] == 1
    assert "a" in store.snapshot() and "bad" not in store.snapshot()


def test_keys_from_failed_merge_are_not_registered():
    def reject(current, new):
        raise ValueError("no")

    store = StateStore(schema={"bad": Reducer.custom(reject)})
    with pytest.raises(ReducerMismatch):
        store.merge([("new_key", 1), ("bad", 1)])

    assert "new_key" not in store.reducers


def test_reducer_cannot_change_once_set():
    store = StateStore(schema={"messages": Reducer.append()})

    store.register("messages", Reducer.append())
    with pytest.raises(StateSchemaError):
        store.register("messages", Reducer.replace())


def test_implicitly_registered_key_keeps_replace():
    store = StateStore()
    store.merge([("x", 1)])

    with pytest.raises(StateSchemaError):
        store.register("x", Reducer.append())


def test_same_updates_give_same_state():
    updates = [("a", 1), ("log", ["x"]), ("a", 3), ("log", "y")]

    first = StateStore(schema={"log": Reducer.append()}).merge(updates)
    second = StateStore(schema={"log": Reducer.append()}).merge(updates)

    assert first == second
    assert list(first) == list(second)
