"""Tests for graph validation and compilation."""

import pytest

from agentgraph.graph.edge import END, EdgeCondition, EdgeSpec, GraphSpec
from agentgraph.graph.errors import GraphValidationError
from agentgraph.graph.node import FunctionNode, NodeProtocol, NodeSpec
from agentgraph.graph.state import Reducer


def noop(state):
    return {}


class AppendsLog(NodeProtocol):
    async def apply(self, state):
        return {"log": "entry"}

    def state_reducers(self):
        return {"log": Reducer.append()}


def node(node_id, action=noop):
    return NodeSpec(id=node_id, action=action)


def test_compile_builds_name_index():
    graph = GraphSpec(
        id="g",
        entry_node="a",
        nodes=[node("a"), node("b")],
        edges=[EdgeSpec(source="a", target="b"), EdgeSpec(source="b", target=END)],
    ).compile()

    assert graph.entry_node == "a"
    assert set(graph.nodes) == {"a", "b"}
    assert [e.target for e in graph.outgoing("a")] == ["b"]
    assert graph.outgoing("missing") == ()
    assert isinstance(graph.node("a").action, FunctionNode)


def test_edge_ids_default_from_endpoints():
    assert EdgeSpec(source="a", target="b").id == "a->b"
    edge = EdgeSpec(source="a", condition=EdgeCondition.CONDITIONAL, router=noop, targets=["b"])
    assert edge.id == "a->conditional"


def test_missing_entry_and_targets_are_reported():
    spec = GraphSpec(
        id="g",
        entry_node="nope",
        nodes=[node("a")],
        edges=[EdgeSpec(source="a", target="ghost")],
    )

    errors = spec.validate()

    assert "Entry node 'nope' not found" in errors
    assert any("missing target 'ghost'" in e for e in errors)
    with pytest.raises(GraphValidationError) as exc_info:
        spec.compile()
    assert exc_info.value.errors == errors


def test_duplicate_and_reserved_names():
    errors = GraphSpec(
        id="g",
        entry_node="a",
        nodes=[node("a"), node("a"), node(END)],
        edges=[EdgeSpec(source="a", target=END)],
    ).validate()

    assert "Duplicate node ID: 'a'" in errors
    assert any("reserved" in e for e in errors)


def test_unreachable_node_is_an_error():
    errors = GraphSpec(
        id="g",
        entry_node="a",
        nodes=[node("a"), node("island")],
        edges=[EdgeSpec(source="a", target=END), EdgeSpec(source="island", target=END)],
    ).validate()

    assert "Node 'island' is unreachable from entry" in errors


def test_node_without_forward_edge_must_be_terminal():
    spec = GraphSpec(id="g", entry_node="a", nodes=[node("a")], edges=[])
    assert any("not marked terminal" in e for e in spec.validate())

    spec = GraphSpec(id="g", entry_node="a", terminal_nodes=["a"], nodes=[node("a")])
    assert spec.validate() == []


def test_error_edge_alone_is_not_a_way_forward():
    errors = GraphSpec(
        id="g",
        entry_node="a",
        terminal_nodes=["fallback"],
        nodes=[node("a"), node("fallback")],
        edges=[EdgeSpec(source="a", target="fallback", condition=EdgeCondition.ON_FAILURE)],
    ).validate()

    assert any("'a' has no outgoing edge" in e for e in errors)


def test_conditional_edge_needs_router_and_known_targets():
    errors = GraphSpec(
        id="g",
        entry_node="a",
        nodes=[node("a"), node("b")],
        edges=[
            EdgeSpec(source="a", condition=EdgeCondition.CONDITIONAL, targets=["b", "c"]),
            EdgeSpec(source="b", target=END),
        ],
    ).validate()

    assert any("no routing function" in e for e in errors)
    assert any("missing target 'c'" in e for e in errors)


def test_path_map_values_must_exist():
    errors = GraphSpec(
        id="g",
        entry_node="a",
        nodes=[node("a")],
        edges=[
            EdgeSpec(
                source="a",
                condition=EdgeCondition.CONDITIONAL,
                router=noop,
                path_map={"go": "ghost", "stop": END},
            )
        ],
    ).validate()

    assert any("missing target 'ghost'" in e for e in errors)


def test_undeclared_conditional_targets_reach_every_node():
    spec = GraphSpec(
        id="g",
        entry_node="a",
        nodes=[node("a"), node("b")],
        edges=[
            EdgeSpec(source="a", condition=EdgeCondition.CONDITIONAL, router=noop),
            EdgeSpec(source="b", target=END),
        ],
    )

    assert spec.validate() == []


def test_node_reducers_join_schema():
    graph = GraphSpec(
        id="g",
        entry_node="a",
        nodes=[node("a", AppendsLog())],
        edges=[EdgeSpec(source="a", target=END)],
    ).compile()

    assert graph.state_schema["log"] == Reducer.append()


def test_conflicting_node_reducer_fails_compilation():
    spec = GraphSpec(
        id="g",
        entry_node="a",
        nodes=[node("a", AppendsLog())],
        edges=[EdgeSpec(source="a", target=END)],
        state_schema={"log": Reducer.replace()},
    )

    with pytest.raises(GraphValidationError, match="requires append reducer"):
        spec.compile()


def test_node_without_action_is_invalid():
    errors = GraphSpec(
        id="g",
        entry_node="a",
        terminal_nodes=["a"],
        nodes=[NodeSpec(id="a")],
    ).validate()

    assert "Node 'a' has no action" in errors


def test_non_callable_action_is_rejected():
    with pytest.raises((TypeError, ValueError)):
        NodeSpec(id="a", action=42)
